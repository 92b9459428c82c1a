import logging
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import httpx

from config import FAILURE_PREFIX, TestConfiguration
from metrics import RequestResult

logger = logging.getLogger(__name__)

Header = Tuple[str, str]


class HttpMethod(Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"

    @property
    def sends_body(self) -> bool:
        return self is not HttpMethod.GET


def parse_headers(text: Optional[str]) -> List[Header]:
    """
    Parses a newline separated block of "Key: Value" lines.

    Lines without a colon (or with nothing before it) are skipped. Order is
    kept and repeated keys are all returned.
    """
    headers: List[Header] = []
    if not text:
        return headers
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            if line.strip():
                logger.debug(f"Skipping malformed header line: {line!r}")
            continue
        headers.append((key, value.strip()))
    return headers


def build_headers(config: TestConfiguration) -> List[Header]:
    headers = parse_headers(config.headers)
    if config.authorization:
        headers = [(k, v) for k, v in headers if k.lower() != "authorization"]
        headers.append(("Authorization", config.authorization))
    return headers


def _failure(error: Exception) -> RequestResult:
    message = str(error) or type(error).__name__
    return RequestResult(f"{FAILURE_PREFIX}{message}", 0)


def execute_request(config: TestConfiguration,
                    transport: Optional[httpx.BaseTransport] = None) -> RequestResult:
    """
    Issues one request described by `config` on a fresh client.

    Elapsed time covers connecting, sending and receiving the response head;
    the body is never read. Transport errors and header values that cannot
    be encoded become a failure result with an elapsed time of 0.
    """
    method = HttpMethod(config.method)
    headers = build_headers(config)

    client_kwargs: Dict[str, Any] = {}
    if transport is not None:
        client_kwargs["transport"] = transport
    if config.timeout_seconds is not None:
        client_kwargs["timeout"] = config.timeout_seconds

    try:
        with httpx.Client(**client_kwargs) as client:
            url = httpx.URL(config.url)
            if config.query_params:
                # Added to any query already in the URL, never replacing it
                url = url.copy_merge_params(list(config.query_params))
            request = client.build_request(
                method.value,
                url,
                headers=headers,
                content=config.body if method.sends_body else None,
            )
            start_time = time.perf_counter()
            response = client.send(request, stream=True)
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            response.close()
    except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as e:
        logger.debug(f"{method.value} {config.url} failed: {e}")
        return _failure(e)

    return RequestResult(str(response.status_code), elapsed_ms)

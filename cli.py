import argparse
import logging
import signal
import sys
from typing import List, Optional, Sequence, Tuple

import config
from config import ConfigurationError, TestConfiguration, build_authorization
from load_test import LoadTest, TestCallbacks
from metrics import RequestResult, summarize_results

logger = logging.getLogger()  # Get root logger


def setup_logging(level: int = config.LOG_LEVEL, log_file: Optional[str] = config.LOG_FILE):
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w'))
    logging.basicConfig(level=level, format=config.LOG_FORMAT, handlers=handlers)
    logger.info(f"Logging setup complete. Log file: {log_file or 'none'}")


def read_body_file(path: str) -> str:
    try:
        with open(path, encoding='utf-8') as f:
            return f.read()
    except OSError as e:
        raise ConfigurationError(f"Cannot read body file {path}: {e}") from e


def parse_query_params(values: Sequence[str]) -> List[Tuple[str, str]]:
    params = []
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"Query parameter must look like key=value, got {item!r}")
        params.append((key.strip(), value.strip()))
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loadtest", description="Drive concurrent HTTP load against one endpoint.")
    parser.add_argument("--url", required=True, help="Target URL")
    parser.add_argument("--method", default="GET", choices=config.SUPPORTED_METHODS)
    parser.add_argument("--header", action="append", default=[], metavar="'Key: Value'",
                        help="Request header, may be repeated")
    parser.add_argument("--param", action="append", default=[], metavar="KEY=VALUE",
                        help="Query parameter appended to the URL, may be repeated")
    body = parser.add_mutually_exclusive_group()
    body.add_argument("--body", default="", help="Raw request body for POST/PUT/PATCH")
    body.add_argument("--body-file", help="Read the request body from a UTF-8 text file")
    parser.add_argument("--auth-type", default="None", choices=config.AUTH_TYPES)
    parser.add_argument("--token", default="", help="Token used with --auth-type")
    parser.add_argument("--users", type=int, default=config.DEFAULT_USERS)
    parser.add_argument("--ramp-up", type=int, default=config.DEFAULT_RAMP_UP_SECONDS, help="Ramp-up time in seconds")
    parser.add_argument("--loop-count", type=int, default=config.DEFAULT_LOOP_COUNT)
    parser.add_argument("--rps", type=int, default=config.DEFAULT_REQUESTS_PER_SECOND,
                        help="Requests per second per user")
    parser.add_argument("--output-dir", default=config.RESULTS_DIR)
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=config.LOG_FILE, help="Log file path, empty to disable")
    return parser


def configuration_from_args(args: argparse.Namespace) -> TestConfiguration:
    body = read_body_file(args.body_file) if args.body_file else args.body
    return TestConfiguration(
        url=args.url,
        method=args.method,
        headers="\n".join(args.header),
        body=body,
        authorization=build_authorization(args.auth_type, args.token),
        users=args.users,
        ramp_up_seconds=args.ramp_up,
        loop_count=args.loop_count,
        requests_per_second=args.rps,
        output_directory=args.output_dir,
        query_params=tuple(parse_query_params(args.param)),
        timeout_seconds=args.timeout,
    )


def print_statistics(results: List[RequestResult]):
    stats = summarize_results(results)
    print("\nTest completed!")
    print(f"Total requests: {stats.count}")
    print("\nTest Statistics:")
    print(f"Successful requests: {stats.successful}")
    print(f"Failed requests: {stats.failed}")
    if stats.count == 0:
        print("Response times: no data")
        return
    print(f"Min response time: {stats.min_response_time_ms} ms")
    print(f"Max response time: {stats.max_response_time_ms} ms")
    print(f"Average response time: {stats.average_response_time_ms:.2f} ms")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file or None)

    try:
        test_config = configuration_from_args(args)
    except ConfigurationError as e:
        logger.error(f"Invalid arguments: {e}")
        return 2

    load_test = LoadTest(test_config)
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: load_test.stop())
    try:
        state = load_test.run(TestCallbacks(on_progress=logger.info, on_complete=print_statistics))
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    return 0 if state is not None else 2


if __name__ == "__main__":
    sys.exit(main())

import logging
import os
from typing import NamedTuple, Optional, Sequence, Tuple

# General
LOG_LEVEL = logging.INFO  # DEBUG for per-request progress in the log file
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s'
LOG_FILE = "load_test.log"  # Will be created in the current working directory
RESULTS_DIR = "results"  # Default output directory for reports

# Report Config
SUMMARY_REPORT_FILENAME = "summary_report.txt"
DETAILED_REPORT_FILENAME = "detailed_report.txt"
REPORT_TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

# Run Config
SUPPORTED_METHODS = ("GET", "POST", "PUT", "PATCH")
SUCCESS_STATUS = "200"
FAILURE_PREFIX = "Request failed: "
DRAIN_TIMEOUT_SECONDS = 60  # Graceful shutdown window for the worker pool

# Authorization schemes offered to callers building the Authorization value
AUTH_TYPES = ("None", "Bearer", "JWT", "Basic")

# Defaults for the command line front end
DEFAULT_USERS = 1
DEFAULT_RAMP_UP_SECONDS = 1
DEFAULT_LOOP_COUNT = 1
DEFAULT_REQUESTS_PER_SECOND = 1


class ConfigurationError(ValueError):
    """Raised when a run cannot start because of invalid parameters."""


class TestConfiguration(NamedTuple):
    url: str
    method: str = "GET"
    headers: str = ""  # "Key: Value" lines
    body: str = ""
    authorization: Optional[str] = None
    users: int = DEFAULT_USERS
    ramp_up_seconds: int = DEFAULT_RAMP_UP_SECONDS
    loop_count: int = DEFAULT_LOOP_COUNT
    requests_per_second: int = DEFAULT_REQUESTS_PER_SECOND
    output_directory: str = RESULTS_DIR
    query_params: Sequence[Tuple[str, str]] = ()
    timeout_seconds: Optional[float] = None  # None keeps the transport default

    __test__ = False  # not a pytest test class

    @property
    def per_user_budget(self) -> int:
        # Rate is used as an iteration multiplier here, not as a true rate.
        return self.loop_count * self.requests_per_second * self.ramp_up_seconds

    @property
    def expected_total_requests(self) -> int:
        return self.users * self.per_user_budget

    @property
    def request_interval_ms(self) -> float:
        return 1000.0 / self.requests_per_second

    @property
    def ramp_up_stagger_ms(self) -> float:
        return self.ramp_up_seconds * 1000.0 / self.users

    def validate(self):
        """Checks every parameter a run depends on, raising ConfigurationError on the first problem."""
        if not self.url or not self.url.strip():
            raise ConfigurationError("URL must not be empty")
        if self.method not in SUPPORTED_METHODS:
            raise ConfigurationError(
                f"Unsupported HTTP method: {self.method} (expected one of {', '.join(SUPPORTED_METHODS)})")
        for name in ("users", "requests_per_second"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        for name in ("ramp_up_seconds", "loop_count"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be positive, got {self.timeout_seconds!r}")
        if not self.output_directory or not self.output_directory.strip():
            raise ConfigurationError("Output directory must not be empty")


def prepare_output_directory(path: str) -> str:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Error creating report directory: {e}") from e
    if not os.path.isdir(path):
        raise ConfigurationError(f"Report directory is not a directory: {path}")
    if not os.access(path, os.W_OK | os.X_OK):
        raise ConfigurationError(f"Report directory is not writable: {path}")
    return path


def build_authorization(auth_type: Optional[str], token: Optional[str]) -> Optional[str]:
    """Turns an auth scheme + token pair into an Authorization header value (None when unset)."""
    token = (token or "").strip()
    if not token or not auth_type or auth_type == "None":
        return None
    if auth_type not in AUTH_TYPES:
        raise ConfigurationError(f"Unsupported auth type: {auth_type}")
    return f"{auth_type} {token}"

import threading
from typing import List, NamedTuple, Optional, Sequence

from config import FAILURE_PREFIX, SUCCESS_STATUS


class RequestResult(NamedTuple):
    response_code: str  # "200", "404", ... or "Request failed: <cause>"
    response_time_ms: int  # 0 for transport failures

    @property
    def success(self) -> bool:
        return self.response_code == SUCCESS_STATUS

    @property
    def transport_failure(self) -> bool:
        return self.response_code.startswith(FAILURE_PREFIX)


class RunMetrics(NamedTuple):
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_response_time_ms: int = 0

    @property
    def average_response_time_ms(self) -> Optional[float]:
        if self.total_requests == 0:
            return None
        return self.total_response_time_ms / self.total_requests


class ResultStatistics(NamedTuple):
    count: int
    successful: int
    failed: int
    min_response_time_ms: Optional[int]
    max_response_time_ms: Optional[int]
    average_response_time_ms: Optional[float]


class MetricsCollector:
    """
    Shared sink for every virtual user's results.

    Totals and the result list are updated under one lock so concurrent
    record() calls never lose an update. The list keeps completion order,
    which interleaves across users.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._results: List[RequestResult] = []
        self._total_requests = 0
        self._successful_requests = 0
        self._failed_requests = 0
        self._total_response_time_ms = 0

    def record(self, result: RequestResult):
        with self._lock:
            self._results.append(result)
            self._total_requests += 1
            if result.success:
                self._successful_requests += 1
            else:
                self._failed_requests += 1
            self._total_response_time_ms += result.response_time_ms

    def snapshot(self) -> RunMetrics:
        with self._lock:
            return RunMetrics(
                total_requests=self._total_requests,
                successful_requests=self._successful_requests,
                failed_requests=self._failed_requests,
                total_response_time_ms=self._total_response_time_ms,
            )

    def results(self) -> List[RequestResult]:
        with self._lock:
            return list(self._results)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)


def summarize_results(results: Sequence[RequestResult]) -> ResultStatistics:
    if not results:
        return ResultStatistics(0, 0, 0, None, None, None)
    times = [r.response_time_ms for r in results]
    successful = sum(1 for r in results if r.success)
    return ResultStatistics(
        count=len(results),
        successful=successful,
        failed=len(results) - successful,
        min_response_time_ms=min(times),
        max_response_time_ms=max(times),
        average_response_time_ms=sum(times) / len(times),
    )

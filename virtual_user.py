import logging
import threading
from typing import Callable, Optional

import httpx

from config import TestConfiguration
from metrics import MetricsCollector
from request_executor import execute_request


class CompletionLatch:
    """
    Counts completed requests down from the expected total and tracks live workers.

    wait() returns once every expected request has completed, or once no
    worker is left running (stopped early or failed).
    """

    def __init__(self, count: int, workers: int):
        self._count = count
        self._workers = workers
        self._condition = threading.Condition()

    @property
    def count(self) -> int:
        with self._condition:
            return self._count

    def count_down(self):
        with self._condition:
            if self._count > 0:
                self._count -= 1
                if self._count == 0:
                    self._condition.notify_all()

    def worker_exited(self):
        with self._condition:
            self._workers -= 1
            if self._workers <= 0:
                self._condition.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        with self._condition:
            return self._condition.wait_for(
                lambda: self._count == 0 or self._workers <= 0, timeout=timeout)


class VirtualUser:
    def __init__(self, user_index: int, config: TestConfiguration,
                 collector: MetricsCollector, latch: CompletionLatch,
                 stop_event: threading.Event,
                 on_progress: Callable[[str], None],
                 start_delay_ms: float = 0.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.user_index = user_index
        self.user_number = user_index + 1  # 1-based in progress messages
        self.config = config
        self.collector = collector
        self.latch = latch
        self.stop_event = stop_event
        self.on_progress = on_progress
        self.start_delay_s = start_delay_ms / 1000.0
        self.request_interval_s = config.request_interval_ms / 1000.0
        self.budget = config.per_user_budget
        self.transport = transport

        self.completed_requests = 0
        self.logger = logging.getLogger(f"VirtualUser-{self.user_number}")

    def run(self) -> int:
        """Runs the paced request loop on the calling thread and returns the number of requests issued."""
        try:
            if self.start_delay_s > 0 and self.stop_event.wait(self.start_delay_s):
                self.logger.info("Stop requested before ramp-up start.")
                return self.completed_requests

            self.logger.debug(f"Starting {self.budget} requests, interval {self.request_interval_s * 1000:.1f}ms")
            for i in range(self.budget):
                if self.stop_event.is_set():
                    self._report_stopped()
                    break

                result = execute_request(self.config, transport=self.transport)
                self.collector.record(result)
                self.completed_requests += 1
                self.latch.count_down()

                self.on_progress(
                    f"User {self.user_number} - Request {i + 1}/{self.budget} completed with status "
                    f"{result.response_code} in {result.response_time_ms} ms")

                if i < self.budget - 1 and self.stop_event.wait(self.request_interval_s):
                    self._report_stopped()
                    break
        except Exception as e:
            self.logger.error(f"Virtual user aborted after {self.completed_requests} requests: {e}", exc_info=True)
        finally:
            self.latch.worker_exited()

        self.logger.info(f"Finished. Issued {self.completed_requests}/{self.budget} requests.")
        return self.completed_requests

    def _report_stopped(self):
        self.logger.info("Stop observed between requests.")
        self.on_progress(f"User {self.user_number} stopped by user")

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, List, NamedTuple, Optional

import httpx

from config import (
    DRAIN_TIMEOUT_SECONDS, ConfigurationError, TestConfiguration, prepare_output_directory,
)
from metrics import MetricsCollector, RequestResult, RunMetrics
from report import write_reports
from virtual_user import CompletionLatch, VirtualUser

logger = logging.getLogger(__name__)


class TestCallbacks(NamedTuple):
    """
    Notification channels handed in by the caller.

    on_progress may be called from any worker thread at any time;
    on_complete fires exactly once per successful start, from the thread
    that called run(). Callers that own a UI thread must marshal onto it.
    """
    on_progress: Callable[[str], None]
    on_complete: Callable[[List[RequestResult]], None]

    __test__ = False  # not a pytest test class


class RunState:
    def __init__(self, collector: MetricsCollector, stop_event: threading.Event):
        self.collector = collector
        self.stop_event = stop_event
        self.start_time: float = time.time()
        self.end_time: Optional[float] = None

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    @property
    def duration_s(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    @property
    def metrics(self) -> RunMetrics:
        return self.collector.snapshot()

    @property
    def results(self) -> List[RequestResult]:
        return self.collector.results()


class LoadTest:
    def __init__(self, config: TestConfiguration,
                 transport: Optional[httpx.BaseTransport] = None,
                 drain_timeout_s: float = DRAIN_TIMEOUT_SECONDS):
        self.config = config
        self.transport = transport
        self.drain_timeout_s = drain_timeout_s
        self._stop_event = threading.Event()
        self.state: Optional[RunState] = None

    def stop(self):
        """Asks every virtual user of the current run to stop after its current request."""
        logger.info("Stop requested.")
        self._stop_event.set()

    def run(self, callbacks: TestCallbacks) -> Optional[RunState]:
        config = self.config
        try:
            config.validate()
            prepare_output_directory(config.output_directory)
        except ConfigurationError as e:
            logger.error(f"Load test not started: {e}")
            callbacks.on_progress(f"Configuration error: {e}")
            return None

        # Fresh flag per run, a stop() from an earlier run must not carry over
        self._stop_event = threading.Event()
        collector = MetricsCollector()
        state = RunState(collector, self._stop_event)
        self.state = state

        per_user = config.per_user_budget
        expected_total = config.expected_total_requests
        stagger_ms = config.ramp_up_stagger_ms
        latch = CompletionLatch(expected_total, config.users)

        logger.info(f"Starting load test: {config.method} {config.url}, {config.users} users, "
                    f"{per_user} reqs/user, {config.request_interval_ms:.1f}ms interval, "
                    f"{stagger_ms:.1f}ms ramp-up stagger")
        callbacks.on_progress(f"Starting test with {config.users} users...")
        callbacks.on_progress(f"Total requests per user: {per_user}")
        callbacks.on_progress(f"Total requests: {expected_total}")

        virtual_users = [
            VirtualUser(
                user_index=i, config=config, collector=collector, latch=latch,
                stop_event=self._stop_event, on_progress=callbacks.on_progress,
                start_delay_ms=i * stagger_ms, transport=self.transport,
            )
            for i in range(config.users)
        ]

        pool = ThreadPoolExecutor(max_workers=config.users, thread_name_prefix="virtual-user")
        futures = [pool.submit(user.run) for user in virtual_users]

        latch.wait()
        if latch.count > 0:
            logger.info(f"All virtual users exited with {latch.count} expected requests outstanding.")
        self._shutdown_pool(pool, futures)

        state.end_time = time.time()
        metrics = collector.snapshot()
        results = collector.results()
        logger.info(f"Load test finished in {state.duration_s:.2f}s. Total: {metrics.total_requests}, "
                    f"successful: {metrics.successful_requests}, failed: {metrics.failed_requests}")

        write_reports(config, metrics, results, state.start_time, state.end_time,
                      on_progress=callbacks.on_progress)
        callbacks.on_progress(f"Test completed. Reports generated in: {config.output_directory}")
        callbacks.on_complete(results)
        return state

    def _shutdown_pool(self, pool: ThreadPoolExecutor, futures):
        pool.shutdown(wait=False)
        done, not_done = wait(futures, timeout=self.drain_timeout_s)
        if not_done:
            logger.warning(f"{len(not_done)} virtual users still running after "
                           f"{self.drain_timeout_s}s drain window. Forcing stop.")
            self._stop_event.set()
            for future in not_done:
                future.cancel()
        for future in done:
            if not future.cancelled() and future.exception() is not None:
                logger.error(f"Virtual user failed: {future.exception()}")

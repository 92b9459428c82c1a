import logging
import os
import time
from typing import Callable, List, Optional, Sequence

from config import (
    DETAILED_REPORT_FILENAME, REPORT_TIMESTAMP_FORMAT, SUMMARY_REPORT_FILENAME, TestConfiguration,
)
from metrics import RequestResult, RunMetrics

logger = logging.getLogger(__name__)


def _format_timestamp(ts: float) -> str:
    return time.strftime(REPORT_TIMESTAMP_FORMAT, time.localtime(ts))


def render_summary(config: TestConfiguration, metrics: RunMetrics,
                   start_time: float, end_time: float) -> str:
    average = metrics.average_response_time_ms
    average_text = f"{average:.2f} ms" if average is not None else "no data"
    lines = [
        "Load Test Summary Report",
        "=======================",
        "",
        "Test Configuration:",
        "------------------",
        f"URL: {config.url}",
        f"HTTP Method: {config.method}",
        f"Number of Users: {config.users}",
        f"Ramp-up Time: {config.ramp_up_seconds} seconds",
        f"Loop Count: {config.loop_count}",
        f"Requests per Second: {config.requests_per_second}",
        "",
        "Test Results:",
        "-------------",
        f"Test Start Time: {_format_timestamp(start_time)}",
        f"Test End Time: {_format_timestamp(end_time)}",
        f"Test Duration: {end_time - start_time:.2f} seconds",
        f"Total Requests: {metrics.total_requests}",
        f"Successful Requests: {metrics.successful_requests}",
        f"Failed Requests: {metrics.failed_requests}",
        f"Average Response Time: {average_text}",
    ]
    return "\n".join(lines) + "\n"


def render_detailed(results: Sequence[RequestResult], start_time: float, end_time: float) -> str:
    lines = [
        "Detailed Report:",
        f"Test Start Time: {_format_timestamp(start_time)}",
        f"Test End Time: {_format_timestamp(end_time)}",
        f"Test Duration: {end_time - start_time:.2f} seconds",
        "",
    ]
    lines.extend(f"Response Code: {r.response_code} | Response Time: {r.response_time_ms} ms" for r in results)
    return "\n".join(lines) + "\n"


def _write(path: str, content: str, on_progress: Optional[Callable[[str], None]]) -> bool:
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Failed to save report {path}: {e}")
        if on_progress:
            on_progress(f"Failed to save report {path}: {e}")
        return False
    logger.info(f"Report saved to {path}")
    return True


def write_reports(config: TestConfiguration, metrics: RunMetrics, results: Sequence[RequestResult],
                  start_time: float, end_time: float,
                  on_progress: Optional[Callable[[str], None]] = None) -> List[str]:
    """Writes the summary and detailed reports, returning the paths that were written successfully."""
    written = []
    summary_path = os.path.join(config.output_directory, SUMMARY_REPORT_FILENAME)
    if _write(summary_path, render_summary(config, metrics, start_time, end_time), on_progress):
        written.append(summary_path)
    detailed_path = os.path.join(config.output_directory, DETAILED_REPORT_FILENAME)
    if _write(detailed_path, render_detailed(results, start_time, end_time), on_progress):
        written.append(detailed_path)
    return written

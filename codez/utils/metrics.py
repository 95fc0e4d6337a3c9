"""
Metrics collection for a single run.

This module tracks:
- Run duration and final status
- Per-step wall-clock timings
- API call counts and latency per service
"""

import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

from codez.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)


class RunMetrics:
    """
    Collects metrics during one run.

    Tracks:
    - Run start/end time
    - Step durations
    - Files changed
    - API call counts and latency
    """

    def __init__(self, run_id: str, event_type: str = ""):
        self.run_id = run_id
        self.event_type = event_type

        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None

        self.step_durations: Dict[str, float] = {}
        self.files_changed: int = 0

        self.api_calls: Dict[str, int] = {}
        self.api_latencies: Dict[str, list[float]] = {}

        self.status: str = "running"
        self.error_message: Optional[str] = None

    def start(self) -> None:
        """Mark run start."""
        self.start_time = datetime.now(timezone.utc)
        self.status = "running"
        logger.info(
            f"Metrics collection started for run {self.run_id}",
            extra={"run_id": self.run_id, "event_type": self.event_type},
        )

    def complete(self, status: str = "completed", error_message: Optional[str] = None) -> None:
        """
        Mark run completion.

        Args:
            status: Final status (an outcome kind or failure reason)
            error_message: Error message if failed
        """
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self.error_message = error_message

        if self.start_time:
            duration = (self.end_time - self.start_time).total_seconds()
            self.duration_ms = int(duration * 1000)

        logger.info(
            f"Metrics collection completed for run {self.run_id}",
            extra={"run_id": self.run_id, **self.get_metrics_summary()},
        )

    def record_step(self, step: str, duration_ms: float) -> None:
        self.step_durations[step] = round(duration_ms, 2)

    def record_files_changed(self, count: int) -> None:
        self.files_changed = count

    def record_api_call(self, service: str, duration_ms: float) -> None:
        """
        Record API call and latency.

        Args:
            service: Service name (e.g., 'github', 'openai')
            duration_ms: Call duration in milliseconds
        """
        self.api_calls[service] = self.api_calls.get(service, 0) + 1
        self.api_latencies.setdefault(service, []).append(duration_ms)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        summary: Dict[str, Any] = {
            "event_type": self.event_type,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "files_changed": self.files_changed,
            "step_durations": dict(self.step_durations),
            "api_calls": dict(self.api_calls),
        }

        if self.api_latencies:
            latency_stats = {}
            for service, latencies in self.api_latencies.items():
                if latencies:
                    latency_stats[service] = {
                        "count": len(latencies),
                        "min_ms": round(min(latencies), 2),
                        "max_ms": round(max(latencies), 2),
                        "avg_ms": round(sum(latencies) / len(latencies), 2),
                    }
            summary["api_latencies"] = latency_stats

        if self.error_message:
            summary["error_message"] = self.error_message

        return summary


@asynccontextmanager
async def track_step(metrics: Optional[RunMetrics], step: str):
    """
    Context manager to time one run step.

    Usage:
        async with track_step(metrics, "checkout"):
            await clone_repository(...)
    """
    start = time.perf_counter()
    logger.info(f"[perf] {step} start", extra={"step": step})
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        if metrics:
            metrics.record_step(step, duration_ms)
        logger.info(
            f"[perf] {step} end - {int(duration_ms)}ms",
            extra={"step": step, "duration_ms": round(duration_ms, 2)},
        )


@asynccontextmanager
async def track_api_call(
    metrics: Optional[RunMetrics],
    service: str,
    endpoint: str,
    method: str,
):
    """
    Context manager to track API call timing.

    Yields a dict; set ``status_code`` on it to have the response status logged.

    Usage:
        async with track_api_call(metrics, "github", "/repos/o/r", "GET") as call:
            response = await client.get(...)
            call["status_code"] = response.status_code
    """
    start = time.perf_counter()
    call: Dict[str, Any] = {}
    error = None
    try:
        yield call
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        if metrics:
            metrics.record_api_call(service, duration_ms)
        log_api_call(
            logger,
            service=service,
            endpoint=endpoint,
            method=method,
            status_code=call.get("status_code"),
            duration_ms=duration_ms,
            error=str(error) if error else None,
        )

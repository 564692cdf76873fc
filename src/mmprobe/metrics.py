"""Timing reports and the sinks that receive them.

Every probe execution produces exactly one ``TimingReport``. Reports are handed
to a ``MetricsSink``; shipping them anywhere (Prometheus, StatsD, ...) is the
sink owner's business. Sinks must never block the execution thread.
"""

from __future__ import annotations

import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from mmprobe.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 1000


@dataclass(frozen=True)
class TimingReport:
    """Outcome and latency of a single probed action.

    Attributes:
        metric_name: Name of the probed action (e.g., "channel_join").
        target_id: The resolved target the action ran against.
        started_at: Wall-clock start time (UTC).
        duration_seconds: Elapsed time measured on the monotonic clock.
        success: Whether the action completed without error.
        error: Error message when ``success`` is False.
    """

    metric_name: str
    target_id: str
    started_at: datetime
    duration_seconds: float
    success: bool
    error: str | None = None

    @property
    def duration_ms(self) -> float:
        return self.duration_seconds * 1000.0


class MetricsSink(ABC):
    """Receiver of timing reports."""

    @abstractmethod
    def report(self, report: TimingReport) -> None:
        """Accept a report without blocking the caller."""
        pass


class NullSink(MetricsSink):
    """Sink that discards every report. Used when no sink is attached."""

    def report(self, report: TimingReport) -> None:
        pass


class QueueSink(MetricsSink):
    """Bounded in-memory queue of reports for a consumer to drain.

    When the queue is full new reports are dropped (and counted) rather than
    blocking the probe.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue: queue.Queue[TimingReport] = queue.Queue(maxsize=maxsize)
        self._dropped = 0
        self._lock = threading.Lock()

    @property
    def dropped(self) -> int:
        """Number of reports dropped because the queue was full."""
        with self._lock:
            return self._dropped

    def report(self, report: TimingReport) -> None:
        try:
            self._queue.put_nowait(report)
        except queue.Full:
            with self._lock:
                self._dropped += 1
                dropped = self._dropped
            logger.warning(
                "Timing report queue full, dropped report for %s (%d dropped so far)",
                report.metric_name,
                dropped,
                extra={"metric": report.metric_name, "target_id": report.target_id},
            )

    def get(self, timeout: float | None = None) -> TimingReport:
        """Block until a report is available.

        Raises:
            queue.Empty: If ``timeout`` elapses first.
        """
        return self._queue.get(timeout=timeout)

    def drain(self) -> list[TimingReport]:
        """Remove and return all reports currently queued."""
        reports: list[TimingReport] = []
        while True:
            try:
                reports.append(self._queue.get_nowait())
            except queue.Empty:
                return reports

    def __len__(self) -> int:
        return self._queue.qsize()


__all__ = [
    "DEFAULT_QUEUE_SIZE",
    "MetricsSink",
    "NullSink",
    "QueueSink",
    "TimingReport",
]

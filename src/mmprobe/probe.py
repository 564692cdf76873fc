"""Probe lifecycle and scheduling.

This module provides ``BaseProbe``, which owns everything a probe kind has in
common:

- Setup: target validation, frequency clamping, one-time name resolution
- Start/stop of a single scheduler thread per active probe
- Fire-and-forget execution of the probed action on every tick
- Timing reports for every execution

Lifecycle
---------
``created -> configured -> active -> stopped``. ``setup()`` moves a probe to
``configured`` and may only succeed once. ``start()`` and ``stop()`` move
between ``active`` and ``stopped``; a stopped probe can be started again
without repeating setup.

Concurrency
-----------
The scheduler thread waits on the stop event with a timeout equal to the time
left until the next tick. Each tick spawns a daemon thread for the action and
never joins it, so a slow or hung remote call cannot delay later ticks or
``stop()``. ``stop()`` halts future ticks only; running executions finish on
their own. The resolved target ID is written during setup and only read
afterwards, so executions need no locking.

Subclasses implement ``resolve_target()`` and ``perform_action()`` and set
``metric_name``.
"""

from __future__ import annotations

import math
import threading
import time
import types
from collections.abc import Callable
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from enum import StrEnum
from typing import Self

from mmprobe.client import MattermostClient
from mmprobe.config import DEFAULT_FREQUENCY_SECONDS, MIN_FREQUENCY_SECONDS, ProbeConfig
from mmprobe.errors import ActionError, ConfigError, ProbeStateError, ResolutionError
from mmprobe.logging import get_logger
from mmprobe.metrics import MetricsSink, NullSink, TimingReport

logger = get_logger(__name__)


class ProbeState(StrEnum):
    CREATED = "created"
    CONFIGURED = "configured"
    ACTIVE = "active"
    STOPPED = "stopped"


class BaseProbe(ABC):
    """Periodically performs a synthetic action and reports its timing."""

    metric_name: str = "probe"

    def __init__(
        self,
        config: ProbeConfig,
        client: MattermostClient,
        sink: MetricsSink | None = None,
        max_in_flight: int | None = None,
    ) -> None:
        """Initialize the probe.

        Args:
            config: Probe configuration. Normalized in place by ``setup()``.
            client: Client used for resolution, the action and logging hooks.
            sink: Receiver for timing reports. Defaults to a ``NullSink``.
            max_in_flight: Optional cap on concurrently running executions.
                Ticks that find the cap reached are skipped. ``None`` means
                unbounded.
        """
        if max_in_flight is not None and max_in_flight < 1:
            raise ValueError(f"max_in_flight must be positive, got {max_in_flight}")

        self.config = config
        self.client = client
        self.sink: MetricsSink = sink if sink is not None else NullSink()
        self.max_in_flight = max_in_flight

        self._state = ProbeState.CREATED
        self._lifecycle_lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._scheduler: threading.Thread | None = None

        self._in_flight = 0
        self._in_flight_lock = threading.Lock()

        self._log = logger.with_context(probe=self.metric_name)

    @property
    def name(self) -> str:
        return self.metric_name

    @property
    def state(self) -> ProbeState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is ProbeState.ACTIVE

    @property
    def in_flight(self) -> int:
        """Number of executions currently running."""
        with self._in_flight_lock:
            return self._in_flight

    @abstractmethod
    def resolve_target(self, name: str) -> str:
        """Resolve a human readable target name to a stable target ID.

        Raises:
            Exception: Any collaborator error; ``setup()`` wraps it in
                ``ResolutionError``.
        """
        pass

    @abstractmethod
    def perform_action(self, target_id: str) -> None:
        """Perform the probed action once against ``target_id``.

        Raises:
            Exception: Any collaborator error; the execution unit records it
                as a failed run.
        """
        pass

    def setup(self) -> None:
        """Validate and normalize the configuration. Runs once per probe.

        Raises:
            ConfigError: If neither a target ID nor a target name is set.
            ResolutionError: If the target name could not be resolved. The
                probe must not be started in that case.
            ProbeStateError: If setup already succeeded.
        """
        with self._lifecycle_lock:
            if self._state is not ProbeState.CREATED:
                raise ProbeStateError(f"{self.name} probe is already set up (state: {self._state})")

            if not self.config.has_target:
                raise ConfigError(f"Must set either target_id or target_name for {self.name} probe")

            frequency = self.config.frequency_seconds
            if not math.isfinite(frequency) or frequency < MIN_FREQUENCY_SECONDS:
                self._log.warning(
                    "Frequency %s is below the %ss floor or not finite, using %ss",
                    frequency,
                    MIN_FREQUENCY_SECONDS,
                    DEFAULT_FREQUENCY_SECONDS,
                )
                self._hook(
                    self.client.log_info,
                    "Frequency cannot be set below %s, setting to default %s sec",
                    MIN_FREQUENCY_SECONDS,
                    DEFAULT_FREQUENCY_SECONDS,
                )
                self.config.frequency_seconds = DEFAULT_FREQUENCY_SECONDS
            else:
                self._hook(self.client.log_info, "%s frequency: %s seconds", self.name, frequency)

            if not self.config.target_id:
                name = self.config.target_name
                self._hook(
                    self.client.log_info, "No target id set, attempting to fetch by name %r", name
                )
                try:
                    target_id = self.resolve_target(name)
                except Exception as e:
                    self._hook(self.client.log_error, "Probe error resolving %r: %s", name, e)
                    raise ResolutionError(name) from e
                if not target_id:
                    self._hook(self.client.log_error, "Probe error resolving %r: empty id", name)
                    raise ResolutionError(name, f"resolving {name!r} returned an empty id")
                self.config.target_id = target_id
                self._hook(self.client.log_info, "Resolved %r to target id %s", name, target_id)

            self._state = ProbeState.CONFIGURED

    def start(self) -> None:
        """Begin periodic execution. Returns immediately.

        Calling ``start()`` on an active probe is a no-op.

        Raises:
            ProbeStateError: If ``setup()`` has not succeeded yet.
        """
        with self._lifecycle_lock:
            if self._state is ProbeState.ACTIVE:
                return
            if self._state is ProbeState.CREATED:
                raise ProbeStateError(f"setup() must succeed before starting {self.name} probe")

            interval = self.config.frequency_seconds
            target_id = self.config.target_id
            stop_event = threading.Event()
            scheduler = threading.Thread(
                target=self._run_scheduler,
                args=(stop_event, interval, target_id),
                name=f"mmprobe-{self.name}-scheduler",
                daemon=True,
            )
            self._stop_event = stop_event
            self._scheduler = scheduler
            scheduler.start()
            self._state = ProbeState.ACTIVE

        self._log.info("Started, interval %.3fs", interval, extra={"target_id": target_id})

    def stop(self, timeout: float | None = None) -> None:
        """Halt future ticks. Safe to call repeatedly or on an inactive probe.

        Executions already running are not cancelled or waited for.

        Args:
            timeout: Maximum time to wait for the scheduler thread to exit.
        """
        with self._lifecycle_lock:
            if self._state is not ProbeState.ACTIVE:
                return
            stop_event = self._stop_event
            scheduler = self._scheduler
            if stop_event is not None:
                stop_event.set()
            self._stop_event = None
            self._scheduler = None
            self._state = ProbeState.STOPPED

        if scheduler is not None and scheduler is not threading.current_thread():
            scheduler.join(timeout)
        self._log.info("Stopped (%d executions still running)", self.in_flight)

    def _hook(self, log_fn: Callable[..., None], msg: str, *args: object) -> None:
        """Call a client logging hook. A failing hook is logged locally and ignored."""
        try:
            log_fn(msg, *args)
        except Exception:
            self._log.exception("Client logging hook failed")

    def _run_scheduler(self, stop_event: threading.Event, interval: float, target_id: str) -> None:
        next_tick = time.monotonic() + interval
        while True:
            remaining = min(max(0.0, next_tick - time.monotonic()), threading.TIMEOUT_MAX)
            # wait() returns True once stop is set, even if the tick is also due
            if stop_event.wait(remaining):
                return

            self._log.debug("Tick", extra={"diagnostic_tag": "scheduler"})
            self._spawn_execution(target_id)

            next_tick += interval
            now = time.monotonic()
            if next_tick <= now:
                # Fell behind; drop the missed ticks instead of bursting
                missed = int((now - next_tick) // interval) + 1
                next_tick += missed * interval
                self._log.debug(
                    "Skipped %d missed ticks", missed, extra={"diagnostic_tag": "scheduler"}
                )

    def _spawn_execution(self, target_id: str) -> None:
        with self._in_flight_lock:
            if self.max_in_flight is not None and self._in_flight >= self.max_in_flight:
                self._log.warning(
                    "Skipping tick, %d executions already in flight",
                    self._in_flight,
                    extra={"target_id": target_id},
                )
                return
            self._in_flight += 1

        thread = threading.Thread(
            target=self._execute,
            args=(target_id,),
            name=f"mmprobe-{self.name}-exec",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            with self._in_flight_lock:
                self._in_flight -= 1
            raise

    def _execute(self, target_id: str) -> None:
        """Run the action once and report the outcome. Never raises."""
        started_at = datetime.now(UTC)
        start = time.monotonic()
        error: ActionError | None = None
        try:
            self.perform_action(target_id)
        except Exception as e:
            error = ActionError(target_id, f"{self.name} failed for {target_id}: {e}")
            error.__cause__ = e
            self._hook(self.client.log_error, "%s error: %s", self.name, e)
        finally:
            duration = time.monotonic() - start
            with self._in_flight_lock:
                self._in_flight -= 1

        report = TimingReport(
            metric_name=self.metric_name,
            target_id=target_id,
            started_at=started_at,
            duration_seconds=duration,
            success=error is None,
            error=str(error) if error else None,
        )
        self._log.debug(
            "Execution %s in %.1fms",
            "succeeded" if report.success else "failed",
            report.duration_ms,
            extra={
                "diagnostic_tag": "timing",
                "target_id": target_id,
                "status": "success" if report.success else "failure",
                "duration_ms": round(report.duration_ms, 3),
            },
        )
        try:
            self.sink.report(report)
        except Exception:
            self._log.exception("Metrics sink rejected timing report")

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.stop()


__all__ = [
    "BaseProbe",
    "ProbeState",
]

"""Graceful shutdown handling for probes.

Whoever starts a probe owns stopping it. This module provides the usual way
to do that for a long-running process:
- SIGINT (Ctrl+C) handling
- SIGTERM handling
- Stopping every registered probe exactly once
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable, Iterable
from types import FrameType

from mmprobe.logging import get_logger
from mmprobe.probe import BaseProbe

logger = get_logger(__name__)


class ShutdownHandler:
    """Stops registered probes when shutdown is requested.

    Shutdown can be requested from a signal or programmatically. Probes stop
    scheduling new ticks; executions already running are left to finish.
    """

    def __init__(
        self,
        probes: Iterable[BaseProbe] = (),
        on_shutdown: Callable[[], None] | None = None,
        stop_timeout: float | None = 5.0,
    ) -> None:
        """Initialize the shutdown handler.

        Args:
            probes: Probes to stop on shutdown. More can be added with ``register()``.
            on_shutdown: Optional callback invoked after the probes are stopped.
            stop_timeout: Per-probe wait for the scheduler thread to exit.
        """
        self._probes: list[BaseProbe] = list(probes)
        self._on_shutdown = on_shutdown
        self._stop_timeout = stop_timeout
        self._shutdown_event = threading.Event()
        # Reentrant: a signal handler may run while the main thread holds it
        self._lock = threading.RLock()

    @property
    def shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_event.is_set()

    def register(self, probe: BaseProbe) -> None:
        """Add a probe to be stopped on shutdown."""
        with self._lock:
            self._probes.append(probe)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until shutdown is requested.

        Returns:
            True if shutdown was requested, False if ``timeout`` elapsed.
        """
        return self._shutdown_event.wait(timeout)

    def request_shutdown(self) -> None:
        """Request graceful shutdown. Only the first request has an effect."""
        with self._lock:
            if self._shutdown_event.is_set():
                return
            self._shutdown_event.set()
            probes = list(self._probes)
        logger.info("Shutdown requested, stopping %d probes", len(probes))

        for probe in probes:
            probe.stop(timeout=self._stop_timeout)

        if self._on_shutdown is not None:
            self._on_shutdown()

    def handle_signal(self, signum: int, frame: FrameType | None) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM).

        Args:
            signum: The signal number received.
            frame: The current stack frame (unused).
        """
        signal_name = signal.Signals(signum).name
        logger.info("Received %s, initiating graceful shutdown...", signal_name)
        self.request_shutdown()

    def install_signal_handlers(self) -> None:
        """Install signal handlers for SIGINT and SIGTERM.

        Must be called from the main thread.
        """
        signal.signal(signal.SIGINT, self.handle_signal)
        signal.signal(signal.SIGTERM, self.handle_signal)
        logger.debug("Signal handlers installed for SIGINT and SIGTERM")


def create_shutdown_handler(
    probes: Iterable[BaseProbe] = (),
    on_shutdown: Callable[[], None] | None = None,
) -> ShutdownHandler:
    """Create a shutdown handler and install its signal handlers.

    Args:
        probes: Probes to stop on shutdown.
        on_shutdown: Optional callback to invoke when shutdown is requested.

    Returns:
        Configured ShutdownHandler with signal handlers installed.
    """
    handler = ShutdownHandler(probes, on_shutdown)
    handler.install_signal_handlers()
    return handler


__all__ = [
    "ShutdownHandler",
    "create_shutdown_handler",
]

"""Exception types raised by probes.

Setup failures (``ConfigError``, ``ResolutionError``) are raised synchronously
from ``setup()`` so the caller can refuse to start the probe. ``ActionError``
never leaves the execution unit that produced it: it is logged and recorded
in the timing report, and the probe keeps running.
"""

from __future__ import annotations


class ProbeError(Exception):
    """Base class for all probe errors."""

    pass


class ConfigError(ProbeError):
    """Raised when a probe configuration cannot be used.

    Example:
        >>> raise ConfigError("Must set either target_id or target_name for probe")
    """

    pass


class ResolutionError(ProbeError):
    """Raised when a target name cannot be resolved to a stable ID.

    The underlying collaborator error is available as ``__cause__``.
    """

    def __init__(self, name: str, message: str | None = None) -> None:
        self.name = name
        super().__init__(message or f"could not resolve target id for {name!r}")


class ActionError(ProbeError):
    """A single probed action failed."""

    def __init__(self, target_id: str, message: str) -> None:
        self.target_id = target_id
        super().__init__(message)


class ProbeStateError(ProbeError):
    """Raised when a lifecycle method is called in the wrong state."""

    pass


__all__ = [
    "ActionError",
    "ConfigError",
    "ProbeError",
    "ProbeStateError",
    "ResolutionError",
]

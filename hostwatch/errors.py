from __future__ import annotations


class HostwatchError(Exception):
    """Base class for engine errors that reach the caller."""


class CounterUnavailable(HostwatchError):
    """A counter source could not be read at all."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        msg = f"{source} counters unavailable"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class StartupError(HostwatchError):
    """The engine cannot read enough counters to run a dashboard."""

"""Failure taxonomy for the audio pipeline and the transition scheduler.

These are raised inside the engines and caught before they reach the host:
every public operation resolves to a no-op or a degraded fallback instead.
"""


class PerformanceError(Exception):
    """Base class for recoverable engine failures."""


class PermissionDenied(PerformanceError):
    """The capture device was refused or is absent; the silent source takes over."""


class InitializationFailure(PerformanceError):
    """The audio subsystem could not be constructed at all."""


class InvalidActTarget(PerformanceError):
    """A transition was requested to an act id that is not registered."""

    def __init__(self, act_id):
        super().__init__(f"Act {act_id} not found")
        self.act_id = act_id

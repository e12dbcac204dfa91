"""Exception hierarchy shared by the vented-box engine."""

from __future__ import annotations


class VentCoreError(Exception):
    """Base class for every error raised by :mod:`vent_core`."""


class InvalidParameterError(VentCoreError, ValueError):
    """A physical input is out of range or violates a definitional constraint."""


class UnsatisfiableAlignmentError(VentCoreError, ValueError):
    """The requested alignment cannot be realised with the given driver."""


class UnsupportedAlignmentError(VentCoreError, LookupError):
    """The alignment is unknown or gated as experimental."""


class MeasurementError(VentCoreError, ValueError):
    """Measured data is too short, mislabeled, or missing expected features."""


class ConvergenceError(VentCoreError, RuntimeError):
    """An iterative solve with a guaranteed solution exceeded its iteration cap."""

    def __init__(self, message: str, *, iterations: int, last_estimate: float) -> None:
        super().__init__(message)
        self.iterations = iterations
        self.last_estimate = last_estimate


__all__ = [
    "VentCoreError",
    "InvalidParameterError",
    "UnsatisfiableAlignmentError",
    "UnsupportedAlignmentError",
    "MeasurementError",
    "ConvergenceError",
]

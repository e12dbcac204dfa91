"""Closed-box closed forms (Small 1972) used as the baseline for vented loading.

Only the second-order relations the displacement solver needs live here; the
sealed enclosure is not modelled as a design target of its own.
"""

from __future__ import annotations

import math
from math import sqrt

from ..errors import InvalidParameterError


def _positive(name: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidParameterError(f"{name}={value!r} must be a finite value greater than zero")


def sealed_system_resonance(fs_hz: float, compliance_ratio: float) -> float:
    """Return ``fc = fs·√(1 + α)``."""

    _positive("fs_hz", fs_hz)
    _positive("compliance_ratio", compliance_ratio)
    return fs_hz * sqrt(1.0 + compliance_ratio)


def sealed_system_q(qt: float, compliance_ratio: float) -> float:
    """Return ``Qtc = QT·√(1 + α)``."""

    _positive("qt", qt)
    _positive("compliance_ratio", compliance_ratio)
    return qt * sqrt(1.0 + compliance_ratio)


def sealed_response_magnitude(frequency_hz: float, fc_hz: float, qtc: float) -> float:
    """Second-order highpass magnitude ``u² / √((1 − u²)² + u²/Q²)`` with ``u = f/fc``."""

    if not math.isfinite(frequency_hz) or frequency_hz < 0.0:
        raise InvalidParameterError(f"frequency_hz={frequency_hz!r} must be finite and not negative")
    _positive("fc_hz", fc_hz)
    _positive("qtc", qtc)
    u = frequency_hz / fc_hz
    u2 = u * u
    return u2 / sqrt((1.0 - u2) ** 2 + u2 / (qtc * qtc))


__all__ = [
    "sealed_system_resonance",
    "sealed_system_q",
    "sealed_response_magnitude",
]

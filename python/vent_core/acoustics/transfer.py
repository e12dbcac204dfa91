"""Fourth-order vented-box transfer function (Small 1973, normalised form).

The response is written as ``G(s) = s⁴ / (s⁴ + a1 s³ + a2 s² + a3 s + 1)`` with the
complex frequency normalised by ``T0 = 1 / (2π √(fs·fb))``. The enclosure loss enters
only through ``1/QL`` so an infinite QL takes exactly the same code path as a finite one.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from math import atan2, degrees, log10, pi, sqrt

from ..errors import InvalidParameterError
from ..losses import LOSSLESS, inverse_q
from ..settings import DEFAULT_SETTINGS, SolverSettings
from ._utils import unwrap_phase_step

logger = logging.getLogger(__name__)

F3_DROP_DB = 3.0


@dataclass(frozen=True, slots=True)
class TransferResult:
    """Complex response value at one frequency with its derived polar form."""

    real: float
    imag: float
    magnitude: float
    phase: float
    """Phase in radians, ``-arg D(jx)`` (wrapped to (-π, π])."""

    def to_dict(self) -> dict[str, float]:
        return {
            "real": self.real,
            "imag": self.imag,
            "magnitude": self.magnitude,
            "phase": self.phase,
        }


@dataclass(frozen=True, slots=True)
class ResponseSample:
    """A frequency paired with the complex response value there."""

    frequency_hz: float
    value: complex

    @property
    def magnitude(self) -> float:
        return abs(self.value)

    @property
    def magnitude_db(self) -> float:
        magnitude = abs(self.value)
        if magnitude == 0.0:
            return -math.inf
        return 20.0 * log10(magnitude)

    @property
    def phase_rad(self) -> float:
        return atan2(self.value.imag, self.value.real)

    @property
    def phase_deg(self) -> float:
        return degrees(self.phase_rad)

    def to_dict(self) -> dict[str, float]:
        return {
            "frequency_hz": self.frequency_hz,
            "magnitude": self.magnitude,
            "magnitude_db": self.magnitude_db,
            "phase_deg": self.phase_deg,
        }


@dataclass(frozen=True, slots=True)
class F3Search:
    """Outcome of the -3 dB search; ``converged`` is False when the cap was hit."""

    frequency_hz: float
    reference_magnitude: float
    iterations: int
    converged: bool

    def to_dict(self) -> dict[str, float | int | bool]:
        return {
            "frequency_hz": self.frequency_hz,
            "reference_magnitude": self.reference_magnitude,
            "iterations": self.iterations,
            "converged": self.converged,
        }


def _validate_system(fs_hz: float, fb_hz: float, alpha: float, qt: float, ql: float) -> None:
    for name, value in (("fs_hz", fs_hz), ("fb_hz", fb_hz), ("compliance_ratio", alpha), ("qt", qt)):
        if not math.isfinite(value) or value <= 0.0:
            raise InvalidParameterError(f"{name}={value!r} must be a finite value greater than zero")
    if math.isnan(ql) or ql <= 0.0:
        raise InvalidParameterError(f"enclosure_q={ql!r} must be greater than zero (use inf for lossless)")


def _validate_frequency(frequency_hz: float) -> None:
    if not math.isfinite(frequency_hz) or frequency_hz < 0.0:
        raise InvalidParameterError(f"frequency_hz={frequency_hz!r} must be finite and not negative")


def filter_coefficients(
    tuning_ratio: float,
    compliance_ratio: float,
    qt: float,
    ql: float = LOSSLESS,
) -> tuple[float, float, float]:
    """Return ``(a1, a2, a3)`` for tuning ratio ``h``, compliance ratio ``α``, QT and QL."""

    h = tuning_ratio
    if not math.isfinite(h) or h <= 0.0:
        raise InvalidParameterError(f"tuning_ratio={h!r} must be a finite value greater than zero")
    if not math.isfinite(compliance_ratio) or compliance_ratio <= 0.0:
        raise InvalidParameterError(f"compliance_ratio={compliance_ratio!r} must be greater than zero")
    if not math.isfinite(qt) or qt <= 0.0:
        raise InvalidParameterError(f"qt={qt!r} must be a finite value greater than zero")
    if math.isnan(ql) or ql <= 0.0:
        raise InvalidParameterError(f"enclosure_q={ql!r} must be greater than zero (use inf for lossless)")

    root_h = sqrt(h)
    inv_ql = inverse_q(ql)
    a1 = 1.0 / (root_h * qt) + root_h * inv_ql
    a2 = (compliance_ratio + 1.0 + h * h) / h + inv_ql / qt
    a3 = root_h / qt + inv_ql / root_h
    return (a1, a2, a3)


def _denominator(x: float, a1: float, a2: float, a3: float) -> tuple[float, float]:
    x2 = x * x
    return (x2 * x2 - a2 * x2 + 1.0, a3 * x - a1 * x2 * x)


def evaluate(
    frequency_hz: float,
    fs_hz: float,
    fb_hz: float,
    compliance_ratio: float,
    qt: float,
    ql: float = LOSSLESS,
) -> TransferResult:
    """Evaluate the vented-box transfer function at ``frequency_hz``."""

    _validate_frequency(frequency_hz)
    _validate_system(fs_hz, fb_hz, compliance_ratio, qt, ql)

    if frequency_hz == 0.0:
        return TransferResult(real=0.0, imag=0.0, magnitude=0.0, phase=0.0)

    a1, a2, a3 = filter_coefficients(fb_hz / fs_hz, compliance_ratio, qt, ql)
    x = frequency_hz / sqrt(fs_hz * fb_hz)
    numerator = x**4
    den_real, den_imag = _denominator(x, a1, a2, a3)
    den_sq = den_real * den_real + den_imag * den_imag

    real = numerator * den_real / den_sq
    imag = -numerator * den_imag / den_sq
    magnitude = numerator / sqrt(den_sq)
    phase = -atan2(den_imag, den_real)
    return TransferResult(real=real, imag=imag, magnitude=magnitude, phase=phase)


def magnitude_db(
    frequency_hz: float,
    fs_hz: float,
    fb_hz: float,
    compliance_ratio: float,
    qt: float,
    ql: float = LOSSLESS,
) -> float:
    """Return the response level in dB relative to the passband (``-inf`` at DC)."""

    magnitude = evaluate(frequency_hz, fs_hz, fb_hz, compliance_ratio, qt, ql).magnitude
    if magnitude == 0.0:
        return -math.inf
    return 20.0 * log10(magnitude)


def solve_f3(
    fs_hz: float,
    fb_hz: float,
    compliance_ratio: float,
    qt: float,
    ql: float = LOSSLESS,
    *,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> F3Search:
    """Bisect for the frequency 3 dB below the passband reference level.

    The reference is sampled at ``f3_reference_multiple · max(fs, fb)``. Bisection keeps
    the lower bound below the threshold and the upper bound at or above it; once the
    bracket is narrower than ``f3_tolerance_hz`` the crossing is interpolated linearly.
    """

    _validate_system(fs_hz, fb_hz, compliance_ratio, qt, ql)

    def _magnitude(freq: float) -> float:
        return evaluate(freq, fs_hz, fb_hz, compliance_ratio, qt, ql).magnitude

    high = settings.f3_reference_multiple * max(fs_hz, fb_hz)
    low = min(fs_hz, fb_hz) / settings.f3_lower_divisor
    reference = _magnitude(high)
    threshold = reference * 10.0 ** (-F3_DROP_DB / 20.0)

    mag_low = _magnitude(low)
    mag_high = reference
    if mag_low >= threshold:
        logger.warning(
            "Response at %.3f Hz already exceeds the -3 dB threshold; returning the search floor",
            low,
        )
        return F3Search(frequency_hz=low, reference_magnitude=reference, iterations=0, converged=False)

    iterations = 0
    converged = True
    while high - low >= settings.f3_tolerance_hz:
        if iterations >= settings.f3_max_iterations:
            converged = False
            logger.warning(
                "F3 search stopped after %d iterations with a %.4f Hz bracket",
                iterations,
                high - low,
            )
            break
        iterations += 1
        mid = 0.5 * (low + high)
        mag_mid = _magnitude(mid)
        if mag_mid < threshold:
            low, mag_low = mid, mag_mid
        else:
            high, mag_high = mid, mag_mid

    if mag_high == mag_low:
        f3 = 0.5 * (low + high)
    else:
        f3 = low + (threshold - mag_low) / (mag_high - mag_low) * (high - low)

    logger.debug(
        "F3 %.3f Hz after %d iterations (fs=%.2f, fb=%.2f, alpha=%.4f, qt=%.4f, ql=%s)",
        f3,
        iterations,
        fs_hz,
        fb_hz,
        compliance_ratio,
        qt,
        ql,
    )
    return F3Search(frequency_hz=f3, reference_magnitude=reference, iterations=iterations, converged=converged)


def find_f3(
    fs_hz: float,
    fb_hz: float,
    compliance_ratio: float,
    qt: float,
    ql: float = LOSSLESS,
    *,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> float:
    """Return the -3 dB frequency (Hz); see :func:`solve_f3` for the search details."""

    return solve_f3(fs_hz, fb_hz, compliance_ratio, qt, ql, settings=settings).frequency_hz


def group_delay(
    frequency_hz: float,
    fs_hz: float,
    fb_hz: float,
    compliance_ratio: float,
    qt: float,
    ql: float = LOSSLESS,
    *,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> float:
    """Return the group delay in seconds at ``frequency_hz`` via a central difference."""

    _validate_frequency(frequency_hz)
    if frequency_hz == 0.0:
        raise InvalidParameterError("group delay is undefined at 0 Hz")

    step = max(settings.group_delay_relative_step * frequency_hz, settings.group_delay_min_step_hz)
    while frequency_hz - step <= 0.0:
        step /= 2.0

    upper = evaluate(frequency_hz + step, fs_hz, fb_hz, compliance_ratio, qt, ql).phase
    lower = evaluate(frequency_hz - step, fs_hz, fb_hz, compliance_ratio, qt, ql).phase
    d_phase = unwrap_phase_step(upper - lower)
    d_omega = 2 * pi * (2.0 * step)
    return -d_phase / d_omega


def response_curve(
    frequencies_hz: Iterable[float],
    fs_hz: float,
    fb_hz: float,
    compliance_ratio: float,
    qt: float,
    ql: float = LOSSLESS,
) -> list[ResponseSample]:
    """Evaluate the response over ``frequencies_hz`` and return complex samples."""

    samples: list[ResponseSample] = []
    for freq in frequencies_hz:
        result = evaluate(float(freq), fs_hz, fb_hz, compliance_ratio, qt, ql)
        samples.append(ResponseSample(frequency_hz=float(freq), value=complex(result.real, result.imag)))
    return samples


__all__ = [
    "TransferResult",
    "ResponseSample",
    "F3Search",
    "filter_coefficients",
    "evaluate",
    "magnitude_db",
    "solve_f3",
    "find_f3",
    "group_delay",
    "response_curve",
]

"""Parameter extraction from measured vented-box impedance curves.

The three characteristic frequencies of a vented-box impedance magnitude (lower
peak, valley, upper peak) invert in closed form to the driver resonance, the box
tuning and the compliance ratio. A separate bandwidth measurement around a single
peak yields the quality factor used for the enclosure loss figures.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from math import log10

from .acoustics._utils import HALF_POWER_DB, find_band_edges
from .errors import MeasurementError

logger = logging.getLogger(__name__)

MIN_PEAK_POINTS = 3
MIN_BANDWIDTH_POINTS = 5


@dataclass(frozen=True, slots=True)
class ImpedanceCurve:
    """Measured ``(frequency_hz, magnitude_ohm)`` samples in any order."""

    points: tuple[tuple[float, float], ...]

    def __post_init__(self) -> None:
        seen: set[float] = set()
        for freq, mag in self.points:
            if not math.isfinite(freq) or freq <= 0.0:
                raise MeasurementError(f"Impedance sample frequency {freq!r} must be finite and positive")
            if not math.isfinite(mag) or mag <= 0.0:
                raise MeasurementError(f"Impedance magnitude {mag!r} at {freq} Hz must be finite and positive")
            if freq in seen:
                raise MeasurementError(f"Impedance curve contains {freq} Hz more than once")
            seen.add(freq)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence[float]]) -> ImpedanceCurve:
        return cls(tuple((float(freq), float(mag)) for freq, mag in pairs))

    @classmethod
    def from_arrays(cls, frequencies_hz: Sequence[float], magnitudes_ohm: Sequence[float]) -> ImpedanceCurve:
        if len(frequencies_hz) != len(magnitudes_ohm):
            raise MeasurementError(
                f"Frequency and magnitude arrays differ in length ({len(frequencies_hz)} vs {len(magnitudes_ohm)})"
            )
        return cls.from_pairs(zip(frequencies_hz, magnitudes_ohm, strict=True))

    def __len__(self) -> int:
        return len(self.points)

    def sorted(self) -> ImpedanceCurve:
        """Return a copy ordered by frequency."""

        return ImpedanceCurve(tuple(sorted(self.points, key=lambda item: item[0])))

    def frequencies(self) -> list[float]:
        return [freq for freq, _ in self.points]

    def magnitudes(self) -> list[float]:
        return [mag for _, mag in self.points]


@dataclass(frozen=True, slots=True)
class ImpedancePeaks:
    """Lower peak, valley and upper peak frequencies of a vented-box impedance."""

    low_hz: float
    min_hz: float
    high_hz: float

    def to_dict(self) -> dict[str, float]:
        return {"low_hz": self.low_hz, "min_hz": self.min_hz, "high_hz": self.high_hz}


@dataclass(frozen=True, slots=True)
class RecoveredParameters:
    """System parameters inverted from the impedance peak frequencies."""

    fb_hz: float
    fs_hz: float
    compliance_ratio: float

    @property
    def tuning_ratio(self) -> float:
        return self.fb_hz / self.fs_hz

    def to_dict(self) -> dict[str, float]:
        return {
            "fb_hz": self.fb_hz,
            "fs_hz": self.fs_hz,
            "compliance_ratio": self.compliance_ratio,
            "tuning_ratio": self.tuning_ratio,
        }


@dataclass(frozen=True, slots=True)
class QMeasurement:
    """Half-power bandwidth measurement around one impedance peak."""

    resonance_hz: float
    low_hz: float
    high_hz: float
    q: float

    @property
    def bandwidth_hz(self) -> float:
        return self.high_hz - self.low_hz

    def to_dict(self) -> dict[str, float]:
        return {
            "resonance_hz": self.resonance_hz,
            "low_hz": self.low_hz,
            "high_hz": self.high_hz,
            "bandwidth_hz": self.bandwidth_hz,
            "q": self.q,
        }


@dataclass(frozen=True, slots=True)
class LossMeasurement:
    """Loss isolated by comparing a baseline measurement with one that adds a mechanism."""

    label: str
    baseline_q: float
    combined_q: float
    isolated_q: float

    def to_dict(self) -> dict[str, float | str]:
        return {
            "label": self.label,
            "baseline_q": self.baseline_q,
            "combined_q": self.combined_q,
            "isolated_q": self.isolated_q,
        }


def identify_peaks(curve: ImpedanceCurve) -> ImpedancePeaks:
    """Locate the lower peak, valley and upper peak of a vented-box impedance curve.

    The upper peak is the global maximum; the valley is the lowest sample below it and
    the lower peak is the highest sample below the valley.
    """

    if len(curve) < MIN_PEAK_POINTS:
        raise MeasurementError(
            f"Peak detection needs at least {MIN_PEAK_POINTS} impedance samples, got {len(curve)}"
        )
    ordered = curve.sorted()
    freqs = ordered.frequencies()
    mags = ordered.magnitudes()

    high_idx = max(range(len(mags)), key=mags.__getitem__)
    if high_idx < 2:
        raise MeasurementError(
            f"Upper impedance peak at {freqs[high_idx]} Hz leaves no room for a valley and lower peak below it"
        )
    min_idx = min(range(high_idx), key=mags.__getitem__)
    if min_idx == 0:
        raise MeasurementError(
            f"Impedance keeps falling toward the lowest sample ({freqs[0]} Hz); no lower peak was captured"
        )
    low_idx = max(range(min_idx), key=mags.__getitem__)
    if low_idx == 0:
        raise MeasurementError(
            f"Lower impedance peak falls on the first sample ({freqs[0]} Hz); extend the sweep downward"
        )

    peaks = ImpedancePeaks(low_hz=freqs[low_idx], min_hz=freqs[min_idx], high_hz=freqs[high_idx])
    if not peaks.low_hz < peaks.min_hz < peaks.high_hz:
        raise MeasurementError(
            "Impedance peaks out of order: expected low < min < high, got "
            f"low={peaks.low_hz} Hz, min={peaks.min_hz} Hz, high={peaks.high_hz} Hz"
        )
    logger.debug("Impedance peaks: %s", peaks)
    return peaks


def recover_parameters(peaks: ImpedancePeaks) -> RecoveredParameters:
    """Invert the peak frequencies: ``fb = fM``, ``fs = fL·fH/fM`` and the compliance ratio."""

    f_low, f_min, f_high = peaks.low_hz, peaks.min_hz, peaks.high_hz
    if not 0.0 < f_low < f_min < f_high:
        raise MeasurementError(
            "Impedance peaks out of order: expected 0 < low < min < high, got "
            f"low={f_low} Hz, min={f_min} Hz, high={f_high} Hz"
        )
    fb = f_min
    fs = f_low * f_high / fb
    alpha = (f_high**2 - fb**2) * (fb**2 - f_low**2) / (f_high**2 * f_low**2)
    return RecoveredParameters(fb_hz=fb, fs_hz=fs, compliance_ratio=alpha)


def estimate_vas(recovered: RecoveredParameters, volume_l: float) -> float:
    """Return the driver's Vas (litres) implied by the recovered compliance ratio."""

    if not math.isfinite(volume_l) or volume_l <= 0.0:
        raise MeasurementError(f"volume_l={volume_l!r} must be finite and positive")
    return recovered.compliance_ratio * volume_l


def measure_q(curve: ImpedanceCurve) -> QMeasurement:
    """Measure ``Q = f_peak / bandwidth`` from the half-power points around the peak."""

    if len(curve) < MIN_BANDWIDTH_POINTS:
        raise MeasurementError(
            f"Bandwidth measurement must have at least {MIN_BANDWIDTH_POINTS} impedance samples, got {len(curve)}"
        )
    ordered = curve.sorted()
    freqs = ordered.frequencies()
    levels = [20.0 * log10(mag) for mag in ordered.magnitudes()]
    resonance = freqs[levels.index(max(levels))]

    low, high = find_band_edges(freqs, levels, HALF_POWER_DB)
    if low is None or high is None:
        missing = " and ".join(
            side for side, edge in (("below", low), ("above", high)) if edge is None
        )
        raise MeasurementError(
            f"Could not find 3 dB bandwidth points {missing} the {resonance} Hz resonance; "
            "extend the sweep around the peak"
        )
    if high <= low:
        raise MeasurementError(f"Degenerate bandwidth between {low} Hz and {high} Hz")
    return QMeasurement(resonance_hz=resonance, low_hz=low, high_hz=high, q=resonance / (high - low))


def measure_leakage_q(curve: ImpedanceCurve) -> float:
    """Return the leakage Q measured on an unfilled box with the port open."""

    return measure_q(curve).q


def _quality_of(measurement: ImpedanceCurve | QMeasurement | float) -> float:
    if isinstance(measurement, ImpedanceCurve):
        return measure_q(measurement).q
    if isinstance(measurement, QMeasurement):
        return measurement.q
    value = float(measurement)
    if not math.isfinite(value) or value <= 0.0:
        raise MeasurementError(f"Quality factor {measurement!r} must be finite and positive")
    return value


def isolate_loss(
    baseline: ImpedanceCurve | QMeasurement | float,
    with_loss: ImpedanceCurve | QMeasurement | float,
    label: str,
    *,
    baseline_name: str = "baseline",
    with_loss_name: str = "with extra loss",
) -> LossMeasurement:
    """Isolate one loss mechanism: ``1/Q_extra = 1/Q_with − 1/Q_baseline``."""

    q_base = _quality_of(baseline)
    q_with = _quality_of(with_loss)
    if not q_with < q_base:
        raise MeasurementError(
            f"{label}: the {with_loss_name} measurement (Q={q_with:.3f}) was expected to be lower "
            f"than the {baseline_name} measurement (Q={q_base:.3f})"
        )
    isolated = 1.0 / (1.0 / q_with - 1.0 / q_base)
    logger.debug("%s loss isolated: Q=%.3f (baseline %.3f, combined %.3f)", label, isolated, q_base, q_with)
    return LossMeasurement(label=label, baseline_q=q_base, combined_q=q_with, isolated_q=isolated)


def measure_absorption_q(
    undamped: ImpedanceCurve | QMeasurement | float,
    damped: ImpedanceCurve | QMeasurement | float,
) -> LossMeasurement:
    """Absorption Q of lining or fill from measurements without and with it."""

    return isolate_loss(undamped, damped, "absorption", baseline_name="undamped", with_loss_name="damped")


def measure_port_q(
    covered: ImpedanceCurve | QMeasurement | float,
    open_port: ImpedanceCurve | QMeasurement | float,
) -> LossMeasurement:
    """Port friction Q from measurements with the port covered and open."""

    return isolate_loss(covered, open_port, "port", baseline_name="port covered", with_loss_name="port open")


__all__ = [
    "ImpedanceCurve",
    "ImpedancePeaks",
    "RecoveredParameters",
    "QMeasurement",
    "LossMeasurement",
    "identify_peaks",
    "recover_parameters",
    "estimate_vas",
    "measure_q",
    "measure_leakage_q",
    "isolate_loss",
    "measure_absorption_q",
    "measure_port_q",
]

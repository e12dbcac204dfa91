"""Utility helpers shared across acoustic solvers."""

from __future__ import annotations

from collections.abc import Sequence
from math import log10, pi

HALF_POWER_DB = 10.0 * log10(2.0)


def find_band_edges(
    frequencies: Sequence[float],
    values: Sequence[float],
    drop_db: float,
) -> tuple[float | None, float | None]:
    """Return the low/high frequencies where ``values`` fall ``drop_db`` below the peak.

    ``values`` are sampled levels in dB; ``frequencies`` must be unique but need not be
    sorted. Crossings are located by linear interpolation between the neighbouring
    samples. A side with no crossing before the end of the data is ``None``.
    """

    if len(frequencies) != len(values) or not frequencies:
        return (None, None)

    pairs = sorted(zip(frequencies, values, strict=True), key=lambda item: item[0])
    freqs: list[float] = [float(freq) for freq, _ in pairs]
    mags: list[float] = [float(mag) for _, mag in pairs]

    peak_val = max(mags)
    threshold = peak_val - drop_db
    peak_idx = mags.index(peak_val)

    low = _search_edge(freqs, mags, peak_idx, -1, threshold)
    high = _search_edge(freqs, mags, peak_idx, 1, threshold)
    return (low, high)


def _search_edge(
    freqs: Sequence[float],
    mags: Sequence[float],
    start_idx: int,
    step: int,
    threshold: float,
) -> float | None:
    prev_freq = freqs[start_idx]
    prev_val = mags[start_idx]

    idx = start_idx + step
    while 0 <= idx < len(freqs):
        freq = freqs[idx]
        val = mags[idx]
        if val == threshold:
            return freq
        if _crosses(prev_val, val, threshold):
            return _interpolate(prev_freq, prev_val, freq, val, threshold)
        prev_freq = freq
        prev_val = val
        idx += step

    return None


def _crosses(a: float, b: float, threshold: float) -> bool:
    return (a - threshold) * (b - threshold) <= 0.0 and a != b


def _interpolate(f1: float, v1: float, f2: float, v2: float, threshold: float) -> float:
    if v2 == v1:
        return (f1 + f2) / 2.0
    ratio = (threshold - v1) / (v2 - v1)
    return f1 + ratio * (f2 - f1)


def unwrap_phase_step(delta: float) -> float:
    """Fold a phase difference into ``(-pi, pi]`` by whole turns."""

    while delta > pi:
        delta -= 2 * pi
    while delta <= -pi:
        delta += 2 * pi
    return delta


def log_spaced(start_hz: float, stop_hz: float, points: int) -> list[float]:
    """Return ``points`` logarithmically spaced frequencies between the bounds inclusive."""

    if points < 2:
        return [float(start_hz)]
    ratio = (stop_hz / start_hz) ** (1.0 / (points - 1))
    return [start_hz * ratio**idx for idx in range(points)]


__all__ = ["HALF_POWER_DB", "find_band_edges", "log_spaced", "unwrap_phase_step"]

"""Numerical settings threaded through the solvers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace


@dataclass(frozen=True, slots=True)
class SolverSettings:
    """Tolerances, step sizes and iteration caps used by the iterative solvers."""

    f3_tolerance_hz: float = 0.1
    """Bracket width at which the -3 dB bisection stops."""

    f3_reference_multiple: float = 5.0
    """Passband reference is sampled at this multiple of max(fs, fb)."""

    f3_lower_divisor: float = 10.0
    """Lower search bound is min(fs, fb) divided by this value."""

    f3_max_iterations: int = 200

    group_delay_relative_step: float = 1e-3
    group_delay_min_step_hz: float = 0.01

    newton_tolerance: float = 1e-4
    newton_max_iterations: int = 20

    displacement_tolerance_m: float = 1e-5
    """Bisection stops once |X - target| falls below this value (0.01 mm)."""

    bisection_max_iterations: int = 60

    power_search_multiple: float = 1.0
    """Upper power bracket as a multiple of the thermal limit."""

    empirical_loading_exponent: float = 0.8
    vented_magnitude_floor: float = 1e-3

    min_reliable_frequency_hz: float = 5.0
    """Displacement model accuracy degrades below this frequency."""

    def replace(self, **updates: float) -> SolverSettings:
        return replace(self, **updates)

    def to_dict(self) -> dict[str, float]:
        return {key: float(value) for key, value in asdict(self).items()}


DEFAULT_SETTINGS = SolverSettings()


__all__ = ["SolverSettings", "DEFAULT_SETTINGS"]

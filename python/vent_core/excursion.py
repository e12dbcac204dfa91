"""Cone displacement and the power limits it imposes.

Displacement is estimated from an electro-mechanical impedance approximation of
the driver in its enclosure. For the closed box the power↔displacement relation
inverts in closed form; for the vented box the sealed estimate is scaled by a
loading factor derived from the acoustic transfer functions and the inverse is
found by bisection.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from math import pi, sqrt

from .acoustics.sealed import sealed_response_magnitude, sealed_system_q, sealed_system_resonance
from .acoustics.transfer import evaluate
from .drivers import BoxDesign, DriverParameters, VentedBoxDesign
from .errors import InvalidParameterError
from .losses import inverse_q
from .settings import DEFAULT_SETTINGS, SolverSettings

logger = logging.getLogger(__name__)

THERMAL = "thermal"
EXCURSION = "excursion"

DEFAULT_WARNING_FREQUENCIES = (10.0, 15.0, 20.0, 25.0, 30.0, 40.0, 50.0, 80.0)


def _check_frequency(frequency_hz: float, settings: SolverSettings) -> None:
    if not math.isfinite(frequency_hz) or frequency_hz <= 0.0:
        raise InvalidParameterError(f"frequency_hz={frequency_hz!r} must be a finite value greater than zero")
    if frequency_hz < settings.min_reliable_frequency_hz:
        logger.warning(
            "Displacement model may be inaccurate below %.1f Hz (requested %.3f Hz)",
            settings.min_reliable_frequency_hz,
            frequency_hz,
        )


def _check_power(power_w: float) -> None:
    if not math.isfinite(power_w) or power_w < 0.0:
        raise InvalidParameterError(f"power_w={power_w!r} must be finite and not negative")


@dataclass(frozen=True, slots=True)
class PowerInversion:
    """Power that drives the cone to a target displacement."""

    power_w: float
    displacement_m: float
    iterations: int
    converged: bool


class LoadingModel(ABC):
    """Scales the sealed-box displacement estimate to the vented enclosure."""

    name: str = "loading"
    exact: bool = False

    @abstractmethod
    def factor(
        self,
        frequency_hz: float,
        driver: DriverParameters,
        box: VentedBoxDesign,
        settings: SolverSettings,
    ) -> float:
        """Return ``X_vented / X_sealed`` at ``frequency_hz``."""


def _response_magnitudes(
    frequency_hz: float,
    driver: DriverParameters,
    box: VentedBoxDesign,
) -> tuple[float, float]:
    alpha = box.compliance_ratio(driver)
    vented = evaluate(frequency_hz, driver.fs_hz, box.fb_hz, alpha, driver.qts, box.enclosure_q()).magnitude
    sealed = sealed_response_magnitude(
        frequency_hz,
        sealed_system_resonance(driver.fs_hz, alpha),
        sealed_system_q(driver.qts, alpha),
    )
    return vented, sealed


class ResonatorLoading(LoadingModel):
    """Loading derived from Small's vented-box model.

    The cone volume velocity of the vented box carries the box resonator numerator
    ``1 − u² + ju/QL`` (``u = f/fb``); dividing it out of the pressure-response ratio
    gives ``(|G_v|/|G_s|)·|1 − u² + ju/QL| / u²``. The factor vanishes at ``fb`` for a
    lossless box and approaches ``1 + α`` well below tuning.
    """

    name = "resonator"
    exact = True

    def factor(
        self,
        frequency_hz: float,
        driver: DriverParameters,
        box: VentedBoxDesign,
        settings: SolverSettings,
    ) -> float:
        vented, sealed = _response_magnitudes(frequency_hz, driver, box)
        u = frequency_hz / box.fb_hz
        resonator = abs(complex(1.0 - u * u, u * inverse_q(box.enclosure_q())))
        return (vented / sealed) * resonator / (u * u)


class EmpiricalLoading(LoadingModel):
    """Calibrated approximation ``(|G_s| / |G_v|)^k`` with ``k = 0.8``.

    Fitted against third-party simulator curves: within about 10 % around the tuning
    frequency and about 15 % above twice the tuning frequency. It does not reproduce
    the displacement null at ``fb``; prefer :class:`ResonatorLoading` unless matching
    the calibrated curves matters.
    """

    name = "empirical"
    exact = False

    def factor(
        self,
        frequency_hz: float,
        driver: DriverParameters,
        box: VentedBoxDesign,
        settings: SolverSettings,
    ) -> float:
        vented, sealed = _response_magnitudes(frequency_hz, driver, box)
        vented = max(vented, settings.vented_magnitude_floor)
        return (sealed / vented) ** settings.empirical_loading_exponent


@dataclass(frozen=True, slots=True)
class _Mechanics:
    re_ohm: float
    bl_t_m: float
    mms_kg: float
    cms_m_per_n: float
    rms_kg_s: float

    @classmethod
    def of(cls, driver: DriverParameters) -> _Mechanics:
        return cls(
            re_ohm=driver.re_ohm,
            bl_t_m=driver.require("bl_t_m"),
            mms_kg=driver.require("mms_kg"),
            cms_m_per_n=driver.require("cms_m_per_n"),
            rms_kg_s=driver.require("rms_kg_s"),
        )

    def impedance(self, omega: float, compliance_ratio: float) -> float:
        """Return ``|Zm|`` with the suspension stiffened by the enclosure air spring."""

        cms_total = self.cms_m_per_n / (1.0 + compliance_ratio)
        reactance = omega * self.mms_kg - 1.0 / (omega * cms_total)
        return abs(complex(self.rms_kg_s, reactance))

    def displacement(self, frequency_hz: float, power_w: float, compliance_ratio: float) -> float:
        omega = 2 * pi * frequency_hz
        z_mech = self.impedance(omega, compliance_ratio)
        voltage = sqrt(power_w * self.re_ohm)
        current = voltage / (self.re_ohm + self.bl_t_m**2 / z_mech)
        return self.bl_t_m * current / (omega * z_mech)

    def power(self, frequency_hz: float, displacement_m: float, compliance_ratio: float) -> float:
        omega = 2 * pi * frequency_hz
        z_mech = self.impedance(omega, compliance_ratio)
        voltage = displacement_m * omega * z_mech * (self.re_ohm + self.bl_t_m**2 / z_mech) / self.bl_t_m
        return voltage**2 / self.re_ohm


class ExcursionModel(ABC):
    """Power ↔ displacement relation for one enclosure topology."""

    topology: str = "unknown"

    def __init__(self, driver: DriverParameters, settings: SolverSettings = DEFAULT_SETTINGS) -> None:
        self.driver = driver
        self.settings = settings
        self._mechanics = _Mechanics.of(driver)

    @abstractmethod
    def compliance_ratio(self) -> float:
        """Return the enclosure compliance ratio used by the mechanical impedance."""

    @abstractmethod
    def _displacement(self, frequency_hz: float, power_w: float) -> float:
        ...

    @abstractmethod
    def _invert(self, frequency_hz: float, displacement_m: float) -> PowerInversion:
        ...

    def displacement(self, frequency_hz: float, power_w: float) -> float:
        """Return peak cone displacement (m) for ``power_w`` into Re at ``frequency_hz``."""

        _check_frequency(frequency_hz, self.settings)
        _check_power(power_w)
        if power_w == 0.0:
            return 0.0
        return self._displacement(frequency_hz, power_w)

    def power_for_displacement(self, frequency_hz: float, displacement_m: float) -> PowerInversion:
        """Return the power at which the cone reaches ``displacement_m``."""

        _check_frequency(frequency_hz, self.settings)
        if not math.isfinite(displacement_m) or displacement_m < 0.0:
            raise InvalidParameterError(f"displacement_m={displacement_m!r} must be finite and not negative")
        if displacement_m == 0.0:
            return PowerInversion(power_w=0.0, displacement_m=0.0, iterations=0, converged=True)
        return self._invert(frequency_hz, displacement_m)


class SealedExcursionModel(ExcursionModel):
    """Closed box: displacement scales with √P, so the inverse is algebraic."""

    topology = "sealed"

    def __init__(
        self,
        driver: DriverParameters,
        box: BoxDesign,
        settings: SolverSettings = DEFAULT_SETTINGS,
    ) -> None:
        super().__init__(driver, settings)
        self.box = box

    def compliance_ratio(self) -> float:
        return self.box.compliance_ratio(self.driver)

    def _displacement(self, frequency_hz: float, power_w: float) -> float:
        return self._mechanics.displacement(frequency_hz, power_w, self.compliance_ratio())

    def _invert(self, frequency_hz: float, displacement_m: float) -> PowerInversion:
        power = self._mechanics.power(frequency_hz, displacement_m, self.compliance_ratio())
        return PowerInversion(power_w=power, displacement_m=displacement_m, iterations=0, converged=True)


class PortedExcursionModel(ExcursionModel):
    """Vented box: sealed baseline scaled by a loading factor, inverted by bisection."""

    topology = "vented"

    def __init__(
        self,
        driver: DriverParameters,
        box: VentedBoxDesign,
        loading: LoadingModel | None = None,
        settings: SolverSettings = DEFAULT_SETTINGS,
    ) -> None:
        super().__init__(driver, settings)
        self.box = box
        self.loading = loading or ResonatorLoading()

    def compliance_ratio(self) -> float:
        return self.box.compliance_ratio(self.driver)

    def loading_factor(self, frequency_hz: float) -> float:
        _check_frequency(frequency_hz, self.settings)
        return self.loading.factor(frequency_hz, self.driver, self.box, self.settings)

    def _displacement(self, frequency_hz: float, power_w: float) -> float:
        baseline = self._mechanics.displacement(frequency_hz, power_w, self.compliance_ratio())
        return baseline * self.loading.factor(frequency_hz, self.driver, self.box, self.settings)

    def _invert(self, frequency_hz: float, displacement_m: float) -> PowerInversion:
        settings = self.settings
        low = 0.0
        high = self.driver.require("pe_w") * settings.power_search_multiple
        high_displacement = self._displacement(frequency_hz, high)
        if high_displacement <= displacement_m:
            return PowerInversion(power_w=high, displacement_m=high_displacement, iterations=0, converged=True)

        for iteration in range(1, settings.bisection_max_iterations + 1):
            mid = 0.5 * (low + high)
            current = self._displacement(frequency_hz, mid) if mid > 0.0 else 0.0
            if abs(current - displacement_m) < settings.displacement_tolerance_m:
                logger.debug(
                    "Power bisection converged at %.3f Hz: %.3f W after %d iterations",
                    frequency_hz,
                    mid,
                    iteration,
                )
                return PowerInversion(power_w=mid, displacement_m=current, iterations=iteration, converged=True)
            if current > displacement_m:
                high = mid
            else:
                low = mid

        mid = 0.5 * (low + high)
        logger.warning(
            "Power bisection hit %d iterations at %.3f Hz; returning bracket midpoint %.3f W",
            settings.bisection_max_iterations,
            frequency_hz,
            mid,
        )
        return PowerInversion(
            power_w=mid,
            displacement_m=self._displacement(frequency_hz, mid) if mid > 0.0 else 0.0,
            iterations=settings.bisection_max_iterations,
            converged=False,
        )


def excursion_model_for(
    driver: DriverParameters,
    box: VentedBoxDesign | BoxDesign,
    *,
    loading: LoadingModel | None = None,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> ExcursionModel:
    """Pick the excursion strategy matching the enclosure topology."""

    if isinstance(box, VentedBoxDesign):
        return PortedExcursionModel(driver, box, loading=loading, settings=settings)
    if isinstance(box, BoxDesign):
        if loading is not None:
            raise InvalidParameterError("A loading model only applies to vented enclosures")
        return SealedExcursionModel(driver, box, settings=settings)
    raise InvalidParameterError(f"Unsupported enclosure type {type(box).__name__}")


@dataclass(frozen=True, slots=True)
class PowerLimit:
    """Maximum safe input power at one frequency and what limits it."""

    frequency_hz: float
    power_w: float
    limiting_reason: str
    displacement_m: float
    converged: bool = True
    iterations: int = 0

    def to_dict(self) -> dict[str, float | int | str | bool]:
        return {
            "frequency_hz": self.frequency_hz,
            "power_w": self.power_w,
            "limiting_reason": self.limiting_reason,
            "displacement_mm": self.displacement_m * 1000.0,
            "converged": self.converged,
            "iterations": self.iterations,
        }


@dataclass(frozen=True, slots=True)
class PowerWarning:
    """A requested power exceeding the safe limit at one frequency."""

    frequency_hz: float
    requested_w: float
    max_safe_w: float
    limiting_reason: str
    severity: str

    @property
    def message(self) -> str:
        return (
            f"{self.requested_w:g} W exceeds the {self.limiting_reason} limit "
            f"({self.max_safe_w:.0f} W) at {self.frequency_hz:g} Hz"
        )

    def to_dict(self) -> dict[str, float | str]:
        return {
            "frequency_hz": self.frequency_hz,
            "requested_w": self.requested_w,
            "max_safe_w": self.max_safe_w,
            "limiting_reason": self.limiting_reason,
            "severity": self.severity,
            "message": self.message,
        }


class PowerLimitSolver:
    """Decide between the thermal and the excursion limit frequency by frequency."""

    def __init__(self, driver: DriverParameters, model: ExcursionModel) -> None:
        self.driver = driver
        self.model = model
        self._pe_w = driver.require("pe_w")
        driver.require("xmax_mm")
        self._xmax_m = driver.xmax_m()

    def max_safe_power(self, frequency_hz: float) -> PowerLimit:
        """Return the thermal rating unless the cone passes Xmax first."""

        at_thermal = self.model.displacement(frequency_hz, self._pe_w)
        if at_thermal <= self._xmax_m:
            return PowerLimit(
                frequency_hz=frequency_hz,
                power_w=self._pe_w,
                limiting_reason=THERMAL,
                displacement_m=at_thermal,
            )

        inversion = self.model.power_for_displacement(frequency_hz, self._xmax_m)
        return PowerLimit(
            frequency_hz=frequency_hz,
            power_w=inversion.power_w,
            limiting_reason=EXCURSION,
            displacement_m=inversion.displacement_m,
            converged=inversion.converged,
            iterations=inversion.iterations,
        )

    def power_limit_curve(self, frequencies_hz: Iterable[float]) -> list[PowerLimit]:
        return [self.max_safe_power(float(freq)) for freq in frequencies_hz]

    def power_warnings(
        self,
        power_w: float,
        frequencies_hz: Sequence[float] = DEFAULT_WARNING_FREQUENCIES,
        margin: float = 1.1,
    ) -> list[PowerWarning]:
        """List frequencies where ``power_w`` exceeds the safe limit by more than ``margin``."""

        _check_power(power_w)
        if margin < 1.0:
            raise InvalidParameterError(f"margin={margin!r} must be at least 1.0")
        warnings: list[PowerWarning] = []
        for limit in self.power_limit_curve(frequencies_hz):
            if power_w > limit.power_w * margin:
                severity = "critical" if power_w > limit.power_w * 1.5 else "warning"
                warnings.append(
                    PowerWarning(
                        frequency_hz=limit.frequency_hz,
                        requested_w=power_w,
                        max_safe_w=limit.power_w,
                        limiting_reason=limit.limiting_reason,
                        severity=severity,
                    )
                )
        return warnings


__all__ = [
    "THERMAL",
    "EXCURSION",
    "LoadingModel",
    "ResonatorLoading",
    "EmpiricalLoading",
    "ExcursionModel",
    "SealedExcursionModel",
    "PortedExcursionModel",
    "PowerInversion",
    "PowerLimit",
    "PowerWarning",
    "PowerLimitSolver",
    "excursion_model_for",
]

"""Driver and enclosure data models used across the vented-box engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from math import log10, pi, sqrt

from .errors import InvalidParameterError
from .losses import LOSSLESS, combine_losses

AIR_DENSITY = 1.2041  # kg/m^3 at 20°C
SPEED_OF_SOUND = 343.0  # m/s at 20°C

# Relative mismatch tolerated between 1/Qts and 1/Qes + 1/Qms on datasheets.
Q_CONSISTENCY_TOLERANCE = 0.02

_OPTIONAL_POSITIVE = (
    "qes",
    "qms",
    "bl_t_m",
    "mms_kg",
    "cms_m_per_n",
    "rms_kg_s",
    "sd_m2",
    "xmax_mm",
    "pe_w",
)

_REQUIREMENT_HINTS = {
    "qes": "supply qes, or qms so it can be derived from qts",
    "qms": "supply qms, or qes so it can be derived from qts",
    "bl_t_m": "supply bl_t_m, or mms/sd together with qes",
    "mms_kg": "supply mms_kg, or cms_m_per_n/sd_m2 so it can be derived",
    "cms_m_per_n": "supply cms_m_per_n, or sd_m2 so it can be derived from vas",
    "rms_kg_s": "supply rms_kg_s, or qms together with a moving mass",
    "sd_m2": "supply the effective piston area sd_m2",
    "xmax_mm": "supply the linear excursion limit xmax_mm",
    "pe_w": "supply the thermal power rating pe_w",
}


def _check_positive(name: str, value: float | None) -> None:
    if value is None:
        return
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidParameterError(f"{name}={value!r} must be a finite value greater than zero")


@dataclass(frozen=True, slots=True)
class DriverParameters:
    """Thiele/Small parameter set for a single driver.

    Missing mechanical values are derived once at construction where the
    supplied set allows it; afterwards the instance never changes.
    """

    fs_hz: float
    """Free-air resonance frequency (Hz)."""

    qts: float
    """Total Q at fs (dimensionless)."""

    vas_l: float
    """Equivalent compliance volume (litres)."""

    re_ohm: float
    """DC resistance of the voice coil (ohms)."""

    qes: float | None = None
    """Electrical Q at fs."""

    qms: float | None = None
    """Mechanical Q at fs."""

    bl_t_m: float | None = None
    """Force factor (Tesla-metres)."""

    mms_kg: float | None = None
    """Moving mass including air load (kilograms)."""

    cms_m_per_n: float | None = None
    """Suspension compliance (metres per Newton)."""

    rms_kg_s: float | None = None
    """Mechanical resistance (kg/s)."""

    sd_m2: float | None = None
    """Effective piston area (square metres)."""

    xmax_mm: float | None = None
    """One-way linear excursion limit (millimetres)."""

    pe_w: float | None = None
    """Thermal power rating (watts)."""

    le_h: float = 0.0
    """Voice-coil inductance (Henries). Validated and carried with the driver record;
    the low-frequency models here do not read it."""

    reference_efficiency: float | None = field(init=False, default=None)
    sensitivity_db: float | None = field(init=False, default=None)
    ebp_hz: float | None = field(init=False, default=None)
    vd_m3: float | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        _check_positive("fs_hz", self.fs_hz)
        _check_positive("qts", self.qts)
        _check_positive("vas_l", self.vas_l)
        _check_positive("re_ohm", self.re_ohm)
        for name in _OPTIONAL_POSITIVE:
            _check_positive(name, getattr(self, name))
        if self.le_h < 0.0:
            raise InvalidParameterError(f"le_h={self.le_h!r} must not be negative")

        self._validate_q_ordering()
        self._derive_missing()

        if self.qes is not None:
            eta0 = (4 * pi**2 / SPEED_OF_SOUND**3) * self.fs_hz**3 * self.vas_m3() / self.qes
            object.__setattr__(self, "reference_efficiency", eta0)
            object.__setattr__(self, "sensitivity_db", 112.0 + 10.0 * log10(eta0))
            object.__setattr__(self, "ebp_hz", self.fs_hz / self.qes)
        if self.sd_m2 is not None and self.xmax_mm is not None:
            object.__setattr__(self, "vd_m3", self.sd_m2 * self.xmax_mm / 1000.0)

    def _validate_q_ordering(self) -> None:
        if self.qes is not None and self.qts >= self.qes:
            raise InvalidParameterError(
                f"qts={self.qts} must be lower than qes={self.qes} (total Q combines electrical and mechanical damping)"
            )
        if self.qms is not None and self.qts >= self.qms:
            raise InvalidParameterError(
                f"qts={self.qts} must be lower than qms={self.qms} (total Q combines electrical and mechanical damping)"
            )
        if self.qes is not None and self.qms is not None:
            expected = 1.0 / self.qes + 1.0 / self.qms
            actual = 1.0 / self.qts
            if abs(expected - actual) > Q_CONSISTENCY_TOLERANCE * actual:
                raise InvalidParameterError(
                    f"qts={self.qts}, qes={self.qes}, qms={self.qms} violate 1/qts = 1/qes + 1/qms "
                    f"(1/qts={actual:.4f}, 1/qes + 1/qms={expected:.4f})"
                )

    def _derive_missing(self) -> None:
        w_s = 2 * pi * self.fs_hz

        def _set(name: str, value: float) -> None:
            object.__setattr__(self, name, value)

        if self.qes is None and self.qms is not None:
            _set("qes", 1.0 / (1.0 / self.qts - 1.0 / self.qms))
        elif self.qms is None and self.qes is not None:
            _set("qms", 1.0 / (1.0 / self.qts - 1.0 / self.qes))

        if self.cms_m_per_n is None:
            if self.sd_m2 is not None:
                _set("cms_m_per_n", self.vas_m3() / (AIR_DENSITY * SPEED_OF_SOUND**2 * self.sd_m2**2))
            elif self.mms_kg is not None:
                _set("cms_m_per_n", 1.0 / (w_s**2 * self.mms_kg))
        if self.mms_kg is None and self.cms_m_per_n is not None:
            _set("mms_kg", 1.0 / (w_s**2 * self.cms_m_per_n))
        if self.sd_m2 is None and self.cms_m_per_n is not None:
            _set("sd_m2", sqrt(self.vas_m3() / (AIR_DENSITY * SPEED_OF_SOUND**2 * self.cms_m_per_n)))

        if self.bl_t_m is None and self.mms_kg is not None and self.qes is not None:
            _set("bl_t_m", sqrt(w_s * self.mms_kg * self.re_ohm / self.qes))
        if self.qes is None and self.bl_t_m is not None and self.mms_kg is not None:
            qes = w_s * self.mms_kg * self.re_ohm / self.bl_t_m**2
            if qes > self.qts:
                _set("qes", qes)
                _set("qms", 1.0 / (1.0 / self.qts - 1.0 / qes))

        if self.rms_kg_s is None and self.mms_kg is not None and self.qms is not None:
            _set("rms_kg_s", w_s * self.mms_kg / self.qms)

    def vas_m3(self) -> float:
        """Return the compliance volume in cubic metres."""

        return self.vas_l / 1000.0

    def xmax_m(self) -> float | None:
        """Return the linear excursion limit in metres if provided."""

        if self.xmax_mm is None:
            return None
        return self.xmax_mm / 1000.0

    def require(self, name: str) -> float:
        """Return a supplied or derived parameter, failing loudly when it is unavailable."""

        value = getattr(self, name)
        if value is None:
            hint = _REQUIREMENT_HINTS.get(name, "supply it explicitly")
            raise InvalidParameterError(f"Driver parameter {name!r} is required here: {hint}")
        return float(value)

    def to_dict(self) -> dict[str, float | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True, slots=True)
class BoxDesign:
    """Closed enclosure used as the sealed baseline for excursion checks."""

    volume_l: float
    """Net internal volume (litres)."""

    def __post_init__(self) -> None:
        _check_positive("volume_l", self.volume_l)

    def volume_m3(self) -> float:
        return self.volume_l / 1000.0

    def compliance_ratio(self, driver: DriverParameters) -> float:
        """Return alpha = Vas / Vb."""

        return driver.vas_l / self.volume_l


@dataclass(frozen=True, slots=True)
class VentedBoxDesign:
    """Enclosure volume, tuning and the three independent loss figures."""

    volume_l: float
    """Net internal volume (litres)."""

    fb_hz: float
    """Helmholtz tuning frequency of the box and port (Hz)."""

    leakage_q: float = LOSSLESS
    """Q at fb from leakage losses (QL component, infinity = airtight)."""

    absorption_q: float = LOSSLESS
    """Q at fb from absorption in lining or fill."""

    port_q: float = LOSSLESS
    """Q at fb from port friction."""

    def __post_init__(self) -> None:
        _check_positive("volume_l", self.volume_l)
        _check_positive("fb_hz", self.fb_hz)
        for name in ("leakage_q", "absorption_q", "port_q"):
            value = getattr(self, name)
            if math.isnan(value) or value <= 0.0:
                raise InvalidParameterError(f"{name}={value!r} must be greater than zero (use inf for lossless)")

    def volume_m3(self) -> float:
        """Return enclosure volume in cubic metres."""

        return self.volume_l / 1000.0

    def compliance_ratio(self, driver: DriverParameters) -> float:
        """Return alpha = Vas / Vb; recomputed on every call."""

        return driver.vas_l / self.volume_l

    def tuning_ratio(self, driver: DriverParameters) -> float:
        """Return h = fb / fs."""

        return self.fb_hz / driver.fs_hz

    def enclosure_q(self) -> float:
        """Return QL, the combined enclosure loss figure."""

        return combine_losses(self.leakage_q, self.absorption_q, self.port_q)

    def with_volume(self, volume_l: float) -> VentedBoxDesign:
        return replace(self, volume_l=volume_l)

    def with_tuning(self, fb_hz: float) -> VentedBoxDesign:
        return replace(self, fb_hz=fb_hz)

    def with_enclosure_q(self, ql: float) -> VentedBoxDesign:
        """Return a copy whose losses are lumped into ``leakage_q``."""

        return replace(self, leakage_q=ql, absorption_q=LOSSLESS, port_q=LOSSLESS)


@dataclass(frozen=True, slots=True)
class PortGeometry:
    """Circular vent of one or more identical tubes."""

    diameter_m: float
    """Port diameter (metres)."""

    count: int = 1
    """Number of identical ports."""

    end_correction: float = 0.732
    """End-correction factor k applied as k × diameter (Small 1973, eq. 15)."""

    def __post_init__(self) -> None:
        _check_positive("diameter_m", self.diameter_m)
        if self.count < 1:
            raise InvalidParameterError(f"count={self.count!r} must be at least one port")
        if self.end_correction < 0.0:
            raise InvalidParameterError(f"end_correction={self.end_correction!r} must not be negative")

    def area_m2(self) -> float:
        """Return the combined cross-sectional area of all ports."""

        radius = self.diameter_m / 2.0
        return pi * radius**2 * self.count

    def length_for_tuning(self, volume_l: float, fb_hz: float) -> float:
        """Return the physical port length (metres) that tunes ``volume_l`` to ``fb_hz``."""

        _check_positive("volume_l", volume_l)
        _check_positive("fb_hz", fb_hz)
        volume = volume_l / 1000.0
        acoustic = (SPEED_OF_SOUND**2 / (4 * pi**2)) * self.area_m2() / (volume * fb_hz**2)
        length = acoustic - self.end_correction * self.diameter_m
        if length <= 0.0:
            raise InvalidParameterError(
                f"A {self.diameter_m * 100:.1f} cm port cannot tune {volume_l:.1f} L to {fb_hz:.1f} Hz: "
                f"the end correction alone exceeds the required acoustic length ({acoustic:.3f} m)"
            )
        return length

    def tuning_frequency(self, volume_l: float, length_m: float) -> float:
        """Return the tuning frequency for a given box volume and physical port length."""

        _check_positive("volume_l", volume_l)
        _check_positive("length_m", length_m)
        effective = length_m + self.end_correction * self.diameter_m
        return (SPEED_OF_SOUND / (2 * pi)) * sqrt(self.area_m2() / ((volume_l / 1000.0) * effective))

    def air_velocity(self, volume_velocity_m3_s: float) -> float:
        """Return the mean air velocity in the ports for a given volume velocity."""

        return abs(volume_velocity_m3_s) / self.area_m2()


PORT_VELOCITY_LIMITS = (
    (15.0, "good"),
    (20.0, "moderate"),
    (30.0, "high"),
)


def classify_port_velocity(velocity_ms: float) -> str:
    """Map a port air velocity onto the chuffing-risk labels used in reports."""

    for limit, label in PORT_VELOCITY_LIMITS:
        if velocity_ms <= limit:
            return label
    return "critical"


def peak_port_velocity(driver: DriverParameters, box: VentedBoxDesign, port: PortGeometry) -> float:
    """Estimate port air velocity when the cone sweeps Sd·Xmax at the tuning frequency."""

    driver.require("xmax_mm")
    volume_velocity = 2 * pi * box.fb_hz * driver.require("sd_m2") * driver.xmax_m()
    return port.air_velocity(volume_velocity)


__all__ = [
    "AIR_DENSITY",
    "SPEED_OF_SOUND",
    "DriverParameters",
    "BoxDesign",
    "VentedBoxDesign",
    "PortGeometry",
    "classify_port_velocity",
    "peak_port_velocity",
]

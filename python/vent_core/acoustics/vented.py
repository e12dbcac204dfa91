"""Vented-box system facade over the normalised transfer function."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from math import log10

from ..drivers import (
    DriverParameters,
    PortGeometry,
    VentedBoxDesign,
    classify_port_velocity,
    peak_port_velocity,
)
from ..errors import InvalidParameterError
from ..settings import DEFAULT_SETTINGS, SolverSettings
from ._utils import log_spaced
from .transfer import (
    F3Search,
    ResponseSample,
    TransferResult,
    evaluate,
    group_delay,
    response_curve,
    solve_f3,
)

# fb/fs band treated as tuning at the driver resonance.
NEAR_RESONANCE_BAND = 0.1


@dataclass(slots=True)
class VentedSystemSummary:
    """Key figures describing a driver in a vented enclosure."""

    fs_hz: float
    fb_hz: float
    volume_l: float
    compliance_ratio: float
    tuning_ratio: float
    enclosure_q: float
    f3_hz: float
    f3_converged: bool
    tuning: str
    group_delay_at_fb_ms: float
    sensitivity_db: float | None
    port_length_m: float | None = None
    port_velocity_ms: float | None = None
    port_velocity_status: str | None = None

    def to_dict(self) -> dict[str, float | str | bool | None]:
        return {
            "fs_hz": self.fs_hz,
            "fb_hz": self.fb_hz,
            "volume_l": self.volume_l,
            "compliance_ratio": self.compliance_ratio,
            "tuning_ratio": self.tuning_ratio,
            "enclosure_q": None if math.isinf(self.enclosure_q) else self.enclosure_q,
            "f3_hz": self.f3_hz,
            "f3_converged": self.f3_converged,
            "tuning": self.tuning,
            "group_delay_at_fb_ms": self.group_delay_at_fb_ms,
            "sensitivity_db": self.sensitivity_db,
            "port_length_m": self.port_length_m,
            "port_velocity_ms": self.port_velocity_ms,
            "port_velocity_status": self.port_velocity_status,
        }


class VentedBoxSystem:
    """Driver, enclosure and optional port evaluated as one fourth-order system."""

    def __init__(
        self,
        driver: DriverParameters,
        box: VentedBoxDesign,
        port: PortGeometry | None = None,
        settings: SolverSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.driver = driver
        self.box = box
        self.port = port
        self.settings = settings

    def compliance_ratio(self) -> float:
        return self.box.compliance_ratio(self.driver)

    def tuning_ratio(self) -> float:
        return self.box.tuning_ratio(self.driver)

    def enclosure_q(self) -> float:
        return self.box.enclosure_q()

    def _args(self) -> tuple[float, float, float, float, float]:
        return (
            self.driver.fs_hz,
            self.box.fb_hz,
            self.compliance_ratio(),
            self.driver.qts,
            self.enclosure_q(),
        )

    def response(self, frequency_hz: float) -> TransferResult:
        return evaluate(frequency_hz, *self._args())

    def response_db(self, frequency_hz: float) -> float:
        magnitude = self.response(frequency_hz).magnitude
        if magnitude == 0.0:
            return -math.inf
        return 20.0 * log10(magnitude)

    def spl_db(self, frequency_hz: float, power_w: float = 1.0) -> float:
        """Return SPL at 1 m for ``power_w`` from the reference efficiency and the response."""

        if not math.isfinite(power_w) or power_w <= 0.0:
            raise InvalidParameterError(f"power_w={power_w!r} must be a finite value greater than zero")
        self.driver.require("qes")
        passband = self.driver.sensitivity_db + 10.0 * log10(power_w)
        return passband + self.response_db(frequency_hz)

    def f3_search(self) -> F3Search:
        return solve_f3(*self._args(), settings=self.settings)

    def f3(self) -> float:
        return self.f3_search().frequency_hz

    def group_delay(self, frequency_hz: float) -> float:
        return group_delay(frequency_hz, *self._args(), settings=self.settings)

    def response_curve(self, frequencies_hz: Iterable[float]) -> list[ResponseSample]:
        return response_curve(frequencies_hz, *self._args())

    def sweep(self, start_hz: float = 10.0, stop_hz: float = 200.0, points: int = 96) -> list[ResponseSample]:
        """Evaluate the response on a logarithmic grid."""

        return response_curve(log_spaced(start_hz, stop_hz, points), *self._args())

    def classify_tuning(self) -> str:
        """Label the tuning by where fb sits relative to fs.

        The label says nothing about response shape; different alignments land in
        the same band depending on the driver Q.
        """

        ratio = self.tuning_ratio()
        if abs(ratio - 1.0) < NEAR_RESONANCE_BAND:
            return "fb≈fs"
        return "high tuning" if ratio > 1.0 else "low tuning"

    def summary(self) -> VentedSystemSummary:
        search = self.f3_search()
        summary = VentedSystemSummary(
            fs_hz=self.driver.fs_hz,
            fb_hz=self.box.fb_hz,
            volume_l=self.box.volume_l,
            compliance_ratio=self.compliance_ratio(),
            tuning_ratio=self.tuning_ratio(),
            enclosure_q=self.enclosure_q(),
            f3_hz=search.frequency_hz,
            f3_converged=search.converged,
            tuning=self.classify_tuning(),
            group_delay_at_fb_ms=self.group_delay(self.box.fb_hz) * 1000.0,
            sensitivity_db=self.driver.sensitivity_db,
        )
        if self.port is not None:
            summary.port_length_m = self.port.length_for_tuning(self.box.volume_l, self.box.fb_hz)
            if self.driver.sd_m2 is not None and self.driver.xmax_mm is not None:
                velocity = peak_port_velocity(self.driver, self.box, self.port)
                summary.port_velocity_ms = velocity
                summary.port_velocity_status = classify_port_velocity(velocity)
        return summary


__all__ = ["VentedBoxSystem", "VentedSystemSummary"]

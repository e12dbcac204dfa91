"""Central-difference sensitivities of the -3 dB frequency."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .acoustics.transfer import find_f3
from .drivers import DriverParameters, VentedBoxDesign
from .settings import DEFAULT_SETTINGS, SolverSettings

logger = logging.getLogger(__name__)

VOLUME_STEP = 0.01
TUNING_STEP = 0.01
LOSS_STEP = 0.10


@dataclass(frozen=True, slots=True)
class F3Sensitivities:
    """Partial derivatives of F3 at one operating point."""

    f3_hz: float
    volume_hz_per_l: float
    tuning_hz_per_hz: float
    loss_hz_per_q: float

    def to_dict(self) -> dict[str, float]:
        return {
            "f3_hz": self.f3_hz,
            "df3_dvolume_hz_per_l": self.volume_hz_per_l,
            "df3_dtuning_hz_per_hz": self.tuning_hz_per_hz,
            "df3_dloss_hz_per_q": self.loss_hz_per_q,
        }


class SensitivityAnalyzer:
    """How F3 moves with box volume, tuning and enclosure loss."""

    def __init__(
        self,
        driver: DriverParameters,
        box: VentedBoxDesign,
        settings: SolverSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.driver = driver
        self.box = box
        self.settings = settings

    def _f3(self, box: VentedBoxDesign) -> float:
        return find_f3(
            self.driver.fs_hz,
            box.fb_hz,
            box.compliance_ratio(self.driver),
            self.driver.qts,
            box.enclosure_q(),
            settings=self.settings,
        )

    def f3(self) -> float:
        return self._f3(self.box)

    def df3_dvolume(self) -> float:
        """Hz of F3 per litre of box volume (negative: bigger boxes reach lower)."""

        step = VOLUME_STEP * self.box.volume_l
        upper = self._f3(self.box.with_volume(self.box.volume_l + step))
        lower = self._f3(self.box.with_volume(self.box.volume_l - step))
        return (upper - lower) / (2.0 * step)

    def df3_dtuning(self) -> float:
        """Hz of F3 per Hz of box tuning."""

        step = TUNING_STEP * self.box.fb_hz
        upper = self._f3(self.box.with_tuning(self.box.fb_hz + step))
        lower = self._f3(self.box.with_tuning(self.box.fb_hz - step))
        return (upper - lower) / (2.0 * step)

    def df3_dloss(self) -> float:
        """Hz of F3 per unit of enclosure Q; zero for a lossless box."""

        ql = self.box.enclosure_q()
        if math.isinf(ql):
            return 0.0
        step = LOSS_STEP * ql
        upper = self._f3(self.box.with_enclosure_q(ql + step))
        lower = self._f3(self.box.with_enclosure_q(ql - step))
        return (upper - lower) / (2.0 * step)

    def all(self) -> F3Sensitivities:
        result = F3Sensitivities(
            f3_hz=self.f3(),
            volume_hz_per_l=self.df3_dvolume(),
            tuning_hz_per_hz=self.df3_dtuning(),
            loss_hz_per_q=self.df3_dloss(),
        )
        logger.debug("F3 sensitivities: %s", result)
        return result


__all__ = ["F3Sensitivities", "SensitivityAnalyzer"]

"""Reference designs with known answers, used to validate the engine end to end."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from math import sqrt

from .acoustics.vented import VentedBoxSystem
from .alignment import BUTTERWORTH_B4, design_enclosure, synthesize_alignment
from .drivers import DriverParameters, VentedBoxDesign
from .errors import InvalidParameterError
from .settings import DEFAULT_SETTINGS, SolverSettings

logger = logging.getLogger(__name__)

UM18_22 = DriverParameters(
    fs_hz=22.0,
    qts=0.53,
    vas_l=248.2,
    re_ohm=6.4,
    qes=0.56,
    qms=7.7,
    bl_t_m=18.5,
    mms_kg=0.24,
    cms_m_per_n=0.000476,
    rms_kg_s=3.48,
    sd_m2=0.114,
    xmax_mm=18.0,
    pe_w=1200.0,
)
"""Dayton UM18-22 datasheet values."""

BC_15SW76 = DriverParameters(
    fs_hz=34.3,
    qts=0.35,
    vas_l=201.0,
    re_ohm=5.4,
    le_h=1.8e-3,
    sd_m2=0.086,
    xmax_mm=8.5,
    pe_w=800.0,
)

LOW_QTS_DRIVER = DriverParameters(
    fs_hz=32.0,
    qts=0.30,
    vas_l=180.0,
    re_ohm=6.0,
    sd_m2=0.095,
    xmax_mm=12.0,
    pe_w=600.0,
)


@dataclass(frozen=True, slots=True)
class Expectation:
    """Expected value of one metric and the absolute tolerance around it."""

    metric: str
    expected: float
    tolerance: float


@dataclass(frozen=True, slots=True)
class ReferenceCase:
    """A driver with either a fixed enclosure or an alignment to design for it."""

    name: str
    driver: DriverParameters
    box: VentedBoxDesign | None = None
    alignment: str | None = None
    expectations: tuple[Expectation, ...] = ()
    description: str = ""


@dataclass(slots=True)
class MetricCheck:
    metric: str
    expected: float
    actual: float
    tolerance: float

    @property
    def deviation(self) -> float:
        return self.actual - self.expected

    @property
    def passed(self) -> bool:
        return abs(self.deviation) <= self.tolerance

    def to_dict(self) -> dict[str, float | str | bool]:
        return {
            "metric": self.metric,
            "expected": self.expected,
            "actual": self.actual,
            "tolerance": self.tolerance,
            "deviation": self.deviation,
            "passed": self.passed,
        }


@dataclass(slots=True)
class ReferenceCheck:
    """Outcome of validating one reference case."""

    name: str
    checks: list[MetricCheck] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "passed": self.passed,
            "checks": [check.to_dict() for check in self.checks],
        }


REFERENCE_CASES: tuple[ReferenceCase, ...] = (
    ReferenceCase(
        name="um18-22-200l",
        driver=UM18_22,
        box=VentedBoxDesign(volume_l=200.0, fb_hz=22.0),
        expectations=(
            Expectation("f3_hz", 21.2, 1.0),
            Expectation("compliance_ratio", 1.241, 0.001),
            Expectation("tuning_ratio", 1.0, 1e-9),
        ),
        description="Bass-extension tuning: F3 falls below the driver's free-air resonance.",
    ),
    ReferenceCase(
        name="bc-15sw76-qb3",
        driver=BC_15SW76,
        alignment="QB3",
        expectations=(
            Expectation("volume_l", 94.3, 1.0),
            Expectation("fb_hz", 34.3, 0.05),
        ),
        description="Thiele's empirical QB3 volume 15·Qts^3.3·Vas tuned to fs.",
    ),
    ReferenceCase(
        name="low-qts-b4",
        driver=LOW_QTS_DRIVER,
        alignment="B4",
        expectations=(
            Expectation("volume_l", 180.0 / sqrt(2.0), 0.5),
            Expectation("fb_hz", 32.0, 0.05),
            Expectation("series_resistance_ratio", 1.0 / (sqrt(4.0 + 2.0 * sqrt(2.0)) * 0.30) - 1.0, 1e-6),
        ),
        description="Lossless maximally-flat alignment needs QT ≈ 0.383 (series resistance raises Qts 0.30).",
    ),
)


def _metrics(case: ReferenceCase, settings: SolverSettings) -> dict[str, float]:
    metrics: dict[str, float] = {}
    box = case.box
    if case.alignment is not None:
        box = design_enclosure(case.driver, case.alignment, allow_experimental=True, settings=settings)
        if case.alignment.upper() == "B4":
            solution = synthesize_alignment(case.driver.qts, BUTTERWORTH_B4, settings=settings)
            metrics["series_resistance_ratio"] = solution.series_resistance_ratio
    if box is None:
        raise InvalidParameterError(f"Reference case {case.name!r} needs a box or an alignment")

    system = VentedBoxSystem(case.driver, box, settings=settings)
    metrics.update(
        {
            "volume_l": box.volume_l,
            "fb_hz": box.fb_hz,
            "compliance_ratio": system.compliance_ratio(),
            "tuning_ratio": system.tuning_ratio(),
            "f3_hz": system.f3(),
        }
    )
    return metrics


def validate_case(case: ReferenceCase, settings: SolverSettings = DEFAULT_SETTINGS) -> ReferenceCheck:
    """Compute each expected metric for ``case`` and compare it within tolerance."""

    metrics = _metrics(case, settings)
    report = ReferenceCheck(name=case.name)
    for expectation in case.expectations:
        report.checks.append(
            MetricCheck(
                metric=expectation.metric,
                expected=expectation.expected,
                actual=metrics[expectation.metric],
                tolerance=expectation.tolerance,
            )
        )
    if not report.passed:
        logger.warning("Reference case %s failed: %s", case.name, report.to_dict())
    return report


def validate_all(
    cases: Iterable[ReferenceCase] = REFERENCE_CASES,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> list[ReferenceCheck]:
    return [validate_case(case, settings) for case in cases]


def find_case(name: str) -> ReferenceCase:
    for case in REFERENCE_CASES:
        if case.name == name:
            return case
    known = ", ".join(case.name for case in REFERENCE_CASES)
    raise KeyError(f"Unknown reference case {name!r}; known cases: {known}")


__all__ = [
    "UM18_22",
    "BC_15SW76",
    "LOW_QTS_DRIVER",
    "Expectation",
    "ReferenceCase",
    "MetricCheck",
    "ReferenceCheck",
    "REFERENCE_CASES",
    "validate_case",
    "validate_all",
    "find_case",
]

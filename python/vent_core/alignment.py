"""Alignment synthesis: invert the vented-box coefficient equations for a target response.

A target alignment is a normalised highpass denominator
``D(s) = s⁴ + a1 s³ + a2 s² + a3 s + 1``. Synthesis finds the tuning ratio ``h``,
compliance ratio ``α`` and total Q that reproduce those coefficients through
:func:`vent_core.acoustics.transfer.filter_coefficients`.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from math import sqrt

from .acoustics.transfer import filter_coefficients
from .drivers import DriverParameters, VentedBoxDesign
from .errors import (
    ConvergenceError,
    InvalidParameterError,
    UnsatisfiableAlignmentError,
    UnsupportedAlignmentError,
)
from .losses import LOSSLESS, inverse_q
from .settings import DEFAULT_SETTINGS, SolverSettings

logger = logging.getLogger(__name__)


def _expand_roots(roots: Sequence[complex]) -> list[complex]:
    """Return monic polynomial coefficients (highest power first) for ``roots``."""

    coeffs: list[complex] = [1.0 + 0.0j]
    for root in roots:
        nxt = coeffs + [0.0 + 0.0j]
        for idx in range(1, len(nxt)):
            nxt[idx] -= root * coeffs[idx - 1]
        coeffs = nxt
    return coeffs


@dataclass(frozen=True, slots=True)
class AlignmentTarget:
    """Named fourth-order highpass shape given by its normalised coefficients."""

    name: str
    a1: float
    a2: float
    a3: float
    experimental: bool = False

    def __post_init__(self) -> None:
        for label in ("a1", "a2", "a3"):
            value = getattr(self, label)
            if not math.isfinite(value) or value <= 0.0:
                raise InvalidParameterError(f"{self.name}: coefficient {label}={value!r} must be positive")

    def coefficients(self) -> tuple[float, float, float]:
        return (self.a1, self.a2, self.a3)

    @classmethod
    def from_poles(cls, name: str, poles: Iterable[complex], *, experimental: bool = False) -> AlignmentTarget:
        """Build a target from four highpass poles, rescaled so the constant term is one."""

        roots = [complex(pole) for pole in poles]
        if len(roots) != 4:
            raise InvalidParameterError(f"{name}: a fourth-order alignment needs 4 poles, got {len(roots)}")
        coeffs = _expand_roots(roots)
        constant = coeffs[4].real
        if constant <= 0.0:
            raise InvalidParameterError(f"{name}: poles must lie in the left half-plane")
        scale = constant**0.25
        return cls(
            name=name,
            a1=coeffs[1].real / scale,
            a2=coeffs[2].real / scale**2,
            a3=coeffs[3].real / scale**3,
            experimental=experimental,
        )

    @classmethod
    def from_lowpass_polynomial(
        cls,
        name: str,
        coefficients: Sequence[float],
        *,
        experimental: bool = False,
    ) -> AlignmentTarget:
        """Build a target from a fourth-order lowpass polynomial (highest power first).

        The lowpass-to-highpass substitution ``s → 1/s`` reverses the coefficient order;
        the result is then made monic and frequency-scaled to a unit constant term.
        """

        if len(coefficients) != 5:
            raise InvalidParameterError(f"{name}: expected 5 polynomial coefficients, got {len(coefficients)}")
        b4, b3, b2, b1, b0 = (float(value) for value in coefficients)
        if b0 <= 0.0 or b4 <= 0.0:
            raise InvalidParameterError(f"{name}: leading and constant coefficients must be positive")
        c3, c2, c1, c0 = b1 / b0, b2 / b0, b3 / b0, b4 / b0
        scale = c0**0.25
        return cls(name=name, a1=c3 / scale, a2=c2 / scale**2, a3=c1 / scale**3, experimental=experimental)


BUTTERWORTH_B4 = AlignmentTarget(
    name="B4",
    a1=sqrt(4.0 + 2.0 * sqrt(2.0)),
    a2=2.0 + sqrt(2.0),
    a3=sqrt(4.0 + 2.0 * sqrt(2.0)),
)

BESSEL_BE4 = AlignmentTarget.from_lowpass_polynomial("BE4", (1.0, 10.0, 45.0, 105.0, 105.0))


def chebyshev_target(ripple_db: float) -> AlignmentTarget:
    """Return the equal-ripple C4 target for a passband ripple of ``ripple_db``.

    As the ripple tends to zero the coefficients approach :data:`BUTTERWORTH_B4`.
    """

    if not math.isfinite(ripple_db) or ripple_db <= 0.0:
        raise InvalidParameterError(f"ripple_db={ripple_db!r} must be a finite value greater than zero")
    epsilon = sqrt(math.expm1(ripple_db / 10.0 * math.log(10.0)))
    v = math.asinh(1.0 / epsilon) / 4.0
    poles = []
    for k in range(1, 5):
        theta = (2 * k - 1) * math.pi / 8.0
        lowpass = complex(-math.sinh(v) * math.sin(theta), math.cosh(v) * math.cos(theta))
        poles.append(1.0 / lowpass)
    return AlignmentTarget.from_poles(f"C4({ripple_db:g} dB)", poles)


ALIGNMENTS: dict[str, AlignmentTarget] = {
    "B4": BUTTERWORTH_B4,
    "BE4": BESSEL_BE4,
}

EXPERIMENTAL_ALIGNMENTS: dict[str, str] = {
    "QB3": "quasi-Butterworth third order; only Thiele's empirical closed form is available",
    "SC4": "sub-Chebyshev fourth order; no reference coefficients are available",
}


def get_alignment(
    name: str,
    *,
    ripple_db: float | None = None,
    allow_experimental: bool = False,
) -> AlignmentTarget:
    """Look up a catalog alignment by name (``C4`` requires ``ripple_db``)."""

    key = name.strip().upper()
    if key in ALIGNMENTS:
        return ALIGNMENTS[key]
    if key == "C4":
        if ripple_db is None:
            raise InvalidParameterError("C4 alignments need a ripple_db value")
        return chebyshev_target(ripple_db)
    if key in EXPERIMENTAL_ALIGNMENTS:
        note = EXPERIMENTAL_ALIGNMENTS[key]
        if not allow_experimental:
            raise UnsupportedAlignmentError(
                f"{key} is experimental ({note}); pass allow_experimental=True to use it"
            )
        raise UnsupportedAlignmentError(f"{key} has no coefficient form ({note}); use design_enclosure instead")
    known = ", ".join(sorted([*ALIGNMENTS, "C4", *EXPERIMENTAL_ALIGNMENTS]))
    raise UnsupportedAlignmentError(f"Unknown alignment {name!r}; known alignments: {known}")


@dataclass(frozen=True, slots=True)
class AlignmentSolution:
    """Enclosure ratios realising an alignment for a given driver Q."""

    alignment: str
    compliance_ratio: float
    tuning_ratio: float
    qt: float
    series_resistance_ratio: float
    enclosure_q: float
    iterations: int

    def to_dict(self) -> dict[str, float | int | str | None]:
        return {
            "alignment": self.alignment,
            "compliance_ratio": self.compliance_ratio,
            "tuning_ratio": self.tuning_ratio,
            "qt": self.qt,
            "series_resistance_ratio": self.series_resistance_ratio,
            "enclosure_q": None if math.isinf(self.enclosure_q) else self.enclosure_q,
            "iterations": self.iterations,
        }


def series_resistance_ratio(
    driver_qt: float,
    required_qt: float,
    *,
    qes: float | None = None,
    qms: float | None = None,
) -> float:
    """Return ``Rs/Re`` needed to raise the driver's total Q to ``required_qt``.

    With ``qes`` and ``qms`` known only the electrical Q scales with ``(Re + Rs)/Re``;
    otherwise all damping is treated as electrical, giving ``QT/Qts − 1``.
    """

    if required_qt < driver_qt:
        raise UnsatisfiableAlignmentError(
            f"Alignment needs QT={required_qt:.4f} but the driver's Qts is {driver_qt:.4f}; "
            "series resistance can only raise Q"
        )
    if qes is not None and qms is not None:
        inv_qes = 1.0 / required_qt - 1.0 / qms
        if inv_qes <= 0.0:
            raise UnsatisfiableAlignmentError(
                f"Alignment needs QT={required_qt:.4f}, above the mechanical Q {qms:.4f} the driver can reach"
            )
        return max(0.0, (1.0 / inv_qes) / qes - 1.0)
    return required_qt / driver_qt - 1.0


# log10(h) grid used to check that a physical tuning root exists before iterating.
_ROOT_SCAN_DECADES = (-3.0, 3.0)
_ROOT_SCAN_POINTS = 601


def _tuning_residual(h: float, a1: float, a3: float, inv_ql: float) -> float:
    return a3 / h - h**-1.5 * inv_ql + h**0.5 * inv_ql - a1


def _has_physical_root(a1: float, a3: float, inv_ql: float) -> bool:
    """True when the residual crosses zero downward somewhere on the scan grid.

    The residual runs from ``-inf`` at ``h → 0`` to ``+inf`` as ``h`` grows. The
    physical tuning ratio is the downward crossing between its local maximum and
    minimum; when that maximum stays below zero only the far upward root is left,
    and it gives a negative compliance ratio.
    """

    low, high = _ROOT_SCAN_DECADES
    span = (high - low) / (_ROOT_SCAN_POINTS - 1)
    previous: float | None = None
    for index in range(_ROOT_SCAN_POINTS):
        value = _tuning_residual(10.0 ** (low + index * span), a1, a3, inv_ql)
        if previous is not None and previous > 0.0 and value <= 0.0:
            return True
        previous = value
    return False


def _solve_tuning_ratio(
    name: str,
    a1: float,
    a3: float,
    ql: float,
    settings: SolverSettings,
) -> tuple[float, int]:
    h = a3 / a1
    inv_ql = inverse_q(ql)
    if inv_ql == 0.0:
        return h, 0
    if not _has_physical_root(a1, a3, inv_ql):
        raise UnsatisfiableAlignmentError(
            f"No tuning ratio realises {name} with QL={ql}: the enclosure losses are too high for this shape"
        )

    for iteration in range(1, settings.newton_max_iterations + 1):
        residual = _tuning_residual(h, a1, a3, inv_ql)
        slope = -a3 / h**2 + 1.5 * h**-2.5 * inv_ql + 0.5 * h**-0.5 * inv_ql
        if slope == 0.0:
            raise ConvergenceError(
                "Newton iteration hit a flat residual while solving the tuning ratio",
                iterations=iteration,
                last_estimate=h,
            )
        step = residual / slope
        updated = h - step
        while updated <= 0.0:
            step /= 2.0
            updated = h - step
        logger.debug("Newton iteration %d: h=%.6f residual=%.3e", iteration, updated, residual)
        if abs(updated - h) < settings.newton_tolerance:
            return updated, iteration
        h = updated

    logger.warning("Tuning-ratio Newton iteration did not converge (QL=%.3f, last h=%.6f)", ql, h)
    raise ConvergenceError(
        f"Tuning ratio did not converge within {settings.newton_max_iterations} iterations (QL={ql})",
        iterations=settings.newton_max_iterations,
        last_estimate=h,
    )


def synthesize_alignment(
    driver_qt: float,
    target: AlignmentTarget,
    enclosure_q: float = LOSSLESS,
    *,
    qes: float | None = None,
    qms: float | None = None,
    allow_experimental: bool = False,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> AlignmentSolution:
    """Solve for compliance ratio, tuning ratio and QT realising ``target``.

    The lossless case is algebraic (``h = a3/a1``). A finite enclosure Q couples the
    equations and ``h`` is found by Newton–Raphson started from the lossless value.
    """

    if not math.isfinite(driver_qt) or driver_qt <= 0.0:
        raise InvalidParameterError(f"driver_qt={driver_qt!r} must be a finite value greater than zero")
    if math.isnan(enclosure_q) or enclosure_q <= 0.0:
        raise InvalidParameterError(f"enclosure_q={enclosure_q!r} must be greater than zero (use inf for lossless)")
    if target.experimental and not allow_experimental:
        raise UnsupportedAlignmentError(f"{target.name} is experimental; pass allow_experimental=True to use it")

    a1, a2, a3 = target.coefficients()
    h, iterations = _solve_tuning_ratio(target.name, a1, a3, enclosure_q, settings)
    if h <= 0.0:
        raise UnsatisfiableAlignmentError(f"{target.name}: tuning ratio {h:.4f} is not physical")

    inv_ql = inverse_q(enclosure_q)
    inv_qt = a3 / sqrt(h) - inv_ql / h
    if inv_qt <= 0.0:
        raise UnsatisfiableAlignmentError(
            f"{target.name}: enclosure Q {enclosure_q} leaves no room for driver damping (QT would be non-positive)"
        )
    qt = 1.0 / inv_qt
    alpha = h * (a2 - inv_ql * inv_qt) - 1.0 - h * h
    if alpha <= 0.0:
        raise UnsatisfiableAlignmentError(
            f"{target.name}: compliance ratio {alpha:.4f} is not positive, no finite box realises this shape"
        )

    ratio = series_resistance_ratio(driver_qt, qt, qes=qes, qms=qms)
    logger.debug(
        "%s synthesised: h=%.4f alpha=%.4f qt=%.4f rs/re=%.4f (%d iterations)",
        target.name,
        h,
        alpha,
        qt,
        ratio,
        iterations,
    )
    return AlignmentSolution(
        alignment=target.name,
        compliance_ratio=alpha,
        tuning_ratio=h,
        qt=qt,
        series_resistance_ratio=ratio,
        enclosure_q=enclosure_q,
        iterations=iterations,
    )


def coefficients_of(solution: AlignmentSolution, ql: float | None = None) -> tuple[float, float, float]:
    """Forward-substitute a solution back into the coefficient equations."""

    enclosure_q = solution.enclosure_q if ql is None else ql
    return filter_coefficients(solution.tuning_ratio, solution.compliance_ratio, solution.qt, enclosure_q)


def enclosure_for_solution(driver: DriverParameters, solution: AlignmentSolution) -> VentedBoxDesign:
    """Scale a solution's ratios to ``driver``: ``Vb = Vas/α`` and ``fb = h·fs``."""

    return VentedBoxDesign(
        volume_l=driver.vas_l / solution.compliance_ratio,
        fb_hz=solution.tuning_ratio * driver.fs_hz,
        leakage_q=solution.enclosure_q,
    )


def empirical_qb3(driver: DriverParameters) -> VentedBoxDesign:
    """Thiele's empirical QB3 design: ``Vb = 15·Qts^3.3·Vas`` tuned to ``fs``."""

    volume_l = 15.0 * driver.qts**3.3 * driver.vas_l
    return VentedBoxDesign(volume_l=volume_l, fb_hz=driver.fs_hz)


def design_enclosure(
    driver: DriverParameters,
    target: AlignmentTarget | str,
    enclosure_q: float = LOSSLESS,
    *,
    ripple_db: float | None = None,
    allow_experimental: bool = False,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> VentedBoxDesign:
    """Return the enclosure (``Vb = Vas/α``, ``fb = h·fs``) realising ``target`` for ``driver``."""

    if isinstance(target, str):
        key = target.strip().upper()
        if key == "QB3":
            if not allow_experimental:
                raise UnsupportedAlignmentError(
                    f"QB3 is experimental ({EXPERIMENTAL_ALIGNMENTS['QB3']}); pass allow_experimental=True"
                )
            logger.warning("Using Thiele's empirical QB3 closed form for Qts=%.3f", driver.qts)
            return empirical_qb3(driver)
        target = get_alignment(key, ripple_db=ripple_db, allow_experimental=allow_experimental)

    solution = synthesize_alignment(
        driver.qts,
        target,
        enclosure_q,
        qes=driver.qes,
        qms=driver.qms,
        allow_experimental=allow_experimental,
        settings=settings,
    )
    return enclosure_for_solution(driver, solution)


__all__ = [
    "AlignmentTarget",
    "AlignmentSolution",
    "ALIGNMENTS",
    "EXPERIMENTAL_ALIGNMENTS",
    "BUTTERWORTH_B4",
    "BESSEL_BE4",
    "chebyshev_target",
    "get_alignment",
    "series_resistance_ratio",
    "synthesize_alignment",
    "coefficients_of",
    "enclosure_for_solution",
    "empirical_qb3",
    "design_enclosure",
]

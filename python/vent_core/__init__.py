"""Public interface for the vented-box numerical engine."""

from .acoustics.transfer import (
    F3Search,
    ResponseSample,
    TransferResult,
    evaluate,
    filter_coefficients,
    find_f3,
    group_delay,
    magnitude_db,
    response_curve,
    solve_f3,
)
from .acoustics.vented import VentedBoxSystem, VentedSystemSummary
from .alignment import (
    ALIGNMENTS,
    BESSEL_BE4,
    BUTTERWORTH_B4,
    EXPERIMENTAL_ALIGNMENTS,
    AlignmentSolution,
    AlignmentTarget,
    chebyshev_target,
    coefficients_of,
    design_enclosure,
    empirical_qb3,
    enclosure_for_solution,
    get_alignment,
    series_resistance_ratio,
    synthesize_alignment,
)
from .drivers import (
    AIR_DENSITY,
    SPEED_OF_SOUND,
    BoxDesign,
    DriverParameters,
    PortGeometry,
    VentedBoxDesign,
)
from .errors import (
    ConvergenceError,
    InvalidParameterError,
    MeasurementError,
    UnsatisfiableAlignmentError,
    UnsupportedAlignmentError,
    VentCoreError,
)
from .excursion import (
    EmpiricalLoading,
    ExcursionModel,
    PortedExcursionModel,
    PowerLimit,
    PowerLimitSolver,
    PowerWarning,
    ResonatorLoading,
    SealedExcursionModel,
    excursion_model_for,
)
from .impedance import (
    ImpedanceCurve,
    ImpedancePeaks,
    LossMeasurement,
    QMeasurement,
    RecoveredParameters,
    estimate_vas,
    identify_peaks,
    isolate_loss,
    measure_absorption_q,
    measure_leakage_q,
    measure_port_q,
    measure_q,
    recover_parameters,
)
from .losses import LOSSLESS, combine_losses
from .sensitivity import F3Sensitivities, SensitivityAnalyzer
from .settings import DEFAULT_SETTINGS, SolverSettings

__all__ = [
    "AIR_DENSITY",
    "SPEED_OF_SOUND",
    "DriverParameters",
    "BoxDesign",
    "VentedBoxDesign",
    "PortGeometry",
    "LOSSLESS",
    "combine_losses",
    "SolverSettings",
    "DEFAULT_SETTINGS",
    "VentCoreError",
    "InvalidParameterError",
    "UnsatisfiableAlignmentError",
    "UnsupportedAlignmentError",
    "MeasurementError",
    "ConvergenceError",
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
    "VentedBoxSystem",
    "VentedSystemSummary",
    "AlignmentTarget",
    "AlignmentSolution",
    "ALIGNMENTS",
    "BUTTERWORTH_B4",
    "BESSEL_BE4",
    "EXPERIMENTAL_ALIGNMENTS",
    "chebyshev_target",
    "get_alignment",
    "series_resistance_ratio",
    "synthesize_alignment",
    "coefficients_of",
    "design_enclosure",
    "empirical_qb3",
    "enclosure_for_solution",
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
    "ExcursionModel",
    "SealedExcursionModel",
    "PortedExcursionModel",
    "ResonatorLoading",
    "EmpiricalLoading",
    "PowerLimit",
    "PowerLimitSolver",
    "PowerWarning",
    "excursion_model_for",
    "F3Sensitivities",
    "SensitivityAnalyzer",
]

"""Acoustic response models."""

from .sealed import sealed_response_magnitude, sealed_system_q, sealed_system_resonance
from .transfer import (
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
from .vented import VentedBoxSystem, VentedSystemSummary

__all__ = [
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
    "sealed_system_resonance",
    "sealed_system_q",
    "sealed_response_magnitude",
    "VentedBoxSystem",
    "VentedSystemSummary",
]

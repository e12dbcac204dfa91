"""Combination of independent enclosure loss mechanisms."""

from __future__ import annotations

import math

from .errors import InvalidParameterError

LOSSLESS = math.inf
"""Sentinel quality factor for a loss mechanism that is absent."""


def combine_losses(*qualities: float) -> float:
    """Return the effective Q of loss mechanisms acting in parallel.

    ``1/Q = sum(1/q_i)``. Infinite inputs contribute nothing; when every input is
    infinite (or none are given) the result is infinite as well.
    """

    total = 0.0
    for q in qualities:
        value = float(q)
        if math.isnan(value) or value <= 0.0:
            raise InvalidParameterError(f"Loss quality factor must be positive, got {q!r}")
        if math.isinf(value):
            continue
        total += 1.0 / value
    if total == 0.0:
        return LOSSLESS
    return 1.0 / total


def inverse_q(q: float) -> float:
    """Return ``1/q`` with ``1/inf == 0``."""

    if math.isinf(q):
        return 0.0
    return 1.0 / q


__all__ = ["LOSSLESS", "combine_losses", "inverse_q"]

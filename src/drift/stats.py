"""Small numeric helpers for drift indicators."""

from __future__ import annotations

import math
from typing import Sequence


def mean(values: Sequence[float]) -> float:
    """Return the arithmetic mean, or 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def quantile(sorted_values: Sequence[float], q: float) -> float:
    """Return the q-quantile of ascending values by linear interpolation."""
    if not sorted_values:
        return 0.0
    if q <= 0:
        return sorted_values[0]
    if q >= 1:
        return sorted_values[-1]
    pos = q * (len(sorted_values) - 1)
    idx = math.floor(pos)
    frac = pos - idx
    if idx + 1 >= len(sorted_values):
        return sorted_values[-1]
    return sorted_values[idx] + (sorted_values[idx + 1] - sorted_values[idx]) * frac


def is_nan_or_inf(value: float) -> bool:
    """Return True for NaN and positive or negative infinity."""
    return math.isnan(value) or math.isinf(value)

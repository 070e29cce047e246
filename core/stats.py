"""
Descriptive statistics used by the correlation engine and result aggregation.

All outputs are rounded to 6 decimals so repeated runs compare exactly in tests.

PERCENTILE SCALE:
  percentile(values, p) takes p on a 0-100 scale. percentile(xs, 0.5) is the
  half-percentile (just above the minimum), NOT the median. Every caller in this
  repo passes 10 / 25 / 50 / 75 / 90.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .utils import kahan_sum, round_to

DEFAULT_PRECISION = 6


def mean(values: Sequence[float]) -> float:
    n = len(values)
    if n == 0:
        return 0.0
    return round_to(kahan_sum(values) / n, DEFAULT_PRECISION)


def variance(values: Sequence[float], population: bool = False) -> float:
    """
    Sample variance (N-1) by default, population variance (N) when population=True.

    Returns 0 for an empty sequence, and for a single value when sample variance
    is requested.
    """
    n = len(values)
    if n == 0:
        return 0.0
    if not population and n < 2:
        return 0.0

    # unrounded mean so the result is only rounded once
    m = kahan_sum(values) / n
    squared_diffs = [(float(v) - m) ** 2 for v in values]
    denominator = n if population else n - 1
    return round_to(kahan_sum(squared_diffs) / denominator, DEFAULT_PRECISION)


def stddev(values: Sequence[float], population: bool = False) -> float:
    return round_to(math.sqrt(variance(values, population)), DEFAULT_PRECISION)


def percentile(values: Sequence[float], p: float) -> float:
    """
    Linear-interpolation percentile with p on a 0-100 scale.

    Sorts a copy (the input is never mutated), clamps p to [0, 100], and
    interpolates between sorted[floor(idx)] and sorted[ceil(idx)] where
    idx = (p / 100) * (n - 1).
    """
    n = len(values)
    if n == 0:
        return 0.0
    if n == 1:
        return float(values[0])

    ordered = np.sort(np.asarray(values, dtype=float))
    clamped = max(0.0, min(100.0, float(p)))

    idx = (clamped / 100.0) * (n - 1)
    lower = int(math.floor(idx))
    upper = int(math.ceil(idx))
    if lower == upper:
        return float(ordered[lower])

    fraction = idx - lower
    result = ordered[lower] + fraction * (ordered[upper] - ordered[lower])
    return round_to(float(result), DEFAULT_PRECISION)

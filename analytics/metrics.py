"""
SBLOC risk metrics over all iterations.

Margin-call probability comes in two forms:
  per year    share of iterations with a call in that year
  cumulative  share of iterations whose FIRST call came in or before that year
              (monotone non-decreasing by construction)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd


@dataclass(frozen=True, eq=False)
class MarginCallStats:
    per_year_probability: np.ndarray     # shape (n_years,)
    cumulative_probability: np.ndarray   # shape (n_years,)
    first_call_year: np.ndarray          # 1-based per iteration, 0 = never
    mean_calls_per_iteration: float
    max_calls: int

    @property
    def probability_of_any_call(self) -> float:
        if self.cumulative_probability.size == 0:
            return 0.0
        return float(self.cumulative_probability[-1])

    def to_dataframe(self) -> pd.DataFrame:
        n_years = self.per_year_probability.size
        return pd.DataFrame({
            "index": np.arange(n_years),
            "year": np.arange(1, n_years + 1),
            "probability": self.per_year_probability,
            "cumulative_probability": self.cumulative_probability,
        })


def first_event_years(flags: np.ndarray) -> np.ndarray:
    """1-based year of the first True in each row; 0 when a row has none."""
    matrix = np.asarray(flags, dtype=bool)
    has_event = matrix.any(axis=1)
    first = matrix.argmax(axis=1) + 1
    return np.where(has_event, first, 0)


def margin_call_probability_by_year(margin_calls: np.ndarray) -> MarginCallStats:
    """
    Parameters
    ----------
    margin_calls : np.ndarray of bool, shape (n_iterations, n_years)
        True where iteration i had a margin call at sequential year index t.
    """
    matrix = np.asarray(margin_calls, dtype=bool)
    n_iterations, n_years = matrix.shape
    if n_iterations == 0:
        empty = np.zeros(n_years, dtype=float)
        return MarginCallStats(empty, empty.copy(), np.zeros(0, dtype=int), 0.0, 0)

    per_year = matrix.sum(axis=0) / n_iterations

    first = first_event_years(matrix)
    first_counts = np.bincount(first, minlength=n_years + 1)[1:]
    cumulative = np.cumsum(first_counts) / n_iterations

    counts = matrix.sum(axis=1)
    return MarginCallStats(
        per_year_probability=per_year.astype(float),
        cumulative_probability=cumulative.astype(float),
        first_call_year=first,
        mean_calls_per_iteration=float(counts.mean()),
        max_calls=int(counts.max()),
    )


def cumulative_withdrawals(schedule: Sequence[float]) -> np.ndarray:
    """Running total of a per-year withdrawal schedule."""
    return np.cumsum(np.asarray(schedule, dtype=float))

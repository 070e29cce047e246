"""
Aggregate N simulated trajectories into the numbers a planner reads.

Instead of: "You will have $2.1M in 30 years" (one number, no context)
The planner gets: "Median $2.1M; 1 in 10 paths ends below $0.9M; 62% finish
above where they started."

Two band flavours:
  yearly_percentile_bands    point-wise: P50 at year 10 and P50 at year 20 may
                             come from different trajectories
  path_coherent_percentiles  whole trajectories ranked by terminal value, so a
                             band is a path that actually happened

INDEXING:
Every per-year array here is addressed by sequential position (0 .. T-1).
Calendar years are labels attached afterwards and never used as indices.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

from core.schema import PERCENTILE_LEVELS
from core.stats import mean, percentile, stddev


def success_rate(terminal_values: Sequence[float], initial_value: float) -> float:
    """
    Fraction of trajectories ending strictly above `initial_value`.

    A terminal value exactly equal to the starting value is not a success.
    """
    values = np.asarray(terminal_values, dtype=float)
    if values.size == 0:
        return 0.0
    return float(np.count_nonzero(values > initial_value)) / values.size


def yearly_percentile_bands(
    yearly_values: np.ndarray,
    levels: Sequence[float] = PERCENTILE_LEVELS,
) -> np.ndarray:
    """
    Point-wise percentile bands.

    Parameters
    ----------
    yearly_values : np.ndarray, shape (n_iterations, n_years)
        Fully populated accumulator; column t holds every iteration's value
        at sequential year index t.
    levels : sequence of float
        Percentile levels on the 0-100 scale.

    Returns
    -------
    np.ndarray, shape (n_years, len(levels))
    """
    values = np.asarray(yearly_values, dtype=float)
    n_years = values.shape[1]
    bands = np.empty((n_years, len(levels)), dtype=float)
    for index in range(n_years):
        column = values[:, index]
        for j, p in enumerate(levels):
            bands[index, j] = percentile(column, p)
    return bands


def summary_statistics(terminal_values: Sequence[float]) -> Tuple[float, float, float, float, float]:
    """(mean, median, stddev, min, max) of the terminal values."""
    values = np.asarray(terminal_values, dtype=float)
    if values.size == 0:
        return 0.0, 0.0, 0.0, 0.0, 0.0
    return (
        mean(values),
        percentile(values, 50),
        stddev(values),
        float(values.min()),
        float(values.max()),
    )


def path_coherent_percentiles(
    yearly_values: np.ndarray,
    terminal_values: Sequence[float],
    levels: Sequence[float] = PERCENTILE_LEVELS,
) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """
    Whole trajectories at each percentile of terminal value.

    Iterations are ranked by terminal value (stable sort); the trajectory at
    rank min(floor(p/100 · n), n - 1) represents percentile p.

    Returns
    -------
    (paths, iteration_indices)
        paths has shape (len(levels), n_years); iteration_indices gives the
        source iteration of each row.
    """
    values = np.asarray(yearly_values, dtype=float)
    terminal = np.asarray(terminal_values, dtype=float)
    n = terminal.size
    if n == 0:
        return np.zeros((len(levels), values.shape[1] if values.ndim == 2 else 0)), ()

    order = np.argsort(terminal, kind="stable")
    indices = []
    for p in levels:
        rank = min(int(math.floor(p / 100.0 * n)), n - 1)
        indices.append(int(order[rank]))
    return values[indices, :].copy(), tuple(indices)

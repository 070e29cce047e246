"""
Correlation structure between portfolio assets.

WHY THIS MATTERS:
Without correlations, Monte Carlo can generate paths where equities crash while
every other risky holding rallies in the same year. Real drawdowns hit most
risky assets together, and that clustering is what drives an SBLOC into a
margin call.

Pipeline:
  1. pearson_correlation / correlation_matrix  — estimate from return histories
  2. regularize_correlation_matrix             — cap collinearity, optional ridge
  3. cholesky_decomposition                    — factor L with L·Lᵗ ≈ M, computed
     once per run and shared read-only by every iteration

FALLBACK POLICY:
Small or collinear samples often give matrices that are not strictly
positive-definite. Decomposition walks an ordered strategy list and keeps the
first success:
  1. matrix as given
  2. off-diagonals capped at ±0.9999                      (warning logged)
  3. capped off-diagonals + 1e-6 added to the diagonal    (warning logged)
If all three fail the run cannot start and MatrixError is raised.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from core.errors import MatrixError
from core.stats import stddev
from core.utils import EPSILON, kahan_sum, round_to

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 6

# Largest off-diagonal magnitude kept by regularization.
MAX_CORRELATION = 0.9999

# Added to every diagonal entry when diagonal regularization is requested.
DIAGONAL_REGULARIZATION = 1e-6


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Sample Pearson correlation of two equal-length series.

    Returns NaN when lengths differ, n < 2, or either series is constant.
    The result is clamped to [-1, 1] and rounded to 6 decimals.
    """
    n = len(x)
    if n != len(y) or n < 2:
        return float("nan")

    mean_x = kahan_sum(x) / n
    mean_y = kahan_sum(y) / n

    std_x = stddev(x)
    std_y = stddev(y)
    if std_x == 0 or std_y == 0:
        return float("nan")

    covariance = kahan_sum((float(a) - mean_x) * (float(b) - mean_y) for a, b in zip(x, y))
    correlation = covariance / ((n - 1) * std_x * std_y)
    return round_to(max(-1.0, min(1.0, correlation)), DEFAULT_PRECISION)


def correlation_matrix(series_list: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Symmetric n×n correlation matrix for a list of return series.

    The diagonal is fixed at 1.0; each unordered pair is computed once and
    mirrored. Undefined pairs (constant or mismatched series) stay NaN so the
    decomposition step can report which assets are at fault.
    """
    n = len(series_list)
    matrix = np.zeros((n, n), dtype=float)
    for i in range(n):
        matrix[i, i] = 1.0
        for j in range(i + 1, n):
            corr = pearson_correlation(series_list[i], series_list[j])
            matrix[i, j] = corr
            matrix[j, i] = corr
    return matrix


def regularize_correlation_matrix(
    matrix: np.ndarray,
    add_diagonal_regularization: bool = False,
) -> np.ndarray:
    """
    Return a regularized copy of `matrix`; the input is never mutated.

    Off-diagonal entries are capped to [-0.9999, 0.9999]. With
    add_diagonal_regularization=True, 1e-6 is added to every diagonal entry.
    """
    result = np.array(matrix, dtype=float, copy=True)
    n = result.shape[0]
    off_diagonal = ~np.eye(n, dtype=bool)
    result[off_diagonal] = np.clip(result[off_diagonal], -MAX_CORRELATION, MAX_CORRELATION)
    if add_diagonal_regularization:
        result[np.diag_indices(n)] += DIAGONAL_REGULARIZATION
    return result


def _banachiewicz(matrix: np.ndarray) -> Tuple[Optional[np.ndarray], Optional[int]]:
    """
    Cholesky–Banachiewicz elimination.

    Returns (L, None) on success, or (None, j) where j is the first column whose
    pivot is <= EPSILON or not finite.
    """
    n = matrix.shape[0]
    lower = np.zeros((n, n), dtype=float)
    for j in range(n):
        for i in range(j, n):
            value = matrix[i, j] - float(np.dot(lower[i, :j], lower[j, :j]))
            if not math.isfinite(value):
                return None, j
            if i == j:
                if value <= EPSILON:
                    return None, j
                lower[i, j] = math.sqrt(value)
            else:
                lower[i, j] = value / lower[j, j]
    return lower, None


def _decompose(matrix: np.ndarray) -> Optional[np.ndarray]:
    return _banachiewicz(matrix)[0]


# (name, attempt) pairs tried in order; the first non-None factor wins.
Strategy = Tuple[str, Callable[[np.ndarray], Optional[np.ndarray]]]

DECOMPOSITION_STRATEGIES: List[Strategy] = [
    ("as_given", _decompose),
    ("capped", lambda m: _decompose(regularize_correlation_matrix(m, False))),
    ("capped_with_diagonal", lambda m: _decompose(regularize_correlation_matrix(m, True))),
]


def _offending_assets(matrix: np.ndarray, labels: Sequence[str]) -> Tuple[str, ...]:
    n = matrix.shape[0]
    for i in range(n):
        for j in range(n):
            if not math.isfinite(matrix[i, j]):
                return (labels[min(i, j)], labels[max(i, j)])

    _, pivot = _banachiewicz(regularize_correlation_matrix(matrix, True))
    if pivot is None:
        return tuple(labels)
    # the failing pivot is collinear with some earlier asset
    return tuple(labels[: pivot + 1])


def cholesky_decomposition(
    matrix: np.ndarray,
    *,
    labels: Optional[Sequence[str]] = None,
) -> np.ndarray:
    """
    Lower-triangular factor L with L·Lᵗ ≈ matrix, using the three-tier fallback.

    Parameters
    ----------
    matrix : array-like, shape (n, n)
        Symmetric correlation matrix.
    labels : sequence of str, optional
        Asset names used in the MatrixError message when every tier fails.

    Returns
    -------
    Read-only numpy array, shape (n, n). Entries above the diagonal are 0.
    """
    m = np.array(matrix, dtype=float)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise MatrixError(f"correlation matrix must be square, got shape {m.shape}")

    n = m.shape[0]
    if n == 0:
        factor = np.zeros((0, 0), dtype=float)
        factor.setflags(write=False)
        return factor

    for tier, (name, attempt) in enumerate(DECOMPOSITION_STRATEGIES, start=1):
        factor = attempt(m)
        if factor is None:
            continue
        if tier > 1:
            logger.warning(
                "Correlation matrix not positive-definite as given; "
                "decomposed after regularization tier %d (%s)",
                tier,
                name,
            )
        factor.setflags(write=False)
        return factor

    names = list(labels) if labels is not None else [f"asset_{i}" for i in range(n)]
    raise MatrixError(
        "correlation matrix is not positive-definite after regularization",
        assets=_offending_assets(m, names),
    )


def correlation_matrix_to_dataframe(
    matrix: np.ndarray,
    labels: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Convert a correlation matrix to a labeled DataFrame for display."""
    n = np.asarray(matrix).shape[0]
    names = list(labels) if labels is not None else [f"asset_{i}" for i in range(n)]
    return pd.DataFrame(np.asarray(matrix), index=names, columns=names)

"""
Distributions package — estimate correlation structure and sample correlated returns.

  1. correlation.py  — Pearson correlation, matrix regularization, Cholesky fallback chain
  2. sampler.py      — Box–Muller draws and correlated annual returns
  3. historical.py   — summaries and correlations from asset return histories
  4. benchmarks.py   — asset-class fallback assumptions
  5. bootstrap.py    — historical year resampling, simple and block, aligned across assets
"""

from .benchmarks import benchmark_allocation, benchmark_correlation_matrix, get_benchmark
from .bootstrap import (
    HistoricalReturnSampler,
    correlated_block_bootstrap,
    correlated_bootstrap,
    optimal_block_length,
    simple_bootstrap,
)
from .correlation import (
    cholesky_decomposition,
    correlation_matrix,
    pearson_correlation,
    regularize_correlation_matrix,
)
from .historical import derive_correlation_matrix, summarize_return_series
from .sampler import (
    CorrelatedReturnSampler,
    correlated_samples,
    default_uniform_source,
    lognormal_random,
    normal_random,
)

__all__ = [
    "benchmark_allocation",
    "benchmark_correlation_matrix",
    "get_benchmark",
    "HistoricalReturnSampler",
    "correlated_block_bootstrap",
    "correlated_bootstrap",
    "optimal_block_length",
    "simple_bootstrap",
    "cholesky_decomposition",
    "correlation_matrix",
    "pearson_correlation",
    "regularize_correlation_matrix",
    "derive_correlation_matrix",
    "summarize_return_series",
    "CorrelatedReturnSampler",
    "correlated_samples",
    "default_uniform_source",
    "lognormal_random",
    "normal_random",
]

"""
Historical resampling — draw simulated years straight from return histories.

WHY THIS MATTERS:
A parametric normal draw smooths away what actually happened: fat left tails,
skew, and the way assets crashed together in 1974, 2002 and 2008. Resampling
whole historical years keeps all of that without fitting anything.

CROSS-ASSET ALIGNMENT:
Every asset is read at the SAME historical year index. Drawing each asset
independently would keep the marginals but destroy the correlation structure,
which is exactly what drives SBLOC margin calls.

Methods:
  bootstrap  each simulated year is an independent draw of one historical year
  block      contiguous runs of `block_size` historical years, so multi-year
             drawdowns and recoveries stay in sequence

Histories of unequal length are truncated to the shortest one (its first
m years) so every draw has a value for every asset.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from core.errors import ConfigurationError
from .sampler import UniformSource, default_uniform_source

BOOTSTRAP_METHODS = ("bootstrap", "block")


def optimal_block_length(n_observations: int) -> int:
    """Rule-of-thumb block length n^(1/3), clamped to [1, n]."""
    if n_observations <= 0:
        return 1
    return max(1, min(n_observations, int(round(n_observations ** (1.0 / 3.0)))))


def _draw_index(rng: UniformSource, n: int) -> int:
    return min(int(math.floor(rng() * n)), n - 1)


def simple_bootstrap(returns: Sequence[float], target_length: int, rng: UniformSource) -> np.ndarray:
    """IID resampling with replacement from one return series."""
    values = np.asarray(returns, dtype=float)
    if values.size == 0:
        raise ConfigurationError("cannot bootstrap from an empty return series")
    return np.array([values[_draw_index(rng, values.size)] for _ in range(target_length)])


def _history_table(histories: Sequence[Sequence[float]]) -> np.ndarray:
    """(m, n_assets) table over the common first m years."""
    if len(histories) == 0:
        raise ConfigurationError("cannot bootstrap without any assets")
    m = min(len(h) for h in histories)
    if m == 0:
        raise ConfigurationError("every asset needs at least one historical return to bootstrap")
    return np.column_stack([np.asarray(h[:m], dtype=float) for h in histories])


def correlated_bootstrap(
    histories: Sequence[Sequence[float]],
    years: int,
    rng: UniformSource,
) -> np.ndarray:
    """
    One historical year index per simulated year, shared by every asset.

    Returns
    -------
    np.ndarray, shape (years, n_assets)
    """
    table = _history_table(histories)
    m = table.shape[0]
    path = np.empty((years, table.shape[1]), dtype=float)
    for t in range(years):
        path[t] = table[_draw_index(rng, m)]
    return path


def correlated_block_bootstrap(
    histories: Sequence[Sequence[float]],
    years: int,
    rng: UniformSource,
    block_size: Optional[int] = None,
) -> np.ndarray:
    """
    Contiguous blocks of historical years, the same block for every asset.

    The block length defaults to optimal_block_length(m) and is capped at m.
    The last block is cut short when it would run past `years`.

    Returns
    -------
    np.ndarray, shape (years, n_assets)
    """
    table = _history_table(histories)
    m = table.shape[0]
    size = optimal_block_length(m) if block_size is None else min(int(block_size), m)
    n_starts = m - size + 1

    path = np.empty((years, table.shape[1]), dtype=float)
    t = 0
    while t < years:
        start = _draw_index(rng, n_starts)
        take = min(size, years - t)
        path[t:t + take] = table[start:start + take]
        t += take
    return path


class HistoricalReturnSampler:
    """
    Annual asset-return generator that replays historical years.

    Same interface as CorrelatedReturnSampler so the runner can use either.

    Usage:
        sampler = HistoricalReturnSampler(histories, method="block", block_size=5)
        path = sampler.sample_path(30, rng)       # shape (30, n_assets)
    """

    def __init__(
        self,
        histories: Sequence[Sequence[float]],
        method: str = "bootstrap",
        block_size: Optional[int] = None,
        *,
        labels: Optional[Sequence[str]] = None,
    ):
        if method not in BOOTSTRAP_METHODS:
            raise ConfigurationError(f"method must be one of {BOOTSTRAP_METHODS}, got '{method}'")
        if block_size is not None and block_size < 1:
            raise ConfigurationError("block_size must be a positive integer")

        self.table = _history_table(histories)
        self.table.setflags(write=False)
        self.method = method
        self.block_size = block_size
        self.labels = list(labels) if labels is not None else [
            f"asset_{i}" for i in range(self.table.shape[1])
        ]

    @property
    def n_assets(self) -> int:
        return self.table.shape[1]

    @property
    def n_observations(self) -> int:
        return self.table.shape[0]

    def sample_path(self, years: int, rng: Optional[UniformSource] = None) -> np.ndarray:
        source = rng if rng is not None else default_uniform_source()
        columns = self.table.T
        if self.method == "block":
            return correlated_block_bootstrap(columns, years, source, self.block_size)
        return correlated_bootstrap(columns, years, source)

    def sample_year(self, rng: Optional[UniformSource] = None) -> np.ndarray:
        return self.sample_path(1, rng)[0]

    def summary(self) -> pd.DataFrame:
        """Per-asset moments of the resampled history."""
        return pd.DataFrame({
            "Asset": self.labels,
            "Mean": self.table.mean(axis=0),
            "StdDev": self.table.std(axis=0, ddof=1) if self.n_observations > 1 else 0.0,
            "Years": self.n_observations,
        })

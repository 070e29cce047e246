"""
Return sampler — turns uniform draws into correlated annual asset returns.

Input:  per-asset mean / stddev of annual returns + a Cholesky factor
Output: one return per asset per simulated year

Every draw comes from an injected uniform source: a zero-argument callable
returning floats in [0, 1). Passing the same source state reproduces the same
returns, which is what makes seeded runs deterministic and lets each worker
own an independent generator.

Method (per simulated year):
  1. Draw k independent standard normals via Box–Muller
  2. Correlate them: Y = L · Z
  3. Scale and shift: return_i = mean_i + stddev_i · Y_i
"""

from __future__ import annotations

import math
from typing import Callable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from core.errors import DimensionMismatchError
from .correlation import cholesky_decomposition

UniformSource = Callable[[], float]


def default_uniform_source(seed: Optional[int] = None) -> UniformSource:
    """Uniform [0, 1) source backed by numpy's PCG64 generator."""
    return np.random.default_rng(seed).random


def normal_random(
    mean: float = 0.0,
    stddev: float = 1.0,
    rng: Optional[UniformSource] = None,
) -> float:
    """
    One draw from N(mean, stddev²) using the Box–Muller transform.

    Consumes exactly two uniforms. The first is taken as 1 - rng() so the
    logarithm never sees zero. Without `rng` a fresh unseeded generator is used;
    nothing is shared between calls.
    """
    source = rng if rng is not None else default_uniform_source()
    u1 = 1.0 - source()
    u2 = source()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + z * stddev


def lognormal_random(
    mu: float = 0.0,
    sigma: float = 1.0,
    rng: Optional[UniformSource] = None,
) -> float:
    """exp(N(mu, sigma²)); always positive."""
    return math.exp(normal_random(mu, sigma, rng))


def correlated_samples(
    n: int,
    correlation_matrix: Optional[np.ndarray],
    rng: Optional[UniformSource] = None,
    mean: Union[float, Sequence[float]] = 0.0,
    stddev: Union[float, Sequence[float]] = 1.0,
    *,
    factor: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    One correlated draw per asset.

    Parameters
    ----------
    n : int
        Number of values; must equal the matrix dimension.
    correlation_matrix : array-like, shape (n, n)
        Decomposed on every call unless `factor` is supplied.
    rng : callable, optional
        Uniform [0, 1) source.
    mean, stddev : float or sequence of float
        Scalar or per-asset shift and scale applied after correlation.
    factor : ndarray, optional
        Precomputed Cholesky factor. Hoist this out of hot loops; the matrix
        does not change during a run.

    Raises
    ------
    DimensionMismatchError
        If n differs from the matrix dimension.
    MatrixError
        If the matrix is not positive-definite after every regularization tier.
    """
    if factor is None:
        if correlation_matrix is None:
            raise ValueError("correlated_samples needs a correlation matrix or a factor")
        dimension = np.asarray(correlation_matrix).shape[0]
        if n != dimension:
            raise DimensionMismatchError(dimension, n)
        factor = cholesky_decomposition(correlation_matrix)
    else:
        dimension = factor.shape[0]
        if n != dimension:
            raise DimensionMismatchError(dimension, n)

    source = rng if rng is not None else default_uniform_source()
    z = np.array([normal_random(0.0, 1.0, source) for _ in range(n)], dtype=float)
    y = factor @ z
    return np.asarray(mean, dtype=float) + np.asarray(stddev, dtype=float) * y


class CorrelatedReturnSampler:
    """
    Annual asset-return generator with the Cholesky factor hoisted out of the loop.

    The factor is computed once at construction and held read-only; every
    iteration of a run shares the same sampler.

    Usage:
        sampler = CorrelatedReturnSampler(means, stddevs, corr, labels=ids)
        returns = sampler.sample_year(rng)        # shape (n_assets,)
        path = sampler.sample_path(30, rng)       # shape (30, n_assets)
    """

    def __init__(
        self,
        means: Sequence[float],
        stddevs: Sequence[float],
        correlation: Optional[np.ndarray] = None,
        *,
        labels: Optional[Sequence[str]] = None,
    ):
        self.means = np.array(means, dtype=float)
        self.stddevs = np.array(stddevs, dtype=float)
        if self.means.shape != self.stddevs.shape:
            raise DimensionMismatchError(len(self.means), len(self.stddevs))
        self.labels = list(labels) if labels is not None else [
            f"asset_{i}" for i in range(len(self.means))
        ]

        if correlation is None:
            correlation = np.eye(len(self.means))
        correlation = np.array(correlation, dtype=float)
        if correlation.shape[0] != len(self.means):
            raise DimensionMismatchError(correlation.shape[0], len(self.means))
        correlation.setflags(write=False)

        self.correlation = correlation
        self.factor = cholesky_decomposition(correlation, labels=self.labels)
        self.means.setflags(write=False)
        self.stddevs.setflags(write=False)

    @property
    def n_assets(self) -> int:
        return len(self.means)

    def sample_year(self, rng: Optional[UniformSource] = None) -> np.ndarray:
        return correlated_samples(
            self.n_assets, None, rng, self.means, self.stddevs, factor=self.factor,
        )

    def sample_path(self, years: int, rng: Optional[UniformSource] = None) -> np.ndarray:
        """Returns for `years` consecutive years, shape (years, n_assets)."""
        source = rng if rng is not None else default_uniform_source()
        path = np.empty((years, self.n_assets), dtype=float)
        for t in range(years):
            path[t] = self.sample_year(source)
        return path

    def summary(self) -> pd.DataFrame:
        """Per-asset return assumptions used by this sampler."""
        return pd.DataFrame({
            "Asset": self.labels,
            "Mean": self.means,
            "StdDev": self.stddevs,
        })

"""
Summarize historical asset returns for Monte Carlo inputs.

Input:  AssetReturnSeries per asset (annual decimal returns), or a price table
Output: mean / stddev / range per asset, plus the correlation matrix

Return histories are the preferred source of assumptions. Benchmarks
(benchmarks.py) fill in when history is missing or too short.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from core.config import AssetAllocation
from core.errors import ConfigurationError
from core.schema import AssetReturnSeries
from core.stats import mean, stddev
from .correlation import correlation_matrix


@dataclass(frozen=True)
class HistoricalSummary:
    """Summary statistics of one asset's return history."""
    asset_id: str
    mean: float
    std: float
    min_val: float
    max_val: float
    n_observations: int

    def __repr__(self) -> str:
        return (
            f"HistoricalSummary({self.asset_id}: "
            f"mean={self.mean:.4f}, std={self.std:.4f}, "
            f"range=[{self.min_val:.4f}, {self.max_val:.4f}], "
            f"n={self.n_observations})"
        )


def summarize_return_series(series_list: Sequence[AssetReturnSeries]) -> Dict[str, HistoricalSummary]:
    """
    Per-asset summary statistics, keyed by asset id.

    Empty series get NaN mean/std so callers can fall back to benchmarks.
    """
    results: Dict[str, HistoricalSummary] = {}
    for series in series_list:
        values = series.returns
        n = len(values)
        results[series.asset_id] = HistoricalSummary(
            asset_id=series.asset_id,
            mean=mean(values) if n > 0 else float("nan"),
            std=stddev(values) if n > 1 else float("nan"),
            min_val=float(min(values)) if n > 0 else 0.0,
            max_val=float(max(values)) if n > 0 else 0.0,
            n_observations=n,
        )
    return results


def derive_correlation_matrix(series_list: Sequence[AssetReturnSeries]) -> np.ndarray:
    """Correlation matrix over the series, in the order given."""
    lengths = {len(s) for s in series_list}
    if len(lengths) > 1:
        raise ConfigurationError(
            f"return series must have equal lengths to correlate (got {sorted(lengths)})"
        )
    return correlation_matrix([s.returns for s in series_list])


def annual_returns_from_prices(prices: pd.DataFrame) -> List[AssetReturnSeries]:
    """
    Convert a year-end price table into annual return series.

    Parameters
    ----------
    prices : pd.DataFrame
        One column per asset, one row per year-end, oldest first. Rows with a
        missing price for any asset are dropped so all series stay aligned.

    Returns
    -------
    List of AssetReturnSeries, one per column, in column order.
    """
    aligned = prices.apply(pd.to_numeric, errors="coerce").dropna(how="any")
    returns = aligned.pct_change().iloc[1:]
    return [
        AssetReturnSeries.from_values(str(col), returns[col].to_numpy())
        for col in returns.columns
    ]


def allocations_from_history(
    series_list: Sequence[AssetReturnSeries],
    weights: Mapping[str, float],
    asset_classes: Optional[Mapping[str, str]] = None,
) -> List[AssetAllocation]:
    """AssetAllocation per series; mean and stddev are derived from the history."""
    classes = dict(asset_classes or {})
    return [
        AssetAllocation(
            asset_id=s.asset_id,
            weight=float(weights[s.asset_id]),
            history=s,
            asset_class=classes.get(s.asset_id, "equity"),
        )
        for s in series_list
    ]


def summaries_to_dataframe(summaries: Mapping[str, HistoricalSummary]) -> pd.DataFrame:
    return pd.DataFrame([
        {"Asset": s.asset_id, "Mean": s.mean, "StdDev": s.std,
         "Min": s.min_val, "Max": s.max_val, "N": s.n_observations}
        for s in summaries.values()
    ])

"""
Benchmark return assumptions by asset class.

When an asset has no usable return history (new fund, short track record, or
history drawn from a calm decade that never shows a drawdown), fall back to
these long-run assumptions. Numbers are nominal annual decimals.

Usage:
  - Build AssetAllocation objects straight from a benchmark
  - Pair them with benchmark_correlation_matrix() so multi-asset runs work
    without historical series
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np
import pandas as pd

from core.config import AssetAllocation


@dataclass(frozen=True)
class AssetClassBenchmark:
    """Long-run return assumption for one asset class."""
    asset_class: str
    mean_return: float
    return_stddev: float
    source: str


ASSET_CLASS_BENCHMARKS: Dict[str, AssetClassBenchmark] = {
    "equity": AssetClassBenchmark(
        asset_class="equity",
        mean_return=0.10,
        return_stddev=0.16,
        source="S&P 500 total return 1926-2024 (nominal)",
    ),
    "bond": AssetClassBenchmark(
        asset_class="bond",
        mean_return=0.05,
        return_stddev=0.06,
        source="US aggregate investment-grade bonds 1976-2024",
    ),
    "cash": AssetClassBenchmark(
        asset_class="cash",
        mean_return=0.033,
        return_stddev=0.01,
        source="3-month Treasury bills 1928-2024",
    ),
}

# Order: equity, bond, cash
#   equity <-> bond:  0.10  (near zero over the long run, positive since 2022)
#   equity <-> cash:  0.00
#   bond   <-> cash:  0.20
BENCHMARK_CORRELATIONS = np.array([
    # equity  bond  cash
    [1.00,   0.10, 0.00],  # equity
    [0.10,   1.00, 0.20],  # bond
    [0.00,   0.20, 1.00],  # cash
])

ASSET_CLASS_ORDER = ["equity", "bond", "cash"]


def get_benchmark(asset_class: str) -> AssetClassBenchmark:
    key = asset_class.lower()
    if key not in ASSET_CLASS_BENCHMARKS:
        raise KeyError(
            f"Unknown asset class '{asset_class}'. "
            f"Available: {list(ASSET_CLASS_BENCHMARKS.keys())}"
        )
    return ASSET_CLASS_BENCHMARKS[key]


def benchmark_allocation(asset_id: str, asset_class: str, weight: float) -> AssetAllocation:
    """AssetAllocation using the benchmark mean and stddev for its class."""
    bench = get_benchmark(asset_class)
    return AssetAllocation(
        asset_id=asset_id,
        weight=weight,
        mean_return=bench.mean_return,
        return_stddev=bench.return_stddev,
        asset_class=bench.asset_class,
    )


def benchmark_correlation_matrix(asset_classes: Sequence[str]) -> np.ndarray:
    """
    Correlation matrix for a list of asset classes, one row per asset.

    Two assets of the same class get the same-class correlation of 1.0 off the
    diagonal as well; the decomposition fallback handles that collinearity.
    """
    idx = [ASSET_CLASS_ORDER.index(get_benchmark(c).asset_class) for c in asset_classes]
    return BENCHMARK_CORRELATIONS[np.ix_(idx, idx)].copy()


def benchmarks_to_dataframe() -> pd.DataFrame:
    return pd.DataFrame([
        {"Asset Class": b.asset_class, "Mean": b.mean_return,
         "StdDev": b.return_stddev, "Source": b.source}
        for b in ASSET_CLASS_BENCHMARKS.values()
    ])

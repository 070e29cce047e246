"""
Immutable simulation results.

Everything here is written once at the end of a run and handed out read-only:
frozen dataclasses holding numpy arrays with the writeable flag cleared.
Charting and persistence layers read these; nothing writes back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from core.config import SimulationConfig
from core.schema import PERCENTILE_LEVELS
from .aggregator import path_coherent_percentiles
from .metrics import MarginCallStats


def read_only(array: np.ndarray) -> np.ndarray:
    """Array view that raises on assignment."""
    view = np.asarray(array).view()
    view.setflags(write=False)
    return view


@dataclass(frozen=True, eq=False)
class YearlyPercentiles:
    """
    P10/P25/P50/P75/P90 per simulated year.

    Row i of `bands` belongs to sequential index i (simulation year i + 1).
    Look rows up with `at(index)`; calendar years are labels only.
    """
    bands: np.ndarray                          # shape (n_years, len(levels))
    levels: Tuple[int, ...] = PERCENTILE_LEVELS
    calendar_years: Optional[Tuple[int, ...]] = None

    def __len__(self) -> int:
        return self.bands.shape[0]

    def band(self, level: int) -> np.ndarray:
        """One percentile across all years."""
        return self.bands[:, self.levels.index(level)]

    def at(self, index: int) -> Dict[str, float]:
        """Band values at sequential year index `index`."""
        row = self.bands[index]
        return {f"p{level}": float(v) for level, v in zip(self.levels, row)}

    def to_dataframe(self) -> pd.DataFrame:
        n_years = len(self)
        data = {
            "index": np.arange(n_years),
            "year": np.arange(1, n_years + 1),
            "calendar_year": list(self.calendar_years) if self.calendar_years else [None] * n_years,
        }
        for j, level in enumerate(self.levels):
            data[f"p{level}"] = self.bands[:, j]
        return pd.DataFrame(data)


@dataclass(frozen=True)
class SimulationStatistics:
    """Summary of terminal values."""
    mean: float
    median: float
    stddev: float
    min: float
    max: float

    def to_series(self) -> pd.Series:
        return pd.Series({
            "mean": self.mean,
            "median": self.median,
            "stddev": self.stddev,
            "min": self.min,
            "max": self.max,
        })


@dataclass(frozen=True, eq=False)
class SBLOCOutcome:
    """Loan-side results; present only when the line of credit is enabled."""
    loan_balance_bands: YearlyPercentiles
    terminal_net_worth: np.ndarray        # portfolio - loan, per iteration
    margin_calls: MarginCallStats
    cumulative_withdrawals: np.ndarray    # scheduled, per year
    median_total_interest: float
    median_total_haircut: float
    median_total_dividend_tax: float = 0.0

    def summary(self) -> pd.DataFrame:
        net_worth = self.terminal_net_worth
        rows = [
            {"Metric": "Median terminal net worth", "Value": float(np.median(net_worth))},
            {"Metric": "P(net worth <= 0)", "Value": float(np.mean(net_worth <= 0))},
            {"Metric": "P(any margin call)", "Value": self.margin_calls.probability_of_any_call},
            {"Metric": "Mean margin calls per path", "Value": self.margin_calls.mean_calls_per_iteration},
            {"Metric": "Max margin calls in a path", "Value": float(self.margin_calls.max_calls)},
            {"Metric": "Median total interest", "Value": self.median_total_interest},
            {"Metric": "Median total haircut loss", "Value": self.median_total_haircut},
            {"Metric": "Median dividend tax borrowed", "Value": self.median_total_dividend_tax},
            {"Metric": "Total scheduled withdrawals",
             "Value": float(self.cumulative_withdrawals[-1]) if self.cumulative_withdrawals.size else 0.0},
        ]
        return pd.DataFrame(rows)


@dataclass(frozen=True, eq=False)
class SimulationOutput:
    """
    Result of one run_simulation call.

    terminal_values[i] and yearly_values[i, :] belong to iteration i.
    Column t of yearly_values is sequential year index t.
    With config.inflation_adjusted, yearly_values and the loan bands are in
    start-of-run dollars.
    """
    config: SimulationConfig
    asset_ids: Tuple[str, ...]
    terminal_values: np.ndarray           # shape (n_iterations,)
    yearly_values: np.ndarray             # shape (n_iterations, n_years)
    yearly_percentiles: YearlyPercentiles
    success_rate: float
    statistics: SimulationStatistics
    correlation_matrix: np.ndarray
    cholesky_factor: Optional[np.ndarray]  # None for historically resampled runs
    sbloc: Optional[SBLOCOutcome] = None

    @property
    def n_iterations(self) -> int:
        return int(self.terminal_values.size)

    @property
    def n_years(self) -> int:
        return int(self.yearly_values.shape[1])

    def yearly_percentiles_frame(self) -> pd.DataFrame:
        return self.yearly_percentiles.to_dataframe()

    def path_coherent_bands(self, levels: Sequence[int] = PERCENTILE_LEVELS) -> pd.DataFrame:
        """Trajectories ranked at each percentile of terminal value, one column per level."""
        paths, indices = path_coherent_percentiles(self.yearly_values, self.terminal_values, levels)
        frame = pd.DataFrame(
            {f"p{level}": paths[j] for j, level in enumerate(levels)}
        )
        frame.insert(0, "year", np.arange(1, self.n_years + 1))
        frame.insert(0, "index", np.arange(self.n_years))
        frame.attrs["iteration_indices"] = dict(zip((f"p{level}" for level in levels), indices))
        return frame

    def summary(self) -> pd.DataFrame:
        """Headline numbers as a Metric / Value table."""
        s = self.statistics
        rows = [
            {"Metric": "Iterations", "Value": float(self.n_iterations)},
            {"Metric": "Years", "Value": float(self.n_years)},
            {"Metric": "Initial value", "Value": float(self.config.initial_value)},
            {"Metric": "Success rate", "Value": self.success_rate},
            {"Metric": "Mean terminal value", "Value": s.mean},
            {"Metric": "Median terminal value", "Value": s.median},
            {"Metric": "Std dev terminal value", "Value": s.stddev},
            {"Metric": "Min terminal value", "Value": s.min},
            {"Metric": "Max terminal value", "Value": s.max},
        ]
        return pd.DataFrame(rows)

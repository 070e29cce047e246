"""
Simulation configuration.

Everything here is a frozen value object supplied once per run. Validation runs in
__post_init__ so a malformed configuration is refused before any computation starts.
Defaults reflect typical brokerage SBLOC terms (2024-2025).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .errors import ConfigurationError
from .schema import AssetReturnSeries
from .stats import mean, stddev

COMPOUNDING_FREQUENCIES = ("annual", "monthly")

# "parametric" draws correlated normals; the others replay AssetAllocation.history.
RESAMPLING_METHODS = ("parametric", "bootstrap", "block")

DEFAULT_INFLATION_RATE = 0.03

# Tolerance for asset weights summing to 1.
WEIGHT_TOLERANCE = 1e-6


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigurationError(message)


def _is_number(value) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and math.isfinite(value)


def _is_whole(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


@dataclass(frozen=True)
class WithdrawalChapter:
    """
    A later phase of retirement spending.

    Once `years_after_start` years of withdrawals have elapsed, every withdrawal is
    reduced by `reduction_percent` (0-100). Active chapters multiply together.
    """
    years_after_start: int
    reduction_percent: float

    def __post_init__(self):
        _require(
            _is_whole(self.years_after_start) and self.years_after_start >= 0,
            "WithdrawalChapter.years_after_start must be a non-negative integer",
        )
        _require(
            _is_number(self.reduction_percent) and 0.0 <= self.reduction_percent <= 100.0,
            "WithdrawalChapter.reduction_percent must be between 0 and 100",
        )


@dataclass(frozen=True)
class SBLOCConfig:
    annual_interest_rate: float = 0.074
    max_ltv: float = 0.65               # forced liquidation threshold
    maintenance_margin: float = 0.50    # warning zone starts here
    liquidation_haircut: float = 0.05   # forced-sale loss on the amount sold
    base_withdrawal: float = 50_000.0
    annual_withdrawal_raise: float = 0.03
    compounding_frequency: str = "annual"
    withdrawal_start_year: int = 0
    initial_loan_balance: Optional[float] = None

    # post-liquidation target LTV = maintenance_margin * multiplier
    liquidation_target_multiplier: float = 0.8
    chapters: Tuple[WithdrawalChapter, ...] = ()

    # taxes on dividends are borrowed rather than paid by selling; 0 disables
    dividend_yield: float = 0.0
    dividend_tax_rate: float = 0.0

    def __post_init__(self):
        _require(
            _is_number(self.annual_interest_rate) and self.annual_interest_rate >= 0,
            "annual_interest_rate must be a finite non-negative decimal",
        )
        _require(
            _is_number(self.max_ltv) and 0 < self.max_ltv <= 1,
            "max_ltv must be in (0, 1]",
        )
        _require(
            _is_number(self.maintenance_margin) and 0 < self.maintenance_margin <= self.max_ltv,
            "maintenance_margin must be in (0, max_ltv]",
        )
        _require(
            _is_number(self.liquidation_haircut) and 0 <= self.liquidation_haircut < 1,
            "liquidation_haircut must be in [0, 1)",
        )
        _require(
            _is_number(self.base_withdrawal) and self.base_withdrawal >= 0,
            "base_withdrawal must be a finite non-negative amount",
        )
        _require(
            _is_number(self.annual_withdrawal_raise) and self.annual_withdrawal_raise > -1,
            "annual_withdrawal_raise must be greater than -1",
        )
        _require(
            self.compounding_frequency in COMPOUNDING_FREQUENCIES,
            f"compounding_frequency must be one of {COMPOUNDING_FREQUENCIES}",
        )
        _require(
            _is_whole(self.withdrawal_start_year) and self.withdrawal_start_year >= 0,
            "withdrawal_start_year must be a non-negative integer",
        )
        if self.initial_loan_balance is not None:
            _require(
                _is_number(self.initial_loan_balance) and self.initial_loan_balance >= 0,
                "initial_loan_balance must be a finite non-negative amount",
            )
        _require(
            _is_number(self.liquidation_target_multiplier)
            and 0 < self.liquidation_target_multiplier <= 1,
            "liquidation_target_multiplier must be in (0, 1]",
        )
        _require(
            _is_number(self.dividend_yield) and 0 <= self.dividend_yield <= 1,
            "dividend_yield must be in [0, 1]",
        )
        _require(
            _is_number(self.dividend_tax_rate) and 0 <= self.dividend_tax_rate <= 1,
            "dividend_tax_rate must be in [0, 1]",
        )
        object.__setattr__(self, "chapters", tuple(self.chapters))
        for chapter in self.chapters:
            _require(
                isinstance(chapter, WithdrawalChapter),
                "chapters must contain WithdrawalChapter instances",
            )

    @property
    def starting_loan_balance(self) -> float:
        return float(self.initial_loan_balance or 0.0)

    @property
    def liquidation_target_ltv(self) -> float:
        return self.maintenance_margin * self.liquidation_target_multiplier


@dataclass(frozen=True)
class TimelineSettings:
    """
    Labels for simulation years.

    Sequential index i (0-based) is simulation year i + 1 and, when a start year is
    set, calendar year start_calendar_year + i. Labels never drive array lookups.
    """
    start_calendar_year: Optional[int] = None

    def __post_init__(self):
        if self.start_calendar_year is not None:
            _require(_is_whole(self.start_calendar_year), "start_calendar_year must be an integer")

    def calendar_year(self, index: int) -> Optional[int]:
        if self.start_calendar_year is None:
            return None
        return int(self.start_calendar_year) + index


@dataclass(frozen=True)
class AssetAllocation:
    """
    One portfolio holding.

    mean_return / return_stddev are annual decimals. When omitted they are derived
    from `history`, which then needs at least two observations.
    """
    asset_id: str
    weight: float
    mean_return: Optional[float] = None
    return_stddev: Optional[float] = None
    history: Optional[AssetReturnSeries] = None
    asset_class: str = "equity"

    def __post_init__(self):
        _require(bool(self.asset_id), "asset_id must be non-empty")
        _require(
            _is_number(self.weight) and 0 <= self.weight <= 1,
            f"weight for {self.asset_id} must be in [0, 1]",
        )
        if self.mean_return is not None:
            _require(_is_number(self.mean_return), f"mean_return for {self.asset_id} must be finite")
        if self.return_stddev is not None:
            _require(
                _is_number(self.return_stddev) and self.return_stddev >= 0,
                f"return_stddev for {self.asset_id} must be finite and non-negative",
            )
        needs_history = self.mean_return is None or self.return_stddev is None
        if needs_history:
            _require(
                self.history is not None and len(self.history) >= 2,
                f"{self.asset_id}: provide mean_return/return_stddev or a history "
                f"with at least two returns",
            )
        if self.history is not None:
            _require(
                all(_is_number(r) for r in self.history.returns),
                f"history for {self.asset_id} contains non-finite returns",
            )

    @property
    def resolved_mean(self) -> float:
        if self.mean_return is not None:
            return float(self.mean_return)
        return mean(self.history.returns)

    @property
    def resolved_stddev(self) -> float:
        if self.return_stddev is not None:
            return float(self.return_stddev)
        return stddev(self.history.returns)


@dataclass(frozen=True)
class AssetData:
    """
    Portfolio assets plus their correlation structure.

    Either pass `correlation_matrix` (n x n, same order as `assets`) or give every
    asset a history of equal length; the matrix is then derived once per run.
    A single asset needs neither.
    """
    assets: Tuple[AssetAllocation, ...]
    correlation_matrix: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "assets", tuple(self.assets))
        n = len(self.assets)
        _require(n > 0, "at least one asset is required")

        ids = [a.asset_id for a in self.assets]
        _require(len(set(ids)) == n, f"duplicate asset ids: {ids}")

        total = float(sum(a.weight for a in self.assets))
        _require(
            abs(total - 1.0) <= WEIGHT_TOLERANCE,
            f"asset weights must sum to 1 (got {total:.6f})",
        )

        if self.correlation_matrix is not None:
            matrix = np.array(self.correlation_matrix, dtype=float)
            _require(
                matrix.shape == (n, n),
                f"correlation matrix shape {matrix.shape} does not match {n} assets",
            )
            matrix.setflags(write=False)
            object.__setattr__(self, "correlation_matrix", matrix)
        elif n > 1:
            histories = [a.history for a in self.assets]
            _require(
                all(h is not None for h in histories),
                "multiple assets need a correlation matrix or a return history for every asset",
            )
            lengths = {len(h) for h in histories}
            _require(
                len(lengths) == 1,
                f"return histories must have equal lengths (got {sorted(lengths)})",
            )

    @property
    def asset_ids(self) -> Tuple[str, ...]:
        return tuple(a.asset_id for a in self.assets)

    @property
    def weights(self) -> np.ndarray:
        return np.array([a.weight for a in self.assets], dtype=float)

    @property
    def means(self) -> np.ndarray:
        return np.array([a.resolved_mean for a in self.assets], dtype=float)

    @property
    def stddevs(self) -> np.ndarray:
        return np.array([a.resolved_stddev for a in self.assets], dtype=float)

    def return_series(self) -> Tuple[AssetReturnSeries, ...]:
        return tuple(a.history for a in self.assets if a.history is not None)


@dataclass(frozen=True)
class SimulationConfig:
    iterations: int = 10_000
    time_horizon: int = 30
    initial_value: float = 1_000_000.0
    sbloc: Optional[SBLOCConfig] = None   # None disables borrowing entirely
    timeline: TimelineSettings = field(default_factory=TimelineSettings)
    seed: Optional[int] = None

    # iterations per progress/cancellation checkpoint and per worker task
    batch_size: int = 500

    resampling_method: str = "parametric"
    block_size: Optional[int] = None     # block mode only; None picks n^(1/3)

    # report every dollar amount in start-of-run dollars
    inflation_adjusted: bool = False
    inflation_rate: float = DEFAULT_INFLATION_RATE

    def __post_init__(self):
        _require(
            _is_whole(self.iterations) and self.iterations >= 1,
            "iterations must be a positive integer",
        )
        _require(
            _is_whole(self.time_horizon) and self.time_horizon >= 1,
            "time_horizon must be a positive integer number of years",
        )
        _require(
            _is_number(self.initial_value) and self.initial_value > 0,
            "initial_value must be a finite positive amount",
        )
        _require(
            self.sbloc is None or isinstance(self.sbloc, SBLOCConfig),
            "sbloc must be an SBLOCConfig or None",
        )
        _require(
            _is_whole(self.batch_size) and self.batch_size >= 1,
            "batch_size must be a positive integer",
        )
        _require(
            self.resampling_method in RESAMPLING_METHODS,
            f"resampling_method must be one of {RESAMPLING_METHODS}",
        )
        if self.block_size is not None:
            _require(
                _is_whole(self.block_size) and self.block_size >= 1,
                "block_size must be a positive integer",
            )
        _require(
            isinstance(self.inflation_adjusted, bool),
            "inflation_adjusted must be a bool",
        )
        _require(
            _is_number(self.inflation_rate) and self.inflation_rate > -1,
            "inflation_rate must be a finite decimal greater than -1",
        )
        if self.seed is not None:
            _require(_is_whole(self.seed) and self.seed >= 0, "seed must be a non-negative integer")

    @property
    def sbloc_enabled(self) -> bool:
        return self.sbloc is not None

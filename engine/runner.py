"""
Simulation runner — drives N independent trajectories through the SBLOC engine.

Per iteration:
  1. Initialize an SBLOCState (or a plain portfolio value when borrowing is off)
  2. Draw the whole path of per-asset returns (correlated normals, or
     historical years replayed by bootstrap / block bootstrap)
  3. For each year: combine returns by weight, run one SBLOC step, record the
     portfolio value at the year's sequential index
  4. The last year's value is the terminal value

INFLATION:
With inflation_adjusted the state machine still runs in nominal dollars (LTV
is a ratio and does not change). Recorded portfolio values and loan balances
at index t are divided by (1 + inflation_rate)^(t + 1) before aggregation.

Shared inputs (config, correlation matrix, return sampler) are built once,
frozen, and read by every iteration. Per-iteration state never leaves the
iteration.

BATCHES AND RANDOMNESS:
Iterations run in batches of config.batch_size. Between batches the runner
reports progress and checks for cancellation. Unless a uniform source is
injected, each batch draws from its own generator spawned from
SeedSequence(config.seed), so a seeded run gives bit-identical output whether
batches run sequentially or across worker processes.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Optional, Union

import numpy as np

from analytics.aggregator import success_rate, summary_statistics, yearly_percentile_bands
from analytics.metrics import cumulative_withdrawals, margin_call_probability_by_year
from analytics.results import (
    SBLOCOutcome,
    SimulationOutput,
    SimulationStatistics,
    YearlyPercentiles,
    read_only,
)
from core.config import AssetData, SimulationConfig
from core.errors import ConfigurationError, SimulationCancelled
from distributions.historical import derive_correlation_matrix
from distributions.bootstrap import HistoricalReturnSampler
from distributions.sampler import CorrelatedReturnSampler, UniformSource

from .sbloc import apply_return, initialize_sbloc_state, step_year
from .withdrawals import withdrawal_schedule

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
ReturnSampler = Union[CorrelatedReturnSampler, HistoricalReturnSampler]


@dataclass(frozen=True)
class _BatchTask:
    start: int
    size: int
    seed_sequence: Optional[np.random.SeedSequence]


@dataclass
class _BatchResult:
    start: int
    yearly_values: np.ndarray                    # (size, T)
    loan_balances: Optional[np.ndarray] = None   # (size, T)
    margin_calls: Optional[np.ndarray] = None    # (size, T) bool
    interest_totals: Optional[np.ndarray] = None  # (size,)
    haircut_totals: Optional[np.ndarray] = None   # (size,)
    dividend_tax_totals: Optional[np.ndarray] = None  # (size,)


def resolve_correlation_matrix(asset_data: AssetData) -> np.ndarray:
    """Supplied matrix, else one derived from the return histories; identity for one asset."""
    if asset_data.correlation_matrix is not None:
        return np.array(asset_data.correlation_matrix, dtype=float)
    if len(asset_data.assets) == 1:
        return np.eye(1)
    return derive_correlation_matrix(asset_data.return_series())


def build_return_sampler(
    config: SimulationConfig,
    asset_data: AssetData,
    correlation: np.ndarray,
) -> ReturnSampler:
    """
    Parametric sampler over (means, stddevs, correlation), or a historical
    resampler over every asset's return history.

    Raises ConfigurationError when a resampling method is chosen and an asset
    has no history.
    """
    if config.resampling_method == "parametric":
        return CorrelatedReturnSampler(
            asset_data.means,
            asset_data.stddevs,
            correlation,
            labels=asset_data.asset_ids,
        )

    missing = [a.asset_id for a in asset_data.assets if a.history is None or len(a.history) == 0]
    if missing:
        raise ConfigurationError(
            f"resampling_method '{config.resampling_method}' needs a return history for "
            f"every asset (missing: {', '.join(missing)})"
        )
    return HistoricalReturnSampler(
        [a.history.returns for a in asset_data.assets],
        method=config.resampling_method,
        block_size=config.block_size,
        labels=asset_data.asset_ids,
    )


def inflation_deflators(config: SimulationConfig) -> np.ndarray:
    """Per-index divisor turning nominal amounts into start-of-run dollars; ones when off."""
    if not config.inflation_adjusted:
        return np.ones(config.time_horizon, dtype=float)
    return (1.0 + config.inflation_rate) ** np.arange(1, config.time_horizon + 1)


def _simulate_batch(
    config: SimulationConfig,
    sampler: ReturnSampler,
    weights: np.ndarray,
    task: _BatchTask,
    rng: Optional[UniformSource] = None,
) -> _BatchResult:
    uniform = rng if rng is not None else np.random.default_rng(task.seed_sequence).random
    n_years = config.time_horizon
    sbloc = config.sbloc

    values = np.empty((task.size, n_years), dtype=float)
    result = _BatchResult(start=task.start, yearly_values=values)
    if sbloc is not None:
        result.loan_balances = np.empty((task.size, n_years), dtype=float)
        result.margin_calls = np.zeros((task.size, n_years), dtype=bool)
        result.interest_totals = np.zeros(task.size, dtype=float)
        result.haircut_totals = np.zeros(task.size, dtype=float)
        result.dividend_tax_totals = np.zeros(task.size, dtype=float)

    for k in range(task.size):
        if sbloc is not None:
            state = initialize_sbloc_state(sbloc, config.initial_value)
        else:
            value = float(config.initial_value)
        portfolio_returns = sampler.sample_path(n_years, uniform) @ weights

        for index in range(n_years):
            portfolio_return = float(portfolio_returns[index])

            if sbloc is None:
                value = apply_return(value, portfolio_return)
                values[k, index] = value
                continue

            year = step_year(state, sbloc, portfolio_return)
            values[k, index] = year.portfolio_value
            result.loan_balances[k, index] = year.loan_balance
            result.margin_calls[k, index] = year.margin_call_triggered
            result.interest_totals[k] += year.interest_charged
            result.haircut_totals[k] += year.haircut_loss
            result.dividend_tax_totals[k] += year.dividend_tax_borrowed

    return result


def _plan_batches(config: SimulationConfig, seeded: bool) -> List[_BatchTask]:
    starts = list(range(0, config.iterations, config.batch_size))
    children: List[Optional[np.random.SeedSequence]] = [None] * len(starts)
    if seeded:
        children = np.random.SeedSequence(config.seed).spawn(len(starts))
    return [
        _BatchTask(start=s, size=min(config.batch_size, config.iterations - s), seed_sequence=c)
        for s, c in zip(starts, children)
    ]


def run_simulation(
    config: SimulationConfig,
    asset_data: AssetData,
    *,
    rng: Optional[UniformSource] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    n_workers: int = 1,
) -> SimulationOutput:
    """
    Run the full Monte Carlo simulation.

    Parameters
    ----------
    config : SimulationConfig
        Iterations, horizon, initial value, SBLOC terms, timeline, seed.
    asset_data : AssetData
        Weights and return assumptions, plus a correlation matrix or the
        return histories to derive one from.
    rng : callable, optional
        Uniform [0, 1) source shared by every iteration, in order. Forces a
        sequential run; use config.seed for reproducible parallel runs.
    on_progress : callable, optional
        Called as on_progress(completed_iterations, total_iterations) after
        each batch.
    cancel_event : threading.Event, optional
        Checked before each batch starts (sequential) or before each finished
        batch is collected (parallel); when set the run stops and raises
        SimulationCancelled without reporting further progress.
    n_workers : int
        Worker processes. 1 runs in the calling thread.

    Returns
    -------
    SimulationOutput

    Raises
    ------
    ConfigurationError
        Invalid inputs, detected before any iteration runs. Includes a
        resampling method chosen for assets without a return history.
    MatrixError
        Correlation matrix not positive-definite after regularization.
    StateValidationError
        An SBLOC state invariant broke mid-run.
    SimulationCancelled
        cancel_event was set.
    """
    if not isinstance(config, SimulationConfig):
        raise ConfigurationError("config must be a SimulationConfig")
    if not isinstance(asset_data, AssetData):
        raise ConfigurationError("asset_data must be an AssetData")
    if isinstance(n_workers, bool) or not isinstance(n_workers, int) or n_workers < 1:
        raise ConfigurationError("n_workers must be a positive integer")
    if rng is not None and n_workers > 1:
        raise ConfigurationError(
            "an injected uniform source cannot be shared across worker processes; "
            "set config.seed instead"
        )

    correlation = resolve_correlation_matrix(asset_data)
    correlation.setflags(write=False)
    sampler = build_return_sampler(config, asset_data, correlation)
    weights = asset_data.weights
    weights.setflags(write=False)

    n_iter = config.iterations
    n_years = config.time_horizon
    tasks = _plan_batches(config, seeded=rng is None)

    logger.info(
        "Running %d iterations x %d years over %d assets (%s returns, SBLOC %s, %d worker%s)",
        n_iter,
        n_years,
        sampler.n_assets,
        config.resampling_method,
        "on" if config.sbloc_enabled else "off",
        n_workers,
        "" if n_workers == 1 else "s",
    )

    yearly_values = np.empty((n_iter, n_years), dtype=float)
    loan_balances = margin_calls = interest_totals = haircut_totals = dividend_tax_totals = None
    if config.sbloc_enabled:
        loan_balances = np.empty((n_iter, n_years), dtype=float)
        margin_calls = np.zeros((n_iter, n_years), dtype=bool)
        interest_totals = np.zeros(n_iter, dtype=float)
        haircut_totals = np.zeros(n_iter, dtype=float)
        dividend_tax_totals = np.zeros(n_iter, dtype=float)

    completed = 0

    def collect(batch: _BatchResult) -> None:
        nonlocal completed
        rows = slice(batch.start, batch.start + batch.yearly_values.shape[0])
        yearly_values[rows] = batch.yearly_values
        if config.sbloc_enabled:
            loan_balances[rows] = batch.loan_balances
            margin_calls[rows] = batch.margin_calls
            interest_totals[rows] = batch.interest_totals
            haircut_totals[rows] = batch.haircut_totals
            dividend_tax_totals[rows] = batch.dividend_tax_totals
        completed += batch.yearly_values.shape[0]
        logger.debug("Completed %d/%d iterations", completed, n_iter)
        if on_progress is not None:
            on_progress(completed, n_iter)

    def check_cancelled() -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Simulation cancelled after %d/%d iterations", completed, n_iter)
            raise SimulationCancelled(
                f"simulation cancelled after {completed} of {n_iter} iterations"
            )

    if n_workers == 1:
        for task in tasks:
            check_cancelled()
            collect(_simulate_batch(config, sampler, weights, task, rng))
    else:
        worker = partial(_simulate_batch, config, sampler, weights)
        check_cancelled()
        with ProcessPoolExecutor(max_workers=n_workers) as pool:
            futures = [pool.submit(worker, task) for task in tasks]
            try:
                for future in as_completed(futures):
                    batch = future.result()
                    check_cancelled()
                    collect(batch)
            finally:
                for future in futures:
                    future.cancel()

    if config.inflation_adjusted:
        deflators = inflation_deflators(config)
        yearly_values /= deflators
        if config.sbloc_enabled:
            loan_balances /= deflators

    # every iteration has written its row; only now are bands computed
    terminal_values = yearly_values[:, -1].copy()
    mean, median, std, low, high = summary_statistics(terminal_values)
    calendar_years = None
    if config.timeline.start_calendar_year is not None:
        calendar_years = tuple(config.timeline.calendar_year(i) for i in range(n_years))

    sbloc_outcome = None
    if config.sbloc_enabled:
        sbloc_outcome = SBLOCOutcome(
            loan_balance_bands=YearlyPercentiles(
                bands=read_only(yearly_percentile_bands(loan_balances)),
                calendar_years=calendar_years,
            ),
            terminal_net_worth=read_only(terminal_values - loan_balances[:, -1]),
            margin_calls=margin_call_probability_by_year(margin_calls),
            cumulative_withdrawals=read_only(
                cumulative_withdrawals(withdrawal_schedule(config.sbloc, n_years))
            ),
            median_total_interest=float(np.median(interest_totals)),
            median_total_haircut=float(np.median(haircut_totals)),
            median_total_dividend_tax=float(np.median(dividend_tax_totals)),
        )

    output = SimulationOutput(
        config=config,
        asset_ids=asset_data.asset_ids,
        terminal_values=read_only(terminal_values),
        yearly_values=read_only(yearly_values),
        yearly_percentiles=YearlyPercentiles(
            bands=read_only(yearly_percentile_bands(yearly_values)),
            calendar_years=calendar_years,
        ),
        success_rate=success_rate(terminal_values, config.initial_value),
        statistics=SimulationStatistics(mean=mean, median=median, stddev=std, min=low, max=high),
        correlation_matrix=correlation,
        cholesky_factor=getattr(sampler, "factor", None),
        sbloc=sbloc_outcome,
    )
    logger.info(
        "Simulation complete: success rate %.4f, median terminal value %.2f",
        output.success_rate,
        median,
    )
    return output

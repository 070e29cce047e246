"""
Analytics package — aggregate simulated trajectories into bands, statistics and risk flags.
"""

from .aggregator import (
    path_coherent_percentiles,
    success_rate,
    summary_statistics,
    yearly_percentile_bands,
)
from .metrics import MarginCallStats, cumulative_withdrawals, margin_call_probability_by_year
from .report import RiskReport, generate_risk_report
from .results import SBLOCOutcome, SimulationOutput, SimulationStatistics, YearlyPercentiles

__all__ = [
    "path_coherent_percentiles",
    "success_rate",
    "summary_statistics",
    "yearly_percentile_bands",
    "MarginCallStats",
    "cumulative_withdrawals",
    "margin_call_probability_by_year",
    "RiskReport",
    "generate_risk_report",
    "SBLOCOutcome",
    "SimulationOutput",
    "SimulationStatistics",
    "YearlyPercentiles",
]

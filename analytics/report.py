"""
Risk report — plain-language flags on top of a SimulationOutput.

Answers the questions a Buy-Borrow-Die plan has to survive:
  Q1: "Do I usually end ahead?"            → success rate
  Q2: "How likely is a margin call?"       → cumulative margin-call probability
  Q3: "Does the typical loan sit in the warning zone?" → median loan vs maintenance
  Q4: "How often is the estate under water?" → P(terminal net worth <= 0)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd

from .results import SimulationOutput


@dataclass
class RiskReport:
    success_rate: float
    median_terminal_value: float
    p10_terminal_value: float

    # SBLOC-only metrics; None when borrowing is disabled
    margin_call_probability: Optional[float] = None
    peak_year_margin_call_probability: Optional[float] = None
    median_terminal_ltv: Optional[float] = None
    prob_net_worth_depleted: Optional[float] = None

    flags: List[str] = field(default_factory=list)

    def to_dataframe(self) -> pd.DataFrame:
        rows = [
            {"Metric": "Success Rate", "Value": f"{self.success_rate:.1%}"},
            {"Metric": "Median Terminal Value", "Value": f"{self.median_terminal_value:,.0f}"},
            {"Metric": "P10 Terminal Value", "Value": f"{self.p10_terminal_value:,.0f}"},
        ]
        if self.margin_call_probability is not None:
            rows += [
                {"Metric": "P(Any Margin Call)", "Value": f"{self.margin_call_probability:.1%}"},
                {"Metric": "Worst-Year Margin Call Probability",
                 "Value": f"{self.peak_year_margin_call_probability:.1%}"},
                {"Metric": "Median Terminal LTV", "Value": f"{self.median_terminal_ltv:.1%}"},
                {"Metric": "P(Net Worth <= 0)", "Value": f"{self.prob_net_worth_depleted:.1%}"},
            ]
        if self.flags:
            rows.append({"Metric": "FLAGS", "Value": " | ".join(self.flags)})
        return pd.DataFrame(rows)


def generate_risk_report(
    output: SimulationOutput,
    *,
    min_success_rate: float = 0.5,
    max_margin_call_probability: float = 0.25,
    max_depletion_probability: float = 0.05,
) -> RiskReport:
    """
    Build a RiskReport from a completed run.

    Parameters
    ----------
    output : SimulationOutput
    min_success_rate : float
        Flag when fewer trajectories than this end above the initial value.
    max_margin_call_probability : float
        Flag when the chance of at least one margin call exceeds this.
    max_depletion_probability : float
        Flag when the chance of ending with net worth <= 0 exceeds this.
    """
    yp = output.yearly_percentiles
    report = RiskReport(
        success_rate=output.success_rate,
        median_terminal_value=output.statistics.median,
        p10_terminal_value=float(yp.band(10)[-1]),
    )

    if output.success_rate < min_success_rate:
        report.flags.append(
            f"LOW_SUCCESS_RATE: only {output.success_rate:.0%} of paths end above the starting value"
        )

    outcome = output.sbloc
    if outcome is None:
        return report

    sbloc_config = output.config.sbloc
    calls = outcome.margin_calls
    report.margin_call_probability = calls.probability_of_any_call
    report.peak_year_margin_call_probability = (
        float(calls.per_year_probability.max()) if calls.per_year_probability.size else 0.0
    )

    median_loan = float(outcome.loan_balance_bands.band(50)[-1])
    median_value = float(yp.band(50)[-1])
    report.median_terminal_ltv = median_loan / median_value if median_value > 0 else float("inf")
    report.prob_net_worth_depleted = float(np.mean(outcome.terminal_net_worth <= 0))

    if report.margin_call_probability > max_margin_call_probability:
        report.flags.append(
            f"MARGIN_CALL_RISK: {report.margin_call_probability:.0%} chance of at least one margin call"
        )
    if report.median_terminal_ltv >= sbloc_config.maintenance_margin:
        report.flags.append(
            "WARNING_ZONE: median loan ends at or above the maintenance margin"
        )
    if report.prob_net_worth_depleted > max_depletion_probability:
        report.flags.append(
            f"DEPLETION_RISK: {report.prob_net_worth_depleted:.0%} of paths end with net worth <= 0"
        )
    return report

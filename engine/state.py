"""
Per-trajectory SBLOC state.

One SBLOCState lives for exactly one Monte Carlo iteration: created at year 0,
mutated in place once per simulated year, and dropped after the terminal year
is recorded. Nothing outside that iteration ever sees it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass
class SBLOCState:
    portfolio_value: float
    loan_balance: float
    current_ltv: float          # inf iff portfolio == 0 and loan > 0
    in_warning_zone: bool = False
    years_since_start: int = 0

    @property
    def net_worth(self) -> float:
        return self.portfolio_value - self.loan_balance

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict copy of the state for error reports."""
        return asdict(self)

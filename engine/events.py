"""
Events and per-year results emitted by the SBLOC step.

A margin call is the lender's demand (LTV reached max_ltv); the liquidation is
what the lender then does about it. Both are recorded against the 1-based
simulation year in which they happened.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .ltv import LoanRegime


@dataclass(frozen=True)
class MarginCallEvent:
    year: int
    ltv_at_call: float
    portfolio_value: float
    loan_balance: float


@dataclass(frozen=True)
class LiquidationEvent:
    year: int
    assets_sold: float
    loan_repaid: float
    haircut_loss: float
    ltv_before: float
    ltv_after: float


@dataclass(frozen=True)
class YearResult:
    """Outcome of one SBLOC transition."""
    year: int
    regime: LoanRegime              # classified before any liquidation
    portfolio_value: float          # end of year, after liquidation
    loan_balance: float
    ltv: float
    interest_charged: float
    withdrawal_made: float
    dividend_tax_borrowed: float = 0.0
    margin_call: Optional[MarginCallEvent] = None
    liquidation: Optional[LiquidationEvent] = None

    @property
    def margin_call_triggered(self) -> bool:
        return self.margin_call is not None

    @property
    def haircut_loss(self) -> float:
        return self.liquidation.haircut_loss if self.liquidation is not None else 0.0

    @property
    def net_worth(self) -> float:
        return self.portfolio_value - self.loan_balance

    @property
    def portfolio_failed(self) -> bool:
        return self.net_worth <= 0

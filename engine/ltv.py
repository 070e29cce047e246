"""
Loan-to-value math and regime classification.

Regimes (checked in this order):
  WIPED               portfolio value is exactly 0
  FORCED_LIQUIDATION  LTV >= max_ltv
  WARNING             maintenance_margin <= LTV < max_ltv
  HEALTHY             LTV < maintenance_margin

Brokerages lend different fractions against different collateral. Defaults
below match typical 2024-2025 SBLOC terms.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from core.config import SBLOCConfig
from .state import SBLOCState

DEFAULT_LTV_BY_ASSET_CLASS: Dict[str, float] = {
    "equity": 0.65,
    "bond": 0.85,
    "cash": 0.95,
}


class LoanRegime(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    FORCED_LIQUIDATION = "forced_liquidation"
    WIPED = "wiped"


def calculate_ltv(loan_balance: float, portfolio_value: float) -> float:
    """
    loan / portfolio.

    0 when there is no loan; inf when there is a loan but no collateral.
    """
    if loan_balance <= 0:
        return 0.0
    if portfolio_value <= 0:
        return math.inf
    return loan_balance / portfolio_value


def is_in_warning_zone(ltv: float, config: SBLOCConfig) -> bool:
    return config.maintenance_margin <= ltv < config.max_ltv


def classify_regime(portfolio_value: float, ltv: float, config: SBLOCConfig) -> LoanRegime:
    if portfolio_value == 0:
        return LoanRegime.WIPED
    if ltv >= config.max_ltv:
        return LoanRegime.FORCED_LIQUIDATION
    if ltv >= config.maintenance_margin:
        return LoanRegime.WARNING
    return LoanRegime.HEALTHY


def calculate_max_borrowing(portfolio_value: float, max_ltv: float) -> float:
    if portfolio_value <= 0 or max_ltv <= 0:
        return 0.0
    return portfolio_value * max_ltv


def calculate_available_credit(state: SBLOCState, config: SBLOCConfig) -> float:
    """Remaining borrowing capacity; never negative."""
    available = calculate_max_borrowing(state.portfolio_value, config.max_ltv) - state.loan_balance
    return max(0.0, available)


@dataclass(frozen=True)
class MarginBuffer:
    dollars_until_warning: float       # negative once past the threshold
    dollars_until_margin_call: float
    percent_until_margin_call: float   # 1 = no loan, 0 = at max LTV, < 0 = over


def calculate_margin_buffer(state: SBLOCState, config: SBLOCConfig) -> MarginBuffer:
    ltv = calculate_ltv(state.loan_balance, state.portfolio_value)
    warning_threshold = state.loan_balance / config.maintenance_margin
    margin_call_threshold = state.loan_balance / config.max_ltv
    return MarginBuffer(
        dollars_until_warning=state.portfolio_value - warning_threshold,
        dollars_until_margin_call=state.portfolio_value - margin_call_threshold,
        percent_until_margin_call=1.0 - ltv / config.max_ltv,
    )


def calculate_drop_to_margin_call(state: SBLOCState, config: SBLOCConfig) -> float:
    """
    Fractional portfolio drop that would trigger a margin call.

    1.0 with no loan, negative when already past max LTV, -inf with no collateral.
    """
    ltv = calculate_ltv(state.loan_balance, state.portfolio_value)
    if ltv == 0:
        return 1.0
    if math.isinf(ltv):
        return -math.inf
    return 1.0 - ltv / config.max_ltv


def effective_ltv_limit(
    holdings: Iterable[Tuple[float, str]],
    limits: Optional[Dict[str, float]] = None,
) -> float:
    """
    Value-weighted LTV limit over (value, asset_class) holdings.

    Unknown asset classes get the equity limit. Non-positive holdings are ignored.
    Returns 0 for an empty or worthless portfolio.
    """
    table = limits or DEFAULT_LTV_BY_ASSET_CLASS
    borrowing_power = 0.0
    total = 0.0
    for value, asset_class in holdings:
        if value <= 0:
            continue
        limit = table.get(asset_class, table["equity"])
        borrowing_power += value * limit
        total += value
    if total <= 0:
        return 0.0
    return borrowing_power / total

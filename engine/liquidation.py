"""
Forced liquidation after a margin call.

The lender sells enough collateral to bring LTV down to a target below the
maintenance margin (maintenance × liquidation_target_multiplier, 40% with the
defaults), not merely back under max_ltv. This leaves a buffer so the next
small dip does not trigger another call.

Forced sales are lossy: selling X of assets repays only X × (1 - haircut).
To repay E of excess loan the lender therefore sells E / (1 - haircut).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.config import SBLOCConfig
from .events import LiquidationEvent
from .ltv import calculate_ltv, is_in_warning_zone
from .state import SBLOCState


@dataclass(frozen=True)
class LiquidationAmounts:
    assets_to_sell: float
    loan_to_repay: float
    target_ltv: float


def calculate_liquidation_amount(
    portfolio_value: float,
    loan_balance: float,
    config: SBLOCConfig,
) -> LiquidationAmounts:
    """Sale needed to reach the target LTV. Zero when already at or below it."""
    target_ltv = config.liquidation_target_ltv
    excess_loan = loan_balance - portfolio_value * target_ltv
    if excess_loan <= 0:
        return LiquidationAmounts(0.0, 0.0, target_ltv)

    assets_to_sell = excess_loan / (1 - config.liquidation_haircut)
    return LiquidationAmounts(
        assets_to_sell=assets_to_sell,
        loan_to_repay=assets_to_sell * (1 - config.liquidation_haircut),
        target_ltv=target_ltv,
    )


def calculate_haircut_loss(assets_liquidated: float, haircut_rate: float) -> float:
    if assets_liquidated <= 0 or haircut_rate <= 0:
        return 0.0
    return assets_liquidated * haircut_rate


def execute_forced_liquidation(
    state: SBLOCState,
    config: SBLOCConfig,
    year: int,
) -> Optional[LiquidationEvent]:
    """
    Liquidate in place. Returns the event, or None when nothing had to be sold.

    The sale is capped at the whole portfolio; if that is not enough the
    portfolio ends at 0 with a residual loan (LTV = inf).
    """
    amounts = calculate_liquidation_amount(state.portfolio_value, state.loan_balance, config)
    if amounts.assets_to_sell <= 0:
        return None

    ltv_before = state.current_ltv
    sold = min(amounts.assets_to_sell, state.portfolio_value)
    repaid = sold * (1 - config.liquidation_haircut)

    state.portfolio_value = max(0.0, state.portfolio_value - sold)
    state.loan_balance = max(0.0, state.loan_balance - repaid)
    state.current_ltv = calculate_ltv(state.loan_balance, state.portfolio_value)
    state.in_warning_zone = is_in_warning_zone(state.current_ltv, config)

    return LiquidationEvent(
        year=year,
        assets_sold=sold,
        loan_repaid=repaid,
        haircut_loss=calculate_haircut_loss(sold, config.liquidation_haircut),
        ltv_before=ltv_before,
        ltv_after=state.current_ltv,
    )


def can_recover_from_margin_call(state: SBLOCState, config: SBLOCConfig) -> bool:
    """True if selling everything would cover the loan after the haircut."""
    if state.loan_balance <= 0:
        return True
    if state.portfolio_value <= 0:
        return False
    return state.portfolio_value * (1 - config.liquidation_haircut) >= state.loan_balance

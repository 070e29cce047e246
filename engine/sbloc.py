"""
SBLOC engine — one-year state transition for a securities-backed line of credit.

This is the Buy-Borrow-Die mechanic: spending is borrowed against the
portfolio instead of sold out of it, so the portfolio keeps compounding while
the loan compounds against it. The strategy works until a drawdown pushes LTV
through max_ltv and the lender sells collateral at a haircut.

Step order for one year:
  1. Apply the portfolio return (value floored at 0)
  2. Accrue interest on the loan carried into the year
  3. Borrow the tax on the year's dividends (zero unless configured)
  4. Draw the year's withdrawal onto the loan (never sold from the portfolio)
  5. Recompute LTV
  6. Classify regime: healthy / warning / forced liquidation / wiped
  7. Forced liquidation if LTV >= max_ltv, with haircut
  8. years_since_start += 1

The state is validated before and after every step.
"""

from __future__ import annotations

from typing import Optional

from core.config import SBLOCConfig
from .events import MarginCallEvent, YearResult
from .interest import accrue_interest
from .liquidation import execute_forced_liquidation
from .ltv import LoanRegime, calculate_ltv, classify_regime, is_in_warning_zone
from .state import SBLOCState
from .validation import validate_sbloc_state
from .withdrawals import dividend_tax_borrowing, effective_withdrawal


def initialize_sbloc_state(
    config: SBLOCConfig,
    initial_portfolio_value: float,
    initial_loan_balance: Optional[float] = None,
) -> SBLOCState:
    """
    Year-0 state. The loan defaults to config.initial_loan_balance (0 if unset).
    """
    loan = config.starting_loan_balance if initial_loan_balance is None else float(initial_loan_balance)
    portfolio = float(initial_portfolio_value)
    ltv = calculate_ltv(loan, portfolio)
    state = SBLOCState(
        portfolio_value=portfolio,
        loan_balance=loan,
        current_ltv=ltv,
        in_warning_zone=is_in_warning_zone(ltv, config),
        years_since_start=0,
    )
    validate_sbloc_state(state)
    return state


def apply_return(portfolio_value: float, portfolio_return: float) -> float:
    """Grow by one year's return; a loss beyond -100% leaves 0, not a negative value."""
    grown = portfolio_value * (1 + portfolio_return)
    return 0.0 if grown < 0 else grown


def step_year(state: SBLOCState, config: SBLOCConfig, portfolio_return: float) -> YearResult:
    """
    Advance `state` in place by one year and report what happened.

    Parameters
    ----------
    state : SBLOCState
        Mutated in place.
    config : SBLOCConfig
    portfolio_return : float
        Weighted portfolio return for the year, as a decimal.

    Raises
    ------
    StateValidationError
        If the state is invalid before or after the transition.
    """
    validate_sbloc_state(state)
    year = state.years_since_start + 1

    state.portfolio_value = apply_return(state.portfolio_value, portfolio_return)

    interest = accrue_interest(state.loan_balance, config)
    state.loan_balance += interest

    dividend_tax = dividend_tax_borrowing(state.portfolio_value, config)
    state.loan_balance += dividend_tax

    withdrawal = effective_withdrawal(config, state.years_since_start)
    state.loan_balance += withdrawal

    state.current_ltv = calculate_ltv(state.loan_balance, state.portfolio_value)
    regime = classify_regime(state.portfolio_value, state.current_ltv, config)

    margin_call = None
    liquidation = None
    if regime is LoanRegime.FORCED_LIQUIDATION:
        margin_call = MarginCallEvent(
            year=year,
            ltv_at_call=state.current_ltv,
            portfolio_value=state.portfolio_value,
            loan_balance=state.loan_balance,
        )
        liquidation = execute_forced_liquidation(state, config, year)

    state.in_warning_zone = is_in_warning_zone(state.current_ltv, config)
    state.years_since_start += 1
    validate_sbloc_state(state)

    return YearResult(
        year=year,
        regime=regime,
        portfolio_value=state.portfolio_value,
        loan_balance=state.loan_balance,
        ltv=state.current_ltv,
        interest_charged=interest,
        withdrawal_made=withdrawal,
        dividend_tax_borrowed=dividend_tax,
        margin_call=margin_call,
        liquidation=liquidation,
    )

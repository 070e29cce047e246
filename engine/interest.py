"""
SBLOC interest accrual.

ANNUAL:  balance × (1 + r)
MONTHLY: balance × (1 + r/12)^12   (7.4% nominal → ~7.66% effective)
"""

from __future__ import annotations

from core.config import SBLOCConfig
from .withdrawals import effective_withdrawal


def calculate_annual_interest(principal: float, rate: float) -> float:
    if principal <= 0 or rate <= 0:
        return 0.0
    return principal * rate


def calculate_monthly_interest(principal: float, annual_rate: float) -> float:
    """One month of simple interest at annual_rate / 12."""
    if principal <= 0 or annual_rate <= 0:
        return 0.0
    return principal * (annual_rate / 12)


def effective_annual_rate(nominal_annual_rate: float) -> float:
    """Effective annual rate of a nominal rate compounded monthly."""
    if nominal_annual_rate <= 0:
        return 0.0
    return (1 + nominal_annual_rate / 12) ** 12 - 1


def compounding_factor(config: SBLOCConfig) -> float:
    """Growth factor applied to the loan balance over one year."""
    if config.compounding_frequency == "monthly":
        return (1 + config.annual_interest_rate / 12) ** 12
    return 1 + config.annual_interest_rate


def accrue_interest(loan_balance: float, config: SBLOCConfig) -> float:
    """Interest charged on `loan_balance` over one year."""
    if loan_balance <= 0 or config.annual_interest_rate <= 0:
        return 0.0
    return loan_balance * (compounding_factor(config) - 1)


def project_loan_balance(
    config: SBLOCConfig,
    years: int,
    initial_balance: float = 0.0,
) -> float:
    """
    Deterministic loan balance after `years` of withdrawals and interest.

    Ignores market returns and margin calls. Each year: interest on the
    opening balance, then that year's withdrawal (same order as the
    simulation step), including the annual raise and any chapter reductions.
    """
    balance = float(initial_balance)
    for years_since_start in range(max(0, years)):
        balance += accrue_interest(balance, config)
        balance += effective_withdrawal(config, years_since_start)
    return balance

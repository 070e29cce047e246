"""
Withdrawal schedule drawn from the line of credit.

For the step that starts at years_since_start (0-based), the simulation year is
years_since_start + 1. Withdrawals begin once years_since_start reaches
withdrawal_start_year; the first withdrawal is the base amount and each later
one grows by the annual raise:

    amount = base × (1 + raise) ^ max(0, years_of_withdrawals - 1)
    years_of_withdrawals = year - withdrawal_start_year

Spending chapters then scale the amount down in later retirement phases.

Dividend taxes are borrowed the same way: the portfolio stays whole and the
loan grows by the tax owed on the year's dividends.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from core.config import SBLOCConfig, WithdrawalChapter


def chapter_multiplier(chapters: Sequence[WithdrawalChapter], years_elapsed: int) -> float:
    """
    Product of (1 - reduction/100) over every chapter already reached.

    years_elapsed counts completed withdrawal years (0 in the first one).
    """
    multiplier = 1.0
    for chapter in chapters:
        if years_elapsed >= chapter.years_after_start:
            multiplier *= 1.0 - chapter.reduction_percent / 100.0
    return multiplier


def effective_withdrawal(config: SBLOCConfig, years_since_start: int) -> float:
    """Amount added to the loan in the step starting at `years_since_start`."""
    if years_since_start < config.withdrawal_start_year:
        return 0.0
    year = years_since_start + 1
    years_of_withdrawals = year - config.withdrawal_start_year
    amount = config.base_withdrawal * (1 + config.annual_withdrawal_raise) ** max(
        0, years_of_withdrawals - 1
    )
    years_elapsed = years_since_start - config.withdrawal_start_year
    return amount * chapter_multiplier(config.chapters, years_elapsed)


def withdrawal_schedule(config: SBLOCConfig, years: int) -> np.ndarray:
    """Withdrawal per simulation year, shape (years,)."""
    return np.array([effective_withdrawal(config, t) for t in range(years)], dtype=float)


def dividend_tax_borrowing(portfolio_value: float, config: SBLOCConfig) -> float:
    """
    Tax on the year's dividends, drawn on the line instead of paid from the portfolio.

    dividend_yield × dividend_tax_rate × portfolio value; 0 when either rate is 0.
    """
    if portfolio_value <= 0 or config.dividend_yield <= 0 or config.dividend_tax_rate <= 0:
        return 0.0
    return portfolio_value * config.dividend_yield * config.dividend_tax_rate

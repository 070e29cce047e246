"""
SBLOC state invariants, checked before and after every transition.

A violation means the engine computed something impossible. It is raised as
StateValidationError with the field name and a full snapshot, and is never
clamped: a silently repaired state would corrupt every statistic downstream.
"""

from __future__ import annotations

import math

import numpy as np

from core.errors import StateValidationError
from .state import SBLOCState


def validate_ltv(state: SBLOCState) -> None:
    """
    NaN and negative LTV are always invalid. inf is valid only with a zero
    portfolio and a positive loan.
    """
    ltv = state.current_ltv
    if ltv is None or math.isnan(ltv):
        raise StateValidationError("LTV is NaN", "current_ltv", state.snapshot())
    if ltv < 0:
        raise StateValidationError("LTV cannot be negative", "current_ltv", state.snapshot())
    if math.isinf(ltv) and not (state.portfolio_value == 0 and state.loan_balance > 0):
        raise StateValidationError(
            "infinite LTV requires a zero portfolio and a positive loan",
            "current_ltv",
            state.snapshot(),
        )


def validate_sbloc_state(state: SBLOCState) -> None:
    for name in ("portfolio_value", "loan_balance"):
        value = getattr(state, name)
        if value is None or not math.isfinite(value):
            raise StateValidationError(f"{name} must be finite", name, state.snapshot())
        if value < 0:
            raise StateValidationError(f"{name} cannot be negative", name, state.snapshot())

    years = state.years_since_start
    if isinstance(years, bool) or not isinstance(years, (int, np.integer)) or years < 0:
        raise StateValidationError(
            "years_since_start must be a non-negative integer",
            "years_since_start",
            state.snapshot(),
        )

    validate_ltv(state)

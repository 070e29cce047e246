"""
SBLOC engine — yearly line-of-credit state machine + Monte Carlo runner.
"""

from .events import LiquidationEvent, MarginCallEvent, YearResult
from .ltv import LoanRegime, calculate_ltv, classify_regime
from .runner import run_simulation
from .sbloc import initialize_sbloc_state, step_year
from .state import SBLOCState
from .validation import validate_sbloc_state
from .withdrawals import effective_withdrawal

__all__ = [
    "LiquidationEvent",
    "MarginCallEvent",
    "YearResult",
    "LoanRegime",
    "calculate_ltv",
    "classify_regime",
    "run_simulation",
    "initialize_sbloc_state",
    "step_year",
    "SBLOCState",
    "validate_sbloc_state",
    "effective_withdrawal",
]

"""
Typed error channel for the simulation core.

Only the Cholesky fallback tiers recover locally. Everything raised from here
surfaces to the caller unmodified so a host can report the specific failure
kind and abort without showing partial output.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple


class SimulationError(Exception):
    """Base class for every failure raised by the simulation core."""


class ConfigurationError(SimulationError, ValueError):
    """Malformed or out-of-range configuration. Raised before any computation starts."""


class MatrixError(SimulationError):
    """Correlation matrix is not positive-definite after every regularization tier."""

    def __init__(self, message: str, assets: Sequence[str] = ()):
        self.assets: Tuple[str, ...] = tuple(assets)
        if self.assets:
            message = f"{message} (assets: {', '.join(self.assets)})"
        super().__init__(message)


class StateValidationError(SimulationError):
    """
    An SBLOC state invariant was violated.

    This is a programming-error signal: the offending field and a full snapshot
    of the state are attached for diagnostics.
    """

    def __init__(self, message: str, field: str, state: Optional[Dict[str, Any]] = None):
        self.field = field
        self.state: Dict[str, Any] = dict(state or {})
        super().__init__(f"SBLOC state validation failed on '{field}': {message}")


class DimensionMismatchError(SimulationError, ValueError):
    """Requested sample count does not match the correlation matrix size."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Requested {actual} correlated samples but the correlation matrix is "
            f"{expected}x{expected}."
        )


class SimulationCancelled(SimulationError):
    """The caller abandoned the run between batches; no result is produced."""

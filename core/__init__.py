"""
Core package — configuration, error types, data schema, precision and statistics.
No simulation logic lives here.
"""

from .config import (
    RESAMPLING_METHODS,
    AssetAllocation,
    AssetData,
    SBLOCConfig,
    SimulationConfig,
    TimelineSettings,
    WithdrawalChapter,
)
from .errors import (
    ConfigurationError,
    DimensionMismatchError,
    MatrixError,
    SimulationCancelled,
    SimulationError,
    StateValidationError,
)
from .schema import PERCENTILE_LEVELS, AssetReturnSeries
from .stats import mean, percentile, stddev, variance
from .utils import EPSILON, almost_equal, kahan_sum, round_to

__all__ = [
    "RESAMPLING_METHODS",
    "AssetAllocation",
    "AssetData",
    "SBLOCConfig",
    "SimulationConfig",
    "TimelineSettings",
    "WithdrawalChapter",
    "ConfigurationError",
    "DimensionMismatchError",
    "MatrixError",
    "SimulationCancelled",
    "SimulationError",
    "StateValidationError",
    "PERCENTILE_LEVELS",
    "AssetReturnSeries",
    "mean",
    "percentile",
    "stddev",
    "variance",
    "EPSILON",
    "almost_equal",
    "kahan_sum",
    "round_to",
]

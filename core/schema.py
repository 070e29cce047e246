from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

# Percentile levels reported for every yearly band, on the 0-100 scale.
PERCENTILE_LEVELS: Tuple[int, ...] = (10, 25, 50, 75, 90)

# Canonical columns of a yearly band table. "index" is the sequential array
# position; "year" is the 1-based simulation year; "calendar_year" is only a label.
YEARLY_BAND_COLUMNS: Tuple[str, ...] = (
    "index",
    "year",
    "calendar_year",
    "p10",
    "p25",
    "p50",
    "p75",
    "p90",
)


@dataclass(frozen=True)
class AssetReturnSeries:
    """Ordered historical per-period returns for one asset (decimals, e.g. 0.07)."""

    asset_id: str
    returns: Tuple[float, ...]

    @classmethod
    def from_values(cls, asset_id: str, values: Sequence[float]) -> "AssetReturnSeries":
        return cls(asset_id=asset_id, returns=tuple(float(v) for v in values))

    def __len__(self) -> int:
        return len(self.returns)

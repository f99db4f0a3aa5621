from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict

# A series shorter than this cannot be forecast.
MIN_HISTORY_POINTS = 12


class RentSource(str, Enum):
    # Annual 40th-percentile statistic (affordability baseline)
    GOVERNMENT_BASELINE = "government_baseline"
    # Monthly market-rate statistic (~35th-65th percentile asking rents)
    MARKET_RATE = "market_rate"


LocationType = Literal["county", "metro"]


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: LocationType
    state_code: str
    state_name: str | None = None


@dataclass(frozen=True)
class TimeSeriesPoint:
    date: date
    rent: float                         # normalized rent
    raw_rent: float                     # unadjusted source value
    source: RentSource
    adjustment_factor: float = 1.0      # rent = raw_rent * adjustment_factor
    mom_change: Optional[float] = None  # percent, market-rate only
    yoy_change: Optional[float] = None  # percent, market-rate only

    def __post_init__(self) -> None:
        if not self.rent > 0:
            raise ValueError(f"rent must be positive, got {self.rent!r}")


def sort_history(points: Iterable[TimeSeriesPoint]) -> list[TimeSeriesPoint]:
    return sorted(points, key=lambda p: p.date)


def points_for(history: Iterable[TimeSeriesPoint], source: RentSource) -> list[TimeSeriesPoint]:
    return [p for p in history if p.source == source]


def sources_in(history: Iterable[TimeSeriesPoint]) -> list[RentSource]:
    """Distinct sources in first-seen order."""
    seen: list[RentSource] = []
    for p in history:
        if p.source not in seen:
            seen.append(p.source)
    return seen

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from rentcompass.domain.timeseries import RentSource

PREDICTION_HORIZONS: Tuple[int, ...] = (3, 6, 12, 24)

Reliability = Literal["low", "medium", "high"]


class MarketCycleStage(str, Enum):
    PEAK = "peak"
    GROWTH = "growth"
    STABLE = "stable"
    COOLING = "cooling"
    TROUGH = "trough"
    UNKNOWN = "unknown"


def validate_horizon(horizon_months: int) -> int:
    if horizon_months not in PREDICTION_HORIZONS:
        raise ValueError(
            f"horizon_months must be one of {PREDICTION_HORIZONS}, got {horizon_months!r}"
        )
    return horizon_months


# ---------------------------------------------------------------------
# Normalizer outputs
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class SourceContribution:
    source: RentSource
    rent: float
    age_months: float
    base_weight: float
    decay_factor: float
    weight: float        # base_weight * decay_factor
    share: float         # weight / sum(weights)


@dataclass(frozen=True)
class CurrentRentEstimate:
    rent: float
    contributions: Tuple[SourceContribution, ...]

    @property
    def blended(self) -> bool:
        return len(self.contributions) > 1

    def contribution_for(self, source: RentSource) -> Optional[SourceContribution]:
        for c in self.contributions:
            if c.source == source:
                return c
        return None


@dataclass(frozen=True)
class DataQualityAssessment:
    score: float                     # [0.1, 1.0]
    percentile_confidence: float     # [0.1, 1.0]
    months_old: float
    data_points: int
    sources: Tuple[RentSource, ...]
    source_breakdown: Dict[RentSource, int]
    source_agreement: Optional[float]   # relative gap of recent means; None if single-source
    has_recent_overlap: bool

    @property
    def multi_source(self) -> bool:
        return len(self.sources) > 1


# ---------------------------------------------------------------------
# Sub-analyses
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class TrendAnalysis:
    annual_growth_rate: float   # percent per year
    weight: float
    reliability: Reliability
    data_points: int = 0


@dataclass(frozen=True)
class SeasonalAnalysis:
    adjustment: float           # percent
    weight: float
    reliability: Reliability
    current_month: int = 0      # 0-11
    target_month: int = 0       # 0-11
    months_observed: int = 0


@dataclass(frozen=True)
class MarketCycleAnalysis:
    stage: MarketCycleStage
    adjustment: float
    weight: float
    avg_recent_growth: float = 0.0
    growth_volatility: float = 0.0
    data_points: int = 0


@dataclass(frozen=True)
class MomentumAnalysis:
    rate: float                 # annualized percent
    weight: float
    reliability: Reliability = "low"
    data_points: int = 0


@dataclass(frozen=True)
class CombinedForecast:
    predicted_rent: float
    change_percent: float
    annual_growth_rate: float
    key_factors: Tuple[str, ...]


@dataclass(frozen=True)
class PredictionBounds:
    lower: float
    upper: float


# ---------------------------------------------------------------------
# Final prediction record
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class RentPrediction:
    location_id: str
    location_name: str
    location_type: str
    prediction_date: date
    horizon_months: int

    current_rent: float
    predicted_rent: float
    change_percent: float
    annual_growth_rate: float

    confidence: float           # [0.1, 1.0]
    lower_bound: float
    upper_bound: float

    market_cycle_stage: MarketCycleStage
    key_factors: Tuple[str, ...]
    data_sources: Tuple[RentSource, ...]
    contributions: Dict[str, float] = field(default_factory=dict)
    model_version: str = "v1.0"

    def meets_threshold(self, threshold: float) -> bool:
        return self.confidence >= threshold

    def to_record(self) -> Dict[str, Any]:
        """
        Flat, JSON-ready representation for whatever store or UI renders it.
        """
        return {
            "location_id": self.location_id,
            "location_name": self.location_name,
            "location_type": self.location_type,
            "prediction_date": self.prediction_date.isoformat(),
            "prediction_horizon": self.horizon_months,
            "data_sources": [s.value for s in self.data_sources],
            "current_rent": self.current_rent,
            "predicted_rent": self.predicted_rent,
            "predicted_change_percent": self.change_percent,
            "confidence_score": self.confidence,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "contributing_factors": {
                **self.contributions,
                "key_factors": list(self.key_factors),
            },
            "market_cycle_stage": self.market_cycle_stage.value,
            "model_version": self.model_version,
        }


SkipReason = Literal["insufficient_history", "no_current_rent"]


@dataclass(frozen=True)
class LocationForecast:
    location_id: str
    predictions: List[RentPrediction]
    current_rent: Optional[CurrentRentEstimate] = None
    data_quality: Optional[DataQualityAssessment] = None
    skipped_reason: Optional[SkipReason] = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

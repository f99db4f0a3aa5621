# src/rentcompass/domain/assumptions.py
from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field, field_validator, model_validator

from rentcompass.domain.negotiation import RentVsMarket, StrategyType
from rentcompass.domain.timeseries import RentSource


class SourceWeighting(BaseModel):
    base_weight: float = Field(..., gt=0)
    decay_window_months: float = Field(..., gt=0)
    # Multiplier applied to raw values to bring them to market median
    percentile_adjustment: float = Field(default=1.0, gt=0)


class ForecastAssumptions(BaseModel):
    """
    Weighting constants for the normalizer and forecast model.

    Defaults:
      - government baseline: weight 0.35, decays over 12 months, x1.18
        (40th -> 50th percentile)
      - market rate: weight 0.65, decays over 6 months, no adjustment
    """
    government: SourceWeighting = SourceWeighting(
        base_weight=0.35, decay_window_months=12.0, percentile_adjustment=1.18
    )
    market: SourceWeighting = SourceWeighting(
        base_weight=0.65, decay_window_months=6.0, percentile_adjustment=1.0
    )
    decay_floor: float = 0.1

    recent_window_points: int = 12     # points considered for the current-rent blend
    min_history_points: int = 12
    overlap_window_days: int = 730     # "both sources within the last 2 years"
    agreement_window_points: int = 6   # percentile confidence compares these
    alignment_window_points: int = 3   # confidence alignment bonus compares these

    trend_min_points: int = 6
    seasonal_min_months: int = 6
    cycle_window_points: int = 24
    momentum_window_points: int = 6
    seasonal_min_adjustment: float = 0.5

    bounds_max_uncertainty: float = 0.25
    bounds_floor_ratio: float = 0.7
    bounds_ceiling_ratio: float = 1.5

    model_version: str = "v1.0"

    def weighting_for(self, source: RentSource) -> SourceWeighting:
        if source == RentSource.GOVERNMENT_BASELINE:
            return self.government
        if source == RentSource.MARKET_RATE:
            return self.market
        raise ValueError(f"unknown rent source: {source!r}")


class LeverageWeights(BaseModel):
    market: float = 0.40
    financial: float = 0.25
    relationship: float = 0.20
    timing: float = 0.15

    @model_validator(mode="after")
    def _sum_to_one(self) -> "LeverageWeights":
        total = self.market + self.financial + self.relationship + self.timing
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"leverage weights must sum to 1.0, got {total:.4f}")
        return self


class NegotiationAssumptions(BaseModel):
    """
    Heuristic policy table for leverage, success probability and timelines.

    None of these are laws of the domain; they are tunable.
    """
    leverage_weights: LeverageWeights = LeverageWeights()
    strength_threshold: float = 7.0
    weakness_threshold: float = 3.0

    success_per_leverage_point: float = 7.0
    success_offset: float = 30.0
    success_floor: int = 10
    success_ceiling: int = 95
    strategy_success_modifiers: Dict[StrategyType, int] = {
        StrategyType.ASSERTIVE_COLLABORATIVE: 5,
        StrategyType.COLLABORATIVE_APPROACH: 0,
        StrategyType.RELATIONSHIP_BUILDING: -10,
        StrategyType.LEVERAGE_FOCUSED: 10,
        StrategyType.STRATEGIC_PATIENCE: -5,
    }

    strategy_base_days: Dict[StrategyType, int] = {
        StrategyType.ASSERTIVE_COLLABORATIVE: 14,
        StrategyType.STRATEGIC_PATIENCE: 56,
        StrategyType.RELATIONSHIP_BUILDING: 42,
        StrategyType.COLLABORATIVE_APPROACH: 21,
        StrategyType.LEVERAGE_FOCUSED: 10,
    }
    short_decision_days: int = 14
    short_decision_multiplier: float = 0.7
    urgent_multiplier: float = 0.8
    strained_multiplier: float = 1.3

    negotiation_room_pct: Dict[str, int] = {
        "significantly-above": 15,
        "above": 10,
        "at": 5,
        "below": 2,
    }

    @field_validator("strategy_success_modifiers", "strategy_base_days")
    @classmethod
    def _covers_every_strategy(cls, v: Dict[StrategyType, int]) -> Dict[StrategyType, int]:
        missing = [s.value for s in StrategyType if s not in v]
        if missing:
            raise ValueError(f"missing strategies: {missing}")
        return v

    @field_validator("negotiation_room_pct")
    @classmethod
    def _covers_every_position(cls, v: Dict[str, int]) -> Dict[str, int]:
        positions: tuple[RentVsMarket, ...] = ("below", "at", "above", "significantly-above")
        missing = [p for p in positions if p not in v]
        if missing:
            raise ValueError(f"missing market positions: {missing}")
        return v


DEFAULT_FORECAST_ASSUMPTIONS = ForecastAssumptions()
DEFAULT_NEGOTIATION_ASSUMPTIONS = NegotiationAssumptions()

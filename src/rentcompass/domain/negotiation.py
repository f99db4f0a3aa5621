from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------
# Categorical inputs
# ---------------------------------------------------------------------

BudgetFlexibility = Literal["tight", "moderate", "flexible"]
EmploymentStability = Literal["stable", "variable", "unstable"]
PreferredTone = Literal["direct", "diplomatic", "collaborative", "assertive"]
RiskTolerance = Literal["conservative", "moderate", "aggressive"]
ConflictStyle = Literal["avoider", "compromiser", "competitor", "collaborator"]
LandlordRelationship = Literal["new", "positive", "neutral", "strained"]
TenantHistory = Literal["first-time", "experienced", "veteran"]
Urgency = Literal["flexible", "moderate", "urgent"]
MovingFlexibility = Literal["committed-to-stay", "willing-to-move", "eager-to-move"]

RentVsMarket = Literal["below", "at", "above", "significantly-above"]
PropertyCondition = Literal["excellent", "good", "fair", "needs-work"]
LandlordType = Literal["individual", "small-company", "corporate", "property-manager"]
RentTrend = Literal["increasing", "stable", "decreasing"]
SeasonalFactor = Literal["peak", "normal", "slow"]
EconomicIndicators = Literal["strong", "stable", "uncertain", "declining"]
LeverageLevel = Literal["low", "moderate", "high"]
PowerBalance = Literal["landlord-favored", "balanced", "tenant-favored"]

LeaseStatus = Literal["pre-application", "application-pending", "active-lease", "renewal-period"]
PrimaryGoal = Literal["rent-reduction", "amenity-addition", "lease-terms", "maintenance-issues"]
LifeEvents = Literal["job-change", "income-reduction", "family-change", "none"]
MarketEvent = Literal["new-competition", "area-development", "economic-shift", "none"]


class UserContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    income: float | None = None
    current_rent: float
    budget_flexibility: BudgetFlexibility
    credit_score: int | None = None
    employment_stability: EmploymentStability
    preferred_tone: PreferredTone
    risk_tolerance: RiskTolerance
    conflict_style: ConflictStyle
    landlord_relationship: LandlordRelationship
    tenant_history: TenantHistory
    urgency: Urgency
    alternative_options: int = Field(..., ge=0)
    moving_flexibility: MovingFlexibility


class ComparableRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float
    max: float
    median: float


class MarketContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_rent_vs_market: RentVsMarket
    market_position: float = Field(..., description="Percentile of the tenant's rent in the local market")
    property_condition: PropertyCondition
    landlord_type: LandlordType
    local_vacancy_rate: float = Field(..., description="Percent, e.g. 6.5")
    rent_trend: RentTrend
    seasonal_factor: SeasonalFactor
    economic_indicators: EconomicIndicators
    comparable_range: ComparableRange
    negotiation_leverage: LeverageLevel
    market_power_balance: PowerBalance


class SituationContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    lease_status: LeaseStatus
    time_until_decision: int = Field(..., description="Days until the tenant must decide")
    primary_goal: PrimaryGoal
    target_reduction: float = 0.0
    competing_offers: bool = False
    life_events: LifeEvents = "none"
    market_event: MarketEvent = "none"

    @field_validator("time_until_decision")
    @classmethod
    def _non_negative_days(cls, v: int) -> int:
        if v < 0:
            raise ValueError("time_until_decision must be >= 0")
        return v


class ComparableProperty(BaseModel):
    rent: float
    address: str | None = None
    size: str | None = None
    type: str | None = None
    distance: str | None = None


class MarketIntelligence(BaseModel):
    """
    Local market evidence gathered upstream (listings, retrieval, analysts).

    Everything is optional: whatever is present tightens the market context
    and feeds evidence-driven guidance.
    """
    comparable_properties: list[ComparableProperty] = Field(default_factory=list)
    avg_rent: float | None = None
    median_rent: float | None = None
    rent_growth: str | None = None       # free text, e.g. "-2.1%" or "3.5% YoY"
    vacancy_rate: str | None = None
    market_condition: str | None = None
    area_description: str | None = None
    negotiation_evidence: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------
# Closed classifications
# ---------------------------------------------------------------------


class StrategyType(str, Enum):
    ASSERTIVE_COLLABORATIVE = "assertive_collaborative"
    STRATEGIC_PATIENCE = "strategic_patience"
    RELATIONSHIP_BUILDING = "relationship_building"
    COLLABORATIVE_APPROACH = "collaborative_approach"
    LEVERAGE_FOCUSED = "leverage_focused"


class MarketTiming(str, Enum):
    FAVORABLE = "favorable"
    NEUTRAL = "neutral"
    UNFAVORABLE = "unfavorable"


# ---------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class LeverageFactors:
    market: float
    financial: float
    relationship: float
    timing: float


@dataclass(frozen=True)
class LeverageScore:
    total: float                     # 0-10, one decimal
    factors: LeverageFactors
    strengths: Tuple[str, ...]
    weaknesses: Tuple[str, ...]


@dataclass(frozen=True)
class NegotiationStrategy:
    type: StrategyType
    name: str
    description: str
    reasoning: str


@dataclass(frozen=True)
class SuccessBreakdown:
    market_conditions: int
    relationship_strength: int
    timing_optimality: int
    strategy_alignment: int


@dataclass(frozen=True)
class SuccessProbability:
    overall: int
    breakdown: SuccessBreakdown
    confidence_min: int
    confidence_max: int


PhaseStatus = Literal["active", "pending", "completed"]


@dataclass(frozen=True)
class Phase:
    id: int
    name: str
    duration: str
    description: str
    status: PhaseStatus = "pending"


@dataclass(frozen=True)
class Timeline:
    estimated_duration: str
    estimated_days: int
    phases: Tuple[Phase, ...]


ActionType = Literal["research", "document", "analyze", "communicate", "wait"]
Priority = Literal["low", "medium", "high"]
Difficulty = Literal["easy", "medium", "hard"]


@dataclass(frozen=True)
class ActionItem:
    type: ActionType
    description: str
    automated: bool
    priority: Priority


@dataclass(frozen=True)
class CommunicationTemplates:
    email: Optional[str] = None
    phone_script: Optional[str] = None
    follow_up: Optional[str] = None


@dataclass(frozen=True)
class RoadmapStep:
    id: int
    phase: int
    title: str
    description: str
    status: PhaseStatus
    difficulty: Difficulty
    estimated_time: str
    action_items: Tuple[ActionItem, ...]
    success_metrics: Tuple[str, ...]
    tips: Tuple[str, ...]
    risk_factors: Tuple[str, ...]
    templates: Optional[CommunicationTemplates] = None


@dataclass(frozen=True)
class Guidance:
    current_recommendations: Tuple[str, ...] = ()
    warning_flags: Tuple[str, ...] = ()
    opportunity_alerts: Tuple[str, ...] = ()
    next_best_actions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NegotiationMarketSummary:
    current_rent: float
    target_rent: float
    market_position: RentVsMarket
    comparable_range: Dict[str, float]
    negotiation_room: int           # percent


AdaptationImpact = Literal["minor", "moderate", "major"]


@dataclass(frozen=True)
class AdaptationTrigger:
    condition: str
    suggested_adjustment: str
    impact: AdaptationImpact


@dataclass(frozen=True)
class Roadmap:
    strategy: NegotiationStrategy
    success_probability: SuccessProbability
    leverage_score: LeverageScore
    relationship_risk: float
    market_timing: MarketTiming
    timeline: Timeline
    steps: Tuple[RoadmapStep, ...]
    guidance: Guidance
    market_summary: NegotiationMarketSummary
    adaptation_triggers: Tuple[AdaptationTrigger, ...]
    evidence_points: Tuple[str, ...] = field(default_factory=tuple)

    def to_record(self) -> Dict[str, Any]:
        rec = asdict(self)
        rec["strategy"]["type"] = self.strategy.type.value
        rec["market_timing"] = self.market_timing.value
        return _listify(rec)


def _listify(obj: Any) -> Any:
    # asdict keeps tuples; JSON consumers expect lists
    if isinstance(obj, dict):
        return {k: _listify(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_listify(v) for v in obj]
    return obj

# src/rentcompass/analysis/strategy.py
from __future__ import annotations

from typing import Dict, Optional, Tuple

from rentcompass.analysis.leverage import round_half_up
from rentcompass.domain.assumptions import DEFAULT_NEGOTIATION_ASSUMPTIONS, NegotiationAssumptions
from rentcompass.domain.negotiation import (
    LeverageScore,
    MarketContext,
    MarketIntelligence,
    MarketTiming,
    NegotiationStrategy,
    Phase,
    SituationContext,
    StrategyType,
    SuccessBreakdown,
    SuccessProbability,
    Timeline,
    UserContext,
)

# =====================================================================
# Archetypes
# =====================================================================

STRATEGIES: Dict[StrategyType, NegotiationStrategy] = {
    StrategyType.ASSERTIVE_COLLABORATIVE: NegotiationStrategy(
        type=StrategyType.ASSERTIVE_COLLABORATIVE,
        name="Assertive Collaborative",
        description="Confidently present market data while maintaining a collaborative tone",
        reasoning="High leverage with low relationship risk allows for direct negotiation",
    ),
    StrategyType.COLLABORATIVE_APPROACH: NegotiationStrategy(
        type=StrategyType.COLLABORATIVE_APPROACH,
        name="Collaborative Negotiation",
        description="Work together with landlord to find mutually beneficial solutions",
        reasoning="Moderate leverage with favorable timing supports collaborative approach",
    ),
    StrategyType.RELATIONSHIP_BUILDING: NegotiationStrategy(
        type=StrategyType.RELATIONSHIP_BUILDING,
        name="Relationship Building",
        description="Focus on strengthening relationship before making requests",
        reasoning="Low leverage or high relationship risk requires foundation building",
    ),
    StrategyType.LEVERAGE_FOCUSED: NegotiationStrategy(
        type=StrategyType.LEVERAGE_FOCUSED,
        name="Leverage-Focused",
        description="Use market position and alternatives to negotiate from strength",
        reasoning="Strong leverage with aggressive risk tolerance supports direct approach",
    ),
    StrategyType.STRATEGIC_PATIENCE: NegotiationStrategy(
        type=StrategyType.STRATEGIC_PATIENCE,
        name="Strategic Patience",
        description="Build position over time and wait for optimal negotiation window",
        reasoning="Current conditions favor building leverage before negotiating",
    ),
}

# (name, duration, description) per phase
PHASE_TEMPLATES: Dict[StrategyType, Tuple[Tuple[str, str, str], ...]] = {
    StrategyType.ASSERTIVE_COLLABORATIVE: (
        ("Foundation Setting", "2-3 days", "Gather market data and prepare compelling case"),
        ("Initial Approach", "1 week", "Present request with market evidence"),
        ("Collaborative Resolution", "1-2 weeks", "Work together to find mutually beneficial solution"),
    ),
    StrategyType.STRATEGIC_PATIENCE: (
        ("Intelligence Gathering", "2-3 weeks", "Monitor market and build relationship"),
        ("Position Building", "3-4 weeks", "Strengthen leverage and demonstrate value"),
        ("Strategic Timing", "1-2 weeks", "Execute when conditions are optimal"),
    ),
    StrategyType.RELATIONSHIP_BUILDING: (
        ("Relationship Repair", "2-4 weeks", "Address issues and rebuild trust"),
        ("Value Demonstration", "2-3 weeks", "Show your worth as a tenant"),
        ("Gentle Approach", "1-2 weeks", "Make request from position of trust"),
    ),
    StrategyType.COLLABORATIVE_APPROACH: (
        ("Collaborative Setup", "3-5 days", "Frame as joint problem-solving"),
        ("Mutual Exploration", "1-2 weeks", "Explore options together"),
        ("Win-Win Solution", "1 week", "Finalize mutually beneficial agreement"),
    ),
    StrategyType.LEVERAGE_FOCUSED: (
        ("Leverage Assessment", "1-2 days", "Document all negotiation advantages"),
        ("Direct Negotiation", "3-5 days", "Present case with clear alternatives"),
        ("Final Agreement", "3-7 days", "Secure commitment and formalize terms"),
    ),
}


# =====================================================================
# Derived classifications
# =====================================================================


def assess_relationship_risk(user: UserContext, situation: SituationContext) -> float:
    """0-10; higher means asking for something is more likely to sour things."""
    risk = 5.0
    if user.landlord_relationship == "strained":
        risk += 3
    if user.conflict_style == "avoider":
        risk += 2
    if situation.primary_goal == "rent-reduction" and user.risk_tolerance == "conservative":
        risk += 1
    return max(0.0, min(10.0, risk))


def evaluate_market_timing(market: MarketContext, situation: SituationContext) -> MarketTiming:
    score = 0
    if market.rent_trend == "decreasing":
        score += 2
    if market.local_vacancy_rate > 5:
        score += 1
    if market.seasonal_factor == "slow":
        score += 1
    if situation.time_until_decision > 30:
        score += 1

    if score >= 3:
        return MarketTiming.FAVORABLE
    if score <= 1:
        return MarketTiming.UNFAVORABLE
    return MarketTiming.NEUTRAL


def select_strategy(
    leverage: LeverageScore,
    relationship_risk: float,
    timing: MarketTiming,
    user: UserContext,
) -> NegotiationStrategy:
    """First matching rule wins."""
    total = leverage.total

    if total >= 7 and relationship_risk < 4:
        return STRATEGIES[StrategyType.ASSERTIVE_COLLABORATIVE]
    if total >= 5 and timing == MarketTiming.FAVORABLE:
        return STRATEGIES[StrategyType.COLLABORATIVE_APPROACH]
    if relationship_risk >= 7 or total < 3:
        return STRATEGIES[StrategyType.RELATIONSHIP_BUILDING]
    if total >= 6 and user.risk_tolerance == "aggressive":
        return STRATEGIES[StrategyType.LEVERAGE_FOCUSED]
    return STRATEGIES[StrategyType.STRATEGIC_PATIENCE]


# =====================================================================
# Success probability
# =====================================================================


def calculate_success_probability(
    leverage: LeverageScore,
    strategy: NegotiationStrategy,
    market: MarketContext,
    user: UserContext,
    assumptions: NegotiationAssumptions | None = None,
) -> SuccessProbability:
    a = assumptions or DEFAULT_NEGOTIATION_ASSUMPTIONS

    overall = int(round_half_up(leverage.total * a.success_per_leverage_point + a.success_offset))
    overall += a.strategy_success_modifiers[strategy.type]

    if market.current_rent_vs_market == "significantly-above":
        overall += 15
    if market.market_power_balance == "tenant-favored":
        overall += 10
    if user.tenant_history == "veteran":
        overall += 5
    if user.landlord_relationship == "positive":
        overall += 10

    overall = max(a.success_floor, min(a.success_ceiling, overall))

    return SuccessProbability(
        overall=overall,
        breakdown=SuccessBreakdown(
            market_conditions=int(round_half_up(leverage.factors.market * 10)),
            relationship_strength=int(round_half_up(leverage.factors.relationship * 10)),
            timing_optimality=int(round_half_up(leverage.factors.timing * 10)),
            strategy_alignment=int(round_half_up(overall * 0.8)),
        ),
        confidence_min=max(5, overall - 15),
        confidence_max=min(100, overall + 10),
    )


# =====================================================================
# Timeline
# =====================================================================


def timeline_adjustment(
    situation: SituationContext,
    user: UserContext,
    assumptions: NegotiationAssumptions | None = None,
) -> float:
    a = assumptions or DEFAULT_NEGOTIATION_ASSUMPTIONS
    adjustment = 1.0
    if situation.time_until_decision < a.short_decision_days:
        adjustment *= a.short_decision_multiplier
    if user.urgency == "urgent":
        adjustment *= a.urgent_multiplier
    if user.landlord_relationship == "strained":
        adjustment *= a.strained_multiplier
    return adjustment


def format_duration(days: int) -> str:
    if days <= 7:
        return f"{days} days"
    if days <= 28:
        return f"{int(round_half_up(days / 7))} weeks"
    return f"{int(round_half_up(days / 30))} months"


def _phase_descriptions(
    strategy_type: StrategyType,
    intelligence: Optional[MarketIntelligence],
) -> Dict[str, str]:
    # local evidence sharpens a couple of phase descriptions
    if intelligence is None:
        return {}
    overrides: Dict[str, str] = {}
    if strategy_type == StrategyType.ASSERTIVE_COLLABORATIVE and intelligence.negotiation_evidence:
        overrides["Initial Approach"] = f"Use key evidence: {intelligence.negotiation_evidence[0]}"
    if strategy_type == StrategyType.STRATEGIC_PATIENCE and intelligence.area_description:
        overrides["Intelligence Gathering"] = (
            f"Leverage local market conditions: {intelligence.area_description}"
        )
    return overrides


def generate_timeline(
    strategy: NegotiationStrategy,
    situation: SituationContext,
    user: UserContext,
    assumptions: NegotiationAssumptions | None = None,
    intelligence: Optional[MarketIntelligence] = None,
) -> Timeline:
    a = assumptions or DEFAULT_NEGOTIATION_ASSUMPTIONS

    days = int(round_half_up(a.strategy_base_days[strategy.type] * timeline_adjustment(situation, user, a)))
    overrides = _phase_descriptions(strategy.type, intelligence)

    phases = tuple(
        Phase(
            id=i + 1,
            name=name,
            duration=duration,
            description=overrides.get(name, description),
            status="active" if i == 0 else "pending",
        )
        for i, (name, duration, description) in enumerate(PHASE_TEMPLATES[strategy.type])
    )

    return Timeline(estimated_duration=format_duration(days), estimated_days=days, phases=phases)

# src/rentcompass/analysis/roadmap.py
from __future__ import annotations

from typing import List, Optional, Tuple

from rentcompass.adapters.logging_utils import get_logger
from rentcompass.analysis.leverage import calculate_leverage_score, round_half_up
from rentcompass.analysis.market_context import enhance_market_context, percent_vs_average
from rentcompass.analysis.strategy import (
    assess_relationship_risk,
    calculate_success_probability,
    evaluate_market_timing,
    generate_timeline,
    select_strategy,
)
from rentcompass.domain.assumptions import DEFAULT_NEGOTIATION_ASSUMPTIONS, NegotiationAssumptions
from rentcompass.domain.negotiation import (
    ActionItem,
    AdaptationTrigger,
    CommunicationTemplates,
    Guidance,
    LeverageScore,
    MarketContext,
    MarketIntelligence,
    NegotiationMarketSummary,
    Roadmap,
    RoadmapStep,
    SituationContext,
    UserContext,
)

logger = get_logger(__name__)


def _money(x: float) -> str:
    return f"${x:,.0f}"


# =====================================================================
# Communication templates
# =====================================================================


def tone_phrase(user: UserContext) -> str:
    return "respectful and diplomatic" if user.preferred_tone == "diplomatic" else "direct but professional"


def _market_gap_paragraph(current_rent: float, market: MarketContext) -> str:
    median = market.comparable_range.median
    if median <= 0:
        return "[Include market research here]"
    gap = current_rent - median
    pct = int(round_half_up(abs(gap) / median * 100))
    if gap > 0:
        return (
            f"Based on my research, comparable units nearby rent for around {_money(median)}, "
            f"while I currently pay {_money(current_rent)}, about {pct}% above the local median."
        )
    if gap < 0:
        return (
            f"Based on my research, comparable units nearby rent for around {_money(median)}. "
            "I appreciate that my current rent is fair and would like to keep it in line with the market."
        )
    return (
        f"Based on my research, comparable units nearby rent for around {_money(median)}, "
        "in line with what I currently pay."
    )


def market_research_email(user: UserContext, market: MarketContext) -> str:
    return (
        "Subject: Request to Discuss Rent Adjustment\n\n"
        "Dear [Landlord Name],\n\n"
        "I hope this email finds you well. I wanted to reach out regarding my current lease "
        "and discuss the possibility of a rent adjustment based on current market conditions.\n\n"
        f"{_market_gap_paragraph(user.current_rent, market)}\n\n"
        "I value our relationship and would appreciate the opportunity to discuss this further.\n\n"
        "Best regards,\n"
        "[Your name]\n\n"
        f"(Suggested tone: {tone_phrase(user)})"
    )


def initial_request_email(user: UserContext, market: MarketContext, situation: SituationContext) -> str:
    ask = (
        f"an adjustment of {_money(situation.target_reduction)} per month"
        if situation.target_reduction > 0
        else "a rent adjustment"
    )
    return (
        "Subject: Lease Discussion\n\n"
        "Dear [Landlord Name],\n\n"
        f"Thank you for taking the time to consider my request. I would like to propose {ask}.\n\n"
        f"{_market_gap_paragraph(user.current_rent, market)}\n\n"
        "I have enjoyed living here and would like to continue as your tenant. "
        "Please let me know a convenient time to talk.\n\n"
        "Best regards,\n"
        "[Your name]\n\n"
        f"(Suggested tone: {tone_phrase(user)})"
    )


def market_data_email(intelligence: MarketIntelligence, current_rent: float) -> str:
    """Email built from observed local listings and evidence."""
    lines = [
        "Subject: Market-Based Rent Adjustment Request",
        "",
        "Dear [Landlord Name],",
        "",
        "I hope this email finds you well. I wanted to reach out regarding my current lease and discuss "
        "the possibility of a rent adjustment based on current market conditions.",
        "",
        "I've conducted thorough market research and found the following data:",
    ]

    if intelligence.avg_rent:
        avg = intelligence.avg_rent
        diff = current_rent - avg
        pct = int(round_half_up(diff / avg * 100))
        lines += [
            "",
            "Market Analysis:",
            f"- Current rent: {_money(current_rent)}",
            f"- Market average: {_money(avg)}",
            f"- Difference: {_money(diff)} ({'+' if pct > 0 else ''}{pct}%)",
        ]

    comparables = intelligence.comparable_properties[:3]
    if comparables:
        lines += ["", "Comparable Properties:"]
        for i, prop in enumerate(comparables, start=1):
            line = f"- Property {i}: {_money(prop.rent)}"
            if prop.type:
                line += f" ({prop.type})"
            if prop.distance:
                line += f" - {prop.distance}"
            lines.append(line)

    evidence = intelligence.negotiation_evidence[:2]
    if evidence:
        lines += ["", "Market Evidence:"]
        lines += [f"- {point}" for point in evidence]

    lines += [
        "",
        "I value our relationship and believe this adjustment would align my rent with current market "
        "conditions. I'd appreciate the opportunity to discuss this further at your convenience.",
        "",
        "Thank you for your time and consideration.",
        "",
        "Best regards,",
        "[Your Name]",
    ]
    return "\n".join(lines)


PHONE_SCRIPT = (
    "Hi [Landlord Name], I hope you're doing well. I wanted to schedule a time to chat about my lease "
    "and some market research I've done. Would you have 15-20 minutes this week to discuss?"
)


def follow_up_message(user: UserContext) -> str:
    if user.preferred_tone in ("diplomatic", "collaborative"):
        return (
            "Hi [Landlord Name], I just wanted to follow up on my note from last week. "
            "I'm happy to work around your schedule whenever it suits you to talk."
        )
    return (
        "Hi [Landlord Name], following up on my request from last week. "
        "Could we set a time in the next few days to discuss it?"
    )


# =====================================================================
# Steps
# =====================================================================


def _customize_tips(tips: List[str], user: UserContext) -> Tuple[str, ...]:
    out = list(tips)
    if user.tenant_history == "first-time":
        out.append("As a first-time renter, emphasize your stability and reliability")
    if user.landlord_relationship == "strained":
        out.append("Focus on rebuilding trust before making requests")
    return tuple(out)


def _research_step(
    leverage: LeverageScore,
    user: UserContext,
    market: MarketContext,
    intelligence: Optional[MarketIntelligence],
) -> RoadmapStep:
    if intelligence is not None:
        n = len(intelligence.comparable_properties)
        avg = intelligence.avg_rent
        description = (
            f"Based on local market data showing average rents of {_money(avg)}, gather additional "
            "comparable property data to strengthen your negotiation position"
            if avg
            else "Gather comparable property data to support your negotiation"
        )
        actions = (
            ActionItem("research", f"Use provided comparable properties data ({n} properties found)", True, "high"),
            ActionItem("document", "Create comparison summary with real market data", False, "high"),
        )
        metrics = (
            f"Market average: {_money(avg) if avg else 'N/A'}",
            f"Evidence points: {len(intelligence.negotiation_evidence)} identified",
        )
        tips = [
            f"Current rent vs market: {_money(user.current_rent)} vs {_money(avg)}"
            if avg
            else "Current rent vs market: Analysis needed",
            "Key evidence: "
            + (intelligence.negotiation_evidence[0] if intelligence.negotiation_evidence else "Market data supports negotiation"),
        ]
        email = market_data_email(intelligence, user.current_rent)
    else:
        research = (
            "Find 5-7 comparable properties (more needed due to weak market position)"
            if leverage.factors.market < 5
            else "Find 3-5 comparable properties"
        )
        description = "Gather comparable property data to support your negotiation"
        actions = (
            ActionItem("research", research, True, "high"),
            ActionItem("document", "Create comparison summary", False, "high"),
        )
        metrics = ("Clear rent difference established", "Compelling evidence gathered")
        tips = ["Focus on similar properties within 0.5 miles", "Include only active listings from last 30 days"]
        email = market_research_email(user, market)

    return RoadmapStep(
        id=1,
        phase=1,
        title="Market Research",
        description=description,
        status="active",
        difficulty="easy",
        estimated_time="2-3 hours",
        action_items=actions,
        success_metrics=metrics,
        tips=_customize_tips(tips, user),
        risk_factors=("Don't overwhelm with too much data",),
        templates=CommunicationTemplates(email=email),
    )


def generate_steps(
    leverage: LeverageScore,
    user: UserContext,
    market: MarketContext,
    situation: SituationContext,
    intelligence: Optional[MarketIntelligence] = None,
) -> Tuple[RoadmapStep, ...]:
    """
    Research, planning and first contact. Only the first step starts active.
    """
    research = _research_step(leverage, user, market, intelligence)

    planning = RoadmapStep(
        id=2,
        phase=1,
        title="Approach Planning",
        description="Plan your communication strategy and timing",
        status="pending",
        difficulty="medium",
        estimated_time="1 hour",
        action_items=(
            ActionItem("analyze", "Review landlord communication patterns", False, "medium"),
            ActionItem("document", "Draft initial request", False, "high"),
        ),
        success_metrics=("Clear communication plan", "Appropriate tone selected"),
        tips=_customize_tips(
            ["Consider landlord's preferred communication method", "Choose timing when they're not stressed"],
            user,
        ),
        risk_factors=("Avoid approaching during busy periods",),
        templates=CommunicationTemplates(phone_script=PHONE_SCRIPT),
    )

    contact = RoadmapStep(
        id=3,
        phase=2,
        title="Initial Contact",
        description="Make your initial request with supporting evidence",
        status="pending",
        difficulty="hard",
        estimated_time="30 minutes",
        action_items=(
            ActionItem("communicate", "Send initial request email", False, "high"),
            ActionItem("wait", "Allow 3-5 business days for response", True, "medium"),
        ),
        success_metrics=("Request clearly communicated", "Professional tone maintained"),
        tips=_customize_tips(
            ["Be confident but respectful", "Focus on mutual benefits", "Provide specific data"],
            user,
        ),
        risk_factors=("Don't be too aggressive on first approach",),
        templates=CommunicationTemplates(
            email=initial_request_email(user, market, situation),
            follow_up=follow_up_message(user),
        ),
    )

    return research, planning, contact


# =====================================================================
# Guidance, room, triggers
# =====================================================================


def generate_guidance(
    leverage: LeverageScore,
    market: MarketContext,
    situation: SituationContext,
    intelligence: Optional[MarketIntelligence] = None,
    current_rent: Optional[float] = None,
) -> Guidance:
    """Every rule fires independently."""
    recommendations: List[str] = []
    warnings: List[str] = []
    opportunities: List[str] = []
    actions: List[str] = []

    if leverage.total >= 7:
        recommendations.append("Your strong leverage position allows for confident negotiation")
        actions.append("Prepare market research showing rent comparisons")

    if market.current_rent_vs_market == "significantly-above":
        opportunities.append("Your rent is significantly above market - strong negotiation opportunity")

    if situation.time_until_decision < 7:
        warnings.append("Limited time may reduce negotiation flexibility")

    if market.rent_trend == "decreasing":
        opportunities.append("Declining rent trend supports your negotiation position")

    if intelligence is not None:
        avg = intelligence.avg_rent
        if avg:
            if current_rent is not None:
                pct = int(round_half_up(percent_vs_average(current_rent, avg)))
                if pct > 10:
                    opportunities.append(
                        f"Local market data shows your rent is {pct}% above average ({_money(avg)})"
                    )
            actions.insert(0, f"Reference local average rent of {_money(avg)} in your negotiation")
        for evidence in intelligence.negotiation_evidence[:2]:
            actions.append(f"Use market evidence: {evidence}")

    if not actions:
        actions += [
            "Start with market research to build your case",
            "Assess your landlord relationship quality",
        ]

    return Guidance(
        current_recommendations=tuple(recommendations),
        warning_flags=tuple(warnings),
        opportunity_alerts=tuple(opportunities),
        next_best_actions=tuple(actions),
    )


def calculate_negotiation_room(
    market: MarketContext,
    leverage: LeverageScore,
    assumptions: NegotiationAssumptions | None = None,
) -> int:
    """Percent of current rent that is realistically negotiable."""
    a = assumptions or DEFAULT_NEGOTIATION_ASSUMPTIONS
    base = a.negotiation_room_pct[market.current_rent_vs_market]
    return int(round_half_up(base * leverage.total / 10))


ADAPTATION_TRIGGERS: Tuple[AdaptationTrigger, ...] = (
    AdaptationTrigger(
        condition="Landlord responds defensively to market data",
        suggested_adjustment="Shift to relationship-focused approach",
        impact="moderate",
    ),
    AdaptationTrigger(
        condition="New comparable properties listed at lower rents",
        suggested_adjustment="Update market research and increase target reduction",
        impact="major",
    ),
    AdaptationTrigger(
        condition="Market conditions improve significantly",
        suggested_adjustment="Accelerate timeline and increase assertiveness",
        impact="moderate",
    ),
)


def generate_adaptation_triggers() -> Tuple[AdaptationTrigger, ...]:
    # advisory only
    return ADAPTATION_TRIGGERS


# =====================================================================
# Pipeline
# =====================================================================


def build_roadmap(
    user: UserContext,
    market: MarketContext,
    situation: SituationContext,
    assumptions: NegotiationAssumptions | None = None,
    intelligence: Optional[MarketIntelligence] = None,
) -> Roadmap:
    """
    Full negotiation pipeline: enrich market, score leverage, classify
    risk and timing, pick a strategy, then lay out the plan.
    """
    a = assumptions or DEFAULT_NEGOTIATION_ASSUMPTIONS

    market = enhance_market_context(market, intelligence, user.current_rent)
    leverage = calculate_leverage_score(user, market, situation, a)
    risk = assess_relationship_risk(user, situation)
    timing = evaluate_market_timing(market, situation)
    strategy = select_strategy(leverage, risk, timing, user)

    roadmap = Roadmap(
        strategy=strategy,
        success_probability=calculate_success_probability(leverage, strategy, market, user, a),
        leverage_score=leverage,
        relationship_risk=risk,
        market_timing=timing,
        timeline=generate_timeline(strategy, situation, user, a, intelligence),
        steps=generate_steps(leverage, user, market, situation, intelligence),
        guidance=generate_guidance(leverage, market, situation, intelligence, user.current_rent),
        market_summary=NegotiationMarketSummary(
            current_rent=user.current_rent,
            target_rent=user.current_rent - situation.target_reduction,
            market_position=market.current_rent_vs_market,
            comparable_range=market.comparable_range.model_dump(),
            negotiation_room=calculate_negotiation_room(market, leverage, a),
        ),
        adaptation_triggers=generate_adaptation_triggers(),
        evidence_points=tuple(intelligence.negotiation_evidence) if intelligence else (),
    )

    logger.debug(
        "roadmap_built",
        extra={
            "context": {
                "strategy": strategy.type.value,
                "leverage": leverage.total,
                "relationship_risk": risk,
                "timing": timing.value,
            }
        },
    )
    return roadmap

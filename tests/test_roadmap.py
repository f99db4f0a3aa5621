# tests/test_roadmap.py

import json

import pytest

from rentcompass.analysis.leverage import calculate_leverage_score
from rentcompass.analysis.roadmap import (
    build_roadmap,
    calculate_negotiation_room,
    generate_adaptation_triggers,
    generate_guidance,
    generate_steps,
)
from rentcompass.domain.negotiation import (
    ComparableProperty,
    LeverageFactors,
    LeverageScore,
    MarketIntelligence,
    StrategyType,
)

from .fixtures.negotiation import (
    make_market,
    make_situation,
    make_user,
    strong_tenant,
    weak_tenant,
)


def _leverage(total, market=5.0):
    return LeverageScore(
        total=total,
        factors=LeverageFactors(market=market, financial=5.0, relationship=5.0, timing=5.0),
        strengths=(),
        weaknesses=(),
    )


# ---------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------


def test_three_steps_first_active():
    steps = generate_steps(
        _leverage(5.0),
        make_user(),
        make_market(),
        make_situation(),
    )

    assert [s.title for s in steps] == ["Market Research", "Approach Planning", "Initial Contact"]
    assert [s.phase for s in steps] == [1, 1, 2]
    assert [s.status for s in steps] == ["active", "pending", "pending"]
    assert steps[0].action_items[0].description == "Find 3-5 comparable properties"
    assert steps[0].action_items[0].automated
    assert steps[1].templates.phone_script.startswith("Hi [Landlord Name]")
    assert steps[2].templates.follow_up


def test_weak_market_asks_for_more_comparables():
    steps = generate_steps(
        _leverage(4.0, market=3.0),
        make_user(),
        make_market(),
        make_situation(),
    )
    assert steps[0].action_items[0].description == (
        "Find 5-7 comparable properties (more needed due to weak market position)"
    )


def test_tips_customized_for_first_time_and_strained():
    user = make_user(tenant_history="first-time", landlord_relationship="strained")
    steps = generate_steps(
        _leverage(2.0), user, make_market(), make_situation()
    )
    for step in steps:
        assert "As a first-time renter, emphasize your stability and reliability" in step.tips
        assert "Focus on rebuilding trust before making requests" in step.tips


def test_email_reflects_tone_and_market_gap():
    user = make_user(preferred_tone="diplomatic", current_rent=2000.0)
    steps = generate_steps(
        _leverage(5.0), user, make_market(), make_situation()
    )
    email = steps[0].templates.email

    assert "respectful and diplomatic" in email
    assert "$1,800" in email
    assert "11% above the local median" in email

    direct = generate_steps(
        _leverage(5.0),
        make_user(preferred_tone="direct"),
        make_market(),
        make_situation(),
    )
    assert "direct but professional" in direct[0].templates.email


# ---------------------------------------------------------------------
# Guidance
# ---------------------------------------------------------------------


def test_guidance_rules_fire_independently():
    market = make_market(current_rent_vs_market="significantly-above", rent_trend="decreasing")
    g = generate_guidance(_leverage(8.0), market, make_situation(time_until_decision=3))

    assert g.current_recommendations == ("Your strong leverage position allows for confident negotiation",)
    assert g.warning_flags == ("Limited time may reduce negotiation flexibility",)
    assert g.opportunity_alerts == (
        "Your rent is significantly above market - strong negotiation opportunity",
        "Declining rent trend supports your negotiation position",
    )
    assert g.next_best_actions == ("Prepare market research showing rent comparisons",)


def test_guidance_defaults_when_nothing_fires():
    g = generate_guidance(_leverage(4.0), make_market(), make_situation())

    assert g.current_recommendations == ()
    assert g.warning_flags == ()
    assert g.next_best_actions == (
        "Start with market research to build your case",
        "Assess your landlord relationship quality",
    )


def test_guidance_with_local_evidence():
    intel = MarketIntelligence(
        avg_rent=1500.0,
        negotiation_evidence=["Vacancy rose to 7%", "Two new buildings opened", "Third point"],
    )
    g = generate_guidance(_leverage(4.0), make_market(), make_situation(), intel, current_rent=1800.0)

    assert g.next_best_actions == (
        "Reference local average rent of $1,500 in your negotiation",
        "Use market evidence: Vacancy rose to 7%",
        "Use market evidence: Two new buildings opened",
    )
    assert "Local market data shows your rent is 20% above average ($1,500)" in g.opportunity_alerts


# ---------------------------------------------------------------------
# Room, triggers
# ---------------------------------------------------------------------


@pytest.mark.parametrize(
    "position,total,expected",
    [
        ("significantly-above", 8.0, 12),
        ("above", 5.0, 5),
        ("at", 5.0, 3),
        ("below", 10.0, 2),
    ],
)
def test_negotiation_room(position, total, expected):
    market = make_market(current_rent_vs_market=position)
    assert calculate_negotiation_room(market, _leverage(total)) == expected


def test_adaptation_triggers_are_fixed():
    triggers = generate_adaptation_triggers()

    assert len(triggers) == 3
    assert triggers[0].condition == "Landlord responds defensively to market data"
    assert triggers[1].impact == "major"

    strong = build_roadmap(*strong_tenant())
    weak = build_roadmap(*weak_tenant())
    assert strong.strategy.type != weak.strategy.type
    assert strong.adaptation_triggers == weak.adaptation_triggers == triggers


# ---------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------


def test_strong_tenant_roadmap():
    user, market, situation = strong_tenant()
    roadmap = build_roadmap(user, market, situation)

    # relationship risk 5 (no strain, not an avoider) blocks the assertive rule
    assert roadmap.relationship_risk == 5.0
    assert roadmap.strategy.type == StrategyType.COLLABORATIVE_APPROACH
    assert roadmap.success_probability.overall == 95
    assert roadmap.market_summary.target_rent == pytest.approx(user.current_rent - 100.0)
    assert roadmap.market_summary.negotiation_room == 15
    assert roadmap.leverage_score == calculate_leverage_score(user, market, situation)


def test_weak_tenant_roadmap():
    roadmap = build_roadmap(*weak_tenant())

    assert roadmap.strategy.type == StrategyType.RELATIONSHIP_BUILDING
    assert roadmap.timeline.phases[0].name == "Relationship Repair"
    assert "Limited time may reduce negotiation flexibility" in roadmap.guidance.warning_flags


def test_roadmap_with_intelligence_enriches_market():
    user = make_user(current_rent=1800.0)
    intel = MarketIntelligence(
        comparable_properties=[
            ComparableProperty(rent=1450.0, type="1BR", distance="0.3 miles"),
            ComparableProperty(rent=1550.0),
        ],
        avg_rent=1500.0,
        rent_growth="-1.5%",
        negotiation_evidence=["Vacancy is elevated in the area"],
    )
    roadmap = build_roadmap(user, make_market(), make_situation(), intelligence=intel)

    assert roadmap.market_summary.market_position == "significantly-above"
    assert roadmap.market_summary.comparable_range["min"] == pytest.approx(1450.0)
    assert roadmap.evidence_points == ("Vacancy is elevated in the area",)
    assert roadmap.guidance.next_best_actions[0] == "Reference local average rent of $1,500 in your negotiation"
    email = roadmap.steps[0].templates.email
    assert "Market-Based Rent Adjustment Request" in email
    assert "Property 1: $1,450 (1BR) - 0.3 miles" in email


def test_roadmap_record_is_json_ready():
    roadmap = build_roadmap(*strong_tenant())
    rec = roadmap.to_record()

    assert rec["strategy"]["type"] == roadmap.strategy.type.value
    assert rec["market_timing"] == roadmap.market_timing.value
    assert isinstance(rec["steps"], list)
    json.dumps(rec)

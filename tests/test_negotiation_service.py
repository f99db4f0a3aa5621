# tests/test_negotiation_service.py

import pytest
from pydantic import ValidationError

from rentcompass.domain.negotiation import StrategyType
from rentcompass.services.negotiation import (
    generate_roadmap,
    validate_and_prepare_roadmap_payload,
)


def _camel_payload(**user_overrides):
    user = {
        "currentRent": "$1,800",
        "budgetFlexibility": "flexible",
        "employmentStability": "stable",
        "preferredTone": "diplomatic",
        "riskTolerance": "moderate",
        "conflictStyle": "collaborator",
        "landlordRelationship": "positive",
        "tenantHistory": "veteran",
        "urgency": "moderate",
        "alternativeOptions": "3",
        "movingFlexibility": "willing-to-move",
    }
    user.update(user_overrides)
    return {
        "userContext": user,
        "marketContext": {
            "currentRentVsMarket": "above",
            "localVacancyRate": "6.5%",
            "rentTrend": "decreasing",
            "comparableRange": {"min": 1500, "max": 1900, "median": 1650},
        },
        "situationContext": {
            "leaseStatus": "renewal-period",
            "timeUntilDecision": "45",
            "primaryGoal": "rent-reduction",
            "targetReduction": 150,
        },
    }


def test_camel_case_payload_is_normalized():
    cleaned = validate_and_prepare_roadmap_payload(_camel_payload())

    user = cleaned["user_context"]
    market = cleaned["market_context"]
    situation = cleaned["situation_context"]

    assert user["current_rent"] == pytest.approx(1800.0)
    assert user["alternative_options"] == 3
    assert market["local_vacancy_rate"] == pytest.approx(6.5)
    assert market["comparable_range"]["median"] == 1650
    # omitted fields fall back to defaults
    assert market["seasonal_factor"] == "normal"
    assert situation["time_until_decision"] == 45
    assert cleaned["market_intelligence"] is None


def test_missing_section_is_rejected():
    payload = _camel_payload()
    del payload["situationContext"]
    with pytest.raises(ValueError, match="situation_context"):
        validate_and_prepare_roadmap_payload(payload)


def test_missing_current_rent_is_rejected():
    payload = _camel_payload()
    del payload["userContext"]["currentRent"]
    with pytest.raises(ValueError, match="current_rent"):
        validate_and_prepare_roadmap_payload(payload)


def test_garbage_number_is_rejected():
    with pytest.raises(ValueError):
        validate_and_prepare_roadmap_payload(_camel_payload(currentRent="lots"))


def test_comparable_range_defaults_around_current_rent():
    payload = _camel_payload()
    del payload["marketContext"]["comparableRange"]
    cleaned = validate_and_prepare_roadmap_payload(payload)

    rng = cleaned["market_context"]["comparable_range"]
    assert rng["median"] == pytest.approx(1800.0)
    assert rng["min"] < rng["median"] < rng["max"]


def test_generate_roadmap_end_to_end():
    roadmap = generate_roadmap(_camel_payload())

    # vacancy 6.5, decreasing trend, 45 days -> favorable timing
    assert roadmap.strategy.type in {StrategyType.ASSERTIVE_COLLABORATIVE, StrategyType.COLLABORATIVE_APPROACH}
    assert roadmap.market_summary.target_rent == pytest.approx(1650.0)
    assert "respectful and diplomatic" in roadmap.steps[0].templates.email


def test_unknown_enum_value_raises_validation_error():
    with pytest.raises(ValidationError):
        generate_roadmap(_camel_payload(riskTolerance="reckless"))


def test_market_intelligence_block_is_flattened():
    payload = _camel_payload()
    payload["marketIntelligence"] = {
        "comparableProperties": [{"rent": "$1,500", "address": "1 Main St"}],
        "marketTrends": {"avgRent": 1650, "rentGrowth": "-1%"},
        "locationSpecificData": {"areaDescription": "Quiet suburb"},
        "negotiationEvidence": ["Vacancy up"],
    }
    cleaned = validate_and_prepare_roadmap_payload(payload)
    intel = cleaned["market_intelligence"]

    assert intel["avg_rent"] == pytest.approx(1650.0)
    assert intel["rent_growth"] == "-1%"
    assert intel["area_description"] == "Quiet suburb"
    assert intel["comparable_properties"][0]["rent"] == pytest.approx(1500.0)

    roadmap = generate_roadmap(payload)
    assert roadmap.evidence_points == ("Vacancy up",)
    assert roadmap.market_summary.market_position == "above"

# src/rentcompass/services/negotiation.py

from __future__ import annotations

import re
from typing import Any, Optional

from rentcompass.adapters.logging_utils import get_logger
from rentcompass.analysis.roadmap import build_roadmap
from rentcompass.domain.assumptions import NegotiationAssumptions
from rentcompass.domain.negotiation import (
    MarketContext,
    MarketIntelligence,
    Roadmap,
    SituationContext,
    UserContext,
)

logger = get_logger(__name__)

# Request sections; clients may send them camelCased
REQUIRED_SECTIONS = ["user_context", "market_context", "situation_context"]

REQUIRED_USER_FIELDS = ["current_rent"]
REQUIRED_SITUATION_FIELDS = ["time_until_decision"]

DEFAULT_USER = {
    "budget_flexibility": "moderate",
    "employment_stability": "stable",
    "preferred_tone": "collaborative",
    "risk_tolerance": "moderate",
    "conflict_style": "collaborator",
    "landlord_relationship": "neutral",
    "tenant_history": "experienced",
    "urgency": "moderate",
    "alternative_options": 1,
    "moving_flexibility": "willing-to-move",
}

DEFAULT_MARKET = {
    "current_rent_vs_market": "at",
    "market_position": 50.0,
    "property_condition": "good",
    "landlord_type": "individual",
    "local_vacancy_rate": 5.0,
    "rent_trend": "stable",
    "seasonal_factor": "normal",
    "economic_indicators": "stable",
    "negotiation_leverage": "moderate",
    "market_power_balance": "balanced",
}

DEFAULT_SITUATION = {
    "lease_status": "active-lease",
    "primary_goal": "rent-reduction",
    "target_reduction": 0.0,
    "competing_offers": False,
    "life_events": "none",
    "market_event": "none",
}

USER_NUMERIC = ("current_rent", "income")
MARKET_NUMERIC = ("market_position", "local_vacancy_rate")
SITUATION_NUMERIC = ("target_reduction",)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _snake_keys(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {_snake(str(k)): _snake_keys(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_snake_keys(v) for v in obj]
    return obj


def _to_num(val: Any, field_name: str) -> float:
    """
    Coerce values like:
      - 1800
      - "1800"
      - "$1,800"
      - "6.5%"
    into float.
    """
    if val is None:
        raise ValueError(f"Missing required numeric field: {field_name}")
    if isinstance(val, bool):
        raise ValueError(f"Invalid type for {field_name}: {type(val)}")
    if isinstance(val, (int, float)):
        return float(val)
    if isinstance(val, str):
        s = val.strip().replace("$", "").replace(",", "")
        if s.endswith("%"):
            s = s[:-1]
        try:
            return float(s)
        except ValueError:
            raise ValueError(f"Invalid number for {field_name}: {val!r}")
    raise ValueError(f"Invalid type for {field_name}: {type(val)}")


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    val = raw.get(name)
    if not isinstance(val, dict):
        raise ValueError(f"Missing required context: {name}")
    return dict(val)


def _intelligence(raw: dict[str, Any]) -> Optional[dict[str, Any]]:
    data = raw.get("market_intelligence") or raw.get("market_data")
    if not isinstance(data, dict):
        return None

    # flatten the nested trend/location blocks
    trends = data.get("market_trends") or {}
    area = data.get("location_specific_data") or {}
    comps = [
        {**c, "rent": _to_num(c.get("rent"), "comparable_properties.rent")}
        for c in data.get("comparable_properties") or []
        if isinstance(c, dict)
    ]
    out: dict[str, Any] = {
        "comparable_properties": comps,
        "negotiation_evidence": data.get("negotiation_evidence") or [],
    }
    for key in ("avg_rent", "median_rent", "rent_growth", "vacancy_rate", "market_condition"):
        val = data.get(key, trends.get(key))
        if val is not None:
            out[key] = val
    area_desc = data.get("area_description") or area.get("area_description")
    if area_desc:
        out["area_description"] = area_desc
    for key in ("avg_rent", "median_rent"):
        if key in out:
            out[key] = _to_num(out[key], key)
    return out


def validate_and_prepare_roadmap_payload(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Normalize an incoming roadmap request.

    Responsibilities:
      - Accept camelCase or snake_case keys at any depth.
      - Ensure the three context sections and their core fields exist.
      - Coerce numeric fields ("$1,800", "6.5%") to floats.
      - Fill omitted categorical fields with neutral defaults.

    Enum values are not checked here; pydantic rejects bad ones when the
    models are built.
    """
    data = _snake_keys(raw)

    user, market, situation = (_section(data, name) for name in REQUIRED_SECTIONS)

    for f in REQUIRED_USER_FIELDS:
        if f not in user:
            raise ValueError(f"Missing required field: user_context.{f}")
    for f in REQUIRED_SITUATION_FIELDS:
        if f not in situation:
            raise ValueError(f"Missing required field: situation_context.{f}")

    user = {**DEFAULT_USER, **{k: v for k, v in user.items() if v is not None}}
    market = {**DEFAULT_MARKET, **{k: v for k, v in market.items() if v is not None}}
    situation = {**DEFAULT_SITUATION, **{k: v for k, v in situation.items() if v is not None}}

    for f in USER_NUMERIC:
        if f in user:
            user[f] = _to_num(user[f], f)
    for f in MARKET_NUMERIC:
        market[f] = _to_num(market[f], f)
    for f in SITUATION_NUMERIC:
        situation[f] = _to_num(situation[f], f)

    situation["time_until_decision"] = int(_to_num(situation["time_until_decision"], "time_until_decision"))
    user["alternative_options"] = int(_to_num(user["alternative_options"], "alternative_options"))

    # without a comparable range, centre one on the tenant's own rent
    if "comparable_range" not in market:
        rent = user["current_rent"]
        market["comparable_range"] = {"min": rent * 0.9, "max": rent * 1.1, "median": rent}

    return {
        "user_context": user,
        "market_context": market,
        "situation_context": situation,
        "market_intelligence": _intelligence(data),
    }


def generate_roadmap(
    payload: dict[str, Any],
    assumptions: NegotiationAssumptions | None = None,
) -> Roadmap:
    """
    Validate a raw request and build its roadmap.

    Raises ValueError for missing sections or fields and
    pydantic.ValidationError for out-of-range categorical values.
    """
    cleaned = validate_and_prepare_roadmap_payload(payload)

    user = UserContext(**cleaned["user_context"])
    market = MarketContext(**cleaned["market_context"])
    situation = SituationContext(**cleaned["situation_context"])
    intel_data = cleaned["market_intelligence"]
    intelligence = MarketIntelligence(**intel_data) if intel_data is not None else None

    roadmap = build_roadmap(user, market, situation, assumptions, intelligence)

    logger.info(
        "roadmap_generated",
        extra={
            "context": {
                "strategy": roadmap.strategy.type.value,
                "leverage": roadmap.leverage_score.total,
                "success": roadmap.success_probability.overall,
                "with_intelligence": intelligence is not None,
            }
        },
    )
    return roadmap

# src/rentcompass/analysis/market_context.py
from __future__ import annotations

import re
from typing import Any, Dict, Optional

from rentcompass.adapters.logging_utils import get_logger
from rentcompass.domain.negotiation import (
    ComparableRange,
    MarketContext,
    MarketIntelligence,
    RentVsMarket,
)

logger = get_logger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*([+-]?\d+(?:\.\d+)?)")

TENANT_SIGNALS = ("vacancy", "decline")
LANDLORD_SIGNALS = ("competitive", "high demand")


def parse_growth_percent(text: str) -> Optional[float]:
    """'3.5% YoY' -> 3.5; None when the text does not start with a number."""
    m = _LEADING_NUMBER.match(text)
    return float(m.group(1)) if m else None


def percent_vs_average(current_rent: float, avg_rent: float) -> float:
    return (current_rent - avg_rent) / avg_rent * 100.0


def classify_position(percent_above: float) -> RentVsMarket:
    if percent_above > 15:
        return "significantly-above"
    if percent_above > 5:
        return "above"
    if percent_above < -5:
        return "below"
    return "at"


def enhance_market_context(
    market: MarketContext,
    intelligence: Optional[MarketIntelligence],
    current_rent: float,
) -> MarketContext:
    """
    Tighten a declared market context with observed local data.

    Returns a new context; the input is never mutated. Without
    intelligence the context comes back unchanged.
    """
    if intelligence is None:
        return market

    update: Dict[str, Any] = {}

    rents = [p.rent for p in intelligence.comparable_properties]
    if intelligence.avg_rent:
        rents.append(intelligence.avg_rent)
    if intelligence.median_rent:
        rents.append(intelligence.median_rent)
    if rents:
        update["comparable_range"] = ComparableRange(
            min=min(rents),
            max=max(rents),
            median=intelligence.median_rent or float(round(sum(rents) / len(rents))),
        )

    if intelligence.avg_rent:
        update["current_rent_vs_market"] = classify_position(
            percent_vs_average(current_rent, intelligence.avg_rent)
        )

    evidence = [e.lower() for e in intelligence.negotiation_evidence]
    if any(s in e for e in evidence for s in TENANT_SIGNALS):
        update["market_power_balance"] = "tenant-favored"
    elif any(s in e for e in evidence for s in LANDLORD_SIGNALS):
        update["market_power_balance"] = "landlord-favored"

    growth = intelligence.rent_growth
    if growth:
        pct = parse_growth_percent(growth)
        if "-" in growth or "decline" in growth.lower():
            update["rent_trend"] = "decreasing"
        elif "%" in growth and pct is not None and pct > 3:
            update["rent_trend"] = "increasing"

    enhanced = market.model_copy(update=update)

    logger.debug(
        "market_context_enhanced",
        extra={
            "context": {
                "position": enhanced.current_rent_vs_market,
                "power_balance": enhanced.market_power_balance,
                "rent_trend": enhanced.rent_trend,
                "comparable_range": enhanced.comparable_range.model_dump(),
            }
        },
    )
    return enhanced

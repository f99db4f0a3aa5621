# src/rentcompass/analysis/leverage.py
from __future__ import annotations

import math

from rentcompass.adapters.logging_utils import get_logger
from rentcompass.domain.assumptions import DEFAULT_NEGOTIATION_ASSUMPTIONS, NegotiationAssumptions
from rentcompass.domain.negotiation import (
    LeverageFactors,
    LeverageScore,
    MarketContext,
    SituationContext,
    UserContext,
)

logger = get_logger(__name__)

BASELINE = 5.0

STRENGTH_LABELS = {
    "market": "Strong market position",
    "financial": "Financial stability",
    "relationship": "Good landlord relationship",
    "timing": "Optimal timing",
}

WEAKNESS_LABELS = {
    "market": "Weak market position",
    "financial": "Financial constraints",
    "relationship": "Strained relationship",
    "timing": "Poor timing",
}


def round_half_up(x: float, ndigits: int = 0) -> float:
    """Round .5 away from zero for positives (not banker's rounding)."""
    scale = 10 ** ndigits
    return math.floor(x * scale + 0.5) / scale


def _clamp(score: float, lo: float = 0.0, hi: float = 10.0) -> float:
    return max(lo, min(hi, score))


# =====================================================================
# Sub-scores (0-10, baseline 5)
# =====================================================================


def market_leverage(market: MarketContext) -> float:
    score = BASELINE

    if market.current_rent_vs_market == "significantly-above":
        score += 3
    elif market.current_rent_vs_market == "above":
        score += 2
    elif market.current_rent_vs_market == "below":
        score -= 1

    if market.local_vacancy_rate > 7:
        score += 2
    elif market.local_vacancy_rate > 5:
        score += 1
    elif market.local_vacancy_rate < 3:
        score -= 2

    if market.rent_trend == "decreasing":
        score += 2
    elif market.rent_trend == "increasing":
        score -= 1

    if market.market_power_balance == "tenant-favored":
        score += 2
    elif market.market_power_balance == "landlord-favored":
        score -= 2

    return _clamp(score)


def financial_leverage(user: UserContext) -> float:
    score = BASELINE

    if user.budget_flexibility == "flexible":
        score += 2
    elif user.budget_flexibility == "tight":
        score -= 2

    if user.employment_stability == "stable":
        score += 1
    elif user.employment_stability == "unstable":
        score -= 2

    if user.alternative_options >= 3:
        score += 2
    elif user.alternative_options == 0:
        score -= 2

    if user.moving_flexibility == "eager-to-move":
        score += 1
    elif user.moving_flexibility == "committed-to-stay":
        score -= 1

    return _clamp(score)


def relationship_leverage(user: UserContext) -> float:
    score = BASELINE

    if user.landlord_relationship == "positive":
        score += 3
    elif user.landlord_relationship == "neutral":
        score += 1
    elif user.landlord_relationship == "strained":
        score -= 3

    if user.tenant_history == "veteran":
        score += 2
    elif user.tenant_history == "experienced":
        score += 1
    elif user.tenant_history == "first-time":
        score -= 1

    return _clamp(score)


def timing_leverage(situation: SituationContext, market: MarketContext) -> float:
    score = BASELINE

    if market.seasonal_factor == "slow":
        score += 2
    elif market.seasonal_factor == "peak":
        score -= 1

    if situation.time_until_decision > 30:
        score += 1
    elif situation.time_until_decision < 7:
        score -= 2

    if situation.lease_status == "renewal-period":
        score += 1
    elif situation.lease_status == "pre-application":
        score -= 1

    return _clamp(score)


# =====================================================================
# Weighted total
# =====================================================================


def calculate_leverage_score(
    user: UserContext,
    market: MarketContext,
    situation: SituationContext,
    assumptions: NegotiationAssumptions | None = None,
) -> LeverageScore:
    """
    Weighted 0-10 leverage score.

    Weights default to market 40%, financial 25%, relationship 20%,
    timing 15%. Any factor >= the strength threshold is listed as a
    strength, any factor <= the weakness threshold as a weakness.
    """
    a = assumptions or DEFAULT_NEGOTIATION_ASSUMPTIONS
    w = a.leverage_weights

    raw = {
        "market": market_leverage(market),
        "financial": financial_leverage(user),
        "relationship": relationship_leverage(user),
        "timing": timing_leverage(situation, market),
    }
    weights = {
        "market": w.market,
        "financial": w.financial,
        "relationship": w.relationship,
        "timing": w.timing,
    }

    total = round_half_up(sum(raw[k] * weights[k] for k in raw), 1)
    factors = {k: round_half_up(v, 1) for k, v in raw.items()}

    strengths = tuple(STRENGTH_LABELS[k] for k, v in factors.items() if v >= a.strength_threshold)
    weaknesses = tuple(WEAKNESS_LABELS[k] for k, v in factors.items() if v <= a.weakness_threshold)

    logger.debug("leverage_score", extra={"context": {"total": total, **factors}})

    return LeverageScore(
        total=total,
        factors=LeverageFactors(**factors),
        strengths=strengths,
        weaknesses=weaknesses,
    )

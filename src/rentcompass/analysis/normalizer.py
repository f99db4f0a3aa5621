# src/rentcompass/analysis/normalizer.py
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Sequence

from rentcompass.adapters.logging_utils import get_logger
from rentcompass.domain.assumptions import DEFAULT_FORECAST_ASSUMPTIONS, ForecastAssumptions
from rentcompass.domain.prediction import (
    CurrentRentEstimate,
    DataQualityAssessment,
    SourceContribution,
)
from rentcompass.domain.timeseries import RentSource, TimeSeriesPoint, points_for, sources_in

logger = get_logger(__name__)

DAYS_PER_MONTH = 30.0

GOVERNMENT_BEDROOM_COLUMNS = (
    "studio_fmr",
    "one_br_fmr",
    "two_br_fmr",
    "three_br_fmr",
    "four_br_fmr",
)


# =====================================================================
# Row -> point normalization
# =====================================================================


def _positive_float(val: Any) -> Optional[float]:
    if val is None:
        return None
    try:
        f = float(val)
    except (TypeError, ValueError):
        return None
    if f != f or f <= 0:  # NaN or non-positive
        return None
    return f


def _optional_float(val: Any) -> Optional[float]:
    if val is None:
        return None
    try:
        f = float(val)
    except (TypeError, ValueError):
        return None
    return None if f != f else f


def _to_date(val: Any) -> Optional[date]:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    s = str(val).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def government_point_from_row(
    row: Mapping[str, Any],
    assumptions: ForecastAssumptions | None = None,
) -> Optional[TimeSeriesPoint]:
    """
    Turn one annual government-baseline row into a normalized point.

    The row carries a rent per bedroom count; we average whatever bedroom
    values are present, then lift the 40th-percentile figure to market
    median with the configured percentile adjustment. The point is dated
    Dec 31 of the row's year.
    """
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS

    try:
        year = int(row["year"])
    except (KeyError, TypeError, ValueError):
        return None

    rents = [r for r in (_positive_float(row.get(c)) for c in GOVERNMENT_BEDROOM_COLUMNS) if r]
    if not rents:
        return None

    raw = sum(rents) / len(rents)
    factor = a.government.percentile_adjustment
    return TimeSeriesPoint(
        date=date(year, 12, 31),
        rent=raw * factor,
        raw_rent=raw,
        source=RentSource.GOVERNMENT_BASELINE,
        adjustment_factor=factor,
    )


def market_point_from_row(row: Mapping[str, Any]) -> Optional[TimeSeriesPoint]:
    """Market-rate rows are already at market median; no adjustment."""
    when = _to_date(row.get("report_date") or row.get("date"))
    rent = _positive_float(row.get("median_rent"))
    if when is None or rent is None:
        return None

    return TimeSeriesPoint(
        date=when,
        rent=rent,
        raw_rent=rent,
        source=RentSource.MARKET_RATE,
        adjustment_factor=1.0,
        mom_change=_optional_float(row.get("month_over_month_change")),
        yoy_change=_optional_float(row.get("year_over_year_change")),
    )


# =====================================================================
# Current rent blend
# =====================================================================


def months_between(earlier: date, now: date) -> float:
    """Age in 30-day months."""
    return (now - earlier).days / DAYS_PER_MONTH


def recency_decay(age_months: float, window_months: float, floor: float = 0.1) -> float:
    """Linear decay to `floor` over `window_months`; non-increasing in age."""
    return max(floor, 1.0 - age_months / window_months)


def _contribution(
    point: TimeSeriesPoint,
    now: date,
    a: ForecastAssumptions,
) -> tuple[RentSource, float, float, float, float]:
    w = a.weighting_for(point.source)
    age = months_between(point.date, now)
    decay = recency_decay(age, w.decay_window_months, a.decay_floor)
    return point.source, age, w.base_weight, decay, w.base_weight * decay


def estimate_current_rent(
    history: Sequence[TimeSeriesPoint],
    now: date,
    assumptions: ForecastAssumptions | None = None,
) -> Optional[CurrentRentEstimate]:
    """
    Blend the latest reading of each source into one current-rent figure.

    Returns None only when there is no history at all.

    Only the most recent `recent_window_points` points are considered when
    looking for a second source; a single-source window uses the latest
    point of the whole history directly.
    """
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS
    if not history:
        return None

    recent = list(history)[-a.recent_window_points:]
    gov = points_for(recent, RentSource.GOVERNMENT_BASELINE)
    mkt = points_for(recent, RentSource.MARKET_RATE)

    if gov and mkt:
        latest = [gov[-1], mkt[-1]]
    else:
        latest = [history[-1]]

    parts = [(p, _contribution(p, now, a)) for p in latest]
    total_weight = sum(c[4] for _, c in parts)

    contributions = tuple(
        SourceContribution(
            source=src,
            rent=p.rent,
            age_months=age,
            base_weight=base,
            decay_factor=decay,
            weight=weight,
            share=weight / total_weight,
        )
        for p, (src, age, base, decay, weight) in parts
    )
    rent = sum(c.rent * c.weight for c in contributions) / total_weight

    if len(contributions) > 1:
        logger.debug(
            "blended_current_rent",
            extra={
                "context": {
                    "rent": rent,
                    "shares": {c.source.value: round(c.share, 4) for c in contributions},
                }
            },
        )

    return CurrentRentEstimate(rent=rent, contributions=contributions)


# =====================================================================
# Data quality
# =====================================================================


def _mean_rent(points: Sequence[TimeSeriesPoint]) -> float:
    return sum(p.rent for p in points) / len(points)


def relative_gap(a: float, b: float) -> float:
    return abs(a - b) / max(a, b)


def recent_source_gap(history: Sequence[TimeSeriesPoint], window: int) -> Optional[float]:
    """
    Relative gap between the two sources' means over each one's latest
    `window` points. None unless both sources are present.
    """
    gov = points_for(history, RentSource.GOVERNMENT_BASELINE)[-window:]
    mkt = points_for(history, RentSource.MARKET_RATE)[-window:]
    if not gov or not mkt:
        return None
    return relative_gap(_mean_rent(gov), _mean_rent(mkt))


def _clamp(x: float, lo: float = 0.1, hi: float = 1.0) -> float:
    return min(hi, max(lo, x))


def assess_data_quality(
    history: Sequence[TimeSeriesPoint],
    now: date,
    assumptions: ForecastAssumptions | None = None,
) -> DataQualityAssessment:
    """
    Score how much to trust a history.

    score: 0.5 base, plus bonuses for recency (<=3/6/12 months),
    quantity (>=60/36/24/12 points) and source diversity (+0.15 both,
    +0.1 more if both have points in the last two years, +0.05 single).

    percentile_confidence: 0.8 base; with both sources, compare the mean
    of each one's latest points after percentile adjustment.
    """
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS

    if not history:
        return DataQualityAssessment(
            score=0.1,
            percentile_confidence=0.1,
            months_old=float("inf"),
            data_points=0,
            sources=(),
            source_breakdown={s: 0 for s in RentSource},
            source_agreement=None,
            has_recent_overlap=False,
        )

    score = 0.5

    months_old = months_between(history[-1].date, now)
    if months_old <= 3:
        score += 0.2
    elif months_old <= 6:
        score += 0.15
    elif months_old <= 12:
        score += 0.1

    n = len(history)
    if n >= 60:
        score += 0.2
    elif n >= 36:
        score += 0.15
    elif n >= 24:
        score += 0.1
    elif n >= 12:
        score += 0.05

    gov = points_for(history, RentSource.GOVERNMENT_BASELINE)
    mkt = points_for(history, RentSource.MARKET_RATE)
    both = bool(gov) and bool(mkt)

    overlap = False
    if both:
        score += 0.15
        cutoff = now - timedelta(days=a.overlap_window_days)
        overlap = any(p.date > cutoff for p in gov) and any(p.date > cutoff for p in mkt)
        if overlap:
            score += 0.1
    else:
        score += 0.05

    percentile_confidence = 0.8
    gap = recent_source_gap(history, a.agreement_window_points) if both else None
    if gap is not None:
        if gap < 0.1:
            percentile_confidence += 0.15
        elif gap < 0.2:
            percentile_confidence += 0.1
        elif gap > 0.3:
            percentile_confidence -= 0.1

    return DataQualityAssessment(
        score=_clamp(score),
        percentile_confidence=_clamp(percentile_confidence),
        months_old=months_old,
        data_points=n,
        sources=tuple(sources_in(history)),
        source_breakdown={RentSource.GOVERNMENT_BASELINE: len(gov), RentSource.MARKET_RATE: len(mkt)},
        source_agreement=gap,
        has_recent_overlap=overlap,
    )

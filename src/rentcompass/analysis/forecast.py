# src/rentcompass/analysis/forecast.py
from __future__ import annotations

import math
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, Optional, Sequence

import numpy as np

from rentcompass.adapters.logging_utils import get_logger
from rentcompass.analysis.normalizer import (
    assess_data_quality,
    estimate_current_rent,
    recent_source_gap,
)
from rentcompass.domain.assumptions import DEFAULT_FORECAST_ASSUMPTIONS, ForecastAssumptions
from rentcompass.domain.prediction import (
    PREDICTION_HORIZONS,
    CombinedForecast,
    CurrentRentEstimate,
    DataQualityAssessment,
    LocationForecast,
    MarketCycleAnalysis,
    MarketCycleStage,
    MomentumAnalysis,
    PredictionBounds,
    RentPrediction,
    SeasonalAnalysis,
    TrendAnalysis,
    validate_horizon,
)
from rentcompass.domain.timeseries import (
    Location,
    RentSource,
    TimeSeriesPoint,
    points_for,
    sort_history,
    sources_in,
)

logger = get_logger(__name__)

# Expected rate adjustment (percentage points per year) for each stage.
STAGE_ADJUSTMENTS: Dict[MarketCycleStage, float] = {
    MarketCycleStage.PEAK: -1.5,      # expect cooldown
    MarketCycleStage.GROWTH: 0.5,     # continued growth
    MarketCycleStage.STABLE: 0.0,
    MarketCycleStage.COOLING: -0.5,   # continued softness
    MarketCycleStage.TROUGH: 1.5,     # expect recovery
    MarketCycleStage.UNKNOWN: 0.0,
}

SOURCE_LABELS: Dict[RentSource, str] = {
    RentSource.GOVERNMENT_BASELINE: "government baseline",
    RentSource.MARKET_RATE: "market rate",
}


def _growth_rates(points: Sequence[TimeSeriesPoint]) -> list[float]:
    """Percent change between consecutive points."""
    rates: list[float] = []
    for prev, cur in zip(points, points[1:]):
        if prev.rent > 0:
            rates.append((cur.rent - prev.rent) / prev.rent * 100.0)
    return rates


def dominant_source(history: Sequence[TimeSeriesPoint]) -> Optional[RentSource]:
    """Source with the most points; ties go to the earliest point's source."""
    if not history:
        return None
    counts = {s: len(points_for(history, s)) for s in RentSource}
    best = max(counts.values())
    leaders = [s for s, c in counts.items() if c == best]
    if len(leaders) == 1:
        return leaders[0]
    return history[0].source


# =====================================================================
# 1. Trend
# =====================================================================


def analyze_trend(
    history: Sequence[TimeSeriesPoint],
    assumptions: ForecastAssumptions | None = None,
) -> TrendAnalysis:
    """
    Long-run growth rate of the dominant source.

    Government baseline (annual): year-over-year growth, recent years
    weighted linearly more. Market rate (monthly): mean month-over-month
    growth, compounded to an annual rate.
    """
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS
    if len(history) < a.trend_min_points:
        return TrendAnalysis(annual_growth_rate=0.0, weight=0.0, reliability="low")

    source = dominant_source(history)
    rates = _growth_rates(points_for(history, source))
    n = len(rates)
    if n == 0:
        return TrendAnalysis(annual_growth_rate=0.0, weight=0.0, reliability="low")

    if source == RentSource.GOVERNMENT_BASELINE:
        weights = [(i + 1) / n for i in range(n)]
        weighted = sum(r * w for r, w in zip(rates, weights)) / sum(weights)
        return TrendAnalysis(
            annual_growth_rate=weighted,
            weight=min(0.4, 0.2 + n * 0.05),
            reliability="high" if n >= 3 else "medium",
            data_points=n,
        )

    if source == RentSource.MARKET_RATE:
        avg_monthly = float(np.mean(rates))
        annual = (math.pow(1 + avg_monthly / 100.0, 12) - 1) * 100.0
        return TrendAnalysis(
            annual_growth_rate=annual,
            weight=min(0.35, 0.15 + n * 0.002),
            reliability="high" if n >= 24 else "medium",
            data_points=n,
        )

    raise ValueError(f"unknown rent source: {source!r}")


# =====================================================================
# 2. Seasonality
# =====================================================================


def analyze_seasonality(
    history: Sequence[TimeSeriesPoint],
    horizon_months: int,
    now: date,
    assumptions: ForecastAssumptions | None = None,
) -> SeasonalAnalysis:
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS

    current_month = now.month - 1
    target_month = (current_month + horizon_months) % 12

    buckets: Dict[int, list[float]] = defaultdict(list)
    for p in history:
        buckets[p.date.month - 1].append(p.rent)

    if not buckets:
        return SeasonalAnalysis(
            adjustment=0.0,
            weight=0.0,
            reliability="low",
            current_month=current_month,
            target_month=target_month,
        )

    monthly_avg = {m: float(np.mean(v)) for m, v in sorted(buckets.items())}
    overall = float(np.mean(list(monthly_avg.values())))

    def factor(month: int) -> float:
        avg = monthly_avg.get(month)
        return avg / overall if avg is not None else 1.0

    adjustment = (factor(target_month) / factor(current_month) - 1.0) * 100.0
    observed = len(monthly_avg)

    return SeasonalAnalysis(
        adjustment=adjustment,
        weight=0.15 if observed >= a.seasonal_min_months else 0.05,
        reliability="high" if observed >= 12 else "low",
        current_month=current_month,
        target_month=target_month,
        months_observed=observed,
    )


# =====================================================================
# 3. Market cycle
# =====================================================================


def classify_cycle_stage(avg_growth: float, volatility: float) -> MarketCycleStage:
    """First match wins."""
    if avg_growth > 8 and volatility < 3:
        return MarketCycleStage.PEAK
    if avg_growth > 3 and volatility < 4:
        return MarketCycleStage.GROWTH
    if avg_growth < -2 and volatility > 4:
        return MarketCycleStage.TROUGH
    if avg_growth < 2 and volatility > 3:
        return MarketCycleStage.COOLING
    return MarketCycleStage.STABLE


def analyze_market_cycle(
    history: Sequence[TimeSeriesPoint],
    assumptions: ForecastAssumptions | None = None,
) -> MarketCycleAnalysis:
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS
    window = a.cycle_window_points

    if len(history) < window:
        return MarketCycleAnalysis(stage=MarketCycleStage.UNKNOWN, adjustment=0.0, weight=0.0)

    recent = list(history)[-window:]
    annualized: list[float] = []
    for prev, cur in zip(recent, recent[1:]):
        growth = (cur.rent - prev.rent) / prev.rent * 100.0
        # monthly readings annualize by x12; annual readings already are
        annualized.append(growth * 12 if cur.source == RentSource.MARKET_RATE else growth)

    if not annualized:
        return MarketCycleAnalysis(stage=MarketCycleStage.UNKNOWN, adjustment=0.0, weight=0.0)

    avg = float(np.mean(annualized))
    vol = float(np.std(annualized))  # population std-dev
    stage = classify_cycle_stage(avg, vol)

    return MarketCycleAnalysis(
        stage=stage,
        adjustment=STAGE_ADJUSTMENTS[stage],
        weight=0.2,
        avg_recent_growth=avg,
        growth_volatility=vol,
        data_points=len(annualized),
    )


# =====================================================================
# 4. Momentum
# =====================================================================


def analyze_momentum(
    history: Sequence[TimeSeriesPoint],
    assumptions: ForecastAssumptions | None = None,
) -> MomentumAnalysis:
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS
    recent = list(history)[-a.momentum_window_points:]

    changes = [
        p.mom_change
        for p in recent
        if p.mom_change is not None and math.isfinite(p.mom_change)
    ]
    if not changes:
        return MomentumAnalysis(rate=0.0, weight=0.0)

    return MomentumAnalysis(
        rate=float(np.mean(changes)) * 12,
        weight=0.25,
        reliability="high" if len(changes) >= 3 else "medium",
        data_points=len(changes),
    )


# =====================================================================
# Combination, confidence, bounds
# =====================================================================


def _source_line(quality: DataQualityAssessment, assumptions: ForecastAssumptions) -> Optional[str]:
    has_gov = RentSource.GOVERNMENT_BASELINE in quality.sources
    has_mkt = RentSource.MARKET_RATE in quality.sources
    pct = (assumptions.government.percentile_adjustment - 1.0) * 100.0

    if has_gov and has_mkt:
        return (
            f"Data sources: government baseline (40th percentile, adjusted {pct:+.0f}%) "
            "+ market rate (market median)"
        )
    if has_gov:
        return "Data source: government baseline (40th percentile, adjusted to market median)"
    if has_mkt:
        return "Data source: market rate (35th-65th percentile median)"
    return None


def combine_models(
    current_rent: float,
    horizon_months: int,
    trend: TrendAnalysis,
    seasonal: SeasonalAnalysis,
    cycle: MarketCycleAnalysis,
    momentum: MomentumAnalysis,
    quality: DataQualityAssessment,
    assumptions: ForecastAssumptions | None = None,
) -> CombinedForecast:
    """
    Sum the weighted sub-analyses into an annual growth rate, damp it by
    data quality, then scale it to the horizon.
    """
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS
    factors: list[str] = []

    annual = trend.annual_growth_rate * trend.weight
    if trend.weight > 0:
        factors.append(f"Historical trend: {trend.annual_growth_rate:.1f}% annually")

    if seasonal.weight > 0 and abs(seasonal.adjustment) > a.seasonal_min_adjustment:
        annual += seasonal.adjustment * seasonal.weight
        factors.append(f"Seasonal effect: {seasonal.adjustment:+.1f}%")

    if cycle.weight > 0:
        annual += cycle.adjustment * cycle.weight
        factors.append(f"Market cycle: {cycle.stage.value} stage")

    # shorter horizons lean harder on recent momentum
    if momentum.weight > 0 and horizon_months <= 12:
        annual += momentum.rate * momentum.weight * (12 / horizon_months)
        if abs(momentum.rate) > 1:
            factors.append(f"Recent momentum: {momentum.rate:+.1f}% annually")

    annual *= quality.score * quality.percentile_confidence

    line = _source_line(quality, a)
    if line:
        factors.append(line)

    total = annual / 12 * horizon_months
    return CombinedForecast(
        predicted_rent=current_rent * (1 + total / 100.0),
        change_percent=total,
        annual_growth_rate=annual,
        key_factors=tuple(factors),
    )


def calculate_confidence(
    history: Sequence[TimeSeriesPoint],
    combined: CombinedForecast,
    quality: DataQualityAssessment,
    assumptions: ForecastAssumptions | None = None,
) -> float:
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS

    confidence = 0.4
    confidence += quality.score * 0.25
    confidence += quality.percentile_confidence * 0.15

    change = abs(combined.change_percent)
    if change <= 15:
        confidence += 0.15
    if change <= 8:
        confidence += 0.1

    confidence += 0.1 if len(sources_in(history)) > 1 else 0.05

    gap = recent_source_gap(history, a.alignment_window_points)
    if gap is not None:
        confidence += (1 - min(0.3, gap)) * 0.1

    if -10 <= combined.change_percent <= 25:
        confidence += 0.1

    return min(1.0, max(0.1, confidence))


def calculate_bounds(
    predicted_rent: float,
    confidence: float,
    assumptions: ForecastAssumptions | None = None,
) -> PredictionBounds:
    """Wider for lower confidence, never below -30% or above +50%."""
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS
    uncertainty = (1 - confidence) * a.bounds_max_uncertainty
    spread = predicted_rent * uncertainty
    return PredictionBounds(
        lower=max(predicted_rent * a.bounds_floor_ratio, predicted_rent - spread),
        upper=min(predicted_rent * a.bounds_ceiling_ratio, predicted_rent + spread),
    )


# =====================================================================
# Entry points
# =====================================================================


def predict_rent(
    location: Location,
    history: Sequence[TimeSeriesPoint],
    current: CurrentRentEstimate,
    horizon_months: int,
    now: date,
    assumptions: ForecastAssumptions | None = None,
    quality: DataQualityAssessment | None = None,
) -> Optional[RentPrediction]:
    """
    Forecast one (location, horizon).

    Returns None when the history is too short; callers skip the location.
    """
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS
    validate_horizon(horizon_months)

    series = sort_history(history)
    if len(series) < a.min_history_points:
        return None

    quality = quality or assess_data_quality(series, now, a)
    trend = analyze_trend(series, a)
    seasonal = analyze_seasonality(series, horizon_months, now, a)
    cycle = analyze_market_cycle(series, a)
    momentum = analyze_momentum(series, a)

    combined = combine_models(current.rent, horizon_months, trend, seasonal, cycle, momentum, quality, a)
    confidence = calculate_confidence(series, combined, quality, a)
    bounds = calculate_bounds(combined.predicted_rent, confidence, a)

    logger.debug(
        "rent_prediction",
        extra={
            "context": {
                "location_id": location.id,
                "horizon": horizon_months,
                "current_rent": current.rent,
                "predicted_rent": combined.predicted_rent,
                "confidence": confidence,
            }
        },
    )

    return RentPrediction(
        location_id=location.id,
        location_name=location.name,
        location_type=location.type,
        prediction_date=now,
        horizon_months=horizon_months,
        current_rent=current.rent,
        predicted_rent=combined.predicted_rent,
        change_percent=combined.change_percent,
        annual_growth_rate=combined.annual_growth_rate,
        confidence=confidence,
        lower_bound=bounds.lower,
        upper_bound=bounds.upper,
        market_cycle_stage=cycle.stage,
        key_factors=combined.key_factors,
        data_sources=tuple(sources_in(series)),
        contributions={
            "trend_contribution": trend.weight,
            "seasonal_contribution": seasonal.weight,
            "market_cycle_contribution": cycle.weight,
            "momentum_contribution": momentum.weight,
            "data_quality_score": quality.score,
        },
        model_version=a.model_version,
    )


def predict_location(
    location: Location,
    history: Iterable[TimeSeriesPoint],
    now: date,
    horizons: Sequence[int] = PREDICTION_HORIZONS,
    assumptions: ForecastAssumptions | None = None,
) -> LocationForecast:
    """
    Normalize a location's history and forecast every requested horizon.

    Never raises for short or empty histories; the result carries a
    skipped_reason instead so a batch can partially succeed.
    """
    a = assumptions or DEFAULT_FORECAST_ASSUMPTIONS
    for h in horizons:
        validate_horizon(h)

    series = sort_history(history)
    if len(series) < a.min_history_points:
        return LocationForecast(
            location_id=location.id,
            predictions=[],
            skipped_reason="insufficient_history",
        )

    current = estimate_current_rent(series, now, a)
    if current is None:
        return LocationForecast(
            location_id=location.id,
            predictions=[],
            skipped_reason="no_current_rent",
        )

    quality = assess_data_quality(series, now, a)
    predictions = [
        p
        for p in (predict_rent(location, series, current, h, now, a, quality) for h in horizons)
        if p is not None
    ]

    return LocationForecast(
        location_id=location.id,
        predictions=predictions,
        current_rent=current,
        data_quality=quality,
    )

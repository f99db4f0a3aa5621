# tests/test_normalizer.py

from datetime import date, timedelta

import pytest
from hypothesis import given, strategies as st

from rentcompass.analysis.normalizer import (
    assess_data_quality,
    estimate_current_rent,
    government_point_from_row,
    market_point_from_row,
    months_between,
    recency_decay,
)
from rentcompass.domain.timeseries import RentSource, TimeSeriesPoint, sort_history

from .fixtures.histories import (
    flat_market_series,
    government_point,
    linear_market_series,
    market_point,
    month_after_last,
    month_start,
)


# ---------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------


def test_government_row_averages_available_bedrooms_and_adjusts():
    row = {
        "year": 2023,
        "studio_fmr": 1000,
        "one_br_fmr": "1200",
        "two_br_fmr": None,
        "three_br_fmr": "",
        "four_br_fmr": 0,
    }
    p = government_point_from_row(row)

    assert p is not None
    assert p.date == date(2023, 12, 31)
    assert p.source == RentSource.GOVERNMENT_BASELINE
    assert p.raw_rent == pytest.approx(1100.0)
    assert p.rent == pytest.approx(1100.0 * 1.18)
    assert p.adjustment_factor == pytest.approx(1.18)


def test_government_row_without_rents_or_year_is_skipped():
    assert government_point_from_row({"year": 2023, "studio_fmr": None}) is None
    assert government_point_from_row({"studio_fmr": 1000}) is None


def test_market_row_keeps_change_fields():
    row = {
        "report_date": "2024-03-31",
        "median_rent": "1850.5",
        "month_over_month_change": 0.4,
        "year_over_year_change": None,
    }
    p = market_point_from_row(row)

    assert p is not None
    assert p.date == date(2024, 3, 31)
    assert p.rent == pytest.approx(1850.5)
    assert p.adjustment_factor == 1.0
    assert p.mom_change == pytest.approx(0.4)
    assert p.yoy_change is None


def test_market_row_with_bad_date_is_skipped():
    assert market_point_from_row({"report_date": "not a date", "median_rent": 1500}) is None
    assert market_point_from_row({"report_date": "2024-01-01", "median_rent": -5}) is None


def test_point_rejects_non_positive_rent():
    with pytest.raises(ValueError):
        TimeSeriesPoint(date=date(2024, 1, 1), rent=0.0, raw_rent=0.0, source=RentSource.MARKET_RATE)


# ---------------------------------------------------------------------
# Current rent
# ---------------------------------------------------------------------


def test_two_source_blend_matches_weighted_average():
    now = date(2024, 7, 1)
    one_month_ago = now - timedelta(days=30)
    gov = TimeSeriesPoint(
        date=one_month_ago,
        rent=1180.0,
        raw_rent=1000.0,
        source=RentSource.GOVERNMENT_BASELINE,
        adjustment_factor=1.18,
    )
    mkt = market_point(one_month_ago, 1300.0)

    est = estimate_current_rent([gov, mkt], now)

    # 0.35 * (1 - 1/12) vs 0.65 * (1 - 1/6)
    assert est is not None
    assert est.blended
    assert est.rent == pytest.approx(1255.4, abs=0.1)
    shares = {c.source: c.share for c in est.contributions}
    assert sum(shares.values()) == pytest.approx(1.0)
    assert shares[RentSource.MARKET_RATE] > shares[RentSource.GOVERNMENT_BASELINE]


def test_single_source_uses_latest_point():
    history = linear_market_series(n=12)
    est = estimate_current_rent(history, month_after_last(history))

    assert est is not None
    assert not est.blended
    assert est.rent == pytest.approx(history[-1].rent)


def test_empty_history_has_no_current_rent():
    assert estimate_current_rent([], date(2024, 1, 1)) is None


def test_blend_only_looks_at_recent_window():
    # government point falls outside the last 12 points; market alone wins
    history = [government_point(2019, 1000.0)] + linear_market_series(n=12, start=date(2022, 1, 1))
    est = estimate_current_rent(history, month_after_last(history))

    assert est is not None
    assert not est.blended
    assert est.contribution_for(RentSource.MARKET_RATE) is not None
    assert est.contribution_for(RentSource.GOVERNMENT_BASELINE) is None


def test_age_is_counted_in_thirty_day_months():
    assert months_between(date(2024, 1, 1), date(2024, 3, 1)) == pytest.approx(2.0)
    assert months_between(date(2024, 1, 1), date(2024, 1, 1)) == 0.0


def test_sort_history_orders_by_date():
    history = linear_market_series(n=5)
    assert sort_history(reversed(history)) == history


@given(
    age=st.floats(min_value=0.0, max_value=200.0),
    extra=st.floats(min_value=0.0, max_value=50.0),
    window=st.sampled_from([6.0, 12.0]),
)
def test_recency_decay_is_non_increasing_and_floored(age, extra, window):
    younger = recency_decay(age, window)
    older = recency_decay(age + extra, window)

    assert older <= younger
    assert 0.1 <= older <= 1.0


def test_older_latest_point_carries_less_blend_weight():
    now = date(2024, 1, 15)
    fresh = estimate_current_rent(flat_market_series(n=12, start=date(2023, 1, 1)), now)
    stale = estimate_current_rent(flat_market_series(n=12, start=date(2022, 12, 1)), now)

    # 1.5 vs 2.5 months old over a 6-month window
    assert fresh.contribution_for(RentSource.MARKET_RATE).weight == pytest.approx(0.65 * 0.75)
    assert stale.contribution_for(RentSource.MARKET_RATE).weight < fresh.contribution_for(RentSource.MARKET_RATE).weight


@given(offset=st.integers(min_value=0, max_value=12))
def test_blend_weight_never_grows_with_age(offset):
    now = date(2025, 1, 15)
    base = date(2022, 1, 1)
    newer = estimate_current_rent(flat_market_series(n=12, start=month_start(base, offset + 1)), now)
    older = estimate_current_rent(flat_market_series(n=12, start=month_start(base, offset)), now)

    assert (
        older.contribution_for(RentSource.MARKET_RATE).weight
        <= newer.contribution_for(RentSource.MARKET_RATE).weight
    )


def test_stale_reading_bottoms_out_at_floor():
    assert recency_decay(100.0, 6.0) == pytest.approx(0.1)


# ---------------------------------------------------------------------
# Data quality
# ---------------------------------------------------------------------


def test_long_fresh_single_source_quality():
    history = flat_market_series(n=60, start=date(2019, 1, 1))
    q = assess_data_quality(history, month_after_last(history))

    # 0.5 + 0.2 recency + 0.2 quantity + 0.05 single source
    assert q.score == pytest.approx(0.95)
    assert q.percentile_confidence == pytest.approx(0.8)
    assert not q.multi_source
    assert q.source_agreement is None


def test_overlapping_sources_boost_quality_and_clamp():
    market = linear_market_series(n=24, start=date(2022, 1, 1))
    gov = [government_point(2022, 1300.0), government_point(2023, 1350.0)]
    history = sorted(market + gov, key=lambda p: p.date)
    q = assess_data_quality(history, month_after_last(history))

    assert q.multi_source
    assert q.has_recent_overlap
    assert q.score == pytest.approx(1.0)
    assert q.source_breakdown[RentSource.GOVERNMENT_BASELINE] == 2
    assert q.source_breakdown[RentSource.MARKET_RATE] == 24


def test_disagreeing_sources_lower_percentile_confidence():
    market = flat_market_series(n=12, rent=2000.0, start=date(2023, 1, 1))
    gov = [government_point(2022, 1000.0), government_point(2023, 1000.0)]
    q = assess_data_quality(sorted(market + gov, key=lambda p: p.date), date(2024, 1, 15))

    # 1180 vs 2000 is a ~41% gap
    assert q.source_agreement == pytest.approx(0.41, abs=0.01)
    assert q.percentile_confidence == pytest.approx(0.7)


def test_empty_history_quality_is_minimal():
    q = assess_data_quality([], date(2024, 1, 1))
    assert q.score == pytest.approx(0.1)
    assert q.data_points == 0


@given(
    n=st.integers(min_value=1, max_value=80),
    rent=st.floats(min_value=200.0, max_value=10_000.0),
    lag_days=st.integers(min_value=0, max_value=2000),
)
def test_quality_scores_stay_in_range(n, rent, lag_days):
    history = flat_market_series(n=n, rent=rent, start=date(2015, 1, 1))
    now = history[-1].date + timedelta(days=lag_days)
    q = assess_data_quality(history, now)

    assert 0.1 <= q.score <= 1.0
    assert 0.1 <= q.percentile_confidence <= 1.0

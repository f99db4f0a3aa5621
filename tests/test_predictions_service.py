# tests/test_predictions_service.py

from datetime import date

import pytest

from rentcompass.adapters.config import config
from rentcompass.adapters.memory_repo import InMemoryHistorySource, InMemoryPredictionSink
from rentcompass.services.predictions import (
    forecast_assumptions_from_config,
    generate_predictions,
)

from .fixtures.histories import COUNTY, METRO, flat_market_series, linear_market_series

NOW = date(2024, 1, 1)


def _source():
    source = InMemoryHistorySource()
    source.add(METRO, linear_market_series(n=24, start=date(2022, 1, 1)))
    source.add(COUNTY, flat_market_series(n=5, start=date(2023, 8, 1)))
    return source


class _ExplodingSource:
    """Raises for one location, delegates the rest."""

    def __init__(self, inner, bad_id):
        self._inner = inner
        self._bad_id = bad_id

    def locations(self):
        return self._inner.locations()

    def history_for(self, location_id):
        if location_id == self._bad_id:
            raise RuntimeError("upstream returned garbage")
        return self._inner.history_for(location_id)


def test_short_history_is_skipped_and_batch_continues():
    source = _source()
    result = generate_predictions(source.locations(), source, NOW, confidence_threshold=0.0)

    assert result.skipped == {COUNTY.id: "insufficient_history"}
    assert len(result.accepted) == 4
    assert {p.location_id for p in result.accepted} == {METRO.id}
    assert result.rejected == []


def test_threshold_splits_accepted_and_rejected():
    source = _source()
    sink = InMemoryPredictionSink()
    result = generate_predictions(
        source.locations(), source, NOW, horizons=[3, 12], confidence_threshold=1.01, sink=sink
    )

    assert result.accepted == []
    assert len(result.rejected) == 2
    assert sink.all() == []
    assert result.summary()["stored"] == 0


def test_only_accepted_predictions_reach_the_sink():
    source = _source()
    sink = InMemoryPredictionSink()
    result = generate_predictions(source.locations(), source, NOW, horizons=[6], confidence_threshold=0.0, sink=sink)

    assert result.stored == 1
    (rec,) = sink.all()
    assert rec["location_id"] == METRO.id
    assert rec["prediction_horizon"] == 6


def test_failing_location_is_isolated():
    inner = _source()
    source = _ExplodingSource(inner, METRO.id)
    result = generate_predictions(source.locations(), source, NOW)

    assert METRO.id in result.failed
    assert "garbage" in result.failed[METRO.id]
    assert COUNTY.id in result.skipped


def test_defaults_come_from_config():
    assumptions = forecast_assumptions_from_config()

    assert config.PREDICTION_CONFIDENCE_THRESHOLD == pytest.approx(0.5)
    assert assumptions.government.percentile_adjustment == pytest.approx(config.GOVERNMENT_PERCENTILE_ADJUSTMENT)
    assert assumptions.model_version == config.MODEL_VERSION


def test_invalid_horizon_fails_the_location_not_the_batch():
    source = _source()
    result = generate_predictions(source.locations(), source, NOW, horizons=[5])

    assert set(result.failed) == {METRO.id, COUNTY.id}

# src/rentcompass/services/predictions.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Sequence

from loguru import logger

from rentcompass.adapters.config import config
from rentcompass.analysis.forecast import predict_location
from rentcompass.domain.assumptions import ForecastAssumptions, SourceWeighting
from rentcompass.domain.ports import HistorySource, PredictionSink
from rentcompass.domain.prediction import RentPrediction
from rentcompass.domain.timeseries import Location


def forecast_assumptions_from_config() -> ForecastAssumptions:
    """Defaults, with the environment-tunable knobs applied."""
    base = ForecastAssumptions()
    return base.model_copy(
        update={
            "government": SourceWeighting(
                base_weight=base.government.base_weight,
                decay_window_months=base.government.decay_window_months,
                percentile_adjustment=config.GOVERNMENT_PERCENTILE_ADJUSTMENT,
            ),
            "model_version": config.MODEL_VERSION,
        }
    )


@dataclass
class PredictionBatchResult:
    accepted: List[RentPrediction] = field(default_factory=list)
    # below threshold; kept for logging only, never stored
    rejected: List[RentPrediction] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    stored: int = 0

    def summary(self) -> Dict[str, Any]:
        return {
            "accepted": len(self.accepted),
            "rejected": len(self.rejected),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "stored": self.stored,
        }


def generate_predictions(
    locations: Sequence[Location],
    history_source: HistorySource,
    now: date,
    horizons: Sequence[int] | None = None,
    confidence_threshold: float | None = None,
    assumptions: ForecastAssumptions | None = None,
    sink: PredictionSink | None = None,
) -> PredictionBatchResult:
    """
    Forecast every location and split results by the confidence threshold.

    One location failing (bad data, unexpected error) is logged and does
    not stop the batch. When a sink is given, only accepted predictions
    are written to it.
    """
    horizons = list(horizons or config.PREDICTION_HORIZONS)
    threshold = config.PREDICTION_CONFIDENCE_THRESHOLD if confidence_threshold is None else confidence_threshold
    assumptions = assumptions or forecast_assumptions_from_config()

    logger.info(
        "Starting prediction batch",
        locations=len(locations),
        horizons=horizons,
        threshold=threshold,
        as_of=now.isoformat(),
    )

    result = PredictionBatchResult()

    for loc in locations:
        try:
            history = history_source.history_for(loc.id)
            forecast = predict_location(loc, history, now, horizons, assumptions)
        except Exception as e:
            logger.exception("Prediction failed", location_id=loc.id)
            result.failed[loc.id] = str(e)
            continue

        if forecast.skipped:
            logger.info("Skipping location", location_id=loc.id, reason=forecast.skipped_reason)
            result.skipped[loc.id] = forecast.skipped_reason or "unknown"
            continue

        for p in forecast.predictions:
            if p.meets_threshold(threshold):
                result.accepted.append(p)
            else:
                result.rejected.append(p)
                logger.debug(
                    "Prediction below confidence threshold",
                    location_id=loc.id,
                    horizon=p.horizon_months,
                    confidence=round(p.confidence, 3),
                )

    if sink is not None and result.accepted:
        result.stored = sink.save_many(p.to_record() for p in result.accepted)

    logger.info("Prediction batch completed", **result.summary())
    return result

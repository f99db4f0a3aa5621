# src/rentcompass/domain/ports.py
from __future__ import annotations

from typing import Any, Iterable, Protocol

from rentcompass.domain.timeseries import Location, TimeSeriesPoint


# ----------------------------
# Rent history input
# ----------------------------

class HistorySource(Protocol):
    def locations(self) -> list[Location]:
        ...

    def history_for(self, location_id: str) -> list[TimeSeriesPoint]:
        ...


# ----------------------------
# Prediction output
# ----------------------------

class PredictionSink(Protocol):
    def save_many(self, records: Iterable[dict[str, Any]]) -> int:
        ...

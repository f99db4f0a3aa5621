from typing import Any, Iterable

from rentcompass.domain.ports import HistorySource, PredictionSink
from rentcompass.domain.timeseries import Location, TimeSeriesPoint


class InMemoryHistorySource(HistorySource):
    def __init__(
        self,
        locations: Iterable[Location] = (),
        histories: dict[str, list[TimeSeriesPoint]] | None = None,
    ) -> None:
        self._locations: dict[str, Location] = {loc.id: loc for loc in locations}
        self._histories: dict[str, list[TimeSeriesPoint]] = dict(histories or {})

    def add(self, location: Location, points: Iterable[TimeSeriesPoint]) -> None:
        self._locations[location.id] = location
        self._histories.setdefault(location.id, []).extend(points)

    def locations(self) -> list[Location]:
        return list(self._locations.values())

    def history_for(self, location_id: str) -> list[TimeSeriesPoint]:
        return list(self._histories.get(location_id, []))


class InMemoryPredictionSink(PredictionSink):
    def __init__(self) -> None:
        self._items: list[dict[str, Any]] = []

    def save_many(self, records: Iterable[dict[str, Any]]) -> int:
        batch = [r.copy() for r in records]
        self._items.extend(batch)
        return len(batch)

    def all(self) -> list[dict[str, Any]]:
        return list(self._items)

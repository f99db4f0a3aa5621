# src/rentcompass/adapters/csv_history.py
from __future__ import annotations

from typing import Any, Callable, Optional

import pandas as pd
from pydantic import ValidationError

from rentcompass.adapters.logging_utils import get_logger
from rentcompass.adapters.memory_repo import InMemoryHistorySource
from rentcompass.analysis.normalizer import government_point_from_row, market_point_from_row
from rentcompass.domain.assumptions import ForecastAssumptions
from rentcompass.domain.timeseries import Location, TimeSeriesPoint

logger = get_logger(__name__)


def read_df(path: str) -> pd.DataFrame:
    if path.endswith(".parquet"):
        return pd.read_parquet(path)
    return pd.read_csv(path)


def _clean(row: dict[str, Any]) -> dict[str, Any]:
    # pandas hands back NaN for blank cells
    return {k: (None if isinstance(v, float) and v != v else v) for k, v in row.items()}


def _location_from_row(row: dict[str, Any], default_type: str) -> Optional[Location]:
    loc_id = row.get("location_id")
    if loc_id is None:
        return None
    try:
        return Location(
            id=str(loc_id),
            name=str(row.get("location_name") or loc_id),
            type=row.get("location_type") or default_type,
            state_code=str(row.get("state_code") or ""),
            state_name=row.get("state_name"),
        )
    except ValidationError:
        return None


def _load_into(
    source: InMemoryHistorySource,
    df: pd.DataFrame,
    default_type: str,
    to_point: Callable[[dict[str, Any]], Optional[TimeSeriesPoint]],
) -> int:
    if "location_id" not in df.columns:
        raise ValueError("missing required column: location_id")

    loaded = skipped = 0
    for raw in df.to_dict(orient="records"):
        row = _clean(raw)
        loc = _location_from_row(row, default_type)
        point = to_point(row) if loc is not None else None
        if loc is None or point is None:
            skipped += 1
            continue
        source.add(loc, [point])
        loaded += 1

    logger.info("history_rows_loaded", extra={"context": {"loaded": loaded, "skipped": skipped}})
    return loaded


def load_histories(
    government_df: pd.DataFrame | None = None,
    market_df: pd.DataFrame | None = None,
    assumptions: ForecastAssumptions | None = None,
) -> InMemoryHistorySource:
    """
    Build a history source from the two tabular feeds.

    Government rows are wide (one rent column per bedroom count, one row per
    year); market rows carry one median rent per report date. Rows that
    cannot be parsed are skipped and counted.
    """
    source = InMemoryHistorySource()
    if government_df is not None:
        _load_into(source, government_df, "county", lambda r: government_point_from_row(r, assumptions))
    if market_df is not None:
        _load_into(source, market_df, "metro", market_point_from_row)
    return source


def load_histories_from_paths(
    government_path: str | None = None,
    market_path: str | None = None,
    assumptions: ForecastAssumptions | None = None,
) -> InMemoryHistorySource:
    return load_histories(
        government_df=read_df(government_path) if government_path else None,
        market_df=read_df(market_path) if market_path else None,
        assumptions=assumptions,
    )

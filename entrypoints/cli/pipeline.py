from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger

from rentcompass.adapters.csv_history import load_histories_from_paths
from rentcompass.adapters.memory_repo import InMemoryPredictionSink
from rentcompass.services.negotiation import generate_roadmap
from rentcompass.services.predictions import (
    forecast_assumptions_from_config,
    generate_predictions,
)

app = typer.Typer(help="Rentcompass pipeline (rent forecasts, negotiation roadmaps).")


@app.command("predict")
def predict_cmd(
    government_csv: Optional[str] = typer.Option(
        None, "--government-csv", help="Annual government-baseline rents (one column per bedroom count)"
    ),
    market_csv: Optional[str] = typer.Option(
        None, "--market-csv", help="Monthly market-rate median rents"
    ),
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Forecast date (YYYY-MM-DD); defaults to today"
    ),
    horizon: Optional[List[int]] = typer.Option(
        None, "--horizon", help="Horizon in months (3, 6, 12 or 24); repeatable"
    ),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", help="Minimum confidence to keep a prediction"
    ),
    output: Optional[str] = typer.Option(
        None, "--output", help="Write accepted records here instead of stdout"
    ),
) -> None:
    """
    Forecast rents for every location found in the input files.
    """
    if not government_csv and not market_csv:
        raise typer.BadParameter("pass --government-csv and/or --market-csv")

    try:
        now = date.fromisoformat(as_of) if as_of else date.today()
    except ValueError:
        raise typer.BadParameter(f"--as-of must be YYYY-MM-DD, got {as_of!r}")

    assumptions = forecast_assumptions_from_config()
    source = load_histories_from_paths(government_csv, market_csv, assumptions)
    sink = InMemoryPredictionSink()

    result = generate_predictions(
        source.locations(),
        source,
        now,
        horizons=horizon or None,
        confidence_threshold=threshold,
        assumptions=assumptions,
        sink=sink,
    )

    text = json.dumps(sink.all(), indent=2, default=str)
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(text)
        logger.info("Wrote predictions", path=output, **result.summary())
    else:
        typer.echo(text)


@app.command("roadmap")
def roadmap_cmd(
    request: str = typer.Argument(..., help="JSON file with userContext, marketContext, situationContext"),
) -> None:
    """
    Build a negotiation roadmap from a request file.
    """
    payload = json.loads(Path(request).read_text())
    roadmap = generate_roadmap(payload)
    typer.echo(json.dumps(roadmap.to_record(), indent=2, default=str))


if __name__ == "__main__":
    app()

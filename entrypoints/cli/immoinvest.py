# entrypoints/cli/immoinvest.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn, Optional

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv())

import pandas as pd
import typer
import uvicorn
from loguru import logger

from immoinvest.adapters.config import config
from immoinvest.analysis.acquisition import (
    generate_acquisition_model,
    snapshots_frame,
    yearly_acquisition_strategy,
)
from immoinvest.analysis.comparison import comparison_frame, compare_scenarios, sensitivity_analysis
from immoinvest.analysis.napkin import analyze_napkin_flip, analyze_napkin_multi
from immoinvest.domain.errors import CalculatorError

app = typer.Typer(help="ImmoInvestPro calculators (napkin, comparison, portfolio growth, API server).")


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot read input file", path=str(path), error=str(e))
        raise typer.Exit(code=2) from e


def _fail(e: CalculatorError) -> NoReturn:
    logger.error("Calculation rejected", error=e.message, field=e.field)
    raise typer.Exit(code=1) from e


def _print_result(result: dict[str, Any]) -> None:
    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))


@app.command("napkin-flip")
def napkin_flip_cmd(
    final_price: float = typer.Option(..., help="Expected resale price"),
    initial_price: float = typer.Option(..., help="Purchase price"),
    renovation_cost: float = typer.Option(0.0, help="Renovation budget"),
) -> None:
    """
    FIP10 estimate of a flip.
    """
    try:
        result = analyze_napkin_flip(
            {"finalPrice": final_price, "initialPrice": initial_price, "renovationCost": renovation_cost}
        )
    except CalculatorError as e:
        _fail(e)
    _print_result(result)


@app.command("napkin-multi")
def napkin_multi_cmd(
    purchase_price: float = typer.Option(..., help="Purchase price"),
    units: int = typer.Option(..., help="Number of units"),
    gross_revenue: float = typer.Option(..., help="Gross yearly revenue"),
) -> None:
    """
    PAR + HIGH-5 estimate of an income property.
    """
    try:
        result = analyze_napkin_multi(
            {"purchasePrice": purchase_price, "units": units, "grossRevenue": gross_revenue}
        )
    except CalculatorError as e:
        _fail(e)
    _print_result(result)


@app.command()
def compare(
    path: Path = typer.Argument(..., help="JSON file: a list of scenarios or {scenarios, options}"),
) -> None:
    """
    Rank scenarios and print the comparison table.
    """
    data = _load_json(path)
    scenarios, options = (data.get("scenarios"), data.get("options")) if isinstance(data, dict) else (data, None)
    try:
        result = compare_scenarios(scenarios, options)
    except CalculatorError as e:
        _fail(e)

    logger.info("Compared scenarios", count=len(result["scenarios"]), best=result["best_overall"]["name"])
    with pd.option_context("display.width", 160, "display.max_columns", None):
        typer.echo(comparison_frame(result).to_string(index=False))
    typer.echo("")
    typer.echo(result["summary"])


@app.command()
def sensitivity(
    path: Path = typer.Argument(..., help="JSON file holding the base scenario"),
    variable: str = typer.Argument(..., help="Field to vary, e.g. purchasePrice"),
    variation: float = typer.Option(10.0, help="Total variation in percent"),
    steps: int = typer.Option(5, help="Steps on each side of the base value"),
) -> None:
    """
    Vary one field of a scenario and rank the variants.
    """
    base = _load_json(path)
    try:
        result = sensitivity_analysis(base, variable, variation, steps)
    except CalculatorError as e:
        _fail(e)

    comparison = result["comparison"]
    criterion = comparison["optimization_criteria"]
    frame = pd.DataFrame(
        [
            {"scenario": r["scenario_name"], criterion: r["summary"][criterion]}
            for r in comparison["ranked_scenarios"]
        ]
    )
    logger.info("Sensitivity computed", variable=variable, scenarios=len(frame))
    typer.echo(frame.to_string(index=False))


@app.command()
def acquisition(
    path: Path = typer.Argument(..., help="JSON file: a strategy with properties, or model parameters"),
) -> None:
    """
    Project portfolio growth year by year.
    """
    data = _load_json(path)
    try:
        if not (isinstance(data, dict) and "properties" in data):
            data = generate_acquisition_model(data)
        result = yearly_acquisition_strategy(data)
    except CalculatorError as e:
        _fail(e)

    typer.echo(snapshots_frame(result).to_string())
    typer.echo("")
    _print_result(result["summary"])


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default: IMMOINVEST_HOST)"),
    port: Optional[int] = typer.Option(None, help="Port (default: IMMOINVEST_PORT)"),
) -> None:
    """
    Run the HTTP API.
    """
    from immoinvest.api.http import app as api

    host = host or config.HOST
    port = port or config.PORT
    logger.info("Starting API", host=host, port=port, env=config.ENV)
    uvicorn.run(api, host=host, port=port)


if __name__ == "__main__":
    app()

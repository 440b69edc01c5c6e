# src/immoinvest/api/http.py
from __future__ import annotations

from typing import Any, Callable

from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse

from immoinvest.adapters.config import config
from immoinvest.adapters.logging_utils import get_logger
from immoinvest.analysis.acquisition import (
    generate_acquisition_model,
    required_units,
    yearly_acquisition_strategy,
)
from immoinvest.analysis.comparison import (
    analyze_scenario,
    compare_by_criterion,
    compare_scenarios,
    portfolio_comparison,
    sensitivity_analysis,
)
from immoinvest.analysis.flip import analyze_flip
from immoinvest.analysis.liquidity import (
    LiquidityCalculator,
    evaluate_liquidity,
    max_price_for_cashflow_per_unit,
)
from immoinvest.analysis.multi import analyze_multi
from immoinvest.analysis.napkin import (
    analyze_napkin_flip,
    analyze_napkin_multi,
    napkin_flip_max_offer,
    napkin_flip_sensitivity,
    napkin_multi_max_offer,
    napkin_multi_sensitivity,
)
from immoinvest.domain.errors import CalculatorError
from immoinvest.domain.formulas import quebec_transfer_tax
from immoinvest.services.validation import prepare_transfer_tax
from .schemas import (
    CompareRequest,
    ComparisonResponse,
    CriteriaRequest,
    LiquidityMaxPriceRequest,
    LiquiditySensitivityRequest,
    PortfolioRequest,
    SensitivityRequest,
)

app = FastAPI(title="ImmoInvestPro")

logger = get_logger(__name__)


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok", "env": config.ENV}


# -----------------------------
# COMPARISON: envelope helpers
# -----------------------------
def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": message})


def _internal_error(message: str, exc: Exception) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "message": message}
    if config.echo_errors:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def _comparison(fn: Callable[..., Any], failure_message: str, *args: Any) -> Any:
    """
    Run a comparison and wrap it in the {success, data} envelope.

    Calculator errors are the caller's fault (400); anything else is ours (500).
    """
    try:
        return ComparisonResponse(success=True, data=fn(*args))
    except CalculatorError as e:
        logger.info("calculator_rejected_payload", extra={"context": {"route": fn.__name__, **e.to_dict()}})
        return _bad_request(str(e))
    except Exception as e:
        logger.exception("comparison_internal_error", extra={"context": {"route": fn.__name__}})
        return _internal_error(failure_message, e)


def _is_empty(value: Any) -> bool:
    return not isinstance(value, list) or len(value) == 0


# -----------------------------
# COMPARISON: endpoints
# -----------------------------
@app.post("/api/comparison/analyze", response_model=ComparisonResponse)
def analyze_endpoint(scenario: dict[str, Any] | None = Body(default=None)) -> Any:
    if not scenario:
        return _bad_request("Vous devez fournir un scénario à analyser")

    def analyze(s: dict[str, Any]) -> dict[str, Any]:
        return {"scenario": s, "analysis": analyze_scenario(s)}

    return _comparison(analyze, "Une erreur est survenue lors de l'analyse du scénario", scenario)


@app.post("/api/comparison/compare", response_model=ComparisonResponse)
def compare_endpoint(body: CompareRequest | None = Body(default=None)) -> Any:
    if body is None or _is_empty(body.scenarios):
        return _bad_request("Vous devez fournir au moins un scénario à comparer")
    return _comparison(
        compare_scenarios,
        "Une erreur est survenue lors de la comparaison des scénarios",
        body.scenarios,
        body.options,
    )


@app.post("/api/comparison/criteria", response_model=ComparisonResponse)
def criteria_endpoint(body: CriteriaRequest | None = Body(default=None)) -> Any:
    if body is None or _is_empty(body.scenarios):
        return _bad_request("Au moins un scénario doit être fourni")
    return _comparison(
        compare_by_criterion,
        "Une erreur est survenue lors de la comparaison des scénarios",
        body.scenarios,
        body.type,
        body.optimization_criteria,
    )


@app.post("/api/comparison/sensitivity", response_model=ComparisonResponse)
def sensitivity_endpoint(body: SensitivityRequest | None = Body(default=None)) -> Any:
    if body is None or not body.base_scenario:
        return _bad_request("Le scénario de base est requis")
    return _comparison(
        sensitivity_analysis,
        "Une erreur est survenue lors de l'analyse de sensibilité",
        body.base_scenario,
        body.variable,
        body.variation_percentage,
        body.steps,
    )


@app.post("/api/comparison/portfolio", response_model=ComparisonResponse)
def portfolio_endpoint(body: PortfolioRequest | None = Body(default=None)) -> Any:
    if body is None or _is_empty(body.projects):
        return _bad_request("Au moins un projet doit être fourni")
    return _comparison(
        portfolio_comparison,
        "Une erreur est survenue lors de la comparaison du portefeuille",
        body.projects,
    )


# -----------------------------
# CALCULATORS: error helper
# -----------------------------
def _calculate(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    try:
        return fn(*args, **kwargs)
    except CalculatorError as e:
        logger.info("calculator_rejected_payload", extra={"context": {"route": fn.__name__, **e.to_dict()}})
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.exception("calculator_internal_error", extra={"context": {"route": fn.__name__}})
        content: dict[str, Any] = {"error": "Une erreur interne est survenue"}
        if config.echo_errors:
            content["detail"] = str(e)
        return JSONResponse(status_code=500, content=content)


# -----------------------------
# CALCULATORS: napkin
# -----------------------------
@app.post("/api/calculators/napkin-flip")
def napkin_flip_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(analyze_napkin_flip, payload)


@app.post("/api/calculators/napkin-flip/offer")
def napkin_flip_offer_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(napkin_flip_max_offer, payload)


@app.post("/api/calculators/napkin-multi")
def napkin_multi_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(analyze_napkin_multi, payload)


@app.post("/api/calculators/napkin-multi/offer")
def napkin_multi_offer_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(napkin_multi_max_offer, payload)


@app.post("/api/calculators/napkin-flip/sensitivity")
def napkin_flip_sensitivity_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    """Body is the napkin FLIP input plus optional {"variations": {field: [pct, ...]}}."""
    variations = payload.get("variations") if payload else None
    return _calculate(napkin_flip_sensitivity, payload, variations)


@app.post("/api/calculators/napkin-multi/sensitivity")
def napkin_multi_sensitivity_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    variations = payload.get("variations") if payload else None
    return _calculate(napkin_multi_sensitivity, payload, variations)


# -----------------------------
# CALCULATORS: detailed
# -----------------------------
@app.post("/api/calculators/flip-detailed")
def flip_detailed_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(analyze_flip, payload)


@app.post("/api/calculators/multi-detailed")
def multi_detailed_endpoint(
    payload: dict[str, Any] | None = Body(default=None),
    advanced: bool = False,
) -> Any:
    return _calculate(analyze_multi, payload, advanced=advanced)


@app.post("/api/calculators/transfer-tax")
def transfer_tax_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    def compute(raw: Any) -> dict[str, Any]:
        return quebec_transfer_tax(**prepare_transfer_tax(raw))

    return _calculate(compute, payload)


# -----------------------------
# CALCULATORS: liquidity
# -----------------------------
@app.post("/api/calculators/liquidity")
def liquidity_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(lambda raw: LiquidityCalculator(raw).liquidity(), payload)


@app.post("/api/calculators/liquidity/max-price")
def liquidity_max_price_endpoint(body: LiquidityMaxPriceRequest | None = Body(default=None)) -> Any:
    def compute(b: LiquidityMaxPriceRequest | None) -> dict[str, Any]:
        calc = LiquidityCalculator(b.model_extra if b is not None else None)
        return {
            "target_cashflow": b.target_cashflow,
            "max_purchase_price": calc.max_purchase_price(b.target_cashflow),
        }

    return _calculate(compute, body)


@app.post("/api/calculators/liquidity/max-price-per-unit")
def liquidity_max_price_per_unit_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(max_price_for_cashflow_per_unit, payload)


@app.post("/api/calculators/liquidity/sensitivity")
def liquidity_sensitivity_endpoint(body: LiquiditySensitivityRequest | None = Body(default=None)) -> Any:
    def compute(b: LiquiditySensitivityRequest | None) -> dict[str, Any]:
        calc = LiquidityCalculator(b.model_extra if b is not None else None)
        return calc.sensitivity(b.parameters, b.variation_percentage, b.steps)

    return _calculate(compute, body)


@app.post("/api/calculators/liquidity/evaluate")
def liquidity_evaluate_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(evaluate_liquidity, payload)


# -----------------------------
# CALCULATORS: portfolio growth
# -----------------------------
@app.post("/api/calculators/yearly-acquisition-strategy")
def yearly_acquisition_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(yearly_acquisition_strategy, payload)


@app.post("/api/calculators/required-units")
def required_units_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(required_units, payload)


@app.post("/api/calculators/generate-acquisition-model")
def acquisition_model_endpoint(payload: dict[str, Any] | None = Body(default=None)) -> Any:
    return _calculate(generate_acquisition_model, payload)

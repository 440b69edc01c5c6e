# src/immoinvest/analysis/comparison.py
"""
Scenario comparison.

compare_scenarios ranks quick FLIP/MULTI analyses on a weighted score.
compare_by_criterion and sensitivity_analysis run the itemized calculators
and rank on a single metric.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic.alias_generators import to_camel, to_snake

from immoinvest.adapters.config import config
from immoinvest.adapters.logging_utils import get_logger
from immoinvest.analysis.flip import analyze_flip
from immoinvest.analysis.multi import analyze_basic_multi
from immoinvest.analysis.quick import quick_flip, quick_multi
from immoinvest.domain.errors import InvalidRangeError, MissingRequiredFieldError
from immoinvest.domain.formulas import ratio
from immoinvest.services.validation import (
    is_flip_scenario,
    prepare_comparison_options,
    prepare_quick_flip,
    prepare_quick_multi,
)

logger = get_logger(__name__)

FLIP = "FLIP"
MULTI = "MULTI"

FLIP_CRITERIA = ("profit", "roi", "annualized_roi")
MULTI_CRITERIA = ("cashflow_per_unit", "cap_rate", "cash_on_cash", "net_operating_income")

BELOW_MINIMUM_PENALTY = 0.5
BASE_SCENARIO_NAME = "Scénario de base"


def _num(value: Optional[float]) -> float:
    return value if value is not None else 0.0


def _settings(options: Any) -> Dict[str, float]:
    opts = prepare_comparison_options(options)

    def pick(value: Optional[float], default: float) -> float:
        return value if value is not None else default

    return {
        "weight_cashflow": pick(opts.weight_cashflow, config.WEIGHT_CASHFLOW),
        "weight_cap_rate": pick(opts.weight_cap_rate, config.WEIGHT_CAP_RATE),
        "weight_cash_on_cash": pick(opts.weight_cash_on_cash, config.WEIGHT_CASH_ON_CASH),
        "min_viable_cashflow_per_unit": pick(
            opts.min_viable_cashflow_per_unit, config.MIN_VIABLE_CASHFLOW_PER_UNIT
        ),
    }


# -----------------------------
# Weighted ranking
# -----------------------------

def analyze_scenario(payload: Any) -> Dict[str, Any]:
    """Quick analysis of one scenario; a sale price field makes it a FLIP."""
    if not isinstance(payload, Mapping) or not payload:
        raise MissingRequiredFieldError("Vous devez fournir un scénario à analyser")
    if is_flip_scenario(payload):
        return {"type": FLIP, **quick_flip(prepare_quick_flip(payload))}
    return {"type": MULTI, **quick_multi(prepare_quick_multi(payload))}


def score(analysis: Mapping[str, Any], settings: Mapping[str, float]) -> float:
    if analysis["type"] == FLIP:
        return _num(analysis["roi"])

    cfpu = _num(analysis["cashflow_per_unit"])
    total = 0.0
    minimum = settings["min_viable_cashflow_per_unit"]
    if cfpu < minimum:
        total -= (minimum - cfpu) * BELOW_MINIMUM_PENALTY
    total += cfpu * settings["weight_cashflow"]
    total += _num(analysis["cap_rate"]) * settings["weight_cap_rate"]
    total += _num(analysis["cash_on_cash"]) * settings["weight_cash_on_cash"]
    return total


def _best_for(ranked: List[Dict[str, Any]], metric: Callable[[Dict[str, Any]], float]) -> Dict[str, Any]:
    # strict comparison: the first maximum in rank order wins
    best = ranked[0]
    for entry in ranked[1:]:
        if metric(entry) > metric(best):
            best = entry
    return best


def _summary(ranked: List[Dict[str, Any]], best: Dict[str, Any]) -> str:
    a = best["analysis"]
    text = f"Analyse comparative de {len(ranked)} scénarios. "
    if a["type"] == FLIP:
        return text + f'Le scénario "{best["name"]}" offre le meilleur rendement avec un ROI de {_num(a["roi"]):.2f}%.'
    return text + (
        f'Le scénario "{best["name"]}" est le plus avantageux avec un cashflow mensuel par unité de '
        f'{_num(a["cashflow_per_unit"]):.2f}$, un taux de capitalisation de {_num(a["cap_rate"]):.2f}% '
        f'et un rendement sur investissement de {_num(a["cash_on_cash"]):.2f}%.'
    )


def compare_scenarios(scenarios: Any, options: Any = None) -> Dict[str, Any]:
    """
    Rank scenarios by score, highest first.

    FLIP scores are the ROI. MULTI scores are a weighted sum of cashflow per
    unit, cap rate and cash-on-cash, minus a penalty below the minimum viable
    cashflow per unit. Ties keep input order.
    """
    if not isinstance(scenarios, Sequence) or isinstance(scenarios, (str, bytes)) or not scenarios:
        raise MissingRequiredFieldError("Vous devez fournir au moins un scénario à comparer", field="scenarios")
    settings = _settings(options)

    analyzed = []
    for i, scenario in enumerate(scenarios, start=1):
        analysis = analyze_scenario(scenario)
        analyzed.append(
            {
                "id": i,
                "name": scenario.get("name") or f"Scénario {i}",
                "scenario": dict(scenario),
                "analysis": analysis,
                "score": score(analysis, settings),
            }
        )

    ranked = sorted(analyzed, key=lambda s: s["score"], reverse=True)
    best = ranked[0]
    result = {
        "scenarios": ranked,
        "best_overall": best,
        "best_by_metric": {
            "cashflow": _best_for(ranked, lambda s: _num(s["analysis"].get("annual_cashflow"))),
            "cap_rate": _best_for(ranked, lambda s: _num(s["analysis"].get("cap_rate"))),
            "cash_on_cash": _best_for(ranked, lambda s: _num(s["analysis"].get("cash_on_cash"))),
        },
        "settings": settings,
        "summary": _summary(ranked, best),
    }
    logger.info(
        "comparison_ranked",
        extra={"context": {"count": len(ranked), "best_id": best["id"], "best_score": best["score"]}},
    )
    return result


# -----------------------------
# Single-criterion ranking
# -----------------------------

def _criterion(deal_type: str, criterion: str) -> str:
    valid = FLIP_CRITERIA if deal_type == FLIP else MULTI_CRITERIA
    field = to_snake(criterion)
    if field not in valid:
        accepted = ", ".join(to_camel(c) for c in valid)
        raise InvalidRangeError(
            f"Critère d'optimisation invalide. Valeurs acceptées: {accepted}", field="optimizationCriteria"
        )
    return field


def compare_by_criterion(scenarios: Any, deal_type: str = FLIP, criterion: Optional[str] = None) -> Dict[str, Any]:
    """Run each scenario through its itemized calculator and rank on one summary metric."""
    deal_type = (deal_type or FLIP).upper()
    if deal_type not in (FLIP, MULTI):
        raise InvalidRangeError("Le type de projet doit être FLIP ou MULTI", field="type")
    if not isinstance(scenarios, Sequence) or isinstance(scenarios, (str, bytes)) or not scenarios:
        raise MissingRequiredFieldError("Au moins un scénario doit être fourni", field="scenarios")
    field = _criterion(deal_type, criterion or ("profit" if deal_type == FLIP else "cashflow_per_unit"))
    analyze = analyze_flip if deal_type == FLIP else analyze_basic_multi

    results = [
        {
            "scenario_index": i,
            "scenario_name": (s.get("name") if isinstance(s, Mapping) else None) or f"Scénario {i + 1}",
            "summary": analyze(s)["summary"],
        }
        for i, s in enumerate(scenarios)
    ]
    ranked = sorted(results, key=lambda r: _num(r["summary"][field]), reverse=True)
    return {
        "optimization_criteria": field,
        "optimal_scenario": _best_for(results, lambda r: _num(r["summary"][field])),
        "ranked_scenarios": ranked,
        "scenario_count": len(results),
        "all_results": results,
    }


def sensitivity_analysis(
    base: Any, variable: str, variation_percent: float, steps: int = 5
) -> Dict[str, Any]:
    """
    Perturb one numeric field of a scenario in equal steps across
    [-variation_percent, +variation_percent] and rank the variants.

    The zero step is not generated; the unchanged base is appended last
    as its own scenario, so 2 * steps + 1 scenarios are compared.
    """
    if not isinstance(base, Mapping) or not base:
        raise MissingRequiredFieldError("Le scénario de base est requis")
    if steps is None or int(steps) <= 0:
        raise InvalidRangeError("Le nombre d'étapes doit être un entier positif", field="steps")
    steps = int(steps)
    base_value = base.get(variable)
    if isinstance(base_value, bool) or not isinstance(base_value, (int, float)) or base_value == 0:
        raise MissingRequiredFieldError(
            f"Scénario de base invalide ou variable {variable} non définie", field=variable
        )

    deal_type = FLIP if is_flip_scenario(base) else MULTI
    step_size = (variation_percent / 100) * base_value / steps

    scenarios: List[Dict[str, Any]] = []
    for i in range(-steps, steps + 1):
        if i == 0:
            continue
        label = f"{variable} {'+' if i > 0 else ''}{i * variation_percent / steps:.1f}%"
        scenarios.append({**base, variable: base_value + i * step_size, "name": label})
    scenarios.append({**base, "name": BASE_SCENARIO_NAME})

    criterion = "profit" if deal_type == FLIP else "cashflow_per_unit"
    return {
        "variable_analyzed": variable,
        "base_value": base_value,
        "variation_percentage": variation_percent,
        "steps": steps,
        "scenarios": scenarios,
        "comparison": compare_by_criterion(scenarios, deal_type, criterion),
    }


# -----------------------------
# Portfolio
# -----------------------------

def portfolio_comparison(projects: Any) -> Dict[str, Any]:
    """Compare a mixed list of FLIP and MULTI projects on return and capital needed."""
    if not isinstance(projects, Sequence) or isinstance(projects, (str, bytes)) or not projects:
        raise MissingRequiredFieldError("Au moins un projet doit être fourni", field="projects")

    results = []
    for i, project in enumerate(projects):
        if not isinstance(project, Mapping):
            raise MissingRequiredFieldError(f"Le projet {i + 1} est invalide", field="projects")
        is_flip = str(project.get("type", "")).upper() == FLIP or is_flip_scenario(project)
        if is_flip:
            summary = analyze_flip(project)["summary"]
            metrics = {
                "total_investment": summary["total_investment"],
                "annualized_roi": summary["annualized_roi"],
                "payback_period": None,
            }
        else:
            summary = analyze_basic_multi(project)["summary"]
            cfpu = summary["cashflow_per_unit"]
            metrics = {
                "total_investment": summary["purchase_price"] + summary["renovation_cost"],
                "annualized_roi": summary["cash_on_cash"],
                # years; undefined without positive cashflow
                "payback_period": (
                    ratio(summary["purchase_price"], cfpu * summary["units"] * 12) if cfpu > 0 else None
                ),
            }
        results.append(
            {
                "project_index": i,
                "project_name": project.get("name") or f"Projet {i + 1}",
                "project_type": FLIP if is_flip else MULTI,
                "summary": summary,
                "metrics": metrics,
            }
        )

    by_roi = sorted(results, key=lambda r: _num(r["metrics"]["annualized_roi"]), reverse=True)
    by_investment = sorted(results, key=lambda r: r["metrics"]["total_investment"])
    return {
        "project_count": len(results),
        "flip_count": sum(1 for r in results if r["project_type"] == FLIP),
        "multi_count": sum(1 for r in results if r["project_type"] == MULTI),
        "highest_roi": by_roi[0],
        "lowest_investment": by_investment[0],
        "all_results": results,
        "rankings": {"by_roi": by_roi, "by_investment": by_investment},
    }


# -----------------------------
# Reporting
# -----------------------------

FRAME_COLUMNS = [
    "rank",
    "id",
    "name",
    "type",
    "score",
    "roi",
    "profit",
    "cashflow_per_unit",
    "cap_rate",
    "cash_on_cash",
]


def comparison_frame(result: Mapping[str, Any]) -> pd.DataFrame:
    """Flatten a compare_scenarios result into one row per ranked scenario."""
    rows = []
    for rank, entry in enumerate(result["scenarios"], start=1):
        a = entry["analysis"]
        rows.append(
            {
                "rank": rank,
                "id": entry["id"],
                "name": entry["name"],
                "type": a["type"],
                "score": entry["score"],
                "roi": a.get("roi"),
                "profit": a.get("profit"),
                "cashflow_per_unit": a.get("cashflow_per_unit"),
                "cap_rate": a.get("cap_rate"),
                "cash_on_cash": a.get("cash_on_cash"),
            }
        )
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)

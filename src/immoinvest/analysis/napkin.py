# src/immoinvest/analysis/napkin.py
"""
Napkin calculators: one-pass estimates used to screen a deal in seconds.

FLIP uses FIP10 (final price - initial price - renovations - 10% carry costs).
MULTI uses PAR + HIGH-5 (gross revenue - tiered expense ratio - a mortgage
estimated at 0.5% of the price per month).
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic.alias_generators import to_snake

from immoinvest.domain.deals import NapkinFlipInput, NapkinMultiInput
from immoinvest.domain.errors import InvalidRangeError, UnreachableTargetError
from immoinvest.domain.formulas import expense_ratio, percent, ratio, round2
from immoinvest.domain.thresholds import (
    ACCEPTABLE,
    EXCELLENT,
    FIP10_RATE,
    FLIP_PROFIT_TIERS,
    GOOD,
    HIGH5_MONTHLY_RATE,
    MULTI_CASHFLOW_PER_UNIT_TIERS,
    rate,
)
from immoinvest.services.validation import (
    prepare_napkin_flip,
    prepare_napkin_flip_offer,
    prepare_napkin_multi,
    prepare_napkin_multi_offer,
)

DEFAULT_FLIP_VARIATIONS = {
    "initial_price": (-5, 0, 5),
    "final_price": (-5, 0, 5),
    "renovation_cost": (-10, 0, 10),
}
DEFAULT_MULTI_VARIATIONS = {
    "purchase_price": (-5, 0, 5),
    "gross_revenue": (-5, 0, 5),
}

FLIP_VARIATION_LABELS = {
    "initial_price": "Prix d'achat",
    "final_price": "Prix de revente",
    "renovation_cost": "Coût des rénovations",
}
MULTI_VARIATION_LABELS = {
    "purchase_price": "Prix d'achat",
    "gross_revenue": "Revenus bruts",
}


def _variation_plan(
    defaults: Dict[str, Iterable[float]], overrides: Optional[Dict[str, Iterable[float]]]
) -> Dict[str, Iterable[float]]:
    plan = dict(defaults)
    if overrides is not None and not isinstance(overrides, Mapping):
        raise InvalidRangeError("Les variations doivent être un objet", field="variations")
    for key, steps in (overrides or {}).items():
        field = to_snake(key)
        if field not in defaults:
            raise InvalidRangeError(f"Variable de sensibilité inconnue: {key}", field=key)
        if not isinstance(steps, (list, tuple)) or not all(
            isinstance(s, (int, float)) and not isinstance(s, bool) for s in steps
        ):
            raise InvalidRangeError(f"Variations invalides pour {key}", field=key)
        plan[field] = steps
    return plan


# -----------------------------
# FLIP (FIP10)
# -----------------------------

def _flip_recommendation(profit: float, roi: Optional[float], rating: str) -> str:
    roi_txt = f"{roi:.2f}" if roi is not None else "n/d"
    if rating == EXCELLENT:
        return (
            f"Ce projet est excellent avec un profit de {profit:.2f}$ et un ROI de {roi_txt}%. "
            "Fortement recommandé pour investissement."
        )
    if rating == GOOD:
        return (
            f"Ce projet est bon avec un profit de {profit:.2f}$ et un ROI de {roi_txt}%. "
            "Procédez à une analyse plus détaillée et évaluez les possibilités d'optimisation."
        )
    if rating == ACCEPTABLE:
        return (
            f"Ce projet est acceptable avec un profit de {profit:.2f}$ et un ROI de {roi_txt}%, "
            f"mais reste sous le seuil cible de {FLIP_PROFIT_TIERS.target:.0f}$. "
            "Vérifiez si vous pouvez améliorer la rentabilité."
        )
    return (
        f"Ce projet génère un profit de {profit:.2f}$, ce qui est inférieur au seuil minimum "
        f"recommandé de {FLIP_PROFIT_TIERS.minimum:.0f}$. Envisagez de négocier un meilleur prix "
        "ou de réduire les coûts de rénovation."
    )


def napkin_flip(inp: NapkinFlipInput) -> Dict[str, Any]:
    carry_costs = inp.final_price * FIP10_RATE
    profit = inp.final_price - inp.initial_price - inp.renovation_cost - carry_costs
    roi = percent(profit, inp.initial_price + inp.renovation_cost)
    rating = rate(profit, FLIP_PROFIT_TIERS)
    return {
        "profit": round2(profit),
        "roi": round2(roi),
        "is_viable": profit >= FLIP_PROFIT_TIERS.minimum,
        "rating": rating,
        "recommendation": _flip_recommendation(profit, roi, rating),
        "breakdown": {
            "final_price": inp.final_price,
            "initial_price": inp.initial_price,
            "renovation_cost": inp.renovation_cost,
            "carry_costs": round2(carry_costs),
            "profit": round2(profit),
        },
    }


def analyze_napkin_flip(payload: Any) -> Dict[str, Any]:
    return napkin_flip(prepare_napkin_flip(payload))


def napkin_flip_max_offer(payload: Any) -> Dict[str, Any]:
    """Highest initial price that still leaves the target profit under FIP10."""
    inp = prepare_napkin_flip_offer(payload)
    target = inp.target_profit if inp.target_profit is not None else FLIP_PROFIT_TIERS.target
    carry_costs = inp.final_price * FIP10_RATE
    max_price = inp.final_price - inp.renovation_cost - carry_costs - target
    if max_price <= 0:
        raise UnreachableTargetError(
            "Impossible d'atteindre le profit cible avec ces paramètres. "
            "Le prix de revente est trop bas ou les coûts de rénovation trop élevés.",
            field="targetProfit",
        )
    return {
        "max_purchase_price": round2(max_price),
        "final_price": inp.final_price,
        "renovation_cost": inp.renovation_cost,
        "carry_costs": round2(carry_costs),
        "target_profit": target,
    }


def napkin_flip_sensitivity(payload: Any, variations: Optional[Dict[str, Iterable[float]]] = None) -> Dict[str, Any]:
    base = prepare_napkin_flip(payload)
    scenarios = []
    for field, steps in _variation_plan(DEFAULT_FLIP_VARIATIONS, variations).items():
        for pct in steps:
            if pct == 0:
                continue
            variant = base.model_copy(update={field: getattr(base, field) * (1 + pct / 100)})
            scenarios.append(
                {
                    "name": f"{FLIP_VARIATION_LABELS[field]} {'+' if pct > 0 else ''}{pct}%",
                    "input": variant.model_dump(),
                    "result": napkin_flip(variant),
                }
            )
    scenarios.sort(key=lambda s: s["result"]["profit"], reverse=True)
    return {"base_case": napkin_flip(base), "scenarios": scenarios}


# -----------------------------
# MULTI (PAR + HIGH-5)
# -----------------------------

def _multi_recommendation(cfpu: float, rating: str) -> str:
    if rating == EXCELLENT:
        return (
            f"Ce projet est excellent avec un cashflow de {cfpu:.2f}$ par porte par mois. "
            "Fortement recommandé pour investissement."
        )
    if rating == GOOD:
        return (
            f"Ce projet est bon avec un cashflow de {cfpu:.2f}$ par porte par mois. "
            "Procédez à une analyse plus détaillée et évaluez les possibilités d'optimisation."
        )
    if rating == ACCEPTABLE:
        return (
            f"Ce projet est acceptable avec un cashflow de {cfpu:.2f}$ par porte par mois, "
            f"mais reste sous le seuil cible de {MULTI_CASHFLOW_PER_UNIT_TIERS.target:.0f}$. "
            "Vérifiez si vous pouvez améliorer la rentabilité."
        )
    return (
        f"Ce projet génère un cashflow de {cfpu:.2f}$ par porte par mois, ce qui est inférieur "
        f"au seuil minimum recommandé de {MULTI_CASHFLOW_PER_UNIT_TIERS.minimum:.0f}$. "
        "Envisagez de négocier un meilleur prix ou d'optimiser la structure de revenus et dépenses."
    )


def napkin_multi(inp: NapkinMultiInput) -> Dict[str, Any]:
    expense_share = expense_ratio(inp.units)
    expenses = inp.gross_revenue * expense_share
    noi = inp.gross_revenue - expenses
    financing = inp.purchase_price * HIGH5_MONTHLY_RATE * 12
    cashflow = noi - financing
    cfpu = ratio(cashflow, inp.units * 12) or 0.0
    rating = rate(cfpu, MULTI_CASHFLOW_PER_UNIT_TIERS)
    return {
        "purchase_price": inp.purchase_price,
        "units": inp.units,
        "gross_revenue": inp.gross_revenue,
        "expense_percentage": round2(expense_share * 100),
        "expenses": round2(expenses),
        "noi": round2(noi),
        "financing": round2(financing),
        "cashflow": round2(cashflow),
        "cashflow_per_unit": round2(cfpu),
        "is_viable": cashflow > 0 and cfpu >= MULTI_CASHFLOW_PER_UNIT_TIERS.minimum,
        "rating": rating,
        "recommendation": _multi_recommendation(cfpu, rating),
    }


def analyze_napkin_multi(payload: Any) -> Dict[str, Any]:
    return napkin_multi(prepare_napkin_multi(payload))


def napkin_multi_max_offer(payload: Any) -> Dict[str, Any]:
    """Highest price whose HIGH-5 mortgage still leaves the target cashflow per door."""
    inp = prepare_napkin_multi_offer(payload)
    target_cfpu = (
        inp.target_cashflow_per_unit
        if inp.target_cashflow_per_unit is not None
        else MULTI_CASHFLOW_PER_UNIT_TIERS.target
    )
    target_annual = target_cfpu * inp.units * 12
    expenses = inp.gross_revenue * expense_ratio(inp.units)
    noi = inp.gross_revenue - expenses
    max_mortgage = noi - target_annual
    if max_mortgage <= 0:
        raise UnreachableTargetError(
            "Impossible d'atteindre le cashflow cible avec ces paramètres. "
            "Les revenus sont insuffisants pour couvrir les dépenses et le cashflow visé.",
            field="targetCashflowPerUnit",
        )
    return {
        "max_purchase_price": round2(max_mortgage / (HIGH5_MONTHLY_RATE * 12)),
        "units": inp.units,
        "gross_revenue": inp.gross_revenue,
        "expenses": round2(expenses),
        "noi": round2(noi),
        "target_cashflow_per_unit": target_cfpu,
        "target_annual_cashflow": round2(target_annual),
        "max_annual_mortgage": round2(max_mortgage),
    }


def napkin_multi_sensitivity(payload: Any, variations: Optional[Dict[str, Iterable[float]]] = None) -> Dict[str, Any]:
    base = prepare_napkin_multi(payload)
    scenarios = []
    for field, steps in _variation_plan(DEFAULT_MULTI_VARIATIONS, variations).items():
        for pct in steps:
            if pct == 0:
                continue
            variant = base.model_copy(update={field: getattr(base, field) * (1 + pct / 100)})
            scenarios.append(
                {
                    "name": f"{MULTI_VARIATION_LABELS[field]} {'+' if pct > 0 else ''}{pct}%",
                    "input": variant.model_dump(),
                    "result": napkin_multi(variant),
                }
            )
    scenarios.sort(key=lambda s: s["result"]["cashflow_per_unit"], reverse=True)
    return {"base_case": napkin_multi(base), "scenarios": scenarios}

# src/immoinvest/analysis/liquidity.py
"""
Liquidity (cashflow) of an income property and the inverse problem:
the highest price that still leaves a target cashflow.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Optional

from pydantic.alias_generators import to_snake

from immoinvest.adapters.config import config
from immoinvest.analysis.quick import quick_multi
from immoinvest.domain.deals import LiquidityInputs
from immoinvest.domain.errors import InvalidRangeError, UnreachableTargetError
from immoinvest.domain.formulas import expense_ratio, max_principal, monthly_payment, percent, ratio, round2
from immoinvest.domain.thresholds import MULTI_CASHFLOW_PER_UNIT_TIERS
from immoinvest.services.validation import prepare_liquidity, prepare_max_price_query, prepare_quick_multi

SENSITIVITY_PARAMETERS = (
    "purchase_price",
    "gross_revenue",
    "interest_rate",
    "amortization_years",
    "down_payment",
    "expenses",
)
NON_NEGATIVE_PARAMETERS = ("purchase_price", "down_payment", "gross_revenue")


class LiquidityCalculator:
    """
    Cashflow of a purchase financed by a main mortgage plus optional
    layers (vendor balance, private lender, ...).

    The main mortgage covers whatever the down payment and the other
    layers leave of the price.
    """

    def __init__(self, inputs: Any):
        if not isinstance(inputs, LiquidityInputs):
            inputs = prepare_liquidity(inputs)
        self.purchase_price = inputs.purchase_price
        self.gross_revenue = inputs.gross_revenue
        self.interest_rate = inputs.interest_rate
        self.amortization_years = inputs.amortization_years
        self.other_financing = list(inputs.other_financing)

        # an explicit amount wins over a percentage
        self.down_payment_percentage: Optional[float] = None
        if inputs.down_payment is not None:
            self.down_payment = inputs.down_payment
        elif inputs.down_payment_percentage is not None:
            self.down_payment_percentage = inputs.down_payment_percentage
            self.down_payment = inputs.purchase_price * inputs.down_payment_percentage
        else:
            self.down_payment = 0.0

        if inputs.expenses_as_percentage:
            self.expenses = self.gross_revenue * inputs.expenses / 100
        else:
            self.expenses = inputs.expenses

    @property
    def other_financing_total(self) -> float:
        return sum(f.amount for f in self.other_financing)

    @property
    def net_operating_income(self) -> float:
        return self.gross_revenue - self.expenses

    def mortgage_amount(self) -> float:
        if not self.purchase_price:
            return 0.0
        return max(self.purchase_price - self.down_payment - self.other_financing_total, 0.0)

    def _other_payments(self) -> List[Dict[str, Any]]:
        return [
            {
                "type": f.type,
                "amount": f.amount,
                "payment": monthly_payment(f.amount, f.interest_rate, f.term_years or self.amortization_years),
            }
            for f in self.other_financing
        ]

    def monthly_payments(self) -> Dict[str, Any]:
        mortgage = self.mortgage_amount()
        main_payment = monthly_payment(mortgage, self.interest_rate, self.amortization_years)
        others = self._other_payments()
        total = main_payment + sum(o["payment"] for o in others)
        return {
            "main_mortgage": {"amount": mortgage, "payment": main_payment},
            "other_financing": others,
            "total_monthly_payment": total,
            "total_annual_payment": total * 12,
        }

    def liquidity(self) -> Dict[str, Any]:
        noi = self.net_operating_income
        payments = self.monthly_payments()
        annual_cashflow = noi - payments["total_annual_payment"]
        investment = self.down_payment + sum(
            f.amount for f in self.other_financing if f.include_in_investment
        )
        return {
            "purchase_price": self.purchase_price,
            "down_payment": self.down_payment,
            "mortgage_amount": payments["main_mortgage"]["amount"],
            "other_financing": payments["other_financing"],
            "gross_revenue": self.gross_revenue,
            "expenses": self.expenses,
            "net_operating_income": noi,
            "annual_financing_payment": payments["total_annual_payment"],
            "annual_cashflow": annual_cashflow,
            "monthly_cashflow": annual_cashflow / 12,
            "roi": percent(annual_cashflow, investment),
            "investment": investment,
        }

    def max_purchase_price(self, target_annual_cashflow: float) -> float:
        """
        Highest price whose cashflow equals the yearly target.

        Payments on the other financing layers are fixed, so they come off
        the repayment capacity before the main mortgage is sized. Returns 0
        when no mortgage payment is left for the target.
        """
        other_annual = sum(o["payment"] for o in self._other_payments()) * 12
        max_annual_payment = self.net_operating_income - target_annual_cashflow - other_annual
        if max_annual_payment <= 0:
            return 0.0

        loan = max_principal(max_annual_payment / 12, self.interest_rate, self.amortization_years)
        if self.down_payment_percentage is not None:
            return (loan + self.other_financing_total) / (1 - self.down_payment_percentage)
        return loan + self.down_payment + self.other_financing_total

    def with_value(self, parameter: str, value: float) -> "LiquidityCalculator":
        variant = copy.copy(self)
        setattr(variant, parameter, value)
        return variant

    def sensitivity(
        self,
        parameters: Optional[Iterable[str]] = None,
        variation_percentage: float = 10,
        steps: int = 5,
    ) -> Dict[str, Any]:
        """Vary each parameter in equal steps across +/- variation_percentage of its value."""
        if steps is None or int(steps) <= 0:
            raise InvalidRangeError("Le nombre d'étapes doit être un entier positif", field="steps")
        steps = int(steps)
        parameters = list(parameters or ["interestRate"])
        results: Dict[str, Any] = {}
        for name in parameters:
            attr = to_snake(name)
            if attr not in SENSITIVITY_PARAMETERS:
                results[name] = {"error": f"Paramètre invalide: {name}"}
                continue

            original = getattr(self, attr)
            increment = original * variation_percentage / 100 / steps
            variations = []
            for i in range(-steps, steps + 1):
                value = original + i * increment
                if attr in NON_NEGATIVE_PARAMETERS and value < 0:
                    continue
                variations.append(
                    {
                        "variation_value": value,
                        "variation_percentage": i * variation_percentage / steps,
                        "liquidity_result": self.with_value(attr, value).liquidity(),
                    }
                )
            results[name] = {"original_value": original, "variations": variations}

        return {
            "baseline_result": self.liquidity(),
            "parameters_analyzed": parameters,
            "variation_percentage": variation_percentage,
            "steps": steps,
            "results": results,
        }


# -----------------------------
# Quick evaluation (GRM / cashflow per door)
# -----------------------------

GRM_SCALE = ((4, "Excellent"), (6, "Très bon"), (8, "Bon"), (10, "Acceptable"), (12, "Médiocre"))
CASHFLOW_PER_UNIT_SCALE = ((100, "Excellent"), (75, "Très bon"), (50, "Bon"), (25, "Acceptable"), (0, "Médiocre"))
EVALUATION_SCORES = {
    "Excellent": 5,
    "Très bon": 4,
    "Bon": 3,
    "Acceptable": 2,
    "Médiocre": 1,
    "Risqué": 0,
    "Négatif": 0,
    "Non applicable": 2,
}
OVERALL_LABELS = (
    (4.5, "Excellent investissement"),
    (3.5, "Très bon investissement"),
    (2.5, "Bon investissement"),
    (1.5, "Investissement acceptable"),
    (0.5, "Investissement risqué"),
)


def grm_evaluation(grm: Optional[float]) -> str:
    if not grm:
        return "Non applicable"
    for limit, label in GRM_SCALE:
        if grm < limit:
            return label
    return "Risqué"


def cashflow_per_unit_evaluation(cfpu: Optional[float]) -> str:
    value = cfpu or 0.0
    for limit, label in CASHFLOW_PER_UNIT_SCALE:
        if value >= limit:
            return label
    return "Négatif"


def _cap_rate_score(cap_rate: float) -> int:
    if cap_rate >= 6:
        return 5
    if cap_rate >= 5:
        return 4
    if cap_rate >= 4:
        return 3
    if cap_rate >= 3:
        return 2
    return 1


def overall_evaluation(grm_label: str, cfpu_label: str, cap_rate: Optional[float]) -> str:
    weighted = (
        EVALUATION_SCORES.get(grm_label, 0) * 0.4
        + EVALUATION_SCORES.get(cfpu_label, 0) * 0.4
        + _cap_rate_score(cap_rate or 0.0) * 0.2
    )
    for floor, label in OVERALL_LABELS:
        if weighted >= floor:
            return label
    return "Investissement déconseillé"


def _recommendations(grm: Optional[float], cfpu: Optional[float], cap_rate: Optional[float]) -> List[str]:
    grm = grm or 0.0
    cfpu = cfpu or 0.0
    cap_rate = cap_rate or 0.0
    out: List[str] = []

    if grm > 10:
        out.append("Le MRB est élevé. Essayez de négocier le prix d'achat ou d'augmenter les revenus.")
    elif grm < 5:
        out.append("Le MRB est excellent. C'est une opportunité à saisir rapidement.")

    if cfpu < 0:
        out.append(
            "Le cashflow est négatif. Reconsidérez cet investissement ou trouvez des moyens "
            "d'augmenter les revenus/réduire les dépenses."
        )
    elif cfpu < MULTI_CASHFLOW_PER_UNIT_TIERS.minimum:
        out.append(
            "Le cashflow par unité est faible. Cherchez des moyens d'optimiser les revenus ou de réduire les dépenses."
        )
    elif cfpu >= MULTI_CASHFLOW_PER_UNIT_TIERS.excellent:
        out.append(
            "Le cashflow par unité est excellent. Considérez une stratégie d'achat et de conservation à long terme."
        )

    if cap_rate < 4:
        out.append(
            "Le taux de capitalisation est bas. Cherchez des moyens d'augmenter la valeur ou les revenus de la propriété."
        )
    elif cap_rate > 8:
        out.append(
            "Le taux de capitalisation est élevé. Vérifiez s'il y a des risques cachés ou si c'est une réelle opportunité."
        )

    if not out:
        out.append("Cet investissement présente de bons indicateurs. Procédez à une analyse plus approfondie.")
    return out


def evaluate_liquidity(payload: Any) -> Dict[str, Any]:
    q = quick_multi(prepare_quick_multi(payload))
    grm = q["gross_rent_multiplier"]
    grm_label = grm_evaluation(grm)
    cfpu_label = cashflow_per_unit_evaluation(q["cashflow_per_unit"])
    return {
        "summary": {
            "grm": grm,
            "grm_evaluation": grm_label,
            "cap_rate": q["cap_rate"],
            "cashflow_per_unit": q["cashflow_per_unit"],
            "cashflow_evaluation": cfpu_label,
            "cash_on_cash": q["cash_on_cash"],
        },
        "investment": {
            "total_investment": q["total_investment"],
            "purchase_price": q["purchase_price"],
            "renovation_cost": q["renovation_cost"],
            "down_payment": q["down_payment"],
            "mortgage_amount": q["loan_amount"],
        },
        "income": {
            "gross_annual_rent": q["gross_annual_rent"],
            "gross_monthly_rent": q["gross_annual_rent"] / 12,
            "annual_expenses": q["annual_expenses"],
            "monthly_expenses": q["annual_expenses"] / 12,
            "noi": q["noi"],
            "monthly_noi": q["noi"] / 12,
        },
        "cashflow": {
            "annual_mortgage_payment": q["annual_debt_service"],
            "monthly_mortgage_payment": q["annual_debt_service"] / 12,
            "annual_cashflow": q["annual_cashflow"],
            "monthly_cashflow": q["monthly_cashflow"],
            "cashflow_per_unit": q["cashflow_per_unit"],
        },
        "evaluation": {
            "grm_evaluation": grm_label,
            "cashflow_evaluation": cfpu_label,
            "overall_evaluation": overall_evaluation(grm_label, cfpu_label, q["cap_rate"]),
        },
        "recommendations": _recommendations(grm, q["cashflow_per_unit"], q["cap_rate"]),
    }


def max_price_for_cashflow_per_unit(payload: Any) -> Dict[str, Any]:
    """Highest price at which the quick MULTI model yields the target cashflow per door."""
    query = prepare_max_price_query(payload)
    target_cfpu = (
        query.target_cashflow_per_unit
        if query.target_cashflow_per_unit is not None
        else MULTI_CASHFLOW_PER_UNIT_TIERS.target
    )
    dp_ratio = (
        query.down_payment_ratio if query.down_payment_ratio is not None else config.QUICK_DOWN_PAYMENT_RATIO
    )
    rate_pct = query.interest_rate if query.interest_rate is not None else config.QUICK_INTEREST_RATE
    years = (
        query.amortization_years if query.amortization_years is not None else config.DEFAULT_AMORTIZATION_YEARS
    )

    gross = query.gross_annual_rent
    expenses = query.annual_expenses if query.annual_expenses is not None else gross * expense_ratio(query.units)
    noi = gross - expenses
    target_annual = target_cfpu * query.units * 12
    max_annual_payment = noi - target_annual

    loan = max_principal(max_annual_payment / 12, rate_pct, years)
    total_investment = loan / (1 - dp_ratio)
    price = total_investment - query.renovation_cost
    if max_annual_payment <= 0 or price <= 0:
        raise UnreachableTargetError(
            "Impossible d'atteindre le cashflow cible avec ces paramètres. "
            "Réduisez le cashflow cible, augmentez les revenus ou réduisez les dépenses.",
            field="targetCashflowPerUnit",
        )

    grm = ratio(price, gross)
    return {
        "target_cashflow_per_unit": target_cfpu,
        "max_purchase_price": round2(price),
        "max_mortgage_amount": round2(loan),
        "max_down_payment": round2(total_investment * dp_ratio),
        "max_annual_mortgage_payment": round2(max_annual_payment),
        "max_monthly_mortgage_payment": round2(max_annual_payment / 12),
        "net_operating_income": round2(noi),
        "grm": round2(grm),
        "grm_evaluation": grm_evaluation(grm),
    }

# src/immoinvest/analysis/multi.py
"""
MULTI (income property) analysis.

The complete model runs a fixed pipeline:
  revenues -> expenses -> NOI -> financing -> cashflow -> ratios
  -> viability -> recommendations (-> optimization plan)

Note: vacancy and bad-debt losses are deducted on the revenue side AND
provisioned in the management expense bucket. Existing analyses depend
on that conservative figure, so it is kept as-is.

The basic model (analyze_basic_multi) is the shorter itemized
calculator used for criterion comparisons and sensitivity tables.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from immoinvest.adapters.config import config
from immoinvest.domain.deals import BasicMultiDeal, MultiDeal
from immoinvest.domain.formulas import (
    expense_ratio,
    monthly_payment,
    payments_per_year,
    percent,
    ratio,
    round2,
    sum_numeric,
    transfer_tax,
)
from immoinvest.domain.thresholds import (
    ACCEPTABLE,
    ACCEPTABLE_DSCR,
    EXCELLENT,
    GOOD,
    MAX_EXPENSE_RATIO,
    MAX_LTV,
    MIN_CAP_RATE,
    MIN_CASH_ON_CASH,
    MIN_DSCR,
    MULTI_CASHFLOW_PER_UNIT_TIERS,
    OPTIMIZATION_ROI_TIERS,
    POOR,
    TGA_APPRECIATION_PERCENT,
    rate,
)
from immoinvest.services.guardrails import apply_guardrails, multi_input_flags
from immoinvest.services.validation import prepare_basic_multi, prepare_multi_basics, prepare_multi_deal

DEFAULT_MARKET_CAP_RATE = 0.07
SUGGESTED_PRICE_REDUCTION = 0.10
RENT_INCREASE_TIP_THRESHOLD = 10.0


# -----------------------------
# Revenues
# -----------------------------

def revenue_analysis(deal: MultiDeal) -> Dict[str, Any]:
    units = deal.revenues.units
    unit_count = deal.property.unit_count

    rental = 0.0
    market = 0.0
    for unit in units:
        annual = unit.annual_rent if unit.annual_rent is not None else (unit.monthly_rent or 0.0) * 12
        rental += annual
        market += unit.market_rent * 12 if unit.market_rent is not None else annual

    additional = sum(r.monthly_amount * 12 for r in deal.revenues.additional_revenues)
    gross = rental + additional

    if deal.revenues.vacancy_rate is not None:
        vacancy_rate = deal.revenues.vacancy_rate
        vacancy_source = "explicit"
    else:
        occupied = sum(1 for u in units if u.occupied)
        vacancy_rate = (1 - occupied / len(units)) * 100
        vacancy_source = "occupancy"
    bad_debt_rate = deal.revenues.bad_debt_rate

    vacancy_loss = gross * vacancy_rate / 100
    bad_debt_loss = gross * bad_debt_rate / 100
    rent_increase = market - rental

    return {
        "potential_rental_revenue": rental,
        "market_rental_revenue": market,
        "additional_revenues": additional,
        "gross_potential_revenue": gross,
        "vacancy_rate": vacancy_rate,
        "vacancy_rate_source": vacancy_source,
        "bad_debt_rate": bad_debt_rate,
        "vacancy_loss": vacancy_loss,
        "bad_debt_loss": bad_debt_loss,
        "effective_gross_revenue": gross - vacancy_loss - bad_debt_loss,
        "average_revenue_per_unit": ratio(gross, unit_count * 12),
        "rent_increase_potential": rent_increase,
        "rent_increase_potential_percentage": percent(rent_increase, rental),
        "revenue_breakdown": {
            "rental_revenue": percent(rental, gross),
            "additional_revenue": percent(additional, gross),
        },
    }


# -----------------------------
# Expenses
# -----------------------------

def expense_analysis(deal: MultiDeal, revenues: Dict[str, Any]) -> Dict[str, Any]:
    exp = deal.expenses
    gross = revenues["gross_potential_revenue"]

    taxes = sum_numeric(exp.taxes)
    insurance = sum_numeric(exp.insurance)
    utilities = sum_numeric(exp.utilities)
    maintenance = sum_numeric(exp.maintenance)

    mgmt = exp.management
    management_fee = gross * mgmt.fee / 100 if mgmt.is_percentage else mgmt.fee
    vacancy_provision = gross * revenues["vacancy_rate"] / 100
    bad_debt_provision = gross * revenues["bad_debt_rate"] / 100
    management = (
        management_fee + mgmt.salaries + mgmt.professional_fees + vacancy_provision + bad_debt_provision
    )
    other = sum(o.amount for o in exp.other_expenses)

    total = taxes + insurance + utilities + maintenance + management + other
    buckets = {
        "taxes": taxes,
        "insurance": insurance,
        "utilities": utilities,
        "maintenance": maintenance,
        "management": management,
        "other": other,
    }
    return {
        **{f"{k}_expenses": v for k, v in buckets.items()},
        "management_detail": {
            "fee": management_fee,
            "salaries": mgmt.salaries,
            "professional_fees": mgmt.professional_fees,
            "vacancy_provision": vacancy_provision,
            "bad_debt_provision": bad_debt_provision,
        },
        "total_expenses": total,
        "expense_ratio": percent(total, gross),
        "expenses_per_unit": ratio(total, deal.property.unit_count),
        "expense_breakdown": {k: percent(v, gross) for k, v in buckets.items()},
    }


# -----------------------------
# Financing
# -----------------------------

def _instrument_annual_payment(cf) -> float:
    if cf.interest_only:
        return cf.amount * cf.interest_rate / 100
    if cf.payment_amount:
        return cf.payment_amount * payments_per_year(cf.payment_frequency)
    years = cf.amortization_years or cf.term_years or 0
    return monthly_payment(cf.amount, cf.interest_rate, years) * 12


def financing_analysis(deal: MultiDeal, noi: float) -> Dict[str, Any]:
    price = deal.property.purchase_price
    dp_pct = deal.financing.down_payment_percentage
    mortgage = deal.financing.conventional_mortgage
    creative = deal.financing.creative_financing

    creative_total = sum(cf.amount for cf in creative)
    amount = (
        mortgage.amount
        if mortgage.amount is not None
        else max(price * (1 - dp_pct) - creative_total, 0.0)
    )
    rate_pct = mortgage.interest_rate if mortgage.interest_rate is not None else config.DEFAULT_INTEREST_RATE
    years = (
        mortgage.amortization_years
        if mortgage.amortization_years is not None
        else config.DEFAULT_AMORTIZATION_YEARS
    )
    conv_monthly = monthly_payment(amount, rate_pct, years)
    conv_annual = conv_monthly * 12
    first_year_interest = amount * rate_pct / 100

    creative_details = []
    creative_payments = 0.0
    for cf in creative:
        annual = _instrument_annual_payment(cf)
        creative_payments += annual
        creative_details.append(
            {
                "type": cf.type,
                "amount": cf.amount,
                "interest_rate": cf.interest_rate,
                "interest_only": cf.interest_only,
                "term_years": cf.term_years,
                "annual_payment": annual,
            }
        )

    debt_service = conv_annual + creative_payments
    cashflow = noi - debt_service
    return {
        "down_payment": price * dp_pct,
        "down_payment_percentage": dp_pct,
        "conventional_mortgage": {
            "amount": amount,
            "interest_rate": rate_pct,
            "amortization_years": years,
            "monthly_payment": conv_monthly,
            "annual_payment": conv_annual,
            "interest_payment": first_year_interest,
            "principal_payment": conv_annual - first_year_interest if amount > 0 else 0.0,
        },
        "creative_financing": creative_details,
        "creative_financing_payments": creative_payments,
        "total_financed": amount + creative_total,
        "total_debt_service": debt_service,
        "annual_cashflow": cashflow,
        "monthly_cashflow": cashflow / 12,
        "cashflow_per_unit": ratio(cashflow / 12, deal.property.unit_count),
        "debt_service_coverage_ratio": ratio(noi, debt_service),
    }


# -----------------------------
# Ratios & viability
# -----------------------------

def financial_ratios(
    deal: MultiDeal,
    revenues: Dict[str, Any],
    expenses: Dict[str, Any],
    noi: float,
    financing: Dict[str, Any],
) -> Dict[str, Any]:
    prop = deal.property
    price = prop.purchase_price
    total_investment = price + prop.closing_costs + prop.renovation_cost
    debt_service = financing["total_debt_service"]
    cashflow = financing["annual_cashflow"]
    principal = financing["conventional_mortgage"]["principal_payment"]

    cap_rate = percent(noi, total_investment)
    cash_on_cash = percent(noi - debt_service, financing["down_payment"])

    if cap_rate is not None and cash_on_cash is not None and cap_rate >= 7 and cash_on_cash >= 10:
        assessment = EXCELLENT
    elif cap_rate is not None and cash_on_cash is not None and cap_rate >= 6 and cash_on_cash >= 8:
        assessment = GOOD
    elif cap_rate is not None and cash_on_cash is not None and cap_rate >= 4.5 and cash_on_cash >= 6:
        assessment = ACCEPTABLE
    else:
        assessment = POOR

    return {
        "total_investment": total_investment,
        "cap_rate": cap_rate,
        "market_cap_rate": percent(noi, prop.market_value) if prop.market_value else None,
        "gross_rent_multiplier": ratio(total_investment, revenues["potential_rental_revenue"]),
        "net_income_multiplier": ratio(price, noi) if noi > 0 else None,
        "cash_on_cash": cash_on_cash,
        "return_on_investment": percent(cashflow, price),
        "return_on_equity": percent(cashflow + principal, financing["down_payment"]),
        "debt_service_coverage_ratio": financing["debt_service_coverage_ratio"],
        "loan_to_value": percent(financing["total_financed"], price),
        "break_even_ratio": percent(
            expenses["total_expenses"] + debt_service, revenues["gross_potential_revenue"]
        ),
        "expense_ratio": expenses["expense_ratio"],
        "debt_yield": percent(noi, financing["total_financed"]),
        "total_global_rate": cap_rate + TGA_APPRECIATION_PERCENT if cap_rate is not None else None,
        "global_assessment": assessment,
    }


def viability(cashflow_per_unit: Optional[float]) -> Dict[str, Any]:
    cfpu = cashflow_per_unit if cashflow_per_unit is not None else 0.0
    return {
        "meets_minimum": cfpu >= MULTI_CASHFLOW_PER_UNIT_TIERS.minimum,
        "meets_target": cfpu >= MULTI_CASHFLOW_PER_UNIT_TIERS.target,
        "is_viable": cfpu >= MULTI_CASHFLOW_PER_UNIT_TIERS.target,
        "rating": rate(cfpu, MULTI_CASHFLOW_PER_UNIT_TIERS),
    }


def ratio_recommendations(ratios: Dict[str, Any]) -> List[str]:
    """Every threshold is checked independently; all that apply are returned."""
    recs: List[str] = []
    cap = ratios["cap_rate"]
    coc = ratios["cash_on_cash"]
    oer = ratios["expense_ratio"]
    dscr = ratios["debt_service_coverage_ratio"]
    ltv = ratios["loan_to_value"]

    if cap is not None and cap < MIN_CAP_RATE:
        recs.append(
            f"Le taux de capitalisation ({cap:.2f}%) est inférieur à {MIN_CAP_RATE:.0f}%. "
            "Négociez un meilleur prix ou augmentez les revenus."
        )
    if coc is not None and coc < MIN_CASH_ON_CASH:
        recs.append(
            f"Le rendement sur mise de fonds ({coc:.2f}%) est inférieur à {MIN_CASH_ON_CASH:.0f}%. "
            "Revoyez la structure de financement."
        )
    if oer is not None and oer > MAX_EXPENSE_RATIO:
        recs.append(
            f"Le ratio de dépenses ({oer:.2f}%) dépasse {MAX_EXPENSE_RATIO:.0f}%. "
            "Identifiez des économies d'exploitation."
        )
    if dscr is not None and dscr < MIN_DSCR:
        recs.append(
            f"Le ratio de couverture de la dette ({dscr:.2f}) est inférieur à {MIN_DSCR}. "
            "Les prêteurs pourraient refuser le financement."
        )
    if ltv is not None and ltv > MAX_LTV:
        recs.append(
            f"Le ratio prêt-valeur ({ltv:.2f}%) dépasse {MAX_LTV:.0f}%. "
            "L'effet de levier est élevé; prévoyez une marge de sécurité."
        )
    return recs


# -----------------------------
# Optimization plan
# -----------------------------

def optimization_analysis(
    deal: MultiDeal, noi: float, total_investment: float
) -> Optional[Dict[str, Any]]:
    plan = deal.optimization
    if plan is None:
        return None
    prop = deal.property

    rent_gain = sum((o.optimized_rent - o.current_rent) * 12 for o in plan.rent_optimizations)
    rent_cost = sum(o.implementation_cost for o in plan.rent_optimizations)
    other_gain = sum(
        (o.optimized_revenue - o.current_revenue) * 12 for o in plan.additional_revenue_optimizations
    )
    other_cost = sum(o.implementation_cost for o in plan.additional_revenue_optimizations)
    reduction = sum(o.current_expense - o.optimized_expense for o in plan.expense_optimizations)
    reduction_cost = sum(o.implementation_cost for o in plan.expense_optimizations)
    structural_gain = sum(o.additional_monthly_revenue * 12 for o in plan.structural_optimizations)
    structural_cost = sum(o.implementation_cost for o in plan.structural_optimizations)
    structural_value = sum(o.optimized_value - o.current_value for o in plan.structural_optimizations)

    added_revenue = rent_gain + other_gain + structural_gain
    yearly_gain = added_revenue + reduction
    total_cost = rent_cost + other_cost + reduction_cost + structural_cost
    optimized_noi = noi + yearly_gain

    market_cap = (
        noi / prop.market_value if prop.market_value and noi > 0 else DEFAULT_MARKET_CAP_RATE
    )
    current_value = prop.market_value or prop.purchase_price
    optimized_value = optimized_noi / market_cap

    roi = percent(yearly_gain, total_cost)
    payback = ratio(total_cost, yearly_gain) if yearly_gain > 0 else None
    added_cfpu = yearly_gain / 12 / prop.unit_count

    recs: List[str] = []
    if rent_gain > 0:
        recs.append(f"Augmenter les loyers pour générer {round2(rent_gain)}$ supplémentaires par an.")
    if other_gain > 0:
        recs.append(f"Optimiser les revenus additionnels pour générer {round2(other_gain)}$ supplémentaires par an.")
    if reduction > 0:
        recs.append(f"Réduire les dépenses de {round2(reduction)}$ par an.")
    if structural_gain > 0:
        recs.append(
            f"Implémenter des optimisations structurelles pour générer {round2(structural_gain)}$ "
            f"supplémentaires par an et augmenter la valeur de la propriété de {round2(structural_value)}$."
        )
    if roi is not None and roi > 20:
        recs.append(f"Rendement exceptionnel des optimisations ({roi:.2f}%): mettez-les en œuvre en priorité.")
    elif roi is not None and roi > 10:
        recs.append(f"Rendement intéressant des optimisations ({roi:.2f}%): planifiez leur mise en œuvre.")
    if payback is not None and payback < 2:
        recs.append(f"Les optimisations se remboursent en {payback:.1f} ans, soit moins de 2 ans.")
    if added_cfpu > 25:
        recs.append(f"Les optimisations ajoutent {added_cfpu:.2f}$ de cashflow par porte par mois.")

    return {
        "additional_rental_revenue": rent_gain,
        "additional_other_revenue": other_gain,
        "expenses_reduction": reduction,
        "structural_optimization_revenue": structural_gain,
        "total_additional_revenue": added_revenue,
        "rent_optimization_cost": rent_cost,
        "additional_revenue_optimization_cost": other_cost,
        "expense_optimization_cost": reduction_cost,
        "structural_optimization_cost": structural_cost,
        "total_optimization_cost": total_cost,
        "optimized_noi": optimized_noi,
        "optimized_cap_rate": percent(optimized_noi, total_investment),
        "optimized_value": optimized_value,
        "additional_value": optimized_value - current_value,
        "optimization_roi": roi,
        "payback_period_years": payback,
        "added_cashflow_per_unit": added_cfpu,
        "rating": rate(roi, OPTIMIZATION_ROI_TIERS) if roi is not None else POOR,
        "recommendations": recs,
    }


# -----------------------------
# Overall assessment
# -----------------------------

def overall_assessment(
    deal: MultiDeal,
    revenues: Dict[str, Any],
    financing: Dict[str, Any],
    ratios: Dict[str, Any],
    optimization: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    cfpu = financing["cashflow_per_unit"] or 0.0
    cap = ratios["cap_rate"] or 0.0
    dscr = ratios["debt_service_coverage_ratio"]

    cashflow_rating = GOOD if cfpu >= MULTI_CASHFLOW_PER_UNIT_TIERS.target else ACCEPTABLE if cfpu > 0 else POOR
    cap_rating = GOOD if cap >= MIN_CAP_RATE else ACCEPTABLE if cap > 0 else POOR
    if dscr is None:
        dscr_rating = GOOD  # no debt to service
    else:
        dscr_rating = GOOD if dscr >= MIN_DSCR else ACCEPTABLE if dscr >= ACCEPTABLE_DSCR else POOR
    optimization_rating = optimization["rating"] if optimization else "UNKNOWN"

    ratings = (cashflow_rating, cap_rating, dscr_rating)
    if all(r == GOOD for r in ratings):
        message = "Excellent investissement. Recommandation forte d'achat."
    elif POOR in ratings:
        if optimization_rating in (EXCELLENT, GOOD):
            message = (
                "Investissement à risque mais avec un fort potentiel d'optimisation. Envisagez l'achat "
                "si vous êtes prêt à mettre en œuvre les optimisations recommandées."
            )
        else:
            message = (
                "Investissement risqué avec des métriques faibles. Non recommandé à moins d'une "
                "renégociation significative du prix ou des conditions."
            )
    else:
        message = (
            "Investissement acceptable mais à surveiller. Envisagez des optimisations pour améliorer la rentabilité."
        )

    tips: List[str] = []
    if deal.property.seller_motivated:
        tips.append("Le vendeur est motivé, utilisez cette information pour négocier un meilleur prix.")
    if POOR in (cashflow_rating, cap_rating):
        reduction = deal.property.purchase_price * SUGGESTED_PRICE_REDUCTION
        tips.append(
            f"Les métriques financières sont faibles. Considérez une offre inférieure d'environ "
            f"{round2(reduction)}$ pour atteindre un cashflow cible de "
            f"{MULTI_CASHFLOW_PER_UNIT_TIERS.target:.0f}$ par porte."
        )
    increase_pct = revenues["rent_increase_potential_percentage"]
    if increase_pct is not None and increase_pct > RENT_INCREASE_TIP_THRESHOLD:
        tips.append(
            f"Potentiel significatif d'augmentation des loyers ({round2(increase_pct)}%). "
            "Utilisez cette information pour justifier votre offre."
        )

    return {
        "cashflow_rating": cashflow_rating,
        "cap_rate_rating": cap_rating,
        "dscr_rating": dscr_rating,
        "optimization_potential_rating": optimization_rating,
        "global_recommendation": message,
        "negotiation_tips": tips,
    }


# -----------------------------
# Advanced: suggestions & alternative scenarios
# -----------------------------

def improvement_suggestions(deal: MultiDeal, cashflow_per_unit: Optional[float]) -> Dict[str, Any]:
    target = MULTI_CASHFLOW_PER_UNIT_TIERS.target
    cfpu = cashflow_per_unit or 0.0
    suggestions: List[Dict[str, str]] = []
    if cfpu < target:
        deficit = math.ceil(target - cfpu)
        suggestions.append(
            {
                "type": "revenue",
                "action": "Augmenter les loyers",
                "impact": f"+{deficit:.0f}$ par porte par mois",
                "description": (
                    f"Une augmentation moyenne de {deficit:.0f}$ par mois par unité permettrait "
                    f"d'atteindre le cashflow cible de {target:.0f}$ par porte."
                ),
            }
        )
        suggestions.append(
            {
                "type": "revenue",
                "action": "Ajouter des revenus accessoires",
                "impact": "Variable",
                "description": "Considérer l'ajout de services payants: stationnement, buanderie, stockage, etc.",
            }
        )
        suggestions.append(
            {
                "type": "expense",
                "action": "Optimiser les dépenses",
                "impact": "Moyen",
                "description": (
                    "Revoir les contrats de services, assurances, et identifier les possibilités "
                    "d'économies d'énergie."
                ),
            }
        )
        conv_rate = deal.financing.conventional_mortgage.interest_rate
        if conv_rate is None or conv_rate > 4:
            suggestions.append(
                {
                    "type": "financing",
                    "action": "Refinancer à un taux plus bas",
                    "impact": "Élevé",
                    "description": "Un refinancement à un taux plus bas pourrait améliorer significativement le cashflow.",
                }
            )
    return {
        "current_cashflow_per_unit": cfpu,
        "target_cashflow_per_unit": target,
        "gap": target - cfpu,
        "meets_criteria": cfpu >= target,
        "suggestions": suggestions,
    }


def _scaled(values: Dict[str, Any], factor: float) -> Dict[str, Any]:
    return {
        k: v * factor if isinstance(v, (int, float)) and not isinstance(v, bool) else v
        for k, v in values.items()
    }


def alternative_scenarios(deal: MultiDeal) -> List[Dict[str, Any]]:
    """Rent +10%, expenses -5% and a 1-point refinance, each re-analyzed."""
    rev = deal.revenues
    richer = deal.model_copy(
        update={
            "revenues": rev.model_copy(
                update={
                    "units": [
                        u.model_copy(
                            update={
                                "monthly_rent": u.monthly_rent * 1.1 if u.monthly_rent is not None else None,
                                "annual_rent": u.annual_rent * 1.1 if u.annual_rent is not None else None,
                            }
                        )
                        for u in rev.units
                    ]
                }
            )
        }
    )

    exp = deal.expenses
    leaner = deal.model_copy(
        update={
            "expenses": exp.model_copy(
                update={
                    "taxes": _scaled(exp.taxes, 0.95),
                    "insurance": _scaled(exp.insurance, 0.95),
                    "utilities": _scaled(exp.utilities, 0.95),
                    "maintenance": _scaled(exp.maintenance, 0.95),
                    "other_expenses": [
                        o.model_copy(update={"amount": o.amount * 0.95}) for o in exp.other_expenses
                    ],
                }
            )
        }
    )

    scenarios = [("Augmentation des loyers (+10%)", richer), ("Réduction des dépenses (-5%)", leaner)]

    mortgage = deal.financing.conventional_mortgage
    current_rate = mortgage.interest_rate if mortgage.interest_rate is not None else config.DEFAULT_INTEREST_RATE
    if current_rate > 3:
        refinanced = deal.model_copy(
            update={
                "financing": deal.financing.model_copy(
                    update={"conventional_mortgage": mortgage.model_copy(update={"interest_rate": current_rate - 1})}
                )
            }
        )
        scenarios.append(("Refinancement à taux réduit", refinanced))

    return [{"name": name, "summary": multi_analysis(variant)["summary"]} for name, variant in scenarios]


# -----------------------------
# Pipeline
# -----------------------------

def multi_analysis(deal: MultiDeal, advanced: bool = False) -> Dict[str, Any]:
    revenues = revenue_analysis(deal)
    expenses = expense_analysis(deal, revenues)
    noi = revenues["effective_gross_revenue"] - expenses["total_expenses"]
    financing = financing_analysis(deal, noi)
    ratios = financial_ratios(deal, revenues, expenses, noi, financing)
    verdict = viability(financing["cashflow_per_unit"])
    optimization = optimization_analysis(deal, noi, ratios["total_investment"])
    assessment = overall_assessment(deal, revenues, financing, ratios, optimization)

    recommendations = ratio_recommendations(ratios)
    if optimization:
        recommendations.extend(optimization["recommendations"])

    cfpu = financing["cashflow_per_unit"]
    cfpu_txt = f"{cfpu:.2f}" if cfpu is not None else "n/d"
    if verdict["is_viable"]:
        message = f"Ce projet est viable avec un cashflow de {cfpu_txt}$ par porte par mois"
    else:
        message = (
            f"Ce projet n'est pas viable avec un cashflow de seulement {cfpu_txt}$ par porte par mois "
            f"(cible: {MULTI_CASHFLOW_PER_UNIT_TIERS.target:.0f}$/porte/mois)"
        )

    result: Dict[str, Any] = {
        "summary": {
            "purchase_price": deal.property.purchase_price,
            "unit_count": deal.property.unit_count,
            "gross_revenue": round2(revenues["gross_potential_revenue"]),
            "net_operating_income": round2(noi),
            "total_debt_service": round2(financing["total_debt_service"]),
            "annual_cashflow": round2(financing["annual_cashflow"]),
            "monthly_cashflow": round2(financing["monthly_cashflow"]),
            "cashflow_per_unit": round2(cfpu),
            "cap_rate": round2(ratios["cap_rate"]),
            "cash_on_cash": round2(ratios["cash_on_cash"]),
            "dscr": round2(ratios["debt_service_coverage_ratio"]),
            **verdict,
            "message": message,
        },
        "revenues": revenues,
        "expenses": expenses,
        "net_operating_income": noi,
        "financing": financing,
        "ratios": ratios,
        "recommendations": recommendations,
        "optimization": optimization,
        "assessment": assessment,
    }
    if advanced:
        result["suggestions"] = improvement_suggestions(deal, cfpu)
        result["scenarios"] = alternative_scenarios(deal)
    return result


def analyze_multi(payload: Any, advanced: bool = False) -> Dict[str, Any]:
    """
    Complete MULTI analysis of a payload.

    Accepts either a full {property, revenues, expenses, financing} payload
    or basic figures ({purchasePrice, unitCount, rentalIncomePerUnit, ...})
    which are first expanded with build_multi_deal.
    """
    if isinstance(payload, dict) and "property" not in payload and (
        "rentalIncomePerUnit" in payload or "rental_income_per_unit" in payload
    ):
        payload = build_multi_deal(payload)
    deal = prepare_multi_deal(payload)
    result = multi_analysis(deal, advanced=advanced)
    flags = multi_input_flags(deal, result["revenues"]["potential_rental_revenue"])
    return apply_guardrails(result, flags)


def build_multi_deal(basics: Dict[str, Any]) -> Dict[str, Any]:
    """
    Expand basic figures into a complete MULTI payload.

    Expenses follow the expense ratio for the building size and are split
    across buckets with typical shares.
    """
    figures = prepare_multi_basics(basics)
    price = figures["purchase_price"]
    unit_count = figures["unit_count"]
    rent = figures["rental_income_per_unit"]
    extra = figures["additional_income"]
    dp_pct = figures["down_payment_percentage"]

    total_revenue = rent * unit_count * 12 + extra * 12
    total_expenses = total_revenue * expense_ratio(unit_count)
    tax = total_expenses * 0.35
    insurance = total_expenses * 0.10
    utilities = total_expenses * 0.15
    maintenance = total_expenses * 0.20
    management = total_expenses * 0.15
    other = total_expenses * 0.05

    return {
        "property": {
            "address": figures["address"],
            "purchasePrice": price,
            "marketValue": price,
            "unitCount": unit_count,
            "closingCosts": price * 0.015,
            "sellerMotivated": False,
        },
        "revenues": {
            "units": [
                {"monthlyRent": rent, "marketRent": rent, "occupied": True} for _ in range(unit_count)
            ],
            "additionalRevenues": (
                [{"type": "Stationnement", "monthlyAmount": extra}] if extra > 0 else []
            ),
            "vacancyRate": 5,
            "badDebtRate": 0.5,
        },
        "expenses": {
            "taxes": {"municipal": tax * 0.8, "school": tax * 0.2, "land": 0},
            "insurance": {"building": insurance, "liability": 0, "rental": 0},
            "utilities": {
                "electricity": utilities * 0.6,
                "gas": utilities * 0.2,
                "water": utilities * 0.1,
                "garbage": utilities * 0.05,
                "internet": utilities * 0.05,
            },
            "maintenance": {
                "repairs": maintenance * 0.4,
                "landscaping": maintenance * 0.2,
                "snowRemoval": maintenance * 0.2,
                "cleaning": maintenance * 0.1,
                "reserve": maintenance * 0.1,
            },
            "management": {
                "fee": management * 0.7,
                "isPercentage": False,
                "salaries": management * 0.2,
                "professionalFees": management * 0.1,
            },
            "otherExpenses": [{"name": "Autres dépenses", "amount": other}],
        },
        "financing": {
            "downPaymentPercentage": dp_pct,
            "conventionalMortgage": {
                "amount": price * (1 - dp_pct),
                "interestRate": config.DEFAULT_INTEREST_RATE,
                "amortizationYears": config.DEFAULT_AMORTIZATION_YEARS,
            },
            "creativeFinancing": [],
        },
    }


# -----------------------------
# Basic itemized model
# -----------------------------

def basic_acquisition_costs(deal: BasicMultiDeal) -> Dict[str, Any]:
    if deal.acquisition_costs is not None:
        return {**deal.acquisition_costs, "total": sum_numeric(deal.acquisition_costs)}
    price = deal.purchase_price
    items = {
        "notary_fees": min(2_500.0, price * 0.01),
        "transfer_tax": transfer_tax(price),
        "inspection_fee": 650.0 + deal.units * 100.0,
        "environmental_assessment": 2_500.0 if deal.units > 6 else 0.0,
        "title": 500.0,
    }
    return {**items, "total": sum(items.values())}


def basic_operating_expenses(deal: BasicMultiDeal) -> Dict[str, Any]:
    if deal.operating_expenses is not None:
        return {**deal.operating_expenses, "total": sum_numeric(deal.operating_expenses)}

    gross = deal.gross_annual_rent
    total = gross * expense_ratio(deal.units)
    items = {
        "property_tax": deal.purchase_price * 0.01,
        "insurance": deal.purchase_price * 0.005,
        "maintenance": gross * 0.10,
        "management": gross * 0.05 if deal.units >= 5 else 0.0,
        "utilities": deal.units * 200.0,
        "vacancy": gross * 0.05,
    }
    # remainder of the ratio budget
    items["other"] = total - sum(items.values())
    return {**items, "total": total}


def basic_financing(deal: BasicMultiDeal) -> Dict[str, Any]:
    financing = deal.financing
    if financing is not None and financing.annual_payment:
        return financing.model_dump(exclude_none=True)

    ltv = (
        financing.loan_to_value
        if financing is not None and financing.loan_to_value is not None
        else config.DEFAULT_MULTI_LOAN_TO_VALUE
    )
    rate_pct = (
        financing.interest_rate
        if financing is not None and financing.interest_rate is not None
        else config.DEFAULT_INTEREST_RATE
    )
    years = (
        financing.amortization_years
        if financing is not None and financing.amortization_years is not None
        else config.DEFAULT_AMORTIZATION_YEARS
    )
    loan = deal.purchase_price * ltv
    monthly = monthly_payment(loan, rate_pct, years)
    return {
        "loan_amount": loan,
        "down_payment": deal.purchase_price - loan,
        "interest_rate": rate_pct,
        "amortization_years": years,
        "monthly_payment": monthly,
        "annual_payment": monthly * 12,
        "loan_to_value": ltv,
    }


def basic_multi_analysis(deal: BasicMultiDeal) -> Dict[str, Any]:
    acquisition = basic_acquisition_costs(deal)
    operating = basic_operating_expenses(deal)
    financing = basic_financing(deal)

    noi = deal.gross_annual_rent - operating["total"]
    cashflow = noi - financing["annual_payment"]
    monthly = cashflow / 12
    cfpu = monthly / deal.units
    cap_rate = percent(noi, deal.purchase_price)
    coc = percent(cashflow, financing.get("down_payment") or 0)
    is_viable = cfpu >= MULTI_CASHFLOW_PER_UNIT_TIERS.target
    coc_txt = f"{coc:.2f}" if coc is not None else "n/d"

    return {
        "summary": {
            "purchase_price": deal.purchase_price,
            "gross_annual_rent": deal.gross_annual_rent,
            "units": deal.units,
            "renovation_cost": deal.renovation_cost,
            "acquisition_costs": acquisition["total"],
            "operating_expenses": operating["total"],
            "net_operating_income": noi,
            "annual_cashflow": cashflow,
            "monthly_cashflow": monthly,
            "cashflow_per_unit": cfpu,
            "cap_rate": round2(cap_rate),
            "cash_on_cash": round2(coc),
            "gross_rent_multiplier": round2(ratio(deal.purchase_price, deal.gross_annual_rent)),
            "is_viable": is_viable,
            "rating": rate(cfpu, MULTI_CASHFLOW_PER_UNIT_TIERS),
            "message": (
                f"Ce projet est viable avec un cashflow de {cfpu:.2f}$ par porte par mois "
                f"et un rendement de {coc_txt}%"
                if is_viable
                else f"Ce projet n'est pas viable avec un cashflow de seulement {cfpu:.2f}$ par porte "
                f"par mois (cible: {MULTI_CASHFLOW_PER_UNIT_TIERS.target:.0f}$/porte/mois)"
            ),
        },
        "details": {
            "acquisition": acquisition,
            "operating": operating,
            "financing": financing,
            "renovation": deal.renovation_details or {"total": deal.renovation_cost},
        },
    }


def analyze_basic_multi(payload: Any) -> Dict[str, Any]:
    return basic_multi_analysis(prepare_basic_multi(payload))

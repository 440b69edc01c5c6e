# src/immoinvest/analysis/flip.py
from __future__ import annotations

from typing import Any, Dict

from immoinvest.adapters.config import config
from immoinvest.domain.deals import FlipDeal
from immoinvest.domain.formulas import annualized_roi, percent, round2, sum_numeric, transfer_tax
from immoinvest.domain.thresholds import FLIP_PROFIT_TIERS, rate
from immoinvest.services.guardrails import apply_guardrails, flip_input_flags
from immoinvest.services.validation import prepare_flip_deal

# acquisition defaults
NOTARY_FEE_RATE = 0.01
NOTARY_FEE_CAP = 1_500.0
INSPECTION_FEE = 500.0
ENVIRONMENTAL_PRICE_THRESHOLD = 500_000.0
ENVIRONMENTAL_FEE = 1_200.0
OTHER_ACQUISITION_FEES = 300.0

# holding defaults (monthly)
PROPERTY_TAX_RATE = 0.01  # yearly, of price
INSURANCE_RATE = 0.005  # yearly, of price
UTILITIES_MONTHLY = 150.0
MAINTENANCE_MONTHLY = 100.0

# selling defaults
REALTOR_COMMISSION_RATE = 0.05
MARKETING_COSTS = 500.0
STAGING_COSTS = 1_000.0
POST_INSPECTION_REPAIRS = 1_000.0

LOAN_FEE_RATE = 0.01


def acquisition_costs(deal: FlipDeal) -> Dict[str, Any]:
    """Closing costs paid at purchase; a caller map is trusted and totaled."""
    if deal.acquisition_costs is not None:
        return {**deal.acquisition_costs, "total": sum_numeric(deal.acquisition_costs)}

    price = deal.purchase_price
    notary_fees = min(NOTARY_FEE_CAP, price * NOTARY_FEE_RATE)
    welcome_tax = transfer_tax(price)
    environmental = ENVIRONMENTAL_FEE if price > ENVIRONMENTAL_PRICE_THRESHOLD else 0.0
    items = {
        "notary_fees": notary_fees,
        "transfer_tax": welcome_tax,
        "inspection_fee": INSPECTION_FEE,
        "environmental_assessment": environmental,
        "other_fees": OTHER_ACQUISITION_FEES,
    }
    return {**items, "total": sum(items.values())}


def holding_costs(deal: FlipDeal) -> Dict[str, Any]:
    """Carrying costs; itemized amounts are monthly and multiplied by the holding period."""
    months = deal.holding_period_months
    if deal.holding_costs is not None:
        monthly = sum_numeric(deal.holding_costs)
        return {**deal.holding_costs, "total_monthly": monthly, "total": monthly * months}

    price = deal.purchase_price
    items = {
        "property_tax": price * PROPERTY_TAX_RATE / 12,
        "insurance": price * INSURANCE_RATE / 12,
        "utilities": UTILITIES_MONTHLY,
        "maintenance": MAINTENANCE_MONTHLY,
    }
    monthly = sum(items.values())
    return {**items, "total_monthly": monthly, "total": monthly * months}


def selling_costs(deal: FlipDeal) -> Dict[str, Any]:
    if deal.selling_costs is not None:
        return {**deal.selling_costs, "total": sum_numeric(deal.selling_costs)}

    items = {
        "realtor_fees": deal.selling_price * REALTOR_COMMISSION_RATE,
        "marketing_costs": MARKETING_COSTS,
        "home_staging_costs": STAGING_COSTS,
        "repair_after_inspection": POST_INSPECTION_REPAIRS,
    }
    return {**items, "total": sum(items.values())}


def financing_costs(deal: FlipDeal) -> Dict[str, Any]:
    """
    Interest-only carry over the holding period plus a 1% loan fee.

    A financing map with its own total is passed through unchanged.
    """
    financing = deal.financing
    if financing is not None and financing.total:
        return financing.model_dump(exclude_none=True)

    price = deal.purchase_price
    down_payment = (
        financing.down_payment
        if financing is not None and financing.down_payment is not None
        else price * config.DEFAULT_FLIP_DOWN_PAYMENT
    )
    interest_rate = (
        financing.interest_rate
        if financing is not None and financing.interest_rate is not None
        else config.DEFAULT_INTEREST_RATE
    )
    loan_amount = max(price - down_payment, 0.0)
    monthly_interest = loan_amount * interest_rate / 100 / 12
    total_interest = monthly_interest * deal.holding_period_months
    loan_fees = loan_amount * LOAN_FEE_RATE
    return {
        "down_payment": down_payment,
        "loan_amount": loan_amount,
        "interest_rate": interest_rate,
        "monthly_interest": monthly_interest,
        "total_interest": total_interest,
        "loan_fees": loan_fees,
        "total": total_interest + loan_fees,
    }


def _message(profit: float, roi: float | None) -> str:
    roi_txt = f"{roi:.2f}" if roi is not None else "n/d"
    if profit >= FLIP_PROFIT_TIERS.target:
        return f"Ce projet est viable avec un profit de {profit:.2f}$ et un ROI de {roi_txt}%"
    return (
        f"Ce projet n'est pas viable avec un profit de seulement {profit:.2f}$ "
        f"(cible: {FLIP_PROFIT_TIERS.target:,.0f}$)".replace(",", " ")
    )


def flip_analysis(deal: FlipDeal) -> Dict[str, Any]:
    acquisition = acquisition_costs(deal)
    holding = holding_costs(deal)
    selling = selling_costs(deal)
    financing = financing_costs(deal)

    total_investment = deal.purchase_price + deal.renovation_cost + acquisition["total"] + financing["total"]
    total_costs = total_investment + holding["total"] + selling["total"]
    profit = deal.selling_price - total_costs
    roi = percent(profit, total_investment)

    return {
        "summary": {
            "purchase_price": deal.purchase_price,
            "selling_price": deal.selling_price,
            "renovation_cost": deal.renovation_cost,
            "holding_period_months": deal.holding_period_months,
            "acquisition_costs": acquisition["total"],
            "holding_costs": holding["total"],
            "selling_costs": selling["total"],
            "financing_costs": financing["total"],
            "total_investment": total_investment,
            "total_costs": total_costs,
            "profit": profit,
            "roi": round2(roi),
            "annualized_roi": round2(annualized_roi(roi, deal.holding_period_months)),
            "is_viable": profit >= FLIP_PROFIT_TIERS.target,
            "rating": rate(profit, FLIP_PROFIT_TIERS),
            "message": _message(profit, roi),
        },
        "details": {
            "acquisition": acquisition,
            "holding": holding,
            "selling": selling,
            "financing": financing,
            "renovation": deal.renovation_details or {"total": deal.renovation_cost},
        },
    }


def analyze_flip(payload: Any) -> Dict[str, Any]:
    """Validate a FLIP payload and return its itemized analysis with input flags."""
    deal = prepare_flip_deal(payload)
    return apply_guardrails(flip_analysis(deal), flip_input_flags(deal))

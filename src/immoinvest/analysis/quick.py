# src/immoinvest/analysis/quick.py
"""
Single-pass scenario metrics used to rank scenarios side by side.
"""
from __future__ import annotations

from typing import Any, Dict

from immoinvest.adapters.config import config
from immoinvest.domain.deals import QuickFlipScenario, QuickMultiScenario
from immoinvest.domain.formulas import expense_ratio, monthly_payment, percent, ratio

FLIP_SELLING_COST_RATE = 0.06


def quick_flip(s: QuickFlipScenario) -> Dict[str, Any]:
    selling_costs = (
        s.selling_costs if s.selling_costs is not None else s.sale_price * FLIP_SELLING_COST_RATE
    )
    investment = s.purchase_price + s.renovation_cost
    profit = s.sale_price - investment - selling_costs
    roi = percent(profit, investment)
    # linear annualization, kept for comparability across quick scenarios
    annualized = roi * 12 / s.months_held if roi is not None else None
    return {
        "purchase_price": s.purchase_price,
        "renovation_cost": s.renovation_cost,
        "sale_price": s.sale_price,
        "selling_costs": selling_costs,
        "total_investment": investment,
        "profit": profit,
        "roi": roi,
        "months_held": s.months_held,
        "annualized_roi": annualized,
    }


def quick_multi(s: QuickMultiScenario) -> Dict[str, Any]:
    gross = s.gross_annual_rent
    expenses = s.annual_expenses if s.annual_expenses is not None else gross * expense_ratio(s.units)
    noi = gross - expenses
    investment = s.purchase_price + s.renovation_cost

    dp_ratio = s.down_payment_ratio if s.down_payment_ratio is not None else config.QUICK_DOWN_PAYMENT_RATIO
    rate_pct = s.interest_rate if s.interest_rate is not None else config.QUICK_INTEREST_RATE
    years = s.amortization_years if s.amortization_years is not None else config.DEFAULT_AMORTIZATION_YEARS

    down_payment = investment * dp_ratio
    loan = investment - down_payment
    annual_debt = monthly_payment(loan, rate_pct, years) * 12
    cashflow = noi - annual_debt

    return {
        "purchase_price": s.purchase_price,
        "renovation_cost": s.renovation_cost,
        "units": s.units,
        "gross_annual_rent": gross,
        "annual_expenses": expenses,
        "noi": noi,
        "total_investment": investment,
        "cap_rate": percent(noi, investment),
        "down_payment": down_payment,
        "loan_amount": loan,
        "interest_rate": rate_pct,
        "amortization_years": years,
        "annual_debt_service": annual_debt,
        "annual_cashflow": cashflow,
        "monthly_cashflow": cashflow / 12,
        "cashflow_per_unit": ratio(cashflow / 12, s.units),
        "cash_on_cash": percent(cashflow, down_payment),
        "gross_rent_multiplier": ratio(s.purchase_price, gross),
    }

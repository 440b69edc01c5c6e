# src/immoinvest/analysis/acquisition.py
"""
Portfolio growth: buy one building a year and track units, value,
equity, debt and cashflow until a monthly income target is met.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List

import pandas as pd

from immoinvest.adapters.logging_utils import get_logger
from immoinvest.domain.deals import AcquisitionProperty
from immoinvest.domain.formulas import percent, round2
from immoinvest.services.validation import (
    prepare_acquisition_model,
    prepare_acquisition_strategy,
    prepare_required_units,
)

logger = get_logger(__name__)

# share of the outstanding debt repaid each year
DEBT_PAYDOWN_RATE = 0.02
# one five-door building a year
UNITS_ACQUIRED_PER_YEAR = 5
# price per door when neither an initial price nor a price per unit is known
FALLBACK_PRICE_PER_UNIT = 100_000.0


def _property_for_year(properties: List[AcquisitionProperty], year: int) -> AcquisitionProperty:
    for prop in properties:
        if prop.year == year:
            return prop
    return properties[min(year - 1, len(properties) - 1)]


def yearly_acquisition_strategy(payload: Any) -> Dict[str, Any]:
    strategy = prepare_acquisition_strategy(payload)
    properties = strategy.properties
    appreciation = sum(p.appreciation_rate for p in properties) / len(properties)

    units = 0
    value = equity = debt = cashflow = 0.0
    invested = 0.0
    years_to_target = None

    snapshots = []
    for year in range(1, strategy.number_of_years + 1):
        prop = _property_for_year(properties, year)

        if year > 1:
            value *= 1 + appreciation
            debt -= debt * DEBT_PAYDOWN_RATE
            equity = value - debt

        down_payment = prop.purchase_price * prop.down_payment_percentage
        invested += down_payment
        units += prop.unit_count
        value += prop.purchase_price
        equity += down_payment
        debt += prop.purchase_price - down_payment
        cashflow += prop.unit_count * prop.cashflow_per_door

        if years_to_target is None and cashflow >= strategy.target_monthly_income:
            years_to_target = year

        snapshots.append(
            {
                "year": year,
                "new_unit_count": prop.unit_count,
                "total_unit_count": units,
                "new_property_value": round2(prop.purchase_price),
                "total_portfolio_value": round2(value),
                "total_equity": round2(equity),
                "total_debt": round2(debt),
                "monthly_cashflow": round2(cashflow),
                "yearly_kpi": round2(percent(cashflow, strategy.target_monthly_income)),
            }
        )

    equity_multiple = equity / invested
    summary = {
        "final_portfolio_value": round2(value),
        "final_equity": round2(equity),
        "final_monthly_cashflow": round2(cashflow),
        "total_invested_capital": round2(invested),
        "return_on_investment": round2((equity_multiple - 1) * 100),
        "years_to_target": years_to_target,
        "target_achieved": years_to_target is not None,
        "portfolio_growth_rate": round2(((value / invested) ** (1 / strategy.number_of_years) - 1) * 100),
    }
    logger.info(
        "acquisition_projected",
        extra={
            "context": {
                "years": strategy.number_of_years,
                "units": units,
                "years_to_target": years_to_target,
            }
        },
    )
    return {"yearly_snapshots": snapshots, "summary": summary}


def required_units(payload: Any) -> Dict[str, Any]:
    target, per_door = prepare_required_units(payload)
    units = math.ceil(target / per_door)
    return {
        "required_units": units,
        "target_monthly_income": target,
        "cashflow_per_door": per_door,
        "estimated_achievement_time": math.ceil(units / UNITS_ACQUIRED_PER_YEAR),
    }


def generate_acquisition_model(payload: Any) -> Dict[str, Any]:
    """
    Build a yearly property list growing by a fixed number of doors a year.

    The result is a valid input for yearly_acquisition_strategy.
    """
    p = prepare_acquisition_model(payload)
    properties = []
    for year in range(1, p.number_of_years + 1):
        unit_count = p.initial_unit_count + (year - 1) * p.unit_count_increment
        if p.initial_purchase_price and year == 1:
            price = p.initial_purchase_price
        elif p.price_per_unit:
            price = unit_count * p.price_per_unit
        else:
            base = p.initial_purchase_price or FALLBACK_PRICE_PER_UNIT * p.initial_unit_count
            price = base / p.initial_unit_count * unit_count
        properties.append(
            {
                "year": year,
                "purchase_price": price,
                "unit_count": unit_count,
                "cashflow_per_door": p.cashflow_per_door,
                "down_payment_percentage": p.down_payment_percentage,
                "appreciation_rate": p.appreciation_rate,
            }
        )
    return {
        "number_of_years": p.number_of_years,
        "target_monthly_income": p.target_monthly_income,
        "properties": properties,
    }


def snapshots_frame(result: Dict[str, Any]) -> pd.DataFrame:
    """One row per projected year, indexed by year."""
    return pd.DataFrame(result["yearly_snapshots"]).set_index("year")

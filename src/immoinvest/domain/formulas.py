# src/immoinvest/domain/formulas.py
"""
Formula primitives every calculator delegates to.

Pure functions over floats: amortization, expense ratios, transfer taxes,
rounding and ratios whose denominator may be zero.
"""
from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from immoinvest.domain.errors import InvalidRangeError
from immoinvest.domain.thresholds import (
    EXPENSE_RATIO_BRACKETS,
    EXPENSE_RATIO_DEFAULT,
    TRANSFER_TAX_BRACKETS,
)


# -----------------------------
# Amortization
# -----------------------------

def monthly_payment(principal: float, annual_rate_percent: float, years: float) -> float:
    """
    Fixed-rate annuity payment.

    P * r * (1+r)^n / ((1+r)^n - 1) with r = rate/100/12 and n = years*12.
    A zero rate amortizes straight-line.
    """
    if principal <= 0 or years <= 0:
        return 0.0
    n = years * 12
    if annual_rate_percent == 0:
        return principal / n
    r = annual_rate_percent / 100.0 / 12.0
    growth = (1 + r) ** n
    return principal * r * growth / (growth - 1)


def max_principal(payment: float, annual_rate_percent: float, years: float) -> float:
    """Largest loan a monthly payment can service (inverse of monthly_payment)."""
    if payment <= 0 or years <= 0:
        return 0.0
    n = years * 12
    if annual_rate_percent == 0:
        return payment * n
    r = annual_rate_percent / 100.0 / 12.0
    return payment * (1 - (1 + r) ** (-n)) / r


def payments_per_year(frequency: Optional[str]) -> int:
    return {
        "weekly": 52,
        "biweekly": 26,
        "monthly": 12,
        "quarterly": 4,
        "semiannual": 2,
        "annual": 1,
    }.get((frequency or "monthly").strip().lower(), 12)


# -----------------------------
# Lookup tables
# -----------------------------

def expense_ratio(units: int) -> float:
    """Operating expenses as a fraction of gross revenue for a building size."""
    for max_units, ratio_ in EXPENSE_RATIO_BRACKETS:
        if units <= max_units:
            return ratio_
    return EXPENSE_RATIO_DEFAULT


def expense_ratio_percent(units: int) -> float:
    return round2(expense_ratio(units) * 100)


def transfer_tax(price: float) -> float:
    """Progressive welcome tax on the purchase price."""
    if price <= 0:
        return 0.0
    tax = 0.0
    lower = 0.0
    for upper, marginal in TRANSFER_TAX_BRACKETS:
        if price <= lower:
            break
        tax += (min(price, upper) - lower) * marginal
        lower = upper
    return tax


# Québec welcome tax, 2024 schedule
QUEBEC_BRACKETS: tuple[tuple[float, float, float], ...] = (
    (0.0, 53_700.0, 0.005),
    (53_700.0, 269_200.0, 0.01),
    (269_200.0, math.inf, 0.015),
)
MONTREAL_BRACKETS: tuple[tuple[float, float, float], ...] = (
    (0.0, 53_700.0, 0.005),
    (53_700.0, 269_200.0, 0.01),
    (269_200.0, 500_000.0, 0.015),
    (500_000.0, 1_000_000.0, 0.02),
    (1_000_000.0, math.inf, 0.025),
)
MONTREAL_FIRST_BUYER_EXEMPTION = 5_000.0

MONTREAL_REGIONS = (
    "montréal", "montreal", "anjou", "baie-d'urfé", "beaconsfield", "côte-des-neiges",
    "côte-saint-luc", "dollard-des-ormeaux", "dorval", "hampstead", "kirkland",
    "lachine", "lasalle", "le plateau-mont-royal", "le sud-ouest", "l'île-bizard",
    "mercier", "mont-royal", "pierrefonds", "pointe-claire", "rivière-des-prairies",
    "roxboro", "saint-laurent", "saint-léonard", "sainte-anne-de-bellevue",
    "sainte-geneviève", "senneville", "verdun", "ville-marie", "villeray",
    "westmount", "ahuntsic", "cartierville", "outremont",
)


def is_montreal(municipality: Optional[str]) -> bool:
    if not municipality:
        return False
    name = municipality.lower()
    return any(region in name for region in MONTREAL_REGIONS)


def quebec_transfer_tax(
    property_value: float,
    municipality: str = "",
    first_time_buyer: bool = False,
    first_home_in_quebec: bool = False,
    custom_rate_percentage: Optional[float] = None,
) -> dict:
    """
    Detailed welcome tax with per-bracket lines.

    Montreal adds two upper brackets and exempts first buyers up to 5 000 $.
    A custom rate replaces the whole schedule with a flat rate.
    """
    if not property_value or property_value <= 0:
        raise InvalidRangeError(
            "La valeur de la propriété doit être supérieure à 0", field="propertyValue"
        )

    montreal = is_montreal(municipality)
    if custom_rate_percentage:
        brackets = ((0.0, math.inf, custom_rate_percentage / 100.0),)
    elif montreal:
        brackets = MONTREAL_BRACKETS
    else:
        brackets = QUEBEC_BRACKETS

    total = 0.0
    details = []
    for lower, upper, marginal in brackets:
        if property_value <= lower:
            break
        in_bracket = min(property_value, upper) - lower
        tax = in_bracket * marginal
        details.append(
            {
                "min": lower,
                "max": None if math.isinf(upper) else upper,
                "rate": round2(marginal * 100),
                "amount_in_bracket": in_bracket,
                "tax_amount": round2(tax),
            }
        )
        total += tax

    exemption = 0.0
    reason = ""
    if montreal and (first_time_buyer or first_home_in_quebec):
        exemption = min(total, MONTREAL_FIRST_BUYER_EXEMPTION)
        reason = (
            "Exemption pour premier acheteur"
            if first_time_buyer
            else "Exemption pour première propriété au Québec"
        )

    return {
        "transfer_tax_total": round2(total - exemption),
        "details": details,
        "exemption": {"amount": round2(exemption), "reason": reason},
        "municipality": municipality,
        "property_value": property_value,
        "is_montreal_property": montreal,
    }


# -----------------------------
# Rounding & ratios
# -----------------------------

def round2(value: Optional[float]) -> Optional[float]:
    """Round half-up to the cent; None passes through."""
    if value is None:
        return None
    return math.floor(value * 100 + 0.5) / 100


def ratio(numerator: float, denominator: float) -> Optional[float]:
    """numerator / denominator, or None when the ratio is undefined."""
    if not denominator:
        return None
    return numerator / denominator


def percent(numerator: float, denominator: float) -> Optional[float]:
    r = ratio(numerator, denominator)
    return None if r is None else r * 100


def sum_numeric(values: Optional[Mapping[str, Any]]) -> float:
    """Total of the numeric entries of a cost map; other values are ignored."""
    if not values:
        return 0.0
    return float(
        sum(
            v
            for v in values.values()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        )
    )


def annualized_roi(roi_percent: Optional[float], months: float) -> Optional[float]:
    """Compound a holding-period ROI to a yearly rate."""
    if roi_percent is None or months <= 0:
        return None
    base = 1 + roi_percent / 100
    if base < 0:
        return None
    return (base ** (12 / months) - 1) * 100

# src/immoinvest/services/guardrails.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from immoinvest.adapters.logging_utils import get_logger
from immoinvest.domain.deals import FlipDeal, MultiDeal
from immoinvest.domain.formulas import ratio
from immoinvest.domain.thresholds import (
    AMORTIZATION_RANGE,
    INTEREST_RATE_RANGE,
    MAX_GRM,
    MAX_RENOVATION_SHARE,
)

logger = get_logger(__name__)


def _flag(code: str, message: str, context: Dict[str, Any], severity: str = "warning") -> Dict[str, Any]:
    return {"code": code, "severity": severity, "message": message, "context": context}


def flip_input_flags(deal: FlipDeal) -> List[Dict[str, Any]]:
    flags: List[Dict[str, Any]] = []
    price = deal.purchase_price
    sale = deal.selling_price
    reno = deal.renovation_cost

    if sale <= price:
        flags.append(
            _flag(
                "SALE_BELOW_PURCHASE",
                "Le prix de vente est inférieur ou égal au prix d'achat",
                {"purchase_price": price, "selling_price": sale},
            )
        )
    elif sale < price + reno:
        flags.append(
            _flag(
                "SALE_BELOW_COST_BASIS",
                "Le prix de vente est inférieur au prix d'achat plus les rénovations",
                {"purchase_price": price, "renovation_cost": reno, "selling_price": sale},
            )
        )
    if reno > price * MAX_RENOVATION_SHARE:
        flags.append(
            _flag(
                "RENOVATION_TOO_HIGH",
                "Le coût des rénovations dépasse 50% du prix d'achat",
                {"purchase_price": price, "renovation_cost": reno},
            )
        )
    return flags


def _financing_flags(rate: Optional[float], years: Optional[float], label: str) -> List[Dict[str, Any]]:
    flags: List[Dict[str, Any]] = []
    lo_rate, hi_rate = INTEREST_RATE_RANGE
    if rate is not None and not lo_rate <= rate <= hi_rate:
        flags.append(
            _flag(
                "INTEREST_RATE_UNUSUAL",
                f"Le taux d'intérêt ({label}) est inhabituel: devrait être entre 0% et 20%",
                {"instrument": label, "interest_rate": rate},
            )
        )
    lo_years, hi_years = AMORTIZATION_RANGE
    if years is not None and not lo_years <= years <= hi_years:
        flags.append(
            _flag(
                "AMORTIZATION_UNUSUAL",
                f"La période d'amortissement ({label}) est inhabituelle: devrait être entre 1 et 40 ans",
                {"instrument": label, "amortization_years": years},
            )
        )
    return flags


def multi_input_flags(deal: MultiDeal, rental_revenue: float) -> List[Dict[str, Any]]:
    flags: List[Dict[str, Any]] = []

    grm = ratio(deal.property.purchase_price, rental_revenue)
    if grm is not None and grm > MAX_GRM:
        flags.append(
            _flag(
                "GRM_TOO_HIGH",
                "Le multiplicateur des revenus bruts est élevé, ce qui pourrait indiquer un prix d'achat trop élevé",
                {"grm": grm, "max_grm": MAX_GRM},
            )
        )

    mortgage = deal.financing.conventional_mortgage
    flags.extend(_financing_flags(mortgage.interest_rate, mortgage.amortization_years, "conventional"))
    for cf in deal.financing.creative_financing:
        years = None if cf.interest_only or cf.payment_amount else (cf.amortization_years or cf.term_years)
        flags.extend(_financing_flags(cf.interest_rate, years, cf.type))
    return flags


def apply_guardrails(result: Dict[str, Any], flags: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Attach input sanity flags to a calculator result.

    Flags never block a calculation; they let the caller highlight a
    questionable input.
    """
    result["guardrails"] = {"has_flags": bool(flags), "flags": flags}
    if flags:
        logger.info(
            "input_guardrail_flags",
            extra={"context": {"flags": [f["code"] for f in flags]}},
        )
    return result

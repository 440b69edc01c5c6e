# src/immoinvest/domain/deals.py
"""
Typed, immutable inputs for every calculator.

Payloads arrive as loosely-shaped JSON (camelCase from the web client,
snake_case from Python callers, numbers sometimes as "12 %" strings).
These records are what the calculators actually compute on; building
them is the job of immoinvest.services.validation.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _coerce_number(v: Any) -> Any:
    if isinstance(v, str):
        cleaned = v.strip().replace("%", "").replace("$", "").replace(",", "").replace(" ", "")
        if cleaned == "":
            return None
        return cleaned
    return v


def _coerce_fraction(v: Any) -> Any:
    v = _coerce_number(v)
    if v is None:
        return v
    f = float(v)
    # 25 or "25%" means 0.25
    if f > 1.0:
        f = f / 100.0
    return f


Number = Annotated[float, BeforeValidator(_coerce_number)]
Fraction = Annotated[float, BeforeValidator(_coerce_fraction)]


class Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


def _choices(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# -----------------------------
# Napkin
# -----------------------------

class NapkinFlipInput(Record):
    final_price: Number
    initial_price: Number
    renovation_cost: Number = 0.0


class NapkinFlipOfferInput(Record):
    final_price: Number
    renovation_cost: Number = 0.0
    target_profit: Optional[Number] = None


class NapkinMultiInput(Record):
    purchase_price: Number
    units: int = Field(validation_alias=_choices("units", "unitCount", "unit_count"))
    gross_revenue: Number


class NapkinMultiOfferInput(Record):
    units: int = Field(validation_alias=_choices("units", "unitCount", "unit_count"))
    gross_revenue: Number
    target_cashflow_per_unit: Optional[Number] = None


# -----------------------------
# FLIP detailed
# -----------------------------

SALE_PRICE_KEYS = ("sellingPrice", "selling_price", "salePrice", "sale_price", "finalPrice", "final_price")


class FlipFinancing(Record):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow"
    )

    down_payment: Optional[Number] = None
    interest_rate: Optional[Number] = None  # percent
    total: Optional[Number] = None


class FlipDeal(Record):
    purchase_price: Number
    selling_price: Number = Field(validation_alias=_choices(*SALE_PRICE_KEYS))
    renovation_cost: Number = 0.0
    holding_period_months: Number = Field(
        default=6,
        validation_alias=_choices(
            "holdingPeriodMonths", "holding_period_months", "holdingPeriod", "holding_period"
        ),
    )
    acquisition_costs: Optional[Dict[str, Any]] = None
    # itemized monthly amounts
    holding_costs: Optional[Dict[str, Any]] = None
    selling_costs: Optional[Dict[str, Any]] = None
    financing: Optional[FlipFinancing] = None
    renovation_details: Optional[Dict[str, Any]] = None


# -----------------------------
# MULTI detailed
# -----------------------------

class Unit(Record):
    monthly_rent: Optional[Number] = Field(
        default=None,
        validation_alias=_choices("monthlyRent", "monthly_rent", "currentRent", "current_rent", "rent"),
    )
    annual_rent: Optional[Number] = None
    market_rent: Optional[Number] = None  # monthly
    occupied: bool = Field(default=True, validation_alias=_choices("occupied", "isRented", "is_rented"))
    type: Optional[str] = None


class AdditionalRevenue(Record):
    type: Optional[str] = Field(default=None, validation_alias=_choices("type", "name"))
    monthly_amount: Number = 0.0


class Revenues(Record):
    units: List[Unit]
    additional_revenues: List[AdditionalRevenue] = Field(default_factory=list)
    vacancy_rate: Optional[Number] = None  # percent
    bad_debt_rate: Number = 0.0  # percent


class Management(Record):
    fee: Number = 0.0
    is_percentage: bool = False
    salaries: Number = 0.0
    professional_fees: Number = 0.0


class NamedAmount(Record):
    name: Optional[str] = None
    amount: Number = 0.0


class Expenses(Record):
    # each bucket is an itemized map of annual amounts
    taxes: Dict[str, Any] = Field(default_factory=dict)
    insurance: Dict[str, Any] = Field(default_factory=dict)
    utilities: Dict[str, Any] = Field(default_factory=dict)
    maintenance: Dict[str, Any] = Field(default_factory=dict)
    management: Management = Field(default_factory=Management)
    other_expenses: List[NamedAmount] = Field(default_factory=list)


class ConventionalMortgage(Record):
    amount: Optional[Number] = None
    interest_rate: Optional[Number] = None  # percent
    amortization_years: Optional[Number] = None


class FinancingInstrument(Record):
    type: str = "private"
    amount: Number
    interest_rate: Number = 0.0  # percent
    amortization_years: Optional[Number] = None
    term_years: Optional[Number] = None
    interest_only: bool = False
    payment_amount: Optional[Number] = None
    payment_frequency: Optional[str] = None


class MultiFinancing(Record):
    down_payment_percentage: Fraction
    conventional_mortgage: ConventionalMortgage = Field(default_factory=ConventionalMortgage)
    creative_financing: List[FinancingInstrument] = Field(default_factory=list)


class MultiProperty(Record):
    purchase_price: Number
    unit_count: int
    closing_costs: Number = 0.0
    renovation_cost: Number = 0.0
    market_value: Optional[Number] = None
    seller_motivated: bool = False
    address: Optional[str] = None


class RentOptimization(Record):
    current_rent: Number
    optimized_rent: Number
    implementation_cost: Number = 0.0


class RevenueOptimization(Record):
    current_revenue: Number = 0.0
    optimized_revenue: Number
    implementation_cost: Number = 0.0


class ExpenseOptimization(Record):
    current_expense: Number
    optimized_expense: Number
    implementation_cost: Number = 0.0


class StructuralOptimization(Record):
    additional_monthly_revenue: Number = 0.0
    implementation_cost: Number = 0.0
    current_value: Number = 0.0
    optimized_value: Number = 0.0


class OptimizationPlan(Record):
    rent_optimizations: List[RentOptimization] = Field(default_factory=list)
    additional_revenue_optimizations: List[RevenueOptimization] = Field(default_factory=list)
    expense_optimizations: List[ExpenseOptimization] = Field(default_factory=list)
    structural_optimizations: List[StructuralOptimization] = Field(default_factory=list)


class MultiDeal(Record):
    property: MultiProperty
    revenues: Revenues
    expenses: Expenses = Field(default_factory=Expenses)
    financing: MultiFinancing
    optimization: Optional[OptimizationPlan] = None


class BasicMultiFinancing(Record):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow"
    )

    loan_to_value: Optional[Fraction] = None
    interest_rate: Optional[Number] = None
    amortization_years: Optional[Number] = None
    annual_payment: Optional[Number] = None


class BasicMultiDeal(Record):
    purchase_price: Number
    gross_annual_rent: Number = Field(
        validation_alias=_choices("grossAnnualRent", "gross_annual_rent", "grossRevenue", "gross_revenue")
    )
    units: int = Field(validation_alias=_choices("units", "unitCount", "unit_count"))
    renovation_cost: Number = 0.0
    acquisition_costs: Optional[Dict[str, Any]] = None
    operating_expenses: Optional[Dict[str, Any]] = None
    financing: Optional[BasicMultiFinancing] = None
    renovation_details: Optional[Dict[str, Any]] = None


# -----------------------------
# Quick comparison scenarios
# -----------------------------

class QuickFlipScenario(Record):
    name: Optional[str] = None
    sale_price: Number = Field(validation_alias=_choices(*SALE_PRICE_KEYS))
    purchase_price: Number
    renovation_cost: Number = 0.0
    selling_costs: Optional[Number] = None
    months_held: Number = Field(
        default=6, validation_alias=_choices("monthsHeld", "months_held", "holdingPeriod", "holding_period_months")
    )


class QuickMultiScenario(Record):
    name: Optional[str] = None
    purchase_price: Number
    renovation_cost: Number = 0.0
    units: int = Field(default=1, validation_alias=_choices("units", "unitCount", "unit_count"))
    gross_annual_rent: Number = Field(
        validation_alias=_choices("grossAnnualRent", "gross_annual_rent", "grossRevenue", "gross_revenue")
    )
    annual_expenses: Optional[Number] = None
    down_payment_ratio: Optional[Fraction] = None
    interest_rate: Optional[Number] = None
    amortization_years: Optional[Number] = None


class ComparisonOptions(Record):
    weight_cashflow: Optional[Number] = None
    weight_cap_rate: Optional[Number] = None
    weight_cash_on_cash: Optional[Number] = None
    min_viable_cashflow_per_unit: Optional[Number] = None


# -----------------------------
# Liquidity
# -----------------------------

class OtherFinancing(Record):
    type: str = "private"
    amount: Number
    interest_rate: Number = 0.0
    term_years: Number = 0.0
    include_in_investment: bool = False


class LiquidityInputs(Record):
    purchase_price: Number
    gross_revenue: Number
    interest_rate: Number
    amortization_years: Number = 25
    down_payment: Optional[Number] = None
    down_payment_percentage: Optional[Fraction] = None
    expenses: Number = 0.0
    expenses_as_percentage: bool = False
    other_financing: List[OtherFinancing] = Field(default_factory=list)


class MaxPriceQuery(Record):
    units: int = Field(validation_alias=_choices("units", "unitCount", "unit_count"))
    gross_annual_rent: Number = Field(
        validation_alias=_choices("grossAnnualRent", "gross_annual_rent", "grossRevenue", "gross_revenue")
    )
    renovation_cost: Number = 0.0
    annual_expenses: Optional[Number] = None
    down_payment_ratio: Optional[Fraction] = None
    interest_rate: Optional[Number] = None
    amortization_years: Optional[Number] = None
    target_cashflow_per_unit: Optional[Number] = None


# -----------------------------
# Portfolio growth
# -----------------------------

class AcquisitionProperty(Record):
    year: Optional[int] = None
    purchase_price: Number
    unit_count: int
    cashflow_per_door: Number
    down_payment_percentage: Fraction
    appreciation_rate: Number  # fraction per year


class AcquisitionStrategyInput(Record):
    number_of_years: int
    target_monthly_income: Number
    properties: List[AcquisitionProperty]


class AcquisitionModelParams(Record):
    number_of_years: int = 10
    target_monthly_income: Number
    cashflow_per_door: Number
    initial_unit_count: int = 4
    unit_count_increment: int = 1
    initial_purchase_price: Optional[Number] = None
    price_per_unit: Optional[Number] = None
    down_payment_percentage: Fraction = 0.2
    appreciation_rate: Number = 0.03

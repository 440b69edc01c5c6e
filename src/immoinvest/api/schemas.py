# src/immoinvest/api/schemas.py
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelRequest(BaseModel):
    """
    Request bodies arrive camelCase from the web client.

    Fields are typed loosely on purpose: the calculators validate their
    own inputs and answer with French messages, so the HTTP layer only
    unpacks the envelope.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


# --------------------------------------------
# Comparison
# --------------------------------------------

class CompareRequest(CamelRequest):
    scenarios: Any = None
    options: dict[str, Any] | None = None


class CriteriaRequest(CamelRequest):
    scenarios: Any = None
    type: str = "FLIP"
    optimization_criteria: str | None = None


class SensitivityRequest(CamelRequest):
    base_scenario: dict[str, Any] | None = None
    variable: str = ""
    variation_percentage: float = 10.0
    steps: int = 5


class PortfolioRequest(CamelRequest):
    projects: Any = None


class ComparisonResponse(BaseModel):
    """Envelope of every /api/comparison route."""
    model_config = ConfigDict(extra="allow")

    success: bool
    data: Any = None
    message: str | None = None


# --------------------------------------------
# Liquidity
# --------------------------------------------

class LiquidityMaxPriceRequest(CamelRequest):
    # yearly cashflow to keep after debt service
    target_cashflow: float = 0.0


class LiquiditySensitivityRequest(CamelRequest):
    parameters: list[str] | None = None
    variation_percentage: float = 10.0
    steps: int = 5

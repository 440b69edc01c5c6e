# src/immoinvest/domain/thresholds.py
"""
Business constants shared by every calculator.

Rating scales are tiered (minimum / target / excellent). The single-value
rules used by the detailed calculators map onto the target tier.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RatingTiers:
    minimum: float
    target: float
    excellent: float


FLIP_PROFIT_TIERS = RatingTiers(minimum=15_000.0, target=25_000.0, excellent=40_000.0)
MULTI_CASHFLOW_PER_UNIT_TIERS = RatingTiers(minimum=50.0, target=75.0, excellent=100.0)

# optimization ROI (%) of a value-add plan
OPTIMIZATION_ROI_TIERS = RatingTiers(minimum=5.0, target=12.0, excellent=20.0)

EXCELLENT = "EXCELLENT"
GOOD = "GOOD"
ACCEPTABLE = "ACCEPTABLE"
POOR = "POOR"

# FIP10: resale carry costs as a fraction of the final price
FIP10_RATE = 0.10
# HIGH-5: monthly mortgage estimate as a fraction of the price
HIGH5_MONTHLY_RATE = 0.005

# MULTI expense ratio by unit count: (max units, ratio)
EXPENSE_RATIO_BRACKETS: tuple[tuple[int, float], ...] = (
    (2, 0.30),
    (4, 0.35),
    (6, 0.45),
)
EXPENSE_RATIO_DEFAULT = 0.50

# progressive transfer tax: (upper bound, marginal rate)
TRANSFER_TAX_BRACKETS: tuple[tuple[float, float], ...] = (
    (50_000.0, 0.005),
    (250_000.0, 0.01),
    (500_000.0, 0.015),
    (float("inf"), 0.02),
)

# TGA = cap rate + assumed yearly appreciation (percent)
TGA_APPRECIATION_PERCENT = 2.0

# MULTI recommendation limits
MIN_CAP_RATE = 5.0
MIN_CASH_ON_CASH = 8.0
MAX_EXPENSE_RATIO = 50.0
MIN_DSCR = 1.25
ACCEPTABLE_DSCR = 1.0
MAX_LTV = 80.0

# input guardrails
MAX_RENOVATION_SHARE = 0.5
MAX_GRM = 12.0
INTEREST_RATE_RANGE = (0.0, 20.0)
AMORTIZATION_RANGE = (1, 40)


def rate(value: float | None, tiers: RatingTiers) -> str:
    """Map a metric onto EXCELLENT / GOOD / ACCEPTABLE / POOR."""
    if value is None:
        return POOR
    if value >= tiers.excellent:
        return EXCELLENT
    if value >= tiers.target:
        return GOOD
    if value >= tiers.minimum:
        return ACCEPTABLE
    return POOR

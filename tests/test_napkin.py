# tests/test_napkin.py
import pytest

from immoinvest.analysis.napkin import (
    analyze_napkin_flip,
    analyze_napkin_multi,
    napkin_flip_max_offer,
    napkin_flip_sensitivity,
    napkin_multi_max_offer,
    napkin_multi_sensitivity,
)
from immoinvest.domain.errors import InvalidRangeError, MissingRequiredFieldError, UnreachableTargetError
from immoinvest.domain.thresholds import ACCEPTABLE, EXCELLENT, POOR

FLIP = {"finalPrice": 425_000, "initialPrice": 359_000, "renovationCost": 10_000}
MULTI = {"purchasePrice": 175_000, "units": 4, "grossRevenue": 20_640}


def test_fip10_example():
    result = analyze_napkin_flip(FLIP)
    assert result["profit"] == 13_500.0
    assert result["breakdown"]["carry_costs"] == 42_500.0
    assert result["roi"] == pytest.approx(3.66)
    # below the 15 000 $ minimum
    assert result["rating"] == POOR
    assert result["is_viable"] is False


def test_fip10_accepts_formatted_strings():
    result = analyze_napkin_flip({"finalPrice": "425 000 $", "initialPrice": "359,000", "renovationCost": "10000"})
    assert result["profit"] == 13_500.0


def test_fip10_excellent_deal_is_viable():
    result = analyze_napkin_flip({"finalPrice": 500_000, "initialPrice": 350_000, "renovationCost": 20_000})
    assert result["profit"] == 80_000.0
    assert result["rating"] == EXCELLENT
    assert result["is_viable"] is True


@pytest.mark.parametrize(
    "payload, error",
    [
        (None, MissingRequiredFieldError),
        ({"initialPrice": 100_000, "renovationCost": 0}, MissingRequiredFieldError),
        ({"finalPrice": 300_000, "initialPrice": 200_000}, MissingRequiredFieldError),
        ({"finalPrice": 300_000, "initialPrice": 200_000, "renovationCost": -1}, MissingRequiredFieldError),
        ({"finalPrice": 300_000, "initialPrice": 300_000, "renovationCost": 0}, InvalidRangeError),
    ],
)
def test_fip10_rejects_bad_inputs(payload, error):
    with pytest.raises(error):
        analyze_napkin_flip(payload)


def test_par_high5_example():
    result = analyze_napkin_multi(MULTI)
    assert result["expense_percentage"] == 35.0
    assert result["expenses"] == 7_224.0
    assert result["noi"] == 13_416.0
    assert result["financing"] == 10_500.0
    assert result["cashflow"] == 2_916.0
    assert result["cashflow_per_unit"] == 60.75
    assert result["rating"] == ACCEPTABLE
    assert result["is_viable"] is True


def test_par_high5_requires_whole_units():
    with pytest.raises(MissingRequiredFieldError):
        analyze_napkin_multi({**MULTI, "units": 2.5})


def test_flip_max_offer_leaves_the_target_profit():
    offer = napkin_flip_max_offer({"finalPrice": 425_000, "renovationCost": 10_000})
    assert offer["target_profit"] == 25_000
    assert offer["max_purchase_price"] == 347_500.0

    check = analyze_napkin_flip({**FLIP, "initialPrice": offer["max_purchase_price"]})
    assert check["profit"] == pytest.approx(25_000.0)


def test_flip_max_offer_unreachable():
    with pytest.raises(UnreachableTargetError):
        napkin_flip_max_offer({"finalPrice": 100_000, "renovationCost": 80_000})


def test_multi_max_offer_leaves_the_target_cashflow():
    offer = napkin_multi_max_offer({"units": 4, "grossRevenue": 20_640})
    assert offer["max_annual_mortgage"] == 9_816.0
    assert offer["max_purchase_price"] == pytest.approx(163_600.0)

    check = analyze_napkin_multi({**MULTI, "purchasePrice": offer["max_purchase_price"]})
    assert check["cashflow_per_unit"] == pytest.approx(75.0)


def test_multi_max_offer_unreachable():
    with pytest.raises(UnreachableTargetError):
        napkin_multi_max_offer({"units": 4, "grossRevenue": 2_000, "targetCashflowPerUnit": 100})


def test_flip_sensitivity_is_sorted_by_profit():
    result = napkin_flip_sensitivity(FLIP)
    profits = [s["result"]["profit"] for s in result["scenarios"]]
    assert len(profits) == 6
    assert profits == sorted(profits, reverse=True)
    assert result["base_case"]["profit"] == 13_500.0


def test_multi_sensitivity_accepts_camel_case_overrides():
    result = napkin_multi_sensitivity(MULTI, {"grossRevenue": (-10, 10)})
    names = [s["name"] for s in result["scenarios"]]
    assert "Revenus bruts +10%" in names
    assert "Revenus bruts -10%" in names


def test_sensitivity_rejects_unknown_variable():
    with pytest.raises(InvalidRangeError):
        napkin_flip_sensitivity(FLIP, {"interestRate": (-1, 1)})

# tests/test_liquidity.py
import pytest
from hypothesis import given, settings, strategies as st

from immoinvest.analysis.liquidity import (
    LiquidityCalculator,
    cashflow_per_unit_evaluation,
    evaluate_liquidity,
    grm_evaluation,
    max_price_for_cashflow_per_unit,
    overall_evaluation,
)
from immoinvest.analysis.quick import quick_multi
from immoinvest.domain.errors import InvalidRangeError, MissingRequiredFieldError, UnreachableTargetError
from immoinvest.domain.formulas import monthly_payment
from immoinvest.services.validation import prepare_quick_multi

BASE = {
    "purchasePrice": 500_000,
    "grossRevenue": 80_000,
    "expenses": 35,
    "expensesAsPercentage": True,
    "interestRate": 5,
    "amortizationYears": 25,
    "downPaymentPercentage": 0.2,
}


def test_liquidity_figures():
    result = LiquidityCalculator(BASE).liquidity()
    payment = monthly_payment(400_000, 5, 25) * 12
    assert result["down_payment"] == pytest.approx(100_000.0)
    assert result["mortgage_amount"] == pytest.approx(400_000.0)
    assert result["expenses"] == pytest.approx(28_000.0)
    assert result["net_operating_income"] == pytest.approx(52_000.0)
    assert result["annual_cashflow"] == pytest.approx(52_000 - payment)
    assert result["roi"] == pytest.approx((52_000 - payment) / 100_000 * 100)


def test_explicit_down_payment_wins_over_percentage():
    calc = LiquidityCalculator({**BASE, "downPayment": 150_000})
    assert calc.down_payment == 150_000
    assert calc.mortgage_amount() == pytest.approx(350_000.0)


def test_other_financing_layers():
    calc = LiquidityCalculator(
        {
            **BASE,
            "otherFinancing": [
                {"type": "vendor", "amount": 50_000, "interestRate": 6, "termYears": 10, "includeInInvestment": True}
            ],
        }
    )
    result = calc.liquidity()
    assert result["mortgage_amount"] == pytest.approx(350_000.0)
    assert result["other_financing"][0]["payment"] == pytest.approx(monthly_payment(50_000, 6, 10))
    assert result["investment"] == pytest.approx(150_000.0)


@settings(max_examples=50)
@given(
    gross=st.floats(min_value=60_000, max_value=200_000),
    rate_pct=st.floats(min_value=1, max_value=10),
    target=st.floats(min_value=0, max_value=20_000),
)
def test_max_price_round_trip_with_down_payment_percentage(gross, rate_pct, target):
    inputs = {**BASE, "grossRevenue": gross, "interestRate": rate_pct}
    price = LiquidityCalculator(inputs).max_purchase_price(target)
    assert price > 0

    forward = LiquidityCalculator({**inputs, "purchasePrice": price}).liquidity()
    assert forward["annual_cashflow"] == pytest.approx(target, rel=1e-6, abs=0.01)


@settings(max_examples=50)
@given(
    gross=st.floats(min_value=60_000, max_value=200_000),
    target=st.floats(min_value=0, max_value=10_000),
)
def test_max_price_round_trip_with_fixed_down_payment_and_layers(gross, target):
    inputs = {
        "purchasePrice": 400_000,
        "grossRevenue": gross,
        "expenses": 20_000,
        "interestRate": 5,
        "amortizationYears": 25,
        "downPayment": 50_000,
        "otherFinancing": [{"amount": 30_000, "interestRate": 6, "termYears": 10}],
    }
    price = LiquidityCalculator(inputs).max_purchase_price(target)
    forward = LiquidityCalculator({**inputs, "purchasePrice": price}).liquidity()
    assert forward["annual_cashflow"] == pytest.approx(target, rel=1e-6, abs=0.01)


def test_max_price_is_zero_when_target_is_unreachable():
    assert LiquidityCalculator(BASE).max_purchase_price(60_000) == 0.0


@pytest.mark.parametrize(
    "payload, error",
    [
        (None, MissingRequiredFieldError),
        ({**BASE, "purchasePrice": 0}, MissingRequiredFieldError),
        ({**BASE, "amortizationYears": 0}, InvalidRangeError),
        ({k: v for k, v in BASE.items() if k != "interestRate"}, MissingRequiredFieldError),
    ],
)
def test_invalid_inputs(payload, error):
    with pytest.raises(error):
        LiquidityCalculator(payload)


def test_sensitivity_defaults_to_interest_rate():
    result = LiquidityCalculator(BASE).sensitivity()
    variations = result["results"]["interestRate"]["variations"]
    assert result["parameters_analyzed"] == ["interestRate"]
    assert len(variations) == 11
    assert variations[0]["variation_value"] == pytest.approx(4.5)
    assert variations[-1]["variation_value"] == pytest.approx(5.5)
    cashflows = [v["liquidity_result"]["annual_cashflow"] for v in variations]
    assert cashflows == sorted(cashflows, reverse=True)


def test_sensitivity_skips_negative_values_and_reports_unknown_parameters():
    result = LiquidityCalculator(BASE).sensitivity(["purchasePrice", "vacancy"], 200, 2)
    prices = [v["variation_value"] for v in result["results"]["purchasePrice"]["variations"]]
    assert prices == pytest.approx([0.0, 500_000.0, 1_000_000.0, 1_500_000.0])
    assert result["results"]["vacancy"] == {"error": "Paramètre invalide: vacancy"}


@pytest.mark.parametrize("steps", [0, -3])
def test_sensitivity_rejects_non_positive_steps(steps):
    with pytest.raises(InvalidRangeError):
        LiquidityCalculator(BASE).sensitivity(["purchasePrice"], 10, steps)


def test_sensitivity_leaves_the_calculator_untouched():
    calc = LiquidityCalculator(BASE)
    before = calc.liquidity()
    calc.sensitivity(["grossRevenue", "expenses"])
    assert calc.liquidity() == before


def test_rating_scales():
    assert grm_evaluation(None) == "Non applicable"
    assert grm_evaluation(3.9) == "Excellent"
    assert grm_evaluation(5) == "Très bon"
    assert grm_evaluation(11.9) == "Médiocre"
    assert grm_evaluation(15) == "Risqué"
    assert cashflow_per_unit_evaluation(100) == "Excellent"
    assert cashflow_per_unit_evaluation(60) == "Bon"
    assert cashflow_per_unit_evaluation(0) == "Médiocre"
    assert cashflow_per_unit_evaluation(-1) == "Négatif"


def test_overall_evaluation_weights():
    assert overall_evaluation("Excellent", "Excellent", 7) == "Excellent investissement"
    assert overall_evaluation("Acceptable", "Acceptable", 4.5) == "Investissement acceptable"
    assert overall_evaluation("Risqué", "Négatif", 2) == "Investissement déconseillé"


def test_evaluate_liquidity():
    result = evaluate_liquidity({"purchasePrice": 300_000, "units": 4, "grossAnnualRent": 60_000})
    summary = result["summary"]
    assert summary["grm"] == pytest.approx(5.0)
    assert summary["grm_evaluation"] == "Très bon"
    assert summary["cashflow_evaluation"] == cashflow_per_unit_evaluation(summary["cashflow_per_unit"])
    assert result["income"]["annual_expenses"] == pytest.approx(21_000.0)
    assert result["evaluation"]["overall_evaluation"] == overall_evaluation(
        summary["grm_evaluation"], summary["cashflow_evaluation"], summary["cap_rate"]
    )
    assert result["recommendations"]


def test_negative_cashflow_recommendation():
    result = evaluate_liquidity({"purchasePrice": 900_000, "units": 4, "grossAnnualRent": 40_000})
    assert result["summary"]["cashflow_evaluation"] == "Négatif"
    assert any("cashflow est négatif" in r for r in result["recommendations"])


@pytest.mark.parametrize("renovation", [0, 25_000])
def test_max_price_per_unit_round_trip(renovation):
    payload = {"units": 4, "grossAnnualRent": 60_000, "renovationCost": renovation}
    result = max_price_for_cashflow_per_unit(payload)
    assert result["target_cashflow_per_unit"] == 75

    forward = quick_multi(
        prepare_quick_multi(
            {
                "purchasePrice": result["max_purchase_price"],
                "units": 4,
                "grossAnnualRent": 60_000,
                "renovationCost": renovation,
            }
        )
    )
    assert forward["cashflow_per_unit"] == pytest.approx(75.0, abs=0.01)


def test_max_price_per_unit_unreachable():
    with pytest.raises(UnreachableTargetError):
        max_price_for_cashflow_per_unit({"units": 4, "grossAnnualRent": 5_000})

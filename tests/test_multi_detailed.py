# tests/test_multi_detailed.py
import copy

import pytest

from immoinvest.analysis.multi import analyze_basic_multi, analyze_multi, build_multi_deal
from immoinvest.domain.errors import InvalidRangeError, MissingRequiredFieldError
from immoinvest.domain.formulas import monthly_payment, round2

DEAL = {
    "property": {"purchasePrice": 500_000, "unitCount": 4},
    "revenues": {
        "units": [{"monthlyRent": 1_200} for _ in range(4)],
        "vacancyRate": 0,
    },
    "expenses": {
        "taxes": {"municipal": 5_000},
        "insurance": {"building": 1_500},
    },
    "financing": {
        "downPaymentPercentage": 0.2,
        "conventionalMortgage": {"interestRate": 5, "amortizationYears": 25},
    },
}


def _deal(**changes):
    deal = copy.deepcopy(DEAL)
    for path, value in changes.items():
        section, key = path.split("__")
        deal[section][key] = value
    return deal


def test_pipeline_figures():
    result = analyze_multi(DEAL)
    debt_service = monthly_payment(400_000, 5, 25) * 12
    summary = result["summary"]

    assert summary["gross_revenue"] == 57_600.0
    assert summary["net_operating_income"] == 51_100.0
    assert result["financing"]["conventional_mortgage"]["amount"] == 400_000.0
    assert summary["total_debt_service"] == round2(debt_service)
    assert summary["annual_cashflow"] == round2(51_100 - debt_service)
    assert summary["cashflow_per_unit"] == round2((51_100 - debt_service) / 12 / 4)
    assert summary["cap_rate"] == round2(51_100 / 500_000 * 100)
    assert summary["cash_on_cash"] == round2((51_100 - debt_service) / 100_000 * 100)
    assert result["ratios"]["loan_to_value"] == pytest.approx(80.0)


def test_vacancy_is_deducted_and_provisioned():
    result = analyze_multi(_deal(revenues__vacancyRate=5))
    revenues, expenses = result["revenues"], result["expenses"]
    assert revenues["vacancy_loss"] == pytest.approx(2_880.0)
    assert expenses["management_detail"]["vacancy_provision"] == pytest.approx(revenues["vacancy_loss"])
    assert result["net_operating_income"] == pytest.approx(57_600 - 2_880 - (6_500 + 2_880))


def test_vacancy_from_occupancy_when_rate_is_missing():
    deal = copy.deepcopy(DEAL)
    del deal["revenues"]["vacancyRate"]
    deal["revenues"]["units"][0]["occupied"] = False
    result = analyze_multi(deal)
    assert result["revenues"]["vacancy_rate"] == pytest.approx(25.0)
    assert result["revenues"]["vacancy_rate_source"] == "occupancy"


def test_creative_financing_interest_only():
    deal = _deal(
        financing__conventionalMortgage={"amount": 350_000, "interestRate": 5, "amortizationYears": 25},
        financing__creativeFinancing=[
            {"type": "vendor", "amount": 50_000, "interestRate": 6, "interestOnly": True}
        ],
    )
    result = analyze_multi(deal)
    financing = result["financing"]
    assert financing["creative_financing_payments"] == pytest.approx(3_000.0)
    assert financing["total_financed"] == pytest.approx(400_000.0)
    assert financing["total_debt_service"] == pytest.approx(monthly_payment(350_000, 5, 25) * 12 + 3_000)


def test_financing_total_must_match_down_payment():
    deal = _deal(financing__conventionalMortgage={"amount": 300_000, "interestRate": 5, "amortizationYears": 25})
    with pytest.raises(InvalidRangeError):
        analyze_multi(deal)


def test_unit_list_must_match_unit_count():
    deal = _deal(property__unitCount=5)
    with pytest.raises(InvalidRangeError):
        analyze_multi(deal)


@pytest.mark.parametrize("missing", ["property", "revenues", "financing"])
def test_required_sections(missing):
    deal = copy.deepcopy(DEAL)
    del deal[missing]
    with pytest.raises(MissingRequiredFieldError):
        analyze_multi(deal)


def test_down_payment_percentage_is_required():
    deal = copy.deepcopy(DEAL)
    del deal["financing"]["downPaymentPercentage"]
    with pytest.raises(MissingRequiredFieldError):
        analyze_multi(deal)


def test_recommendations_collect_every_failed_threshold():
    # expensive building: low cap rate, negative cash-on-cash, weak coverage
    result = analyze_multi(_deal(property__purchasePrice=1_200_000))
    recs = result["recommendations"]
    assert any("taux de capitalisation" in r for r in recs)
    assert any("mise de fonds" in r for r in recs)
    assert any("couverture de la dette" in r for r in recs)
    assert result["summary"]["is_viable"] is False


def test_net_income_multiplier_undefined_without_income():
    deal = _deal(expenses__taxes={"municipal": 80_000})
    result = analyze_multi(deal)
    assert result["net_operating_income"] < 0
    assert result["ratios"]["net_income_multiplier"] is None


def test_optimization_plan():
    deal = copy.deepcopy(DEAL)
    deal["optimization"] = {
        "rentOptimizations": [{"currentRent": 1_200, "optimizedRent": 1_300, "implementationCost": 2_000}],
        "expenseOptimizations": [{"currentExpense": 1_500, "optimizedExpense": 1_200}],
    }
    plan = analyze_multi(deal)["optimization"]
    assert plan["additional_rental_revenue"] == pytest.approx(1_200.0)
    assert plan["expenses_reduction"] == pytest.approx(300.0)
    assert plan["optimization_roi"] == pytest.approx(75.0)
    assert plan["payback_period_years"] == pytest.approx(2_000 / 1_500)


def test_advanced_adds_suggestions_and_scenarios():
    result = analyze_multi(DEAL, advanced=True)
    names = [s["name"] for s in result["scenarios"]]
    assert names == [
        "Augmentation des loyers (+10%)",
        "Réduction des dépenses (-5%)",
        "Refinancement à taux réduit",
    ]
    richer = result["scenarios"][0]["summary"]
    assert richer["gross_revenue"] == pytest.approx(57_600 * 1.1)
    assert "suggestions" in result["suggestions"]


def test_basic_figures_are_expanded():
    basics = {"purchasePrice": 400_000, "unitCount": 4, "rentalIncomePerUnit": 1_100}
    payload = build_multi_deal(basics)
    assert len(payload["revenues"]["units"]) == 4
    assert payload["financing"]["conventionalMortgage"]["amount"] == pytest.approx(320_000.0)

    result = analyze_multi(basics)
    assert result["summary"]["unit_count"] == 4
    assert result["summary"]["gross_revenue"] == pytest.approx(52_800.0)


def test_basic_figures_accept_formatted_strings():
    basics = {
        "purchasePrice": "400 000 $",
        "unitCount": "4",
        "rentalIncomePerUnit": "1100",
        "downPaymentPercentage": "25%",
    }
    payload = build_multi_deal(basics)
    assert payload["property"]["purchasePrice"] == pytest.approx(400_000.0)
    assert payload["financing"]["downPaymentPercentage"] == pytest.approx(0.25)
    assert payload["financing"]["conventionalMortgage"]["amount"] == pytest.approx(300_000.0)

    result = analyze_multi(basics)
    assert result["summary"]["gross_revenue"] == pytest.approx(52_800.0)


@pytest.mark.parametrize(
    "basics",
    [
        {"purchasePrice": 400_000, "unitCount": "4.5", "rentalIncomePerUnit": 1_100},
        {"purchasePrice": "abc", "unitCount": 4, "rentalIncomePerUnit": 1_100},
        {"purchasePrice": 400_000, "unitCount": 4, "rentalIncomePerUnit": -5},
    ],
)
def test_basic_figures_reject_bad_values(basics):
    with pytest.raises(MissingRequiredFieldError):
        analyze_multi(basics)


def test_guardrails_flag_high_grm_and_unusual_rate():
    deal = _deal(
        property__purchasePrice=900_000,
        financing__conventionalMortgage={"interestRate": 25, "amortizationYears": 25},
    )
    codes = [f["code"] for f in analyze_multi(deal)["guardrails"]["flags"]]
    assert "GRM_TOO_HIGH" in codes
    assert "INTEREST_RATE_UNUSUAL" in codes


def test_basic_itemized_model():
    result = analyze_basic_multi({"purchasePrice": 300_000, "units": 4, "grossAnnualRent": 36_000})
    summary = result["summary"]
    assert summary["operating_expenses"] == pytest.approx(36_000 * 0.35)
    assert summary["net_operating_income"] == pytest.approx(36_000 * 0.65)
    loan = 300_000 * 0.75
    assert result["details"]["financing"]["loan_amount"] == pytest.approx(loan)
    expected_cashflow = 36_000 * 0.65 - monthly_payment(loan, 5, 25) * 12
    assert summary["annual_cashflow"] == pytest.approx(expected_cashflow)
    assert summary["is_viable"] is (expected_cashflow / 12 / 4 >= 75)


def test_basic_model_requires_core_figures():
    with pytest.raises(MissingRequiredFieldError):
        analyze_basic_multi({"purchasePrice": 300_000, "units": 4})

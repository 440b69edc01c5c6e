# tests/test_acquisition.py
import pytest

from immoinvest.analysis.acquisition import (
    generate_acquisition_model,
    required_units,
    snapshots_frame,
    yearly_acquisition_strategy,
)
from immoinvest.domain.errors import InvalidRangeError, MissingRequiredFieldError

PROPERTY = {
    "purchasePrice": 500_000,
    "unitCount": 5,
    "cashflowPerDoor": 100,
    "downPaymentPercentage": 0.2,
    "appreciationRate": 0.03,
}
STRATEGY = {"numberOfYears": 3, "targetMonthlyIncome": 1_000, "properties": [PROPERTY]}


def test_yearly_snapshots():
    result = yearly_acquisition_strategy(STRATEGY)
    y1, y2, y3 = result["yearly_snapshots"]

    assert y1["total_unit_count"] == 5
    assert y1["total_equity"] == 100_000.0
    assert y1["total_debt"] == 400_000.0
    assert y1["monthly_cashflow"] == 500.0
    assert y1["yearly_kpi"] == 50.0

    # 3% appreciation, 2% of the debt repaid, then the new building
    assert y2["total_portfolio_value"] == pytest.approx(1_015_000.0)
    assert y2["total_debt"] == pytest.approx(792_000.0)
    assert y2["total_equity"] == pytest.approx(223_000.0)
    assert y2["monthly_cashflow"] == 1_000.0

    assert y3["total_portfolio_value"] == pytest.approx(1_545_450.0)
    assert y3["total_debt"] == pytest.approx(1_176_160.0)
    assert y3["total_unit_count"] == 15


def test_equity_plus_debt_is_portfolio_value():
    for snap in yearly_acquisition_strategy({**STRATEGY, "numberOfYears": 8})["yearly_snapshots"]:
        assert snap["total_equity"] + snap["total_debt"] == pytest.approx(snap["total_portfolio_value"], abs=0.02)


def test_summary():
    summary = yearly_acquisition_strategy(STRATEGY)["summary"]
    assert summary["years_to_target"] == 2
    assert summary["target_achieved"] is True
    assert summary["total_invested_capital"] == 300_000.0
    assert summary["final_equity"] == pytest.approx(369_290.0)
    assert summary["return_on_investment"] == pytest.approx((369_290 / 300_000 - 1) * 100, abs=0.01)


def test_target_not_reached():
    summary = yearly_acquisition_strategy({**STRATEGY, "targetMonthlyIncome": 50_000})["summary"]
    assert summary["years_to_target"] is None
    assert summary["target_achieved"] is False


def test_property_matched_by_year_else_last():
    cheap = {**PROPERTY, "year": 2, "purchasePrice": 200_000, "unitCount": 2}
    result = yearly_acquisition_strategy({**STRATEGY, "properties": [PROPERTY, cheap]})
    new_units = [s["new_unit_count"] for s in result["yearly_snapshots"]]
    assert new_units == [5, 2, 2]


@pytest.mark.parametrize(
    "payload, error",
    [
        ({**STRATEGY, "properties": []}, MissingRequiredFieldError),
        ({**STRATEGY, "numberOfYears": 0}, MissingRequiredFieldError),
        ({**STRATEGY, "properties": [{**PROPERTY, "downPaymentPercentage": 20}]}, InvalidRangeError),
    ],
)
def test_invalid_strategy(payload, error):
    with pytest.raises(error):
        yearly_acquisition_strategy(payload)


def test_required_units():
    result = required_units({"targetMonthlyIncome": 3_000, "cashflowPerDoor": 75})
    assert result["required_units"] == 40
    assert result["estimated_achievement_time"] == 8

    assert required_units({"targetMonthlyIncome": 1_000, "cashflowPerDoor": 75})["required_units"] == 14


def test_generated_model_grows_one_door_a_year():
    model = generate_acquisition_model({"targetMonthlyIncome": 5_000, "cashflowPerDoor": 80, "pricePerUnit": 100_000})
    props = model["properties"]
    assert model["number_of_years"] == 10
    assert len(props) == 10
    assert [p["unit_count"] for p in props[:3]] == [4, 5, 6]
    assert [p["purchase_price"] for p in props[:2]] == [400_000, 500_000]


def test_generated_model_scales_the_initial_price():
    model = generate_acquisition_model(
        {"targetMonthlyIncome": 5_000, "cashflowPerDoor": 80, "initialPurchasePrice": 480_000, "numberOfYears": 3}
    )
    assert [p["purchase_price"] for p in model["properties"]] == pytest.approx([480_000, 600_000, 720_000])


def test_generated_model_feeds_the_projection():
    model = generate_acquisition_model({"targetMonthlyIncome": 2_000, "cashflowPerDoor": 75, "pricePerUnit": 90_000})
    result = yearly_acquisition_strategy(model)
    assert len(result["yearly_snapshots"]) == 10

    frame = snapshots_frame(result)
    assert frame.index.name == "year"
    assert frame.index.tolist() == list(range(1, 11))
    assert frame["total_unit_count"].is_monotonic_increasing


def test_model_needs_a_price():
    with pytest.raises(MissingRequiredFieldError):
        generate_acquisition_model({"targetMonthlyIncome": 5_000, "cashflowPerDoor": 80})

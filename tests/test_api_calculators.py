# tests/test_api_calculators.py
def test_napkin_flip(client):
    r = client.post(
        "/api/calculators/napkin-flip",
        json={"finalPrice": 425_000, "initialPrice": 359_000, "renovationCost": 10_000},
    )
    assert r.status_code == 200, r.text
    assert r.json()["profit"] == 13_500.0


def test_napkin_flip_rejects_inverted_prices(client):
    r = client.post(
        "/api/calculators/napkin-flip",
        json={"finalPrice": 300_000, "initialPrice": 350_000, "renovationCost": 0},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Le prix initial doit être inférieur au prix final"}


def test_napkin_multi_offer(client):
    r = client.post("/api/calculators/napkin-multi/offer", json={"units": 4, "grossRevenue": 20_640})
    assert r.status_code == 200, r.text
    assert r.json()["max_purchase_price"] == 163_600.0


def test_unreachable_offer_is_400(client):
    r = client.post("/api/calculators/napkin-flip/offer", json={"finalPrice": 100_000, "renovationCost": 90_000})
    assert r.status_code == 400
    assert "profit cible" in r.json()["error"]


def test_flip_detailed_with_string_inputs(client):
    r = client.post(
        "/api/calculators/flip-detailed",
        json={"purchasePrice": "200 000 $", "sellingPrice": "300000", "renovationCost": 30_000, "holdingPeriodMonths": 6},
    )
    assert r.status_code == 200, r.text
    assert abs(r.json()["summary"]["profit"] - 39_850.0) < 0.01


def test_multi_detailed_missing_sections(client):
    r = client.post("/api/calculators/multi-detailed", json={"property": {"purchasePrice": 500_000, "unitCount": 4}})
    assert r.status_code == 400
    assert r.json()["error"] == "Les détails des revenus sont requis"


def test_multi_detailed_advanced(client):
    payload = {"purchasePrice": 400_000, "unitCount": 4, "rentalIncomePerUnit": 1_100}
    r = client.post("/api/calculators/multi-detailed?advanced=true", json=payload)
    assert r.status_code == 200, r.text
    body = r.json()
    assert "suggestions" in body
    assert len(body["scenarios"]) == 3


def test_transfer_tax(client):
    r = client.post("/api/calculators/transfer-tax", json={"propertyValue": 300_000, "municipality": "Laval"})
    assert r.status_code == 200, r.text
    assert r.json()["transfer_tax_total"] == 2_885.5

    r = client.post(
        "/api/calculators/transfer-tax",
        json={"propertyValue": 300_000, "municipality": "Montréal", "isFirstTimeHomeBuyer": True},
    )
    body = r.json()
    assert body["is_montreal_property"] is True
    assert body["transfer_tax_total"] == 0.0
    assert body["exemption"]["amount"] == 2_885.5


LIQUIDITY = {
    "purchasePrice": 500_000,
    "grossRevenue": 80_000,
    "expenses": 35,
    "expensesAsPercentage": True,
    "interestRate": 5,
    "downPaymentPercentage": 0.2,
}


def test_liquidity(client):
    r = client.post("/api/calculators/liquidity", json=LIQUIDITY)
    assert r.status_code == 200, r.text
    assert r.json()["net_operating_income"] == 52_000.0


def test_liquidity_max_price(client):
    r = client.post("/api/calculators/liquidity/max-price", json={**LIQUIDITY, "targetCashflow": 10_000})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["target_cashflow"] == 10_000
    assert body["max_purchase_price"] > 0


def test_liquidity_max_price_needs_inputs(client):
    r = client.post("/api/calculators/liquidity/max-price", json={"targetCashflow": 10_000})
    assert r.status_code == 400
    assert "error" in r.json()


def test_liquidity_sensitivity(client):
    r = client.post(
        "/api/calculators/liquidity/sensitivity",
        json={**LIQUIDITY, "parameters": ["interestRate", "grossRevenue"], "steps": 2},
    )
    assert r.status_code == 200, r.text
    results = r.json()["results"]
    assert len(results["interestRate"]["variations"]) == 5
    assert len(results["grossRevenue"]["variations"]) == 5


def test_liquidity_evaluate_and_max_price_per_unit(client):
    r = client.post("/api/calculators/liquidity/evaluate", json={"purchasePrice": 300_000, "units": 4, "grossAnnualRent": 60_000})
    assert r.status_code == 200, r.text
    assert r.json()["summary"]["grm_evaluation"] == "Très bon"

    r = client.post("/api/calculators/liquidity/max-price-per-unit", json={"units": 4, "grossAnnualRent": 60_000})
    assert r.status_code == 200, r.text
    assert r.json()["max_purchase_price"] > 0


def test_portfolio_growth_routes(client):
    r = client.post("/api/calculators/required-units", json={"targetMonthlyIncome": 3_000, "cashflowPerDoor": 75})
    assert r.status_code == 200, r.text
    assert r.json()["required_units"] == 40

    r = client.post(
        "/api/calculators/generate-acquisition-model",
        json={"targetMonthlyIncome": 3_000, "cashflowPerDoor": 75, "pricePerUnit": 100_000, "numberOfYears": 4},
    )
    assert r.status_code == 200, r.text
    model = r.json()

    r = client.post("/api/calculators/yearly-acquisition-strategy", json=model)
    assert r.status_code == 200, r.text
    assert len(r.json()["yearly_snapshots"]) == 4


def test_required_units_rejects_zero_cashflow(client):
    r = client.post("/api/calculators/required-units", json={"targetMonthlyIncome": 3_000, "cashflowPerDoor": 0})
    assert r.status_code == 400


def test_multi_detailed_basic_figures_as_strings(client):
    payload = {"purchasePrice": "400 000 $", "unitCount": 4, "rentalIncomePerUnit": "1100"}
    r = client.post("/api/calculators/multi-detailed", json=payload)
    assert r.status_code == 200, r.text
    assert r.json()["summary"]["unit_count"] == 4


def test_multi_detailed_fractional_unit_count_is_400(client):
    payload = {"purchasePrice": 400_000, "unitCount": "4.5", "rentalIncomePerUnit": 1_100}
    r = client.post("/api/calculators/multi-detailed", json=payload)
    assert r.status_code == 400
    assert r.json() == {"error": "Le nombre d'unités doit être un entier positif"}


def test_liquidity_sensitivity_zero_steps_is_400(client):
    r = client.post("/api/calculators/liquidity/sensitivity", json={**LIQUIDITY, "steps": 0})
    assert r.status_code == 400
    assert r.json() == {"error": "Le nombre d'étapes doit être un entier positif"}


def test_napkin_flip_sensitivity(client):
    payload = {
        "finalPrice": 425_000,
        "initialPrice": 359_000,
        "renovationCost": 10_000,
        "variations": {"finalPrice": [-5, 5]},
    }
    r = client.post("/api/calculators/napkin-flip/sensitivity", json=payload)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["base_case"]["profit"] == 13_500.0
    assert len(body["scenarios"]) == 6


def test_napkin_multi_sensitivity_rejects_bad_variations(client):
    payload = {"purchasePrice": 300_000, "units": 4, "grossRevenue": 36_000, "variations": {"grossRevenue": "ten"}}
    r = client.post("/api/calculators/napkin-multi/sensitivity", json=payload)
    assert r.status_code == 400
    assert "grossRevenue" in r.json()["error"]


def test_calculator_failure_detail_follows_environment(client, monkeypatch):
    from immoinvest.adapters.config import config

    def explode(payload):
        raise RuntimeError("boom")

    monkeypatch.setattr("immoinvest.api.http.analyze_napkin_flip", explode)
    monkeypatch.setattr(config, "ENV", "dev")
    r = client.post("/api/calculators/napkin-flip", json={"finalPrice": 1})
    assert r.status_code == 500
    assert r.json() == {"error": "Une erreur interne est survenue", "detail": "boom"}

    monkeypatch.setattr(config, "ENV", "production")
    r = client.post("/api/calculators/napkin-flip", json={"finalPrice": 1})
    assert r.status_code == 500
    assert r.json() == {"error": "Une erreur interne est survenue"}

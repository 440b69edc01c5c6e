# tests/test_api_comparison.py
FLIP = {"name": "Bungalow", "purchasePrice": 200_000, "salePrice": 280_000, "renovationCost": 30_000}
MULTI = {"name": "Sixplex", "purchasePrice": 600_000, "units": 6, "grossAnnualRent": 90_000}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_analyze_returns_envelope(client):
    r = client.post("/api/comparison/analyze", json=MULTI)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["data"]["scenario"]["name"] == "Sixplex"
    assert body["data"]["analysis"]["type"] == "MULTI"


def test_analyze_without_scenario_is_400(client):
    r = client.post("/api/comparison/analyze", json={})
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Vous devez fournir un scénario à analyser"}


def test_analyze_with_invalid_figures_is_400(client):
    r = client.post("/api/comparison/analyze", json={"purchasePrice": -5, "salePrice": 100})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_compare(client):
    r = client.post("/api/comparison/compare", json={"scenarios": [FLIP, MULTI], "options": {"weightCashflow": 0.6}})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert len(data["scenarios"]) == 2
    assert data["settings"]["weight_cashflow"] == 0.6
    assert data["best_overall"]["id"] in (1, 2)


def test_compare_without_scenarios_is_400(client):
    r = client.post("/api/comparison/compare", json={"scenarios": []})
    assert r.status_code == 400
    assert r.json()["message"] == "Vous devez fournir au moins un scénario à comparer"


def test_criteria(client):
    scenarios = [
        {"purchasePrice": 200_000, "sellingPrice": 300_000, "renovationCost": 20_000},
        {"purchasePrice": 210_000, "sellingPrice": 300_000, "renovationCost": 20_000},
    ]
    r = client.post("/api/comparison/criteria", json={"scenarios": scenarios, "type": "FLIP", "optimizationCriteria": "roi"})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["optimization_criteria"] == "roi"
    assert data["optimal_scenario"]["scenario_name"] == "Scénario 1"


def test_criteria_rejects_unknown_metric(client):
    r = client.post(
        "/api/comparison/criteria",
        json={"scenarios": [{"purchasePrice": 1, "sellingPrice": 2}], "type": "MULTI", "optimizationCriteria": "profit"},
    )
    assert r.status_code == 400
    assert "Critère d'optimisation invalide" in r.json()["message"]


def test_sensitivity(client):
    base = {"purchasePrice": 200_000, "sellingPrice": 300_000, "renovationCost": 20_000}
    r = client.post(
        "/api/comparison/sensitivity",
        json={"baseScenario": base, "variable": "purchasePrice", "variationPercentage": 20, "steps": 2},
    )
    assert r.status_code == 200, r.text
    assert len(r.json()["data"]["scenarios"]) == 5


def test_sensitivity_on_missing_variable_is_400(client):
    r = client.post(
        "/api/comparison/sensitivity",
        json={"baseScenario": {"purchasePrice": 200_000, "sellingPrice": 300_000}, "variable": "interestRate"},
    )
    assert r.status_code == 400
    assert "interestRate" in r.json()["message"]


def test_portfolio(client):
    projects = [
        {"type": "FLIP", "purchasePrice": 200_000, "sellingPrice": 300_000, "renovationCost": 20_000},
        {"type": "MULTI", "purchasePrice": 300_000, "units": 4, "grossAnnualRent": 48_000},
    ]
    r = client.post("/api/comparison/portfolio", json={"projects": projects})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["flip_count"] == 1
    assert data["multi_count"] == 1


def test_portfolio_without_projects_is_400(client):
    r = client.post("/api/comparison/portfolio", json={})
    assert r.status_code == 400
    assert r.json()["success"] is False


def _explode(*args, **kwargs):
    raise RuntimeError("boom")


def test_unexpected_failure_echoes_error_outside_production(client, monkeypatch):
    from immoinvest.adapters.config import config

    monkeypatch.setattr("immoinvest.api.http.compare_scenarios", _explode)
    monkeypatch.setattr(config, "ENV", "dev")
    r = client.post("/api/comparison/compare", json={"scenarios": [FLIP, MULTI]})
    assert r.status_code == 500
    assert r.json() == {
        "success": False,
        "message": "Une erreur est survenue lors de la comparaison des scénarios",
        "error": "boom",
    }


def test_unexpected_failure_hides_error_in_production(client, monkeypatch):
    from immoinvest.adapters.config import config

    monkeypatch.setattr("immoinvest.api.http.compare_scenarios", _explode)
    monkeypatch.setattr(config, "ENV", "production")
    r = client.post("/api/comparison/compare", json={"scenarios": [FLIP, MULTI]})
    assert r.status_code == 500
    assert r.json() == {
        "success": False,
        "message": "Une erreur est survenue lors de la comparaison des scénarios",
    }

"""HTTP tests for /financials and /goal"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

import models
from database import SessionLocal, engine
from main import create_app
from routers.utils import get_financial_data_provider
from services import gemini_service
from services.gemini_service import InsightGenerationError


def add_expense(client, headers, amount, category_name="Food", description="Groceries"):
    categories = client.get("/categories", headers=headers).json()
    category_id = next(c["category_id"] for c in categories if c["name"] == category_name)
    response = client.post(
        "/expenses",
        json={
            "amount": amount,
            "description": description,
            "date_spent": date.today().isoformat(),
            "category_id": category_id,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text


class TestFinancialsEndpoint:

    def test_requires_authentication(self, client):
        assert client.get("/financials").status_code == 401
        assert client.post("/financials", json={"monthlyIncome": 100}).status_code == 401

    def test_new_user_without_income(self, client, auth_headers, fake_generator):
        response = client.get("/financials", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["hasIncome"] is False
        assert body["currentIncome"] == 0
        assert body["totalExpenses"] == 0
        assert body["expensesByCategory"] == []
        assert body["aiInsights"]["recommendations"]
        assert "_warning" not in body
        assert fake_generator.calls == 1

    def test_aggregates_expenses_and_caches(self, client, auth_headers, fake_generator):
        add_expense(client, auth_headers, 40.0, "Food")
        add_expense(client, auth_headers, 10.5, "Food")
        add_expense(client, auth_headers, 900.0, "Housing", "Rent")

        first = client.get("/financials", headers=auth_headers).json()
        second = client.get("/financials", headers=auth_headers).json()

        assert first == second
        assert first["totalExpenses"] == 950.5
        assert {"name": "Food", "value": 50.5} in first["expensesByCategory"]
        assert {"name": "Housing", "value": 900.0} in first["expensesByCategory"]
        assert fake_generator.calls == 1
        assert "Food: $50.50" in fake_generator.prompts[0]

    def test_heuristic_fallback_when_model_fails(self, client, auth_headers, fake_generator):
        fake_generator.fail_with = InsightGenerationError("unavailable", status_code=503)
        # The eager refresh fails too, so nothing is cached for this user
        client.post("/financials", json={"monthlyIncome": 5000}, headers=auth_headers)

        response = client.get("/financials", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["_warning"]
        assert body["degraded"] is True
        assert body["aiInsights"]["suggestedBudget"] == {"needs": 2500.0, "wants": 1500.0, "savings": 1000.0}

    def test_returns_500_when_no_data_can_be_loaded(self, app, client, auth_headers):
        class BrokenProvider:
            def build_summary(self, user_id, lookback_days=30):
                raise ConnectionError("database unavailable")

        app.dependency_overrides[get_financial_data_provider] = lambda: BrokenProvider()
        response = client.get("/financials", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to fetch analytics. Please try again."


class TestIncomeUpdateEndpoint:

    def test_rejects_invalid_income(self, client, auth_headers):
        for payload in ({}, {"monthlyIncome": 0}, {"monthlyIncome": -10}, {"monthlyIncome": "abc"}):
            response = client.post("/financials", json=payload, headers=auth_headers)
            assert response.status_code == 422, payload

    def test_update_returns_fresh_analytics(self, client, auth_headers, fake_generator):
        client.get("/financials", headers=auth_headers)

        response = client.post("/financials", json={"monthlyIncome": 4200}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["analytics"]["currentIncome"] == 4200
        assert body["analytics"]["hasIncome"] is True
        assert "_warning" not in body
        assert fake_generator.calls == 2

        # Served from the refreshed cache entry
        assert client.get("/financials", headers=auth_headers).json()["currentIncome"] == 4200
        assert fake_generator.calls == 2

    def test_latest_income_wins(self, client, auth_headers):
        client.post("/financials", json={"monthlyIncome": 3000}, headers=auth_headers)
        client.post("/financials", json={"monthlyIncome": 3500}, headers=auth_headers)
        assert client.get("/financials", headers=auth_headers).json()["currentIncome"] == 3500

    def test_update_succeeds_with_warning_when_refresh_fails(self, client, auth_headers, fake_generator):
        fake_generator.fail_with = InsightGenerationError("unavailable", status_code=500)

        response = client.post("/financials", json={"monthlyIncome": 6100}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["_warning"]
        assert "analytics" not in body

        fake_generator.fail_with = None
        assert client.get("/financials", headers=auth_headers).json()["currentIncome"] == 6100


class TestGoalEndpoint:

    def test_requires_authentication(self, client):
        assert client.post("/goal", json={"goalAmount": 6000, "timeframe": 12}).status_code == 401

    def test_validates_inputs(self, client, auth_headers, fake_generator):
        for payload in (
            {"goalAmount": 0, "timeframe": 12},
            {"goalAmount": 6000, "timeframe": 0},
            {"goalAmount": -1, "timeframe": 12},
            {"goalAmount": 6000, "timeframe": 2.5},
            {"goalAmount": 6000},
        ):
            response = client.post("/goal", json=payload, headers=auth_headers)
            assert response.status_code == 422, payload
        assert fake_generator.calls == 0

    def test_returns_ai_plan(self, client, auth_headers, fake_generator):
        response = client.post("/goal", json={"goalAmount": 6000, "timeframe": 12}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["savingsPlan"].startswith("Save $500")
        assert len(body["recommendations"]) == 3
        assert len(body["tips"]) == 3
        assert "_warning" not in body

        client.post("/goal", json={"goalAmount": 6000, "timeframe": 12}, headers=auth_headers)
        assert fake_generator.calls == 1

    def test_fallback_plan_when_model_fails(self, client, auth_headers, fake_generator):
        fake_generator.fail_with = InsightGenerationError("bad request", status_code=400)

        response = client.post("/goal", json={"goalAmount": 6000, "timeframe": 12}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert "$500.00 per month" in body["savingsPlan"]
        assert body["recommendations"]
        assert body["tips"]
        assert body["_warning"]
        assert fake_generator.calls == 1


class TestWithoutModelConfigured:
    """No generator override and no GEMINI_API_KEY: every AI path degrades."""

    @pytest.fixture
    def unconfigured_client(self, monkeypatch, fast_settings):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setattr(gemini_service, "_gemini_service_instance", None)
        models.Base.metadata.drop_all(bind=engine)
        with TestClient(create_app(fast_settings)) as test_client:
            yield test_client
        models.Base.metadata.drop_all(bind=engine)

    @pytest.fixture
    def headers(self, unconfigured_client):
        response = unconfigured_client.post(
            "/auth/signup",
            json={"name": "Sam", "email": "sam@example.com", "password": "secret123"},
        )
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    def test_financials_served_degraded(self, unconfigured_client, headers):
        response = unconfigured_client.get("/financials", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["degraded"] is True
        assert body["_warning"]
        assert body["aiInsights"]["recommendations"]

    def test_income_update_saves_and_warns(self, unconfigured_client, headers):
        response = unconfigured_client.post("/financials", json={"monthlyIncome": 5000}, headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["_warning"]
        with SessionLocal() as db:
            assert db.query(models.Income).count() == 1

        assert unconfigured_client.get("/financials", headers=headers).json()["currentIncome"] == 5000

    def test_goal_plan_uses_basic_plan(self, unconfigured_client, headers):
        response = unconfigured_client.post("/goal", json={"goalAmount": 6000, "timeframe": 12}, headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert "$500.00 per month" in body["savingsPlan"]
        assert body["degraded"] is True

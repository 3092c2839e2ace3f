"""Pytest configuration and fixtures shared by the unit and API tests"""

import asyncio
import copy
import os
from datetime import date, datetime

# Point the app at an in-memory database BEFORE any project imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("ALGORITHM", "HS256")

import pytest
from fastapi.testclient import TestClient

import models
from config import AnalyticsSettings
from database import engine
from main import create_app
from routers.utils import get_insight_generator_factory
from services.financial_data import ExpenseRecord, IncomeSnapshot, summarize


VALID_INSIGHTS = {
    "analysis": "Housing dominates your spending.",
    "recommendations": ["Cook at home", "Cancel unused subscriptions", "Automate savings"],
    "concerns": ["Housing above 40% of income"],
    "suggestedBudget": {"needs": 2500, "wants": 1500, "savings": 1000},
}

VALID_PLAN = {
    "savingsPlan": "Save $500 per month for 12 months.",
    "recommendations": ["Reduce dining out", "Sell unused items", "Automate transfers"],
    "tips": ["Track expenses", "Set milestones", "Review monthly"],
}


class FakeGenerator:
    """Stands in for the Gemini client.

    Queued ``responses`` are consumed first (dicts are returned, exceptions
    raised); afterwards ``fail_with`` is raised if set, otherwise a valid
    payload matching the prompt is returned.
    """

    def __init__(self):
        self.responses = []
        self.fail_with = None
        self.delay = 0.0
        self.calls = 0
        self.prompts = []

    async def generate_json(self, prompt):
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.responses:
            outcome = self.responses.pop(0)
        elif self.fail_with is not None:
            outcome = self.fail_with
        else:
            outcome = VALID_PLAN if "savingsPlan" in prompt else VALID_INSIGHTS
        if isinstance(outcome, BaseException):
            raise outcome
        return copy.deepcopy(outcome)


class FakeProvider:
    """In-memory financial data for orchestrator tests"""

    def __init__(self, income=5000.0, expenses=None):
        self.income = income
        self.expenses = expenses if expenses is not None else [
            ExpenseRecord(amount=2000.0, date=date.today(), category_name="Housing"),
            ExpenseRecord(amount=600.0, date=date.today(), category_name="Food"),
            ExpenseRecord(amount=400.0, date=date.today(), category_name="Food"),
        ]
        self.created = []
        self.summaries_built = 0

    def get_latest_income(self, user_id):
        if self.income is None:
            return None
        return IncomeSnapshot(amount=self.income, recorded_at=datetime(2024, 1, 1))

    def list_recent_expenses(self, user_id, since):
        return [expense for expense in self.expenses if expense.date >= since]

    def create_income_record(self, user_id, amount, recorded_at):
        self.created.append((user_id, amount))
        self.income = amount

    def build_summary(self, user_id, lookback_days=30):
        self.summaries_built += 1
        return summarize(self.get_latest_income(user_id), self.expenses)


@pytest.fixture
def fast_settings():
    return AnalyticsSettings(
        base_delay_seconds=0.0,
        jitter=False,
        compute_timeout_seconds=5.0,
        refresh_timeout_seconds=5.0,
    )


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def app(fast_settings, fake_generator):
    models.Base.metadata.drop_all(bind=engine)
    application = create_app(fast_settings)
    application.dependency_overrides[get_insight_generator_factory] = lambda: (lambda: fake_generator)
    yield application
    application.dependency_overrides.clear()
    models.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def signup(client, email="alex@example.com", name="Alex", password="secret123"):
    response = client.post("/auth/signup", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return signup(client)


@pytest.fixture
def other_headers(client):
    return signup(client, email="sam@example.com", name="Sam")

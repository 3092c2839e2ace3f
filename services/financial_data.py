"""
Read/write access to the income and expense facts that seed AI analytics.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

import models


@dataclass
class IncomeSnapshot:
    amount: float
    recorded_at: datetime


@dataclass
class ExpenseRecord:
    amount: float
    date: date
    category_name: str


@dataclass
class FinancialSummary:
    monthly_income: float
    total_expenses: float
    expenses_by_category: Dict[str, float] = field(default_factory=dict)
    has_income: bool = False

    def category_totals(self) -> List[Dict[str, float]]:
        return [{"name": name, "value": value} for name, value in self.expenses_by_category.items()]


def summarize(income: Optional[IncomeSnapshot], expenses: List[ExpenseRecord]) -> FinancialSummary:
    """Aggregate raw records into a FinancialSummary (category order follows first appearance)."""
    by_category: Dict[str, float] = defaultdict(float)
    for expense in expenses:
        by_category[expense.category_name] += expense.amount

    return FinancialSummary(
        monthly_income=income.amount if income else 0.0,
        total_expenses=round(sum(expense.amount for expense in expenses), 2),
        expenses_by_category={name: round(total, 2) for name, total in by_category.items()},
        has_income=income is not None,
    )


class FinancialDataProvider:
    """
    SQLAlchemy-backed collaborator for the analytics layer.

    Every call opens its own session from ``session_factory`` so a computation
    that outlives the originating request never touches a closed session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_latest_income(self, user_id: int) -> Optional[IncomeSnapshot]:
        with self.session_factory() as db:
            income = (
                db.query(models.Income)
                .filter(models.Income.user_id == user_id)
                .order_by(models.Income.date_received.desc(), models.Income.income_id.desc())
                .first()
            )
            if income is None:
                return None
            return IncomeSnapshot(amount=income.amount, recorded_at=income.date_received)

    def list_recent_expenses(self, user_id: int, since: date) -> List[ExpenseRecord]:
        with self.session_factory() as db:
            rows = (
                db.query(models.Expense.amount, models.Expense.date_spent, models.Category.name)
                .join(models.Category, models.Expense.category_id == models.Category.category_id)
                .filter(models.Expense.user_id == user_id, models.Expense.date_spent >= since)
                .order_by(models.Expense.date_spent.desc())
                .all()
            )
            return [ExpenseRecord(amount=amount, date=spent, category_name=name) for amount, spent, name in rows]

    def create_income_record(self, user_id: int, amount: float, recorded_at: datetime) -> None:
        with self.session_factory() as db:
            db.add(models.Income(
                user_id=user_id,
                amount=amount,
                source="Monthly Income",
                date_received=recorded_at,
            ))
            db.commit()

    def build_summary(self, user_id: int, lookback_days: int = 30) -> FinancialSummary:
        since = date.today() - timedelta(days=lookback_days)
        return summarize(self.get_latest_income(user_id), self.list_recent_expenses(user_id, since))

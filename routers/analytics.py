"""
Spending analytics over a rolling window (no AI involved).
"""
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Tuple

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, joinedload

import models
import schemas
from database import get_db
from routers.utils import get_current_user

router = APIRouter()

# (days in window, divisor for a monthly average, days to project over)
RANGE_PARAMETERS: Dict[str, Tuple[int, float, int]] = {
    "week": (7, 0.25, 7),
    "month": (30, 1.0, 30),
    "year": (365, 12.0, 365),
}


def build_spending_analytics(expenses, time_range: str, today: date) -> dict:
    """Aggregate expenses into totals, a zero-filled daily trend and per-category sums."""
    window_days, months_divisor, projection_days = RANGE_PARAMETERS[time_range]
    start = today - timedelta(days=window_days)

    daily = {start + timedelta(days=offset): 0.0 for offset in range(window_days + 1)}
    by_category: Dict[str, float] = defaultdict(float)
    total = 0.0
    for expense in expenses:
        if expense.date_spent in daily:
            daily[expense.date_spent] += expense.amount
        by_category[expense.category.name] += expense.amount
        total += expense.amount

    return {
        "currentPeriodTotal": round(total, 2),
        "averagePerMonth": round(total / months_divisor, 2),
        "projectedExpense": round(total / window_days * projection_days, 2),
        "expensesTrend": [{"date": day, "amount": round(amount, 2)} for day, amount in daily.items()],
        "expensesByCategory": [{"name": name, "value": round(value, 2)} for name, value in by_category.items()],
    }


@router.get("", response_model=schemas.SpendingAnalyticsResponse)
def get_spending_analytics(
    timeRange: str = Query("month", pattern="^(week|month|year)$"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Totals, monthly average, projection and daily trend for the selected range"""
    today = date.today()
    window_days = RANGE_PARAMETERS[timeRange][0]
    expenses = (
        db.query(models.Expense)
        .options(joinedload(models.Expense.category))
        .filter(
            models.Expense.user_id == current_user.user_id,
            models.Expense.date_spent >= today - timedelta(days=window_days),
            models.Expense.date_spent <= today,
        )
        .order_by(models.Expense.date_spent.asc())
        .all()
    )
    return build_spending_analytics(expenses, timeRange, today)

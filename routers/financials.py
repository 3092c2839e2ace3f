"""
AI budget insights for the current user, plus monthly income updates.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

import models
import schemas
from routers.utils import get_current_user, get_analytics_orchestrator
from services.analytics_service import AnalyticsOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=schemas.FinancialsResponse, response_model_exclude_none=True)
async def get_financials(
    current_user: models.User = Depends(get_current_user),
    orchestrator: AnalyticsOrchestrator = Depends(get_analytics_orchestrator),
):
    """
    Income, last-30-day spending by category and AI insights.

    Served from cache when fresh. When the model is unavailable the last saved
    analysis (or a 50/30/20 heuristic) is returned with a ``_warning`` field.
    """
    try:
        return await orchestrator.get_financials(current_user.user_id)
    except Exception as err:
        logger.error(f"Failed to fetch analytics for user {current_user.user_id}: {err}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch analytics. Please try again.",
        ) from err


@router.post("", response_model=schemas.IncomeUpdateResponse, response_model_exclude_none=True)
async def update_income(
    income: schemas.IncomeUpdate,
    current_user: models.User = Depends(get_current_user),
    orchestrator: AnalyticsOrchestrator = Depends(get_analytics_orchestrator),
):
    """Save a new monthly income and return refreshed analytics when available"""
    try:
        return await orchestrator.update_income(current_user.user_id, income.monthlyIncome)
    except Exception as err:
        logger.error(f"Failed to update income for user {current_user.user_id}: {err}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update income",
        ) from err

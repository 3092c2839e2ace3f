import logging

from fastapi import APIRouter, Depends, HTTPException, status

import models
import schemas
from routers.utils import get_current_user, get_analytics_orchestrator
from services.analytics_service import AnalyticsOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=schemas.GoalPlanResponse, response_model_exclude_none=True)
async def plan_goal(
    goal: schemas.GoalPlanRequest,
    current_user: models.User = Depends(get_current_user),
    orchestrator: AnalyticsOrchestrator = Depends(get_analytics_orchestrator),
):
    """
    Savings plan for reaching ``goalAmount`` within ``timeframe`` months.

    Never fails because of the model: a computed plan (goal / months) is
    returned instead.
    """
    try:
        return await orchestrator.plan_goal(current_user.user_id, goal.goalAmount, goal.timeframe)
    except Exception as err:
        logger.error(f"Failed to generate savings plan for user {current_user.user_id}: {err}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate savings plan",
        ) from err

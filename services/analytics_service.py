"""
AI-backed financial analytics with caching, request coalescing, retry and
deterministic fallbacks.

Read path for a key: fresh cache entry -> shared in-flight computation ->
new computation. When the computation fails or times out, the last cached
value (even if expired) is served as degraded data, otherwise a locally
computed heuristic result.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

import schemas
from config import AnalyticsSettings
from services.analytics_cache import AnalyticsCache, CacheEntry, analytics_key, goal_key
from services.financial_data import FinancialDataProvider, FinancialSummary
from services.gemini_service import InsightGenerationError, InsightResponseError
from services.retry import RetryController

logger = logging.getLogger(__name__)

STALE_WARNING = "AI insights are temporarily unavailable; showing your last saved analysis."
HEURISTIC_WARNING = "AI insights are temporarily unavailable; showing a standard 50/30/20 budget."
GOAL_HEURISTIC_WARNING = "AI planning is temporarily unavailable; showing a basic savings plan."
REFRESH_WARNING = "Income saved, but analytics could not be refreshed yet. They will update on your next visit."


# ============ PROMPTS ============

def build_insights_prompt(summary: FinancialSummary) -> str:
    category_lines = "\n".join(
        f"{name}: ${amount:.2f}" for name, amount in summary.expenses_by_category.items()
    ) or "No expenses recorded"
    return f"""As a financial advisor, analyze this spending data:
Monthly Income: ${summary.monthly_income:.2f}
Total Monthly Expenses: ${summary.total_expenses:.2f}
Expenses by Category:
{category_lines}

Please provide:
1. A brief analysis of spending patterns
2. Three specific recommendations for saving money
3. Any concerning spending categories
4. A suggested monthly budget breakdown based on the 50/30/20 rule

Respond with ONLY a JSON object of this structure:
{{
  "analysis": "brief analysis text",
  "recommendations": ["rec1", "rec2", "rec3"],
  "concerns": ["concern1", "concern2"],
  "suggestedBudget": {{"needs": number, "wants": number, "savings": number}}
}}"""


def build_goal_prompt(summary: FinancialSummary, goal_amount: float, timeframe: int) -> str:
    return f"""Create a financial savings plan based on the following:

Monthly Income: ${summary.monthly_income:.2f}
Total Monthly Expenses: ${summary.total_expenses:.2f}
Savings Goal: ${goal_amount:.2f}
Timeframe: {timeframe} months

Respond with ONLY a JSON object, no Markdown and no other text, of this structure:
{{
  "savingsPlan": "A detailed savings plan",
  "recommendations": ["Recommendation 1", "Recommendation 2", "Recommendation 3"],
  "tips": ["Tip 1", "Tip 2", "Tip 3"]
}}"""


# ============ FALLBACKS ============

def heuristic_insights(summary: FinancialSummary) -> Dict[str, Any]:
    """50/30/20 split of income plus generic advice."""
    income = summary.monthly_income
    concerns = []
    if not summary.has_income:
        concerns.append("No monthly income has been recorded yet")
    elif summary.total_expenses > income:
        concerns.append("Your expenses exceed your income")

    recommendations = [
        "Review your highest spending categories",
        "Consider setting a monthly budget",
        "Build an emergency fund if you haven't already",
    ]
    if summary.expenses_by_category:
        top_category = max(summary.expenses_by_category, key=summary.expenses_by_category.get)
        recommendations[0] = f"Review your spending on {top_category}, your largest category"

    return {
        "analysis": "Basic analysis based on your spending data. For more detailed insights, please try again later.",
        "recommendations": recommendations,
        "concerns": concerns,
        "suggestedBudget": {
            "needs": round(max(0.0, income * 0.5), 2),
            "wants": round(max(0.0, income * 0.3), 2),
            "savings": round(max(0.0, income * 0.2), 2),
        },
    }


def heuristic_savings_plan(goal_amount: float, timeframe: int) -> Dict[str, Any]:
    monthly = goal_amount / timeframe
    return {
        "savingsPlan": (
            f"To reach your goal of ${goal_amount:,.2f} in {timeframe} months, "
            f"set aside ${monthly:,.2f} per month."
        ),
        "recommendations": [
            "Review your monthly expenses and identify areas where you can reduce spending.",
            "Set up automatic transfers to a dedicated savings account each payday.",
            "Explore options for increasing your income, such as a side hustle or negotiating a raise.",
        ],
        "tips": [
            "Track your spending meticulously to understand where your money is going.",
            "Set realistic and achievable savings goals to stay motivated.",
            "Regularly review your progress and adjust your plan as needed.",
        ],
    }


def financials_payload(summary: FinancialSummary, insights: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "currentIncome": summary.monthly_income,
        "totalExpenses": summary.total_expenses,
        "expensesByCategory": summary.category_totals(),
        "aiInsights": insights,
        "hasIncome": summary.has_income,
    }


def _degraded(value: Dict[str, Any], warning: str) -> Dict[str, Any]:
    return {**value, "degraded": True, "_warning": warning}


# ============ ORCHESTRATOR ============

class AnalyticsOrchestrator:
    """Serves analytics and goal plans for a user, protecting the insight generator.

    ``generator_factory`` is called lazily, inside each computation, so a
    generator that cannot be built (e.g. no API key) degrades to the
    fallbacks instead of failing the request.
    """

    def __init__(
        self,
        cache: AnalyticsCache,
        provider: FinancialDataProvider,
        generator_factory: Callable[[], Any],
        settings: AnalyticsSettings,
        retry: Optional[RetryController] = None,
    ):
        self.cache = cache
        self.provider = provider
        self.generator_factory = generator_factory
        self.settings = settings
        self.retry = retry or RetryController.from_settings(settings)

    # ---- generation ----

    def _resolve_generator(self):
        try:
            return self.generator_factory()
        except Exception as err:
            logger.error(f"Insight generator unavailable: {err}")
            raise InsightGenerationError(f"Insight generator unavailable: {err}", status_code=503) from err

    async def _generate(self, generator, prompt: str, shape: Type[BaseModel]) -> Dict[str, Any]:
        """One attempt: call the generator and validate the answer's shape."""
        raw = await generator.generate_json(prompt)
        try:
            return shape.model_validate(raw).model_dump()
        except ValidationError as err:
            raise InsightResponseError(f"Model response failed {shape.__name__} validation: {err}") from err

    async def _load_summary(self, user_id: int) -> FinancialSummary:
        return await run_in_threadpool(self.provider.build_summary, user_id, self.settings.expense_lookback_days)

    async def _compute_financials(self, user_id: int) -> Dict[str, Any]:
        summary = await self._load_summary(user_id)
        prompt = build_insights_prompt(summary)
        # Built once per computation, outside the retry loop
        generator = self._resolve_generator()
        insights = await self.retry.run(lambda: self._generate(generator, prompt, schemas.AIInsights))
        payload = financials_payload(summary, insights)
        self.cache.results.put(analytics_key(user_id), payload)
        return payload

    async def _compute_goal_plan(self, user_id: int, goal_amount: float, timeframe: int) -> Dict[str, Any]:
        summary = await self._load_summary(user_id)
        prompt = build_goal_prompt(summary, goal_amount, timeframe)
        generator = self._resolve_generator()
        plan = await self.retry.run(lambda: self._generate(generator, prompt, schemas.SavingsPlan))
        self.cache.results.put(goal_key(user_id, goal_amount, timeframe), plan)
        return plan

    # ---- cache plumbing ----

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        try:
            return self.cache.results.get(key)
        except Exception:
            logger.exception(f"Result cache lookup failed for {key}; treating as a miss")
            return None

    async def _await_shared(self, key: str, compute: Callable[[], Awaitable[Any]], timeout: float) -> Any:
        shared = self.cache.in_flight.begin(key, compute)
        # shield: a timed-out waiter must not cancel the computation other waiters share
        return await asyncio.wait_for(asyncio.shield(shared), timeout=timeout)

    async def _read_through(
        self,
        key: str,
        expiration_seconds: float,
        compute: Callable[[], Awaitable[Any]],
        fallback: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        entry = self._lookup(key)
        if entry is not None and self.cache.results.is_fresh(entry, expiration_seconds):
            logger.info(f"Cache hit for {key}")
            return entry.value

        try:
            return await self._await_shared(key, compute, self.settings.compute_timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Computation for {key} timed out after {self.settings.compute_timeout_seconds}s")
        except Exception as err:
            logger.error(f"Computation for {key} failed: {err}", exc_info=True)

        stale = self._lookup(key)
        if stale is not None:
            logger.warning(f"Serving stale cached result for {key}")
            return _degraded(stale.value, STALE_WARNING)
        return await fallback()

    # ---- public operations ----

    async def get_financials(self, user_id: int) -> Dict[str, Any]:
        """Income, spending by category and AI insights for the user."""
        async def fallback():
            logger.warning(f"Using heuristic insights for user {user_id}")
            summary = await self._load_summary(user_id)
            return _degraded(financials_payload(summary, heuristic_insights(summary)), HEURISTIC_WARNING)

        return await self._read_through(
            analytics_key(user_id),
            self.settings.analytics_cache_seconds,
            lambda: self._compute_financials(user_id),
            fallback,
        )

    async def update_income(self, user_id: int, monthly_income: float) -> Dict[str, Any]:
        """
        Record a new monthly income, drop the user's cached analytics and try
        to return freshly computed analytics within the refresh timeout.

        A failed refresh does not fail the update: the income is already saved.
        """
        await run_in_threadpool(self.provider.create_income_record, user_id, monthly_income, datetime.now())
        key = analytics_key(user_id)
        self.cache.results.invalidate(key)

        try:
            analytics = await self._await_shared(
                key,
                lambda: self._compute_financials(user_id),
                self.settings.refresh_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Analytics refresh for user {user_id} timed out after income update")
            return {"success": True, "_warning": REFRESH_WARNING}
        except Exception as err:
            logger.warning(f"Failed to refresh analytics after income update for user {user_id}: {err}")
            return {"success": True, "_warning": REFRESH_WARNING}

        return {"success": True, "analytics": analytics}

    async def plan_goal(self, user_id: int, goal_amount: float, timeframe: int) -> Dict[str, Any]:
        """Savings plan for reaching ``goal_amount`` within ``timeframe`` months."""
        async def fallback():
            logger.warning(f"Using heuristic savings plan for user {user_id}")
            return _degraded(heuristic_savings_plan(goal_amount, timeframe), GOAL_HEURISTIC_WARNING)

        return await self._read_through(
            goal_key(user_id, goal_amount, timeframe),
            self.settings.goal_cache_seconds,
            lambda: self._compute_goal_plan(user_id, goal_amount, timeframe),
            fallback,
        )

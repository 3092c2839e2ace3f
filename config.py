"""
Runtime configuration for the analytics and AI layers.
Values come from the environment (optionally a .env file).
"""
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AnalyticsSettings:
    """Knobs for caching, retrying and timing out insight generation."""

    analytics_cache_seconds: float = 60 * 60
    goal_cache_seconds: float = 30 * 60
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    backoff_factor: float = 2.0
    jitter: bool = True
    compute_timeout_seconds: float = 60.0
    refresh_timeout_seconds: float = 15.0
    expense_lookback_days: int = 30


def load_analytics_settings() -> AnalyticsSettings:
    """Build settings from environment variables, falling back to defaults."""
    return AnalyticsSettings(
        analytics_cache_seconds=float(os.getenv("ANALYTICS_CACHE_MINUTES", "60")) * 60,
        goal_cache_seconds=float(os.getenv("GOAL_CACHE_MINUTES", "30")) * 60,
        max_attempts=int(os.getenv("AI_MAX_ATTEMPTS", "3")),
        base_delay_seconds=float(os.getenv("AI_BASE_DELAY_SECONDS", "1.0")),
        backoff_factor=float(os.getenv("AI_BACKOFF_FACTOR", "2.0")),
        jitter=_env_bool("AI_RETRY_JITTER", True),
        compute_timeout_seconds=float(os.getenv("AI_COMPUTE_TIMEOUT_SECONDS", "60")),
        refresh_timeout_seconds=float(os.getenv("AI_REFRESH_TIMEOUT_SECONDS", "15")),
        expense_lookback_days=int(os.getenv("EXPENSE_LOOKBACK_DAYS", "30")),
    )


def cors_origins() -> list:
    raw = os.getenv("CORS_ORIGINS")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]

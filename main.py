from typing import Optional
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import models
from config import AnalyticsSettings, cors_origins, load_analytics_settings
from database import engine
from routers import auth, categories, expenses, analytics, financials, goal
from services.analytics_cache import AnalyticsCache

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app(settings: Optional[AnalyticsSettings] = None) -> FastAPI:
    """Build the API with its own analytics cache and settings."""
    # Create tables
    models.Base.metadata.create_all(bind=engine)

    app = FastAPI(
        title="Personal Finance Tracker API",
        version="1.0.0",
        description="Expense tracking with AI budget insights and savings plans",
    )

    # One cache per application: results and in-flight AI computations
    app.state.analytics_settings = settings or load_analytics_settings()
    app.state.analytics_cache = AnalyticsCache()

    # Cannot use "*" with allow_credentials=True, so origins are listed explicitly
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )

    # Include routers
    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
    app.include_router(categories.router, prefix="/categories", tags=["Categories"])
    app.include_router(expenses.router, prefix="/expenses", tags=["Expenses"])
    app.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
    app.include_router(financials.router, prefix="/financials", tags=["Financials"])
    app.include_router(goal.router, prefix="/goal", tags=["Goals"])

    @app.get("/")
    async def root():
        return {"message": "Personal Finance Tracker API", "version": "1.0.0", "docs": "/docs"}

    return app


app = create_app()

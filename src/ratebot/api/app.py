"""FastAPI application factory for the rates API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from ratebot.analytics.rates import RateAnalytics
from ratebot.api import routes
from ratebot.subscriptions.service import SubscriptionService


def create_api_app(
    analytics: RateAnalytics,
    subscriptions: SubscriptionService,
    lifespan: Any = None,
) -> FastAPI:
    """Create the API app with its service dependencies on ``app.state``.

    Args:
        analytics: Rate queries used by the /rates routes.
        subscriptions: Used by the /subscriptions routes.
        lifespan: Optional async context manager for startup/shutdown.
    """
    app = FastAPI(title="Rate Digest API", lifespan=lifespan)
    app.state.analytics = analytics
    app.state.subscriptions = subscriptions
    app.include_router(routes.router)
    return app

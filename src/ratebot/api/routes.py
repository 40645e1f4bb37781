"""JSON API endpoints for rates and subscriptions.

Typed service errors are translated to HTTP status codes here and nowhere
else. Internal failures are logged with context and answered with a
generic body.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ratebot.exceptions import (
    CoinNotFound,
    InsufficientHistoryForChange,
    InvalidInterval,
    NoPricesAvailable,
)
from ratebot.logging import get_logger
from ratebot.models import RateStats

log = get_logger(__name__)

router = APIRouter()


class SubscriptionRequest(BaseModel):
    interval_minutes: int


def _decimal_to_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def rate_to_dict(stats: RateStats) -> dict[str, Any]:
    """Serialize RateStats; windowed fields are omitted when absent."""
    out: dict[str, Any] = {
        "symbol": stats.symbol,
        "price": str(stats.price),
        "updated_at": stats.updated_at.isoformat(),
    }
    if stats.min_24h is not None:
        out["min_24h"] = _decimal_to_str(stats.min_24h)
    if stats.max_24h is not None:
        out["max_24h"] = _decimal_to_str(stats.max_24h)
    if stats.change_1h_pct is not None:
        out["change_1h_pct"] = _decimal_to_str(stats.change_1h_pct)
    return out


def _internal_error(op: str, error: Exception, **context: Any) -> JSONResponse:
    log.error("api_request_failed", op=op, error=repr(error), **context, exc_info=error)
    return JSONResponse(status_code=500, content={"error": "internal_server_error"})


@router.get("/health")
async def health() -> JSONResponse:
    return JSONResponse(content={"status": "ok"})


@router.get("/rates")
async def get_rates(request: Request) -> JSONResponse:
    """Latest price of every tracked coin."""
    analytics = request.app.state.analytics
    try:
        snapshot = await analytics.get_all_latest()
    except NoPricesAvailable:
        return JSONResponse(status_code=404, content={"error": "prices_not_found"})
    except Exception as e:
        return _internal_error("get_rates", e)
    return JSONResponse(content=[rate_to_dict(s) for s in snapshot])


@router.get("/rates/{symbol}")
async def get_rate_by_symbol(
    request: Request,
    symbol: str,
    from_: datetime | None = Query(default=None, alias="from"),
    to: datetime | None = Query(default=None),
) -> JSONResponse:
    """Price, window min/max and 1h change for one coin."""
    symbol = symbol.strip().upper()
    if not symbol:
        return JSONResponse(status_code=400, content={"error": "symbol_required"})

    analytics = request.app.state.analytics
    try:
        stats = await analytics.get_stats_by_symbol(symbol, from_, to)
    except CoinNotFound:
        return JSONResponse(
            status_code=404, content={"error": "coin_not_found", "symbol": symbol}
        )
    except NoPricesAvailable:
        return JSONResponse(
            status_code=404, content={"error": "prices_not_found", "symbol": symbol}
        )
    except InsufficientHistoryForChange:
        return JSONResponse(
            status_code=422,
            content={"error": "not_enough_data_for_change_1h", "symbol": symbol},
        )
    except Exception as e:
        return _internal_error("get_rate_by_symbol", e, symbol=symbol)
    return JSONResponse(content=rate_to_dict(stats))


@router.put("/subscriptions/{chat_id}")
async def enable_subscription(
    request: Request, chat_id: int, body: SubscriptionRequest
) -> JSONResponse:
    """Enable (or re-enable with a new interval) the digest for a chat."""
    subscriptions = request.app.state.subscriptions
    try:
        await subscriptions.enable(chat_id, body.interval_minutes)
    except InvalidInterval:
        return JSONResponse(status_code=400, content={"error": "invalid_interval"})
    except Exception as e:
        return _internal_error("enable_subscription", e, chat_id=chat_id)
    return JSONResponse(
        content={
            "chat_id": chat_id,
            "enabled": True,
            "interval_minutes": body.interval_minutes,
        }
    )


@router.delete("/subscriptions/{chat_id}")
async def disable_subscription(request: Request, chat_id: int) -> JSONResponse:
    """Disable the digest for a chat. Idempotent."""
    subscriptions = request.app.state.subscriptions
    try:
        await subscriptions.disable(chat_id)
    except Exception as e:
        return _internal_error("disable_subscription", e, chat_id=chat_id)
    return JSONResponse(content={"chat_id": chat_id, "enabled": False})

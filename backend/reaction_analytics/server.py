"""FastAPI server exposing the group reaction analytics to the frontend.

Every analytics route is a GET under /api/groups/{group_id}/analytics and
responds with ``{"success": true, "data": ...}``. Unknown groups map to 404,
unsupported ranges or modes to 400.
"""

from __future__ import annotations

import logging

import redis
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from reaction_analytics.config.settings import REDIS_URL
from reaction_analytics.engine.errors import AnalyticsError
from reaction_analytics.services import analytics_service

logger = logging.getLogger(__name__)

app = FastAPI(title="Reaction Analytics", description="Listener reaction analytics for group music feeds")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


class ErrorResponse(BaseModel):
    success: bool = False
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    redis: bool


@app.exception_handler(AnalyticsError)
async def analytics_error_handler(request: Request, exc: AnalyticsError):
    logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc)).model_dump(),
    )


def _ok(data) -> dict:
    return {"success": True, "data": data}


# ── Health ───────────────────────────────────────────────────────────────

@app.get("/api/health", response_model=HealthResponse)
async def health():
    r = _get_redis()
    try:
        r.ping()
        redis_ok = True
    except redis.RedisError:
        redis_ok = False
    return HealthResponse(redis=redis_ok)


# ── Group aggregation ────────────────────────────────────────────────────

@app.get("/api/groups/{group_id}/analytics/activity")
async def group_activity(group_id: str, timeRange: str = Query("7d")):
    """Activity waveform: hourly buckets for 24h, daily otherwise."""
    r = _get_redis()
    return _ok(analytics_service.get_group_activity(group_id, timeRange, r=r))


@app.get("/api/groups/{group_id}/analytics/members")
async def member_stats(group_id: str, timeRange: str = Query("all")):
    r = _get_redis()
    return _ok(analytics_service.get_member_stats(group_id, timeRange, r=r))


@app.get("/api/groups/{group_id}/analytics/superlatives")
async def group_superlatives(group_id: str, timeRange: str = Query("all")):
    r = _get_redis()
    return _ok(analytics_service.get_superlatives(group_id, timeRange, r=r))


@app.get("/api/groups/{group_id}/analytics/vibes")
async def group_vibes(group_id: str, timeRange: str = Query("all")):
    r = _get_redis()
    return _ok(analytics_service.get_member_vibes(group_id, timeRange, r=r))


@app.get("/api/groups/{group_id}/analytics/taste-gravity")
async def group_taste_gravity(group_id: str, timeRange: str = Query("7d")):
    r = _get_redis()
    return _ok(analytics_service.get_taste_gravity(group_id, timeRange, r=r))


# ── Listener reflex ──────────────────────────────────────────────────────

@app.get("/api/groups/{group_id}/analytics/listener-reflex")
async def listener_reflex(group_id: str, range: str = Query("30d"), mode: str = Query("received")):
    """Per-member latency profiles, speed buckets and archetypes."""
    r = _get_redis()
    return _ok(analytics_service.get_listener_reflex(group_id, range, mode, r=r))


@app.get("/api/groups/{group_id}/analytics/listener-reflex/radar")
async def listener_reflex_radar(group_id: str, range: str = Query("30d"), mode: str = Query("received")):
    r = _get_redis()
    return _ok(analytics_service.get_listener_reflex_radar(group_id, range, mode, r=r))


@app.get("/api/groups/{group_id}/analytics/listener-reflex/{user_id}")
async def member_reflex(
    group_id: str,
    user_id: str,
    range: str = Query("30d"),
    mode: str = Query("received"),
):
    r = _get_redis()
    return _ok(analytics_service.get_member_reflex(group_id, user_id, range, mode, r=r))


# ── Overview ─────────────────────────────────────────────────────────────

@app.get("/api/groups/{group_id}/analytics/overview")
async def overview(group_id: str, timeRange: str = Query("7d"), mode: str = Query("received")):
    """All group analytics in one response.

    Sections are computed concurrently from independent reads, so they may
    reflect writes a few milliseconds apart.
    """
    r = _get_redis()
    return _ok(await analytics_service.get_overview(group_id, timeRange, mode, r=r))

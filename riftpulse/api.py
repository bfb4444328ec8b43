from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import RateLimitExceeded, RiftPulseError
from .service import PlayerReport, PlayerService


log = logging.getLogger(__name__)

VERSION = "0.3.0"

router = APIRouter()


def _service(request: Request) -> PlayerService:
    return request.app.state.service


def _report(request: Request, puuid: str, count: Optional[int], tier: Optional[str] = None) -> PlayerReport:
    return _service(request).build_report(puuid, count=count, tier=tier)


@router.get("/health")
def health(request: Request):
    svc = _service(request)
    st = svc.status()
    cache = {k: v for k, v in st["cache"].items() if k != "entries"}
    data = {"version": VERSION, "limiter": st["limiter"], "cache": cache, "sweeper": svc.cache.sweeper_running()}
    return {"ok": True, "data": data}


@router.get("/accounts/{game_name}/{tag_line}")
def account(request: Request, game_name: str, tag_line: str):
    puuid = _service(request).resolve_riot_id(f"{game_name}#{tag_line}")
    if not puuid:
        return JSONResponse({"ok": False, "error": {"code": "NOT_FOUND", "message": "Riot ID not found"}}, status_code=404)
    return {"ok": True, "data": {"puuid": puuid}}


@router.get("/players/{puuid}/report")
def report(request: Request, puuid: str, count: Optional[int] = Query(None, ge=1, le=100), tier: Optional[str] = Query(None)):
    return {"ok": True, "data": _report(request, puuid, count, tier).to_dict()}


@router.get("/players/{puuid}/champions")
def champions(request: Request, puuid: str, count: Optional[int] = Query(None, ge=1, le=100)):
    rep = _report(request, puuid, count)
    return {"ok": True, "data": [c.to_dict() for c in rep.champions], "partial": rep.partial}


@router.get("/players/{puuid}/trends")
def trends(request: Request, puuid: str, count: Optional[int] = Query(None, ge=1, le=100)):
    rep = _report(request, puuid, count)
    data = {
        "points": [p.to_dict() for p in rep.trends],
        "direction": rep.insights.trend,
        "delta": rep.insights.trend_delta,
        "forecast": [p.to_dict() for p in rep.insights.forecast],
    }
    return {"ok": True, "data": data, "partial": rep.partial}


@router.get("/players/{puuid}/insights")
def insights(request: Request, puuid: str, count: Optional[int] = Query(None, ge=1, le=100)):
    rep = _report(request, puuid, count)
    return {"ok": True, "data": rep.insights.to_dict(), "partial": rep.partial}


@router.get("/players/{puuid}/compare")
def compare(request: Request, puuid: str, tier: Optional[str] = Query(None), count: Optional[int] = Query(None, ge=1, le=100)):
    rep = _report(request, puuid, count, tier)
    data = {"tier": rep.reference_tier, "metrics": [asdict(m) for m in rep.comparison]}
    return {"ok": True, "data": data, "partial": rep.partial}


@router.get("/players/{puuid}/live")
def live(request: Request, puuid: str):
    game = _service(request).live_game(puuid)
    return {"ok": True, "data": {"in_game": game is not None, "game": game}}


@router.delete("/cache/players/{puuid}")
def drop_player_cache(request: Request, puuid: str):
    return {"ok": True, "data": {"removed": _service(request).invalidate_player(puuid)}}


def create_app(service: Optional[PlayerService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = app.state.service = service or PlayerService.from_config()
        svc.cache.start_sweeper(float(svc.cfg["cache"]["sweep_interval_s"]))
        try:
            yield
        finally:
            svc.cache.stop_sweeper()

    app = FastAPI(title="riftpulse", version=VERSION, lifespan=lifespan)
    if service is not None:
        app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, prefix="/api")

    @app.exception_handler(RateLimitExceeded)
    async def on_rate_limited(request: Request, exc: RateLimitExceeded):
        retry = max(1, math.ceil(exc.retry_after))
        body = {"ok": False, "error": {"code": "RATE_LIMITED", "message": str(exc), "retry_after": exc.retry_after}}
        return JSONResponse(body, status_code=429, headers={"Retry-After": str(retry), "Cache-Control": "no-store"})

    @app.exception_handler(RiftPulseError)
    async def on_engine_error(request: Request, exc: RiftPulseError):
        log.error("request %s failed: %s", request.url.path, exc)
        body = {"ok": False, "error": {"code": type(exc).__name__.upper(), "message": str(exc)}}
        return JSONResponse(body, status_code=500, headers={"Cache-Control": "no-store"})

    @app.exception_handler(ValueError)
    async def on_bad_request(request: Request, exc: ValueError):
        return JSONResponse({"ok": False, "error": {"code": "BAD_REQUEST", "message": str(exc)}}, status_code=400)

    # Global error handler → uniform envelope
    @app.exception_handler(Exception)
    async def on_error(request: Request, exc: Exception):
        return JSONResponse({"ok": False, "error": {"code": "INTERNAL", "message": str(exc)}}, status_code=500, headers={"Cache-Control": "no-store"})

    @app.middleware("http")
    async def no_store_middleware(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        return response

    return app


app = create_app()

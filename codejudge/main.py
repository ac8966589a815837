"""FastAPI entrypoint for the judging service."""

from __future__ import annotations

import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from codejudge.common.deps import get_job_runner, get_judge_client, get_submission_service
from codejudge.core.config import get_settings
from codejudge.db.session import create_all, get_engine
from codejudge.features.languages.endpoints import router as languages_router
from codejudge.features.leaderboard.endpoints import router as leaderboard_router
from codejudge.features.submissions.endpoints import router as submissions_router

_settings = get_settings()
_START_TIME = datetime.now(timezone.utc)

logging.basicConfig(
    level=getattr(logging, _settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("codejudge")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if _settings.db_auto_create:
        create_all(get_engine())
    service = get_submission_service()
    await service.resume_inflight()
    logger.info("startup complete provider=%s", _settings.judge_provider)
    yield
    await get_job_runner().shutdown()
    await get_judge_client().close()
    logger.info("shutdown complete")


app = FastAPI(title=_settings.app_name, lifespan=lifespan)


# ------------------------
# CORS Setup
# ------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------
# Custom Middlewares
# ------------------------
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("X-Request-Id") or request.headers.get("X-Request-ID")
    req_id = incoming or str(uuid.uuid4())
    request.state.request_id = req_id
    req_logger = logging.getLogger("request")
    req_logger.info("request.start request_id=%s method=%s path=%s", req_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-Id"] = req_id
    req_logger.info("request.end request_id=%s path=%s status_code=%s", req_id, request.url.path, response.status_code)
    return response


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    t0 = time.perf_counter()
    resp = await call_next(request)
    dt = int((time.perf_counter() - t0) * 1000)
    logging.getLogger("timing").info("%s %s %dms %s", request.method, request.url.path, dt, resp.status_code)
    return resp


# ------------------------
# Routers
# ------------------------
app.include_router(submissions_router)
app.include_router(leaderboard_router)
app.include_router(languages_router)


# ------------------------
# Meta endpoints
# ------------------------
@app.get("/", tags=["meta"], summary="API Root")
async def root():
    return {
        "name": _settings.app_name,
        "status": "ok",
        "docs": "/docs",
        "health": "/healthz",
    }


@app.get("/healthz", tags=["meta"], summary="Liveness / readiness check")
async def healthz() -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    db_status = "unknown"
    db_latency_ms: float | None = None
    try:
        start = time.perf_counter()
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        db_latency_ms = round((time.perf_counter() - start) * 1000, 2)
        db_status = "ok"
    except SQLAlchemyError as e:
        db_status = f"error:{type(e).__name__}"

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "time_utc": now.isoformat(),
        "uptime_seconds": round((now - _START_TIME).total_seconds(), 2),
        "version": os.getenv("APP_VERSION", "dev"),
        "environment": "debug" if _settings.debug else "prod",
        "components": {
            "database": (
                {"status": db_status, "latency_ms": db_latency_ms}
                if db_status == "ok"
                else {"status": db_status}
            ),
            "judge": {
                "provider": _settings.judge_provider,
                "status": "configured" if _settings.judge_base_url else "missing-config",
            },
        },
    }

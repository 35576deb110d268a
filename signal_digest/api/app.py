"""
FastAPI application factory.

Every route except ``/health``, ``/`` and ``/metrics`` requires an API key;
the scheduler tick takes the cron bearer secret instead. Dispatch work
accepted by a request outlives it, so shutdown drains the task supervisor
before the shared database pool is closed.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from signal_digest import __version__
from signal_digest.api.dependencies import cleanup_dependencies
from signal_digest.api.routes import (
    activity,
    archive,
    dispatch,
    health,
    recommendations,
    search,
    sources,
)
from signal_digest.config.settings import get_settings
from signal_digest.dispatch.config import DispatchConfig
from signal_digest.dispatch.tasks import get_supervisor, reset_supervisor
from signal_digest.observability.logging import bind_context, clear_context

logger = structlog.get_logger(__name__)

# (router module, tag, tag description)
_ROUTERS = (
    (health, "health", "Service health checks"),
    (dispatch, "dispatch", "Briefing triggers and the scheduler tick"),
    (search, "search", "Source discovery across providers"),
    (sources, "sources", "URL classification and subscriber sources"),
    (archive, "archive", "Past and latest briefings"),
    (recommendations, "recommendations", "Starter packs and curated picks"),
    (activity, "activity", "Token usage and failed runs"),
)

_DESCRIPTION = """
Aggregates a subscriber's feeds into a daily briefing.

Send `X-API-KEY` on every request except `/health`.
The scheduler tick authenticates with `Authorization: Bearer <CRON_SECRET>`.
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Signal digest API starting", version=__version__)
    yield

    cancelled = await get_supervisor().drain(timeout=DispatchConfig().drain_timeout_seconds)
    if cancelled:
        logger.warning("Dispatch units cancelled at shutdown", count=cancelled)
    reset_supervisor()
    await cleanup_dependencies()
    logger.info("Signal digest API stopped")


async def request_context(request: Request, call_next):
    """Tag every log line and response with the caller's request id."""
    request_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or uuid.uuid4().hex
    )
    bind_context(request_id=request_id)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
    finally:
        clear_context()


async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": "internal"},
    )


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Signal Digest API",
        description=_DESCRIPTION,
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[{"name": tag, "description": text} for _, tag, text in _ROUTERS],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_context)
    app.add_exception_handler(Exception, unhandled_error)

    for module, tag, _ in _ROUTERS:
        app.include_router(module.router, tags=[tag])
    app.mount("/metrics", make_asgi_app())

    @app.get("/", include_in_schema=False)
    async def root():
        return {"service": "Signal Digest API", "version": __version__, "docs": "/docs"}

    return app

"""Privacy gateway FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app(): testable application factory
  - lifespan    : @asynccontextmanager startup/shutdown sequence
  - app = create_app(): module-level instance for uvicorn

Startup sequence:
  1. load_config()                 → app.state.config
  2. AllowlistRegistry.from_file() → app.state.allowlists
  3. MetricsRegistry()             → app.state.metrics
  4. ValidationPipeline(...)       → app.state.pipeline
  5. create_http_client()          → app.state.http_client
  6. AnthropicCompletionClient     → app.state.completion_client
  7. app.state.ready = True

Shutdown (reverse): app.state.ready = False → close the shared HTTP client.

Uvicorn hardened defaults (see gateway/run.py):
  uvicorn gateway.main:app \\
    --host 127.0.0.1 \\
    --port 8787 \\
    --limit-concurrency 100 \\
    --backlog 50 \\
    --timeout-keep-alive 5
"""

from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from gateway.allowlist.loader import AllowlistConfigError, AllowlistRegistry
from gateway.api.auth import accept_any_token
from gateway.api.health import router as health_router
from gateway.api.limiter import limiter
from gateway.api.middleware import BodySizeLimitMiddleware
from gateway.api.router import router as gateway_router
from gateway.completion import AnthropicCompletionClient, create_http_client
from gateway.config import Config, load_config
from gateway.metrics import MetricsRegistry
from gateway.pipeline import InjectionPolicy, ValidationPipeline
from gateway.scanner.definitions import PATTERNS_VERSION
from gateway.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="starting")


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown sequence."""
    logger.info("Privacy gateway starting up...")

    # ── Step 1: Configuration (SystemExit on invalid file) ───────────────────
    config: Config = load_config()
    app.state.config = config

    # ── Step 2: Allowlists: security config, so errors are fatal ────────────
    try:
        allowlists = AllowlistRegistry.from_file(config.gateway.allowlist_path)
    except AllowlistConfigError as exc:
        print(f"CONFIG ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)
    app.state.allowlists = allowlists

    # ── Steps 3–4: Counters + pipeline ───────────────────────────────────────
    metrics = MetricsRegistry()
    app.state.metrics = metrics
    app.state.pipeline = ValidationPipeline(
        allowlists,
        metrics,
        max_text_tokens=config.gateway.max_text_tokens,
        injection_policy=InjectionPolicy(config.gateway.injection_policy),
    )

    # ── Steps 5–6: Shared HTTP client + completion collaborator ──────────────
    http_client: httpx.AsyncClient = create_http_client()
    app.state.http_client = http_client
    completion_client = AnthropicCompletionClient(http_client, config.upstream)
    app.state.completion_client = completion_client
    if not completion_client.configured:
        logger.warning(
            "Completion provider API key not set: accepted requests will return 503",
            api_key_env=config.upstream.api_key_env,
        )

    # ── Step 7: Ready ─────────────────────────────────────────────────────────
    app.state.ready = True
    logger.info(
        "Privacy gateway ready",
        patterns_version=PATTERNS_VERSION,
        allowlists=allowlists.counts(),
        injection_policy=config.gateway.injection_policy,
    )

    yield

    # ── Shutdown (reverse order) ──────────────────────────────────────────────
    logger.info("Privacy gateway shutting down...")
    app.state.ready = False

    try:
        await http_client.aclose()
        logger.info("HTTP client closed")
    except Exception as exc:  # noqa: BLE001
        logger.warning("HTTP client close error (non-fatal)", error_type=type(exc).__name__)

    logger.info("Privacy gateway shutdown complete", counters=metrics.snapshot())


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the privacy gateway FastAPI application.

    Call this function directly in tests to get an isolated app instance:
        app = create_app()

    The module-level ``app`` is created at import time for uvicorn.
    """
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="Privacy Gateway",
        description="Content safety and privacy enforcement gate for AI requests",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    # /health returns 503 on any request that arrives before startup completes.
    application.state.ready = False

    # Deployments replace this with the hosted backend's token check.
    application.state.token_verifier = accept_any_token

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    cors_env = os.getenv("PRIVACY_GATEWAY_CORS_ORIGINS")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_env.split(",") if cors_env else DEFAULT_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # In Starlette the LAST-added middleware is OUTERMOST: the size check runs
    # before CORS and before any body read.
    application.add_middleware(BodySizeLimitMiddleware)
    application.add_middleware(SlowAPIMiddleware)

    application.include_router(health_router)
    application.include_router(gateway_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=500, content={"ok": False, "error": "internal_error"})

    return application


app = create_app()

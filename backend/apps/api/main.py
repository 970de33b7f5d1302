# ============================================================
#  LibrasSign — FastAPI Application Factory
# ============================================================
"""
FastAPI application with:
  • REST endpoints for health, model, dataset, training and text
  • WebSocket endpoint for real-time recognition
  • CORS and request ID middleware
  • Error taxonomy mapped to HTTP status codes
  • Graceful startup / shutdown lifecycle

NOTE: This is OPTIONAL. The core pipeline (core/) runs without a server.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from backend.apps.api.dependencies import get_pipeline
from backend.apps.api.middleware import RequestIDMiddleware
from backend.apps.api.routes import router as api_router
from backend.config import settings
from backend.logging_config import setup_logging
from core.errors import ResourceUnavailableError, UserInputError

_start_time: float = 0.0


def get_uptime() -> float:
    return time.time() - _start_time


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ANN001
    """Startup / shutdown lifecycle."""
    global _start_time
    _start_time = time.time()
    setup_logging()
    logger.info(
        "{} v{} starting  |  env={}  debug={}",
        settings.app_name,
        settings.app_version,
        settings.app_env,
        settings.debug,
    )
    yield
    if get_pipeline.cache_info().currsize:
        get_pipeline().stop()
    logger.info("LibrasSign shutting down gracefully")


async def _user_input_error(request: Request, exc: Exception) -> ORJSONResponse:
    logger.warning("Rejected request {}: {}", request.url.path, exc)
    return ORJSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


async def _resource_unavailable(request: Request, exc: Exception) -> ORJSONResponse:
    return ORJSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Application factory."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "**LibrasSign** — static hand-sign letter recognition with "
            "trainable classifiers. All inference runs locally."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # ── Middleware ────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # ── Errors ───────────────────────────────────────────────
    app.add_exception_handler(UserInputError, _user_input_error)
    app.add_exception_handler(ResourceUnavailableError, _resource_unavailable)

    # ── Routes ───────────────────────────────────────────────
    app.include_router(api_router, prefix="/api")

    return app


app = create_app()

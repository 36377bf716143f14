"""Scrollgen API - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import get_config
from ..exceptions import (
    GenerationCancelledError,
    GenerationFailedError,
    ScrollgenError,
)
from .routers import generation
from .schemas import ErrorResponse, HealthResponse, ServiceStatus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    config = get_config()
    missing = config.missing_credentials()
    if missing:
        logger.warning("Missing credentials for: %s", ", ".join(missing))

    yield


app = FastAPI(
    title="Scrollgen API",
    description="API for the infinite aerial scroll generator",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware - allow all origins in development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(generation.router, prefix="/api", tags=["generation"])


def error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    """Build the ``{error, details, timestamp}`` body used for every failure."""
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return error_response(400, "Invalid request", details)


@app.exception_handler(GenerationFailedError)
async def generation_failed_handler(request: Request, exc: GenerationFailedError):
    logger.error("Generation failed: %s", exc)
    return error_response(500, "Failed to generate image", str(exc))


@app.exception_handler(GenerationCancelledError)
async def generation_cancelled_handler(request: Request, exc: GenerationCancelledError):
    return error_response(504, "Generation cancelled", str(exc))


@app.exception_handler(ScrollgenError)
async def scrollgen_exception_handler(request: Request, exc: ScrollgenError):
    logger.exception("Unhandled scrollgen error")
    return error_response(500, "Internal error", str(exc))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error")
    return error_response(500, "Failed to generate image", str(exc))


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint. Reports which credentials exist, never their values."""
    config = get_config()
    service = generation.get_generation_service()
    status = config.credential_status()

    return HealthResponse(
        status="ok" if all(status.values()) else "degraded",
        timestamp=datetime.now(timezone.utc),
        environment=config.environment,
        version=__version__,
        services=ServiceStatus(**status),
        available_models=service.registry.ids(),
        default_model=config.default_model,
    )

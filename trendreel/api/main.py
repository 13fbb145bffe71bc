"""TrendReel API - Main FastAPI Application.

- CORS middleware configuration
- API key authentication
- API versioning (/api/v1)
- Health check and Prometheus metrics endpoints
- Pipeline, channel and cron trigger endpoints
- Auto-pilot scheduler started on startup when enabled

Usage:
    uvicorn trendreel.api.main:app --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from trendreel.api.dependencies import get_scheduler, reset_dependencies
from trendreel.api.models import ErrorResponse, ValidationErrorDetail, ValidationErrorResponse
from trendreel.api.routes.channels import router as channels_router
from trendreel.api.routes.cron import router as cron_router
from trendreel.api.routes.health import API_VERSION, set_server_start_time
from trendreel.api.routes.health import router as health_router
from trendreel.api.routes.pipeline import router as pipeline_router
from trendreel.config.settings import get_settings
from trendreel.core.container import initialize_container, shutdown_container
from trendreel.core.exceptions import TrendReelError
from trendreel.models.schemas import utc_now
from trendreel.monitoring.metrics import get_metrics_app

logger = structlog.get_logger(__name__)

API_TITLE = "TrendReel API"
API_DESCRIPTION = """
## Trend-to-Short video pipeline

Turns recent short-form trends into a published vertical video:
trend signals, three candidate concepts, weighted selection, prompt
composition, Veo rendering and YouTube publishing.

### Authentication

Set `API_KEY_ENABLED=true` and `API_KEY=your-secret-key` to require an
X-API-Key header. `/api/v1/cron/tick` additionally expects
`Authorization: Bearer <CRON_SECRET>` when a cron secret is set.
"""


# =============================================================================
# API Key Authentication Middleware
# =============================================================================


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Validate X-API-Key for every request except health, metrics and docs."""

    PUBLIC_PATHS = {"/", "/health", "/health/live", "/metrics", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        settings = get_settings()

        if not settings.api_key_enabled:
            return await call_next(request)

        if request.url.path.rstrip("/") in self.PUBLIC_PATHS or request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key")
        expected_key = settings.api_key.get_secret_value() if settings.api_key else None

        if not expected_key:
            logger.error("api_key_enabled_but_not_set")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Server misconfiguration: API key authentication enabled but no key configured"},
            )

        if not api_key:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Missing X-API-Key header"},
            )

        if api_key != expected_key:
            logger.warning("invalid_api_key_attempt", path=request.url.path)
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Invalid API key"},
            )

        return await call_next(request)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: build the container and start auto-pilot when enabled.
    Shutdown: stop auto-pilot and release clients.
    """
    logger.info("application_starting")
    set_server_start_time()
    settings = get_settings()

    await initialize_container()
    scheduler = get_scheduler()
    if settings.autopilot_enabled:
        try:
            await scheduler.start()
        except Exception as e:
            # Manual and cron-triggered runs still work without the interval job
            logger.error("scheduler_start_failed", error=str(e))

    logger.info("application_started", autopilot=scheduler.is_running)

    yield

    logger.info("application_stopping")
    try:
        if scheduler.is_running:
            await scheduler.stop()
    except Exception as e:
        logger.error("scheduler_shutdown_error", error=str(e))

    await shutdown_container()
    reset_dependencies()
    logger.info("application_stopped")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=[
        {"name": "Health", "description": "System health and status endpoints"},
        {"name": "Pipeline", "description": "Ad-hoc pipeline runs"},
        {"name": "Channels", "description": "Channel records and stored-channel runs"},
        {"name": "Cron", "description": "External trigger for the auto-pilot scan"},
    ],
)

_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_allowed_origins,
    allow_credentials=_settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key", "Accept"],
)
app.add_middleware(APIKeyMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        value = error.get("input")
        errors.append(ValidationErrorDetail(
            field=field,
            message=error["msg"],
            value=value if isinstance(value, (str, int, float, bool, type(None))) else str(value),
        ))

    response = ValidationErrorResponse(errors=errors, timestamp=utc_now())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=response.model_dump(mode="json"),
    )


@app.exception_handler(TrendReelError)
async def trendreel_exception_handler(request: Request, exc: TrendReelError) -> JSONResponse:
    """Application errors raised outside a run (store failures, misconfiguration)."""
    logger.error(
        "application_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    response = ErrorResponse(
        error=type(exc).__name__,
        message=exc.message,
        detail=str(exc) if get_settings().debug else None,
        path=request.url.path,
        timestamp=utc_now(),
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    response = ErrorResponse(
        error="internal_server_error",
        message="An unexpected error occurred",
        detail=str(exc) if get_settings().debug else None,
        path=request.url.path,
        timestamp=utc_now(),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=response.model_dump(mode="json"),
    )


# =============================================================================
# Routers
# =============================================================================


@app.get("/", include_in_schema=False)
async def root() -> dict:
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


app.include_router(health_router)
app.mount("/metrics", get_metrics_app())

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(pipeline_router)
api_v1_router.include_router(channels_router)
api_v1_router.include_router(cron_router)
app.include_router(api_v1_router)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "trendreel.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )

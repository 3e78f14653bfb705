import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ai_gateway.api.v1.router import api_v1_router
from ai_gateway.core.config import settings, validate_settings_for_production
from ai_gateway.core.exceptions import (
    AuthenticationError,
    GatewayError,
    InvalidMessageError,
    InvalidRequestError,
    MaxRetriesExceededError,
    NoProvidersAvailableError,
    ProviderNotFoundError,
    ProviderPermissionError,
    RateLimitError,
)
from ai_gateway.core.logging import setup_logging
from ai_gateway.core.metrics import PrometheusMiddleware, metrics_response
from ai_gateway.core.sentry import init_sentry
from ai_gateway.gateway.gateway import build_gateway

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins
_STATUS_BY_ERROR: tuple[tuple[type[GatewayError], int], ...] = (
    (InvalidMessageError, 400),
    (InvalidRequestError, 400),
    (ProviderNotFoundError, 404),
    (NoProvidersAvailableError, 503),
    (AuthenticationError, 502),
    (ProviderPermissionError, 502),
    (RateLimitError, 429),
)


def status_for_error(exc: GatewayError) -> int:
    if isinstance(exc, MaxRetriesExceededError) and isinstance(exc.original_error, GatewayError):
        exc = exc.original_error
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 502


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if settings.app_env != "test":
        validate_settings_for_production()
    logger.info("Starting AI Provider Gateway...")

    gateway = build_gateway(settings)
    gateway.start()
    app.state.gateway = gateway
    logger.info("Providers: %s", ", ".join(gateway.get_available_providers()) or "none")

    yield

    # Shutdown
    await gateway.aclose()
    if settings.persist_conversations:
        from ai_gateway.db.postgres import engine

        await engine.dispose()
    logger.info("AI Provider Gateway shut down")


app = FastAPI(
    title="AI Provider Gateway",
    description="Unified chat completions across OpenAI, Anthropic and Google",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(GatewayError)
async def _gateway_error_handler(request: Request, exc: GatewayError):
    status = status_for_error(exc)
    if status >= 500:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    headers = {}
    cause = exc.original_error if isinstance(exc, MaxRetriesExceededError) else exc
    retry_after = getattr(cause, "retry_after", None)
    if status == 429 and retry_after:
        headers["Retry-After"] = str(int(retry_after))
    return JSONResponse(status_code=status, content={"detail": str(exc), "code": exc.code}, headers=headers)


# Log unhandled exceptions so they appear in the service logs
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}", "code": "internal_error"})


app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health(request: Request):
    gateway = request.app.state.gateway
    return {
        "status": "ok",
        "providers": gateway.get_available_providers(),
        "healthy": gateway.health.healthy_providers(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()

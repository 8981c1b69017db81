# backend/skyprep/main.py
"""
FastAPI application for the SkyPrep session scheduling backend.

Run with: uvicorn skyprep.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .core.config import is_running_tests, settings
from .core.constants import BRAND_NAME
from .core.exceptions import DomainException
from .core.logging_config import configure_logging
from .middleware.prometheus_middleware import PrometheusMiddleware
from .middleware.request_id_asgi import RequestIdMiddlewareASGI
from .routes.v1 import health as health_v1, prometheus as prometheus_v1, sessions as sessions_v1

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} session API starting up...")
    logger.info(
        f"Environment: {settings.environment}, operating timezone: {settings.operating_timezone}"
    )
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    yield
    logger.info(f"{BRAND_NAME} session API shutting down...")


app = FastAPI(
    title=f"{BRAND_NAME} Sessions API",
    description="Teaching-session scheduling: requests, direct scheduling, slots and lifecycle",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render domain exceptions that escape a route as the standard error body."""
    http_exc = exc.to_http_exception()
    if http_exc.status_code >= 500:
        logger.error(f"Unhandled {exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"detail": http_exc.detail},
        headers=http_exc.headers,
    )


# Middleware order: last added runs first
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestIdMiddlewareASGI)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(sessions_v1.router, prefix="/sessions")

app.include_router(api_v1)
app.include_router(health_v1.router)
app.include_router(prometheus_v1.router)

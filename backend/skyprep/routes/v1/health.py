# backend/skyprep/routes/v1/health.py
"""
Health check endpoint for monitoring and load balancer probes.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Response
from pydantic import BaseModel

from ... import __version__
from ...core.config import settings
from ...core.constants import BRAND_NAME

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
def health_check(response: Response) -> HealthResponse:
    """Liveness probe; does not touch the database."""
    response.headers["Cache-Control"] = "no-store"
    return HealthResponse(
        status="healthy",
        service=f"{BRAND_NAME.lower()}-sessions",
        version=__version__,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc),
    )

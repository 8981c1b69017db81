"""
Prometheus metrics endpoint for monitoring infrastructure.

Public endpoint following standard Prometheus practices. It exposes metrics
collected by ``@BaseService.measure_operation`` and the HTTP middleware.
"""

from fastapi import APIRouter, Response

from ...monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["monitoring"])


@router.get("/metrics", include_in_schema=False)
def get_prometheus_metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )

"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from retail_reports.config import get_settings

router = APIRouter()
logger = structlog.get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


async def _store_health(request: Request) -> Dict[str, Any]:
    store = getattr(request.app.state, "report_store", None)
    if store is None:
        return {"status": "unhealthy", "error": "Report store not configured"}

    try:
        return await store.check_health()
    except Exception as e:
        logger.warning("Report store health check failed", error=str(e), error_type=type(e).__name__)
        return {"status": "unhealthy", "error": str(e)}


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Checks:
    - Application status
    - Report store connectivity
    """
    settings = get_settings()
    store_health = await _store_health(request)

    return HealthResponse(
        status="healthy" if store_health.get("status") == "healthy" else "degraded",
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks={"report_store": store_health},
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Returns 200 once the report store answers queries.
    """
    store_health = await _store_health(request)
    if store_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "report_store_unavailable"}

    return {"status": "ready"}

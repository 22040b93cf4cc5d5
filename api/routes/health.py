"""Health check and metrics endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from api.dependencies import get_config
from core import __version__
from core.config import StorefrontConfig
from core.observability.metrics import get_metrics


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(config: StorefrontConfig = Depends(get_config)) -> HealthResponse:
    """Health check endpoint. Reports configuration only; the ERP is not called."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        services={
            "api": "up",
            "distru": "not_configured" if config.missing_settings() else "configured",
            "assistant": "configured" if config.assistant.openai_api_key else "not_configured",
        }
    )


@router.get("/ready")
async def readiness_check(response: Response, config: StorefrontConfig = Depends(get_config)) -> Dict[str, Any]:
    """Readiness probe: ready once the ERP settings are present."""
    missing = config.missing_settings()
    if missing:
        response.status_code = 503
        return {"status": "not_ready", "missing": missing}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


@router.get("/metrics")
async def metrics() -> Dict[str, Any]:
    """In-memory fetch, timing and order submission metrics."""
    return get_metrics().get_summary()

"""Health check endpoints."""

from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Response
from pydantic import BaseModel

from core.services import get_services


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    services = get_services()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow().isoformat(),
        version="1.0.0",
        services={
            "api": "up",
            "step_log_hub": "up" if services.hub is not None and services.hub.running else "down",
            "notifier": "configured" if services.notifier.enabled else "disabled",
            "retained_runs": str(len(services.log_store)),
        }
    )


@router.get("/live")
async def liveness_check(response: Response) -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}

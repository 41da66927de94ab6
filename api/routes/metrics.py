"""Metrics endpoint."""

from typing import Any, Dict

from fastapi import APIRouter

from core.observability import get_metrics


router = APIRouter()


@router.get("/metrics")
async def metrics_summary() -> Dict[str, Any]:
    """Saga, step, invoice and timing counters of this process."""
    return get_metrics().get_summary()

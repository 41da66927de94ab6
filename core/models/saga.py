"""Saga input, step log and result models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class StepLogEntry(BaseModel):
    """One emitted step log line. Frozen once created."""
    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")
    level: LogLevel
    step: str
    message: str
    process_id: Optional[str] = None


class IntegrationRequest(BaseModel):
    """Saga invocation: which order, from which account and marketplace."""
    account: str = Field(..., min_length=1, description="Marketplace account name (e.g. psa)")
    marketplace: str = Field("Mercado Livre", description="Marketplace name")
    order_id: str = Field(..., min_length=1, description="Marketplace order or pack id")
    process_id: Optional[str] = Field(None, description="Caller-chosen id for the step log")


class InvoiceSyncRequest(BaseModel):
    """Invoice sync invocation; without order_id the whole backlog is synced."""
    order_id: Optional[str] = None
    process_id: Optional[str] = None


class SagaResult(BaseModel):
    process_id: str
    total_processed: int = 0
    success_count: int = 0
    error_count: int = 0
    results: List[Dict[str, Any]] = Field(default_factory=list)
    logs: List[StepLogEntry] = Field(default_factory=list)

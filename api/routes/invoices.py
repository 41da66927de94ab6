"""Invoice sync endpoints."""

from typing import Optional

from fastapi import APIRouter, Body, HTTPException

from core.models.saga import InvoiceSyncRequest, SagaResult
from core.services import get_services
from core.steplog import RunInProgress
from integration import InvoiceSyncSaga


router = APIRouter()


@router.post("/sync", response_model=SagaResult)
async def sync_invoices(request: Optional[InvoiceSyncRequest] = Body(None)) -> SagaResult:
    """Deliver staged invoices for submitted orders (all, or the one in the body)."""
    try:
        return await InvoiceSyncSaga(get_services()).run(request or InvoiceSyncRequest())
    except RunInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))

"""Order integration endpoints.

Runs the order integration saga in-process and returns its result with the
full step log. Saga outcomes (including failures) are HTTP 200; an invalid
request body is rejected with 422, and a process_id whose previous run is
still going with 409.
"""

from fastapi import APIRouter, HTTPException

from core.models.saga import IntegrationRequest, SagaResult
from core.services import get_services
from core.steplog import RunInProgress
from integration import OrderIntegrationSaga


router = APIRouter()


@router.post("/execute", response_model=SagaResult)
async def execute_integration(request: IntegrationRequest) -> SagaResult:
    """Integrate one marketplace order into the ERP."""
    try:
        return await OrderIntegrationSaga(get_services()).run(request)
    except RunInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))

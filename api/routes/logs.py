"""Step log endpoints.

- GET /logs/{process_id}: the retained entries of one run
- WS /ws/logs: live entries as they are emitted, optionally filtered with
  ?process_id=...

A websocket client that can't keep up is evicted by the hub; its socket is
closed with code 1013 (try again later) and it can reconnect and pull the
retained log.

Only runs executed in this API process are visible here. Runs started
through Temporal execute in the worker process, which keeps its own store
and hub; their entries come back in the workflow result instead.
"""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from core.models.saga import StepLogEntry
from core.observability import get_logger
from core.services import get_services
from core.steplog import Subscription


router = APIRouter()
logger = get_logger(__name__)

EVICTED_CLOSE_CODE = 1013


class ProcessLogResponse(BaseModel):
    """Retained step log of one run."""
    process_id: str
    sealed: bool
    logs: List[StepLogEntry]


@router.get("/logs/{process_id}", response_model=ProcessLogResponse)
async def get_process_logs(process_id: str) -> ProcessLogResponse:
    """Pull the step log of a run (running or finished)."""
    store = get_services().log_store
    entries = store.snapshot(process_id)
    if entries is None:
        raise HTTPException(status_code=404, detail=f"No logs retained for process {process_id}")
    return ProcessLogResponse(process_id=process_id, sealed=store.is_sealed(process_id), logs=list(entries))


async def _watch_disconnect(websocket: WebSocket, subscription: Subscription) -> None:
    """Unsubscribe as soon as the client goes away."""
    hub = get_services().hub
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.unsubscribe(subscription)


@router.websocket("/ws/logs")
async def stream_logs(websocket: WebSocket, process_id: Optional[str] = None):
    hub = get_services().hub
    await websocket.accept()
    if hub is None or not hub.running:
        await websocket.close(code=1011)
        return

    subscription = hub.subscribe(process_id)
    watcher = asyncio.create_task(_watch_disconnect(websocket, subscription))
    try:
        async for entry in subscription:
            await websocket.send_json(entry.model_dump(mode="json"))
    except WebSocketDisconnect:
        logger.info(f"Step log subscriber {subscription.id} disconnected")
    finally:
        watcher.cancel()
        hub.unsubscribe(subscription)

    if subscription.evicted:
        await websocket.close(code=EVICTED_CLOSE_CODE)

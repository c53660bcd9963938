# pos_outbox/api/v1/routes_sync.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from pos_outbox.core.exceptions import ClearNotConfirmedError, DurableStoreError
from pos_outbox.domain.offline_sync.schemas import (
    ConnectivityUpdate,
    DrainResult,
    Notification,
    NotificationClick,
    NotificationClickResult,
    OperationCreate,
    OperationOut,
    PendingOperationsOut,
    SyncStatusOut,
)
from pos_outbox.domain.offline_sync.service import OfflineSyncService


router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


def get_sync_service(request: Request) -> OfflineSyncService:
    return request.app.state.runtime.sync


@router.get("/operations", response_model=PendingOperationsOut)
async def list_operations_endpoint(
    sync: OfflineSyncService = Depends(get_sync_service),
):
    operations = await sync.queue.list_pending()
    return PendingOperationsOut(pending_count=len(operations), operations=operations)

@router.post("/operations", response_model=OperationOut, status_code=status.HTTP_201_CREATED)
async def enqueue_operation_endpoint(
    payload: OperationCreate,
    sync: OfflineSyncService = Depends(get_sync_service),
):
    try:
        operation_id = await sync.queue.enqueue(
            payload.action, payload.resource, payload.payload, depends_on=payload.depends_on
        )
    except DurableStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    operation = await sync.queue.get(operation_id)
    if operation is None:
        # replayed between insert and read
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Operation already synced")
    return operation

@router.post("/drain", response_model=DrainResult)
async def drain_endpoint(
    sync: OfflineSyncService = Depends(get_sync_service),
):
    return await sync.trigger_sync()

@router.delete("/operations")
async def clear_operations_endpoint(
    confirm: bool = False,
    sync: OfflineSyncService = Depends(get_sync_service),
):
    try:
        cleared = await sync.clear_queue(confirmed=confirm)
    except ClearNotConfirmedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DurableStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return {"cleared": cleared}

@router.get("/status", response_model=SyncStatusOut)
async def sync_status_endpoint(
    sync: OfflineSyncService = Depends(get_sync_service),
):
    return SyncStatusOut(
        online=sync.connectivity.is_online,
        state=sync.engine.state.value,
        pending_count=await sync.pending_count(),
        last_result=sync.engine.last_result,
    )

@router.post("/connectivity", response_model=SyncStatusOut)
async def connectivity_endpoint(
    payload: ConnectivityUpdate,
    request: Request,
    sync: OfflineSyncService = Depends(get_sync_service),
):
    # platform reachability signal, fanned out by the background runtime
    request.app.state.runtime.scheduler.notify_connectivity(payload.online)
    return await sync_status_endpoint(sync)

@router.get("/notifications", response_model=List[Notification])
async def list_notifications_endpoint(request: Request):
    return list(request.app.state.runtime.notifier.active.values())

@router.post("/notifications/{tag}/actions", response_model=NotificationClickResult)
async def notification_action_endpoint(
    tag: str,
    payload: NotificationClick,
    request: Request,
):
    """Platform callback for a tapped notification or one of its buttons."""
    bridge = request.app.state.runtime.bridge
    delivered = await bridge.notification_clicked(tag, payload.action, payload.data)
    return NotificationClickResult(tag=tag, action=payload.action or "click", delivered=delivered)

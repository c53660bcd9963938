# pos_outbox/domain/offline_sync/schemas.py
import enum
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from pos_outbox.db.models.offline_operations import OperationAction


class OperationCreate(BaseModel):
    action: OperationAction
    resource: str
    payload: Dict[str, Any]
    depends_on: Optional[str] = None

class OperationOut(BaseModel):
    id: str
    action: OperationAction
    resource: str
    payload: Dict[str, Any]
    timestamp: datetime
    attempts: int = 0
    last_error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None
    depends_on: Optional[str] = None

    class Config:
        from_attributes = True

class PendingOperationsOut(BaseModel):
    pending_count: int
    operations: List[OperationOut]

class DrainResult(BaseModel):
    succeeded: int = 0
    failed: int = 0
    # dependents of a failed operation, left untouched for this cycle
    deferred: int = 0
    skipped: bool = False
    failed_ids: List[str] = Field(default_factory=list)

class SubmitResult(BaseModel):
    applied: bool
    queued: bool
    rejected: bool = False
    operation_id: Optional[str] = None


class MessageType(str, enum.Enum):
    SHOW_SYNC_NOTIFICATION = "SHOW_SYNC_NOTIFICATION"
    CLOSE_NOTIFICATION = "CLOSE_NOTIFICATION"
    NOTIFICATION_ACTION = "NOTIFICATION_ACTION"

class WorkerMessage(BaseModel):
    """Envelope exchanged between the foreground and the background worker."""
    type: MessageType
    payload: Dict[str, Any] = Field(default_factory=dict)

class NotificationAction(BaseModel):
    action: str  # "sync", "retry", "view"
    title: str

class Notification(BaseModel):
    title: str
    body: str = ""
    tag: str = "sync-notification"
    require_interaction: bool = False
    actions: List[NotificationAction] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)

class ConnectivityUpdate(BaseModel):
    online: bool

class SyncStatusOut(BaseModel):
    online: bool
    state: str
    pending_count: int
    last_result: Optional[DrainResult] = None

class NotificationClick(BaseModel):
    action: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

class NotificationClickResult(BaseModel):
    tag: str
    action: str
    delivered: bool

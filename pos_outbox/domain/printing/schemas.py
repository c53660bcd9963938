# pos_outbox/domain/printing/schemas.py
from datetime import datetime
from pydantic import BaseModel
from uuid import UUID
from typing import Any, Dict, Optional

from pos_outbox.db.models.print_jobs import PrintJobStatus, PrintJobType


class PrintJobCreate(BaseModel):
    print_type: PrintJobType
    payload: Dict[str, Any]

class PrintJobOut(BaseModel):
    id: UUID
    tenant_id: str
    print_type: PrintJobType
    payload: Dict[str, Any]
    status: PrintJobStatus
    created_by: Optional[str]
    created_at: datetime
    printed_at: Optional[datetime]
    printed_by_device: Optional[str]

    class Config:
        from_attributes = True

class MarkPrinted(BaseModel):
    device_id: str

class ClaimResult(BaseModel):
    id: UUID
    claimed: bool
    status: PrintJobStatus
    printed_by_device: Optional[str] = None

class PrintRoutingConfig(BaseModel):
    """Device flags deciding where a print call goes."""
    is_print_server: bool = False
    use_print_queue: bool = False

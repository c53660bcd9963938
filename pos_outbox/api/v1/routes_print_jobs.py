# pos_outbox/api/v1/routes_print_jobs.py
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from pos_outbox.core.config import settings
from pos_outbox.core.exceptions import PrintJobNotFoundError, TenantRequiredError
from pos_outbox.domain.printing.queue import PrintJobQueue
from pos_outbox.domain.printing.schemas import ClaimResult, MarkPrinted, PrintJobCreate, PrintJobOut


router = APIRouter(prefix="/api/v1/print-jobs", tags=["print-jobs"])


def get_print_queue(
    request: Request,
    x_tenant_id: Optional[str] = Header(default=None),
) -> PrintJobQueue:
    # one queue object per tenant, shared with the local print server
    try:
        return request.app.state.runtime.print_queue(x_tenant_id or settings.DEFAULT_TENANT_ID)
    except TenantRequiredError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("", response_model=PrintJobOut, status_code=status.HTTP_201_CREATED)
async def enqueue_print_job_endpoint(
    payload: PrintJobCreate,
    x_user_id: Optional[str] = Header(default=None),
    queue: PrintJobQueue = Depends(get_print_queue),
):
    return await queue.enqueue(payload.print_type, payload.payload, created_by=x_user_id)

@router.get("/pending", response_model=List[PrintJobOut])
async def pending_print_jobs_endpoint(
    queue: PrintJobQueue = Depends(get_print_queue),
):
    return await queue.poll_pending()

@router.get("/{job_id}", response_model=PrintJobOut)
async def get_print_job_endpoint(
    job_id: UUID,
    queue: PrintJobQueue = Depends(get_print_queue),
):
    try:
        return await queue.get(job_id)
    except PrintJobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.post("/{job_id}/printed", response_model=ClaimResult)
async def mark_printed_endpoint(
    job_id: UUID,
    payload: MarkPrinted,
    queue: PrintJobQueue = Depends(get_print_queue),
):
    try:
        claimed = await queue.mark_printed(job_id, payload.device_id)
        job = await queue.get(job_id)
    except PrintJobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return ClaimResult(id=job.id, claimed=claimed, status=job.status, printed_by_device=job.printed_by_device)

@router.post("/{job_id}/failed", response_model=ClaimResult)
async def mark_failed_endpoint(
    job_id: UUID,
    queue: PrintJobQueue = Depends(get_print_queue),
):
    try:
        claimed = await queue.mark_failed(job_id)
        job = await queue.get(job_id)
    except PrintJobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return ClaimResult(id=job.id, claimed=claimed, status=job.status, printed_by_device=job.printed_by_device)

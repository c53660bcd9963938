# pos_outbox/domain/printing/queue.py
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from pos_outbox.core.exceptions import PrintJobNotFoundError, TenantRequiredError
from pos_outbox.core.logging_config import get_logger
from pos_outbox.db.models.print_jobs import PrintJob, PrintJobStatus, PrintJobType
from pos_outbox.db.repositories import print_jobs as repo
from .schemas import PrintJobOut

logger = get_logger(__name__)

JobListener = Callable[[PrintJobOut], Awaitable[None]]


class PrintJobQueue:
    """Tenant-scoped view of the shared ``print_queue`` table.

    The row is the only source of truth: producers forget a job once inserted,
    and a consumer claims it by moving ``status`` out of ``pending``.
    """

    def __init__(self, session_factory, tenant_id: Optional[str], user_id: Optional[str] = None):
        if not tenant_id:
            raise TenantRequiredError("Print queue access requires a tenant id")
        self._session_factory = session_factory
        self.tenant_id = tenant_id
        self.user_id = user_id
        self._listeners: List[JobListener] = []

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        """Get called with every job inserted through this queue object."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def enqueue(
        self,
        print_type: PrintJobType,
        payload: Dict[str, Any],
        created_by: Optional[str] = None,
    ) -> PrintJobOut:
        job = PrintJob(
            tenant_id=self.tenant_id,
            print_type=PrintJobType(print_type),
            payload=payload,
            status=PrintJobStatus.PENDING,
            created_by=created_by or self.user_id,
            created_at=datetime.now(timezone.utc),
        )
        async with self._session_factory() as db:
            job = await repo.insert_print_job(db, job)
        out = PrintJobOut.model_validate(job)
        logger.info("Print job enqueued", job_id=str(out.id), print_type=out.print_type.value, tenant_id=self.tenant_id)

        for listener in list(self._listeners):
            try:
                await listener(out)
            except Exception:
                logger.exception("Print job listener failed", job_id=str(out.id))
        return out

    async def poll_pending(self) -> List[PrintJobOut]:
        async with self._session_factory() as db:
            jobs = await repo.list_pending_print_jobs(db, self.tenant_id)
        return [PrintJobOut.model_validate(job) for job in jobs]

    async def get(self, job_id: UUID) -> PrintJobOut:
        async with self._session_factory() as db:
            job = await repo.get_print_job(db, self.tenant_id, job_id)
        if job is None:
            raise PrintJobNotFoundError(job_id)
        return PrintJobOut.model_validate(job)

    async def mark_printed(self, job_id: UUID, device_id: str) -> bool:
        """
        Claim a pending job for ``device_id``.

        Returns:
            bool: True if this call made the pending -> printed transition.
                False if the job was already printed or failed; the row is left
                as the first writer set it.

        Raises:
            PrintJobNotFoundError: No such job for this tenant.
        """
        async with self._session_factory() as db:
            claimed = await repo.transition_pending_job(
                db,
                self.tenant_id,
                job_id,
                PrintJobStatus.PRINTED,
                printed_at=datetime.now(timezone.utc),
                printed_by_device=device_id,
            )
        if not claimed:
            current = await self.get(job_id)
            logger.warning(
                "Print job already resolved, claim ignored",
                job_id=str(job_id),
                status=current.status.value,
                printed_by_device=current.printed_by_device,
                device_id=device_id,
            )
            return False
        logger.info("Print job printed", job_id=str(job_id), device_id=device_id)
        return True

    async def mark_failed(self, job_id: UUID) -> bool:
        async with self._session_factory() as db:
            failed = await repo.transition_pending_job(db, self.tenant_id, job_id, PrintJobStatus.FAILED)
        if not failed:
            current = await self.get(job_id)
            logger.warning("Print job already resolved, failure ignored", job_id=str(job_id), status=current.status.value)
            return False
        logger.info("Print job marked failed", job_id=str(job_id))
        return True

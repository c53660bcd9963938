# pos_outbox/domain/printing/server.py
import asyncio
from typing import Callable, Optional, Set

from pos_outbox.core.exceptions import PrintJobNotFoundError
from pos_outbox.core.logging_config import get_logger
from pos_outbox.db.models.print_jobs import PrintJobStatus
from .queue import PrintJobQueue
from .routing import LocalPrinter
from .schemas import PrintJobOut

logger = get_logger(__name__)


class PrintServer:
    """Consumes the shared print queue on the device that owns the printer.

    New jobs arrive through the queue subscription; a poll every
    ``poll_interval`` seconds picks up anything the subscription missed (jobs
    inserted by other processes, dropped notifications, restarts).
    """

    def __init__(
        self,
        queue: PrintJobQueue,
        printer: LocalPrinter,
        device_id: str,
        poll_interval: float = 5.0,
    ):
        self.queue = queue
        self.printer = printer
        self.device_id = device_id
        self.poll_interval = poll_interval
        self._processing: Set[str] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._poller: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._poller is not None:
            return
        self._unsubscribe = self.queue.subscribe(self.process_job)
        self._poller = asyncio.ensure_future(self._poll_loop())
        logger.info("Print server started", device_id=self.device_id, tenant_id=self.queue.tenant_id)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._poller is not None:
            self._poller.cancel()
            await asyncio.gather(self._poller, return_exceptions=True)
            self._poller = None

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.process_pending()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Print queue poll failed")
            await asyncio.sleep(self.poll_interval)

    async def process_pending(self) -> int:
        """Process every pending job once; returns how many this device printed."""
        printed = 0
        for job in await self.queue.poll_pending():
            if await self.process_job(job):
                printed += 1
        return printed

    async def process_job(self, job: PrintJobOut) -> bool:
        key = str(job.id)
        if key in self._processing or job.status != PrintJobStatus.PENDING:
            return False

        self._processing.add(key)
        try:
            # Another server may have resolved it since it was listed.
            try:
                current = await self.queue.get(job.id)
            except PrintJobNotFoundError:
                return False
            if current.status != PrintJobStatus.PENDING:
                logger.info("Skipping resolved print job", job_id=key, status=current.status.value)
                return False

            logger.info("Processing print job", job_id=key, print_type=job.print_type.value)
            try:
                ok = await self.printer.print(job.print_type, job.payload)
            except Exception as e:
                logger.error("Error printing job", job_id=key, print_type=job.print_type.value, error=str(e))
                ok = False

            if not ok:
                await self.queue.mark_failed(job.id)
                return False

            return await self.queue.mark_printed(job.id, self.device_id)
        finally:
            self._processing.discard(key)

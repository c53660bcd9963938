"""
Decides, per print call, whether this device prints on its own printer or
hands the job to the shared print queue, and carries the print out.

The decision is a pure function of ``PrintRoutingConfig``. ``CentralizedPrinter``
asks its config provider again on every call, so flipping a device flag takes
effect on the next print without restarting anything.
"""

import enum
import random
import string
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from sqlalchemy.ext.asyncio import AsyncSession

from pos_outbox.core.logging_config import get_logger
from pos_outbox.db.models.print_jobs import PrintJobType
from pos_outbox.db.repositories.local_settings import get_setting, set_setting
from .schemas import PrintRoutingConfig

logger = get_logger(__name__)

IS_PRINT_SERVER_KEY = "is_print_server"
USE_PRINT_QUEUE_KEY = "use_print_queue"
DEVICE_ID_KEY = "print_server_device_id"


class PrintRoute(str, enum.Enum):
    DIRECT = "direct"
    QUEUE = "queue"


def decide_route(config: PrintRoutingConfig) -> PrintRoute:
    """
    | is_print_server | use_print_queue | route  |
    |-----------------|-----------------|--------|
    | true            | any             | direct |
    | false           | true            | queue  |
    | false           | false           | direct (even with no printer attached) |
    """
    if config.use_print_queue and not config.is_print_server:
        return PrintRoute.QUEUE
    return PrintRoute.DIRECT


async def load_routing_config(db: AsyncSession) -> PrintRoutingConfig:
    return PrintRoutingConfig(
        is_print_server=await get_setting(db, IS_PRINT_SERVER_KEY) == "true",
        use_print_queue=await get_setting(db, USE_PRINT_QUEUE_KEY) == "true",
    )


async def save_routing_config(db: AsyncSession, config: PrintRoutingConfig) -> None:
    await set_setting(db, IS_PRINT_SERVER_KEY, "true" if config.is_print_server else "false")
    await set_setting(db, USE_PRINT_QUEUE_KEY, "true" if config.use_print_queue else "false")


async def get_or_create_device_id(db: AsyncSession) -> str:
    """Stable id this device signs its printed jobs with."""
    device_id = await get_setting(db, DEVICE_ID_KEY)
    if device_id is None:
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        device_id = f"device_{int(time.time() * 1000)}_{suffix}"
        await set_setting(db, DEVICE_ID_KEY, device_id)
        logger.info("Generated print device id", device_id=device_id)
    return device_id


class LocalPrinter(Protocol):
    async def print(self, print_type: PrintJobType, payload: Dict[str, Any]) -> bool:
        """Render and send a job to the printer attached to this device."""
        ...


ConfigProvider = Callable[[], Union[PrintRoutingConfig, Awaitable[PrintRoutingConfig]]]


class CentralizedPrinter:

    def __init__(
        self,
        printer: LocalPrinter,
        queue,
        config_provider: ConfigProvider,
        user_id: Optional[str] = None,
    ):
        self.printer = printer
        self.queue = queue
        self.user_id = user_id
        self._config_provider = config_provider

    async def current_route(self) -> PrintRoute:
        config = self._config_provider()
        if not isinstance(config, PrintRoutingConfig):
            config = await config
        return decide_route(config)

    async def print_kitchen_ticket(self, ticket: Dict[str, Any]) -> bool:
        return await self._dispatch(PrintJobType.KITCHEN_TICKET, ticket)

    async def print_kitchen_tickets_by_sector(
        self,
        items: List[Dict[str, Any]],
        order_info: Dict[str, Any],
        duplicate: bool = False,
    ) -> bool:
        payload = {"items": items, "order_info": order_info, "duplicate": duplicate}
        return await self._dispatch(PrintJobType.KITCHEN_TICKET_SECTOR, payload)

    async def print_customer_receipt(self, receipt: Dict[str, Any]) -> bool:
        return await self._dispatch(PrintJobType.CUSTOMER_RECEIPT, receipt)

    async def print_cancellation_ticket(self, ticket: Dict[str, Any]) -> bool:
        return await self._dispatch(PrintJobType.CANCELLATION_TICKET, ticket)

    async def _dispatch(self, print_type: PrintJobType, payload: Dict[str, Any]) -> bool:
        route = await self.current_route()
        if route == PrintRoute.QUEUE:
            try:
                job = await self.queue.enqueue(print_type, payload, created_by=self.user_id)
            except Exception as e:
                logger.error("Failed to queue print job", print_type=print_type.value, error=str(e))
                return False
            logger.info("Print job queued", job_id=str(job.id), print_type=print_type.value)
            return True

        try:
            return await self.printer.print(print_type, payload)
        except Exception as e:
            logger.error("Local print failed", print_type=print_type.value, error=str(e))
            return False

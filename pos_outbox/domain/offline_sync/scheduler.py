# pos_outbox/domain/offline_sync/scheduler.py
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from pos_outbox.core.logging_config import get_logger
from .schemas import WorkerMessage

logger = get_logger(__name__)

MessageHandler = Callable[[WorkerMessage], Awaitable[None]]


class BackgroundTaskScheduler(Protocol):
    def run_periodically(self, name: str, interval: float, func: Callable[[], Awaitable]) -> None:
        ...

    def on_connectivity_change(self, callback: Callable[[bool], None]) -> None:
        ...

    async def post_message(self, message: WorkerMessage) -> None:
        ...


class AsyncioTaskScheduler:
    """Background-worker runtime on the running event loop.

    Periodic jobs are best-effort: a run that raises is logged and the job keeps
    its schedule. Messages posted here are delivered in order to the handler
    set with ``set_message_handler``; without a handler they wait in the queue.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}
        self._connectivity_callbacks: List[Callable[[bool], None]] = []
        self._messages: asyncio.Queue = asyncio.Queue()
        self._message_handler: Optional[MessageHandler] = None
        self._pump: Optional[asyncio.Task] = None

    def run_periodically(self, name: str, interval: float, func: Callable[[], Awaitable]) -> None:
        existing = self._tasks.pop(name, None)
        if existing is not None:
            existing.cancel()
        self._tasks[name] = asyncio.ensure_future(self._periodic(name, interval, func))
        logger.info("Periodic task scheduled", task=name, interval_seconds=interval)

    async def _periodic(self, name: str, interval: float, func: Callable[[], Awaitable]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await func()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Periodic task failed", task=name)

    def on_connectivity_change(self, callback: Callable[[bool], None]) -> None:
        self._connectivity_callbacks.append(callback)

    def notify_connectivity(self, online: bool) -> None:
        """Feed a platform reachability event to the registered callbacks."""
        for callback in list(self._connectivity_callbacks):
            callback(online)

    async def post_message(self, message: WorkerMessage) -> None:
        await self._messages.put(message)

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._message_handler = handler
        if self._pump is None or self._pump.done():
            self._pump = asyncio.ensure_future(self._pump_messages())

    async def join_messages(self) -> None:
        """Wait until every posted message has been handled."""
        await self._messages.join()

    async def _pump_messages(self) -> None:
        while True:
            message = await self._messages.get()
            try:
                await self._message_handler(message)
            except Exception:
                logger.exception("Worker message handler failed", message_type=message.type.value)
            finally:
                self._messages.task_done()

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        if self._pump is not None:
            tasks.append(self._pump)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._pump = None

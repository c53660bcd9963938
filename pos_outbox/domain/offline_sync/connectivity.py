"""
Online/offline tracking for the edge node.

The monitor trusts the platform reachability signal handed to ``set_online``;
it never probes the hosted store itself. An offline -> online transition
schedules one reconnect handler call (normally ``SyncEngine.drain``) after a
short debounce, so a connection that flaps inside the window only triggers a
single drain once it settles.
"""

import asyncio
import enum
from typing import Awaitable, Callable, List, Optional

from pos_outbox.core.logging_config import get_logger

logger = get_logger(__name__)


class ConnectivityState(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectivityMonitor:

    def __init__(self, initially_online: bool = False, debounce_seconds: float = 2.0):
        self.state = ConnectivityState.ONLINE if initially_online else ConnectivityState.OFFLINE
        self._debounce_seconds = debounce_seconds
        self._reconnect_handler: Optional[Callable[[], Awaitable]] = None
        self._listeners: List[Callable[[ConnectivityState], None]] = []
        self._pending_reconnect: Optional[asyncio.Task] = None

    @property
    def is_online(self) -> bool:
        return self.state == ConnectivityState.ONLINE

    def on_reconnect(self, handler: Callable[[], Awaitable]) -> None:
        """Set the coroutine function run once per settled offline -> online transition."""
        self._reconnect_handler = handler

    def add_listener(self, callback: Callable[[ConnectivityState], None]) -> None:
        """Register a callback fired on every online/offline transition."""
        self._listeners.append(callback)

    def set_online(self, online: bool) -> None:
        new_state = ConnectivityState.ONLINE if online else ConnectivityState.OFFLINE
        if new_state == self.state:
            return

        self.state = new_state
        logger.info("Connectivity changed", state=new_state.value)

        for callback in list(self._listeners):
            try:
                callback(new_state)
            except Exception:
                logger.exception("Connectivity listener failed")

        if new_state == ConnectivityState.ONLINE:
            self._schedule_reconnect()
        else:
            self._cancel_reconnect()

    async def wait_for_reconnect(self) -> None:
        """Wait for the currently scheduled reconnect handler, if any."""
        task = self._pending_reconnect
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect()
        if self._reconnect_handler is None:
            return
        self._pending_reconnect = asyncio.ensure_future(self._reconnect_after_debounce())

    def _cancel_reconnect(self) -> None:
        if self._pending_reconnect is not None and not self._pending_reconnect.done():
            self._pending_reconnect.cancel()
        self._pending_reconnect = None

    async def _reconnect_after_debounce(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        if not self.is_online:
            return
        logger.info("Connection settled, triggering sync")
        try:
            await self._reconnect_handler()
        except Exception:
            logger.exception("Reconnect sync failed")

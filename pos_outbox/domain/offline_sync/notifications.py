"""
Background-worker side of the offline queue.

The bridge runs where the primary UI may not be: it shows and closes
notifications on request, periodically reminds the user about operations that
have waited too long, and relays notification button presses back to the
foreground as ``NOTIFICATION_ACTION`` messages. All exchange with the
foreground is by ``WorkerMessage``; the bridge reads the durable queue directly
and never touches foreground state.
"""

from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from pos_outbox.core.logging_config import get_logger
from .queue import QueueManager
from .schemas import MessageType, Notification, NotificationAction, WorkerMessage

logger = get_logger(__name__)

SYNC_NOTIFICATION_TAG = "sync-notification"
SYNC_PROGRESS_TAG = "sync-progress"
PENDING_REMINDER_TAG = "pending-reminder"
PENDING_CHECK_TASK = "check-pending-operations"

ForegroundHandler = Callable[[WorkerMessage], Awaitable[None]]


class Notifier(Protocol):
    def show(self, notification: Notification) -> None:
        ...

    def close(self, tag: str) -> int:
        ...


class NotificationCenter:
    """Platform notification tray stand-in: one visible notification per tag."""

    def __init__(self):
        self.active: Dict[str, Notification] = {}

    def show(self, notification: Notification) -> None:
        self.active[notification.tag] = notification
        logger.info("Notification shown", tag=notification.tag, title=notification.title)

    def close(self, tag: str) -> int:
        return 1 if self.active.pop(tag, None) is not None else 0


class NotificationBridge:

    def __init__(
        self,
        queue: QueueManager,
        notifier: Notifier,
        stale_threshold: timedelta = timedelta(hours=1),
    ):
        self.queue = queue
        self.notifier = notifier
        self.stale_threshold = stale_threshold
        self._foreground: Optional[ForegroundHandler] = None
        self._undelivered: List[WorkerMessage] = []

    def start(self, scheduler, check_interval: float) -> None:
        """Register with the background runtime: inbound messages and the periodic reminder."""
        scheduler.set_message_handler(self.handle_message)
        scheduler.run_periodically(PENDING_CHECK_TASK, check_interval, self.check_pending_operations)

    async def handle_message(self, message: WorkerMessage) -> None:
        payload = message.payload
        if message.type == MessageType.SHOW_SYNC_NOTIFICATION:
            self.notifier.show(
                Notification(
                    title=payload.get("title", ""),
                    body=payload.get("body", ""),
                    tag=payload.get("tag") or SYNC_NOTIFICATION_TAG,
                    require_interaction=payload.get("require_interaction", False),
                    actions=[NotificationAction(**a) for a in payload.get("actions", [])],
                    data=payload.get("data", {}),
                )
            )
        elif message.type == MessageType.CLOSE_NOTIFICATION:
            self.close_notifications(payload.get("tag") or SYNC_NOTIFICATION_TAG)
        else:
            logger.warning("Ignoring unexpected worker message", message_type=message.type.value)

    def close_notifications(self, tag: str) -> int:
        closed = self.notifier.close(tag)
        logger.debug("Notifications closed", tag=tag, closed=closed)
        return closed

    async def check_pending_operations(self, now: Optional[datetime] = None) -> int:
        """Count operations older than the staleness threshold and remind the user.

        Returns:
            int: Number of stale operations found.
        """
        count = await self.queue.count_stale(self.stale_threshold, now=now)
        if count > 0:
            logger.info("Stale offline operations found", count=count)
            self.notifier.show(
                Notification(
                    title="Pending operations",
                    body=f"You have {count} operation(s) waiting to sync.",
                    tag=PENDING_REMINDER_TAG,
                    actions=[NotificationAction(action="sync", title="Sync now")],
                    data={"url": "/"},
                )
            )
        return count

    async def notification_clicked(self, tag: str, action: Optional[str] = None, data: Optional[dict] = None) -> bool:
        """Close the clicked notification and forward the action to the foreground.

        Returns False when no foreground is attached; the action is then held
        and delivered by the next ``attach_foreground``.
        """
        self.notifier.close(tag)
        message = WorkerMessage(
            type=MessageType.NOTIFICATION_ACTION,
            payload={"action": action or "click", "notification_tag": tag, "data": data or {}},
        )
        if self._foreground is None:
            logger.info("No foreground attached, holding notification action", tag=tag, action=action)
            self._undelivered.append(message)
            return False
        await self._foreground(message)
        return True

    async def attach_foreground(self, handler: ForegroundHandler) -> None:
        self._foreground = handler
        undelivered, self._undelivered = self._undelivered, []
        for message in undelivered:
            await handler(message)

    def detach_foreground(self) -> None:
        self._foreground = None

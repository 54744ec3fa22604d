"""
In-process fan-out of notifications to Server-Sent Events subscribers.

Each open stream owns an asyncio queue. Route handlers run in the threadpool,
so ``publish`` hands messages to each subscriber's loop with
``call_soon_threadsafe`` instead of touching the queue directly.
"""
import asyncio
import json
import logging
import threading
from typing import Any, AsyncIterator, Dict, Optional, Set, Tuple

from sqlalchemy.orm import Session

from app.models.communication import Notification
from app.schemas.communication import NotificationResponse

logger = logging.getLogger(__name__)

CONNECTED_EVENT = 'data: {"type": "CONNECTED"}\n\n'
KEEPALIVE_COMMENT = ":\n\n"


def format_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


class NotificationBroker:
    def __init__(self) -> None:
        self._subscribers: Set[Tuple[asyncio.AbstractEventLoop, asyncio.Queue, Optional[str]]] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, user_id=None) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        owner = str(user_id) if user_id else None
        with self._lock:
            self._subscribers.add((asyncio.get_running_loop(), queue, owner))
        logger.info(f"SSE client connected ({self.subscriber_count} open)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._subscribers = {s for s in self._subscribers if s[1] is not queue}
        logger.info(f"SSE client disconnected ({self.subscriber_count} open)")

    def publish(self, payload: Dict[str, Any]) -> int:
        """
        Queue ``payload`` for the open streams allowed to see it and return the
        number reached. Payloads without a ``user_id`` go to every stream.
        """
        message = format_event(payload)
        recipient = payload.get("user_id")
        recipient = str(recipient) if recipient else None
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for loop, queue, owner in subscribers:
            if recipient and owner != recipient:
                continue
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(queue.put_nowait, message)
            delivered += 1
        return delivered

    async def stream(
        self, keepalive: float, queue: Optional[asyncio.Queue] = None
    ) -> AsyncIterator[str]:
        queue = queue or self.subscribe()
        try:
            yield CONNECTED_EVENT
            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=keepalive)
                except asyncio.TimeoutError:
                    yield KEEPALIVE_COMMENT
                    continue
                yield message
        finally:
            self.unsubscribe(queue)


broker = NotificationBroker()


def create_notification(
    db: Session,
    type: str,
    title: str,
    message: str,
    action_link: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    user_id=None,
) -> Notification:
    """Store a notification and push it to open streams."""
    notification = Notification(
        type=type,
        title=title,
        message=message,
        action_link=action_link,
        meta=metadata or {},
        user_id=user_id,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    payload = NotificationResponse.model_validate(notification).model_dump(mode="json")
    broker.publish(payload)
    return notification

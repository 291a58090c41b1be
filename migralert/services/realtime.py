"""
In-process publish/subscribe for report changes

Every create, update and soft-delete of a report is published on the
"reports-changes" topic. Map clients subscribe over a WebSocket and reconcile
their local state by report id; arrival order is not authoritative.
"""
import asyncio
import logging
from typing import Dict, Optional, Set

from migralert.schemas.report import ReportResponse

logger = logging.getLogger(__name__)

REPORTS_TOPIC = "reports-changes"

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"


class Subscription:
    """Bounded queue of events for one subscriber; the oldest event is dropped when full."""

    def __init__(self, broker: "ChangeBroker", topic: str, maxsize: int = 100):
        self.broker = broker
        self.topic = topic
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        try:
            self.loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            self.loop = None

    def deliver(self, event: dict) -> None:
        # Publishers may run on another thread (sync handlers, test clients)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self.loop is None or running is self.loop:
            self._put(event)
        elif not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._put, event)

    def _put(self, event: dict) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> dict:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)

    def close(self) -> None:
        self.broker.unsubscribe(self)


class ChangeBroker:
    def __init__(self):
        self._subscriptions: Dict[str, Set[Subscription]] = {}

    def subscribe(self, topic: str = REPORTS_TOPIC, maxsize: int = 100) -> Subscription:
        subscription = Subscription(self, topic, maxsize=maxsize)
        self._subscriptions.setdefault(topic, set()).add(subscription)
        logger.info(f"[Realtime] + subscriber on {topic} ({self.subscriber_count(topic)} total)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions.get(subscription.topic)
        if subscribers and subscription in subscribers:
            subscribers.discard(subscription)
            logger.info(f"[Realtime] - subscriber on {subscription.topic} ({len(subscribers)} left)")

    def subscriber_count(self, topic: str = REPORTS_TOPIC) -> int:
        return len(self._subscriptions.get(topic, ()))

    def publish(self, event: dict, topic: str = REPORTS_TOPIC) -> int:
        subscribers = list(self._subscriptions.get(topic, ()))
        for subscription in subscribers:
            subscription.deliver(event)
        return len(subscribers)


def report_event(event_type: str, report) -> dict:
    """
    Build the wire event for a report change.

    A report moved to 'removed' is announced as DELETE so that viewers drop it.
    """
    if event_type == EVENT_DELETE or report.status == "removed":
        return {"event": EVENT_DELETE, "report": {"id": report.id}}
    return {
        "event": event_type,
        "report": ReportResponse.from_model(report).model_dump(mode="json"),
    }


# Global instance
broker = ChangeBroker()


def get_broker() -> ChangeBroker:
    return broker

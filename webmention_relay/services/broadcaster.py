"""Live fan-out of newly created mentions to stream subscribers."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from ..rendering import entry_projection
from ..validation import host_of, normalize_host

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Subscription:
    """One open live connection."""

    site: Optional[str]
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    def matches(self, url: str) -> bool:
        return not self.site or host_of(url) == self.site


def format_sse(event: str, data: Any) -> str:
    """Encode one server-sent event frame."""
    payload = json.dumps(data, separators=(",", ":"))
    return f"event: {event}\ndata: {payload}\n\n"


class LiveBroadcaster:
    """Registry of filter-tagged subscriber channels.

    Events are only delivered to subscribers connected at publish time.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscriptions: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, site: Optional[str] = None) -> Subscription:
        """Open a channel, optionally limited to mentions of one site."""
        subscription = Subscription(
            site=normalize_host(site) or None,
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        self._subscriptions.add(subscription)
        logger.debug("Live subscriber added (site=%s, total=%d)", subscription.site, self.subscriber_count)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)
        logger.debug("Live subscriber removed (total=%d)", self.subscriber_count)

    def publish(self, target_url: str, payload: dict[str, Any]) -> int:
        """Hand an event to every matching subscriber.

        Returns:
            Number of subscribers the event was queued for.
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.matches(target_url):
                continue
            try:
                subscription.queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping live event for slow subscriber (site=%s)", subscription.site)

        logger.debug("Published mention of %s to %d subscriber(s)", target_url, delivered)
        return delivered

    async def on_resolved(self, document) -> None:
        """Completion listener: one event per newly created mention."""
        for target in document.created:
            self.publish(target, entry_projection(document.entry, [target]))

    async def stream(self, subscription: Subscription, keepalive: float = 15.0) -> AsyncIterator[str]:
        """Yield SSE frames for a subscription until the client goes away."""
        try:
            yield ": connected\n\n"
            while True:
                try:
                    payload = await asyncio.wait_for(subscription.queue.get(), timeout=keepalive)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield format_sse("mention", payload)
        finally:
            self.unsubscribe(subscription)

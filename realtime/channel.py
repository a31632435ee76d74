"""
Broadcast Channel.

============================================================
PURPOSE
============================================================
Explicit publish/subscribe channel between the real-time
publisher and the transport layer.

- Each subscription owns a bounded asyncio queue
- Subscriptions filter by message kind
- Publishing never blocks: a full queue drops the message
  for that subscriber only (best-effort, no replay)

============================================================
"""

import asyncio
import itertools
import logging
from typing import Dict, FrozenSet, Iterable, Optional

from realtime.messages import Message, MessageKind


logger = logging.getLogger(__name__)


class Subscription:
    """A consumer's view of the channel."""

    def __init__(self, subscription_id: int, kinds: FrozenSet[MessageKind], max_queue_size: int):
        self.subscription_id = subscription_id
        self.kinds = kinds
        self.dropped = 0
        self._queue: "asyncio.Queue[Message]" = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def wants(self, kind: MessageKind) -> bool:
        return kind in self.kinds

    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, message: Message) -> bool:
        """Queue without waiting; False if dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self, timeout: Optional[float] = None) -> Message:
        """Next message; raises asyncio.TimeoutError after `timeout` seconds."""
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout)

    def get_nowait(self) -> Optional[Message]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def close(self) -> None:
        self._closed = True


class BroadcastChannel:
    """Fan-out of publisher messages to subscriptions."""

    def __init__(self, max_queue_size: int = 100):
        self._max_queue_size = max_queue_size
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._published = 0
        self._dropped = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, kinds: Optional[Iterable[MessageKind]] = None) -> Subscription:
        """Subscribe to the given kinds (all kinds when omitted)."""
        wanted = frozenset(kinds) if kinds is not None else frozenset(MessageKind)
        subscription = Subscription(next(self._ids), wanted, self._max_queue_size)
        self._subscriptions[subscription.subscription_id] = subscription
        logger.info(
            f"Subscriber {subscription.subscription_id} joined "
            f"({', '.join(sorted(k.value for k in wanted))})"
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        if self._subscriptions.pop(subscription.subscription_id, None) is not None:
            logger.info(f"Subscriber {subscription.subscription_id} left")

    def publish(self, message: Message) -> int:
        """
        Offer a message to every interested subscriber.

        Returns:
            Number of subscribers the message was queued for
        """
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.wants(message.kind):
                continue
            if subscription.offer(message):
                delivered += 1
            else:
                self._dropped += 1
                logger.warning(
                    f"Subscriber {subscription.subscription_id} queue full, "
                    f"dropped {message.kind.value}"
                )
        self._published += 1
        return delivered

    def stats(self) -> Dict[str, int]:
        return {
            "subscribers": len(self._subscriptions),
            "published": self._published,
            "dropped": self._dropped,
        }

"""
In-process change channel. Mutations publish a small "something changed"
message to the affected users; connected clients re-fetch on receipt.
Messages are hints, not a log: a full subscriber queue drops new messages.
"""
import asyncio
from collections import defaultdict
from typing import Dict, Iterable, Set
import logging

from services.config import app_config

logger = logging.getLogger(__name__)

TOPIC_FRIENDS = "friends"
TOPIC_FRIEND_REQUESTS = "friend_requests"
TOPIC_FOLLOWS = "follows"
TOPIC_NOTIFICATIONS = "notifications"

class ChangeBroadcaster:
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Dict[int, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, user_id: int) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[user_id].add(queue)
        return queue

    def unsubscribe(self, user_id: int, queue: asyncio.Queue):
        queues = self._subscribers.get(user_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]

    def subscriber_count(self, user_id: int) -> int:
        return len(self._subscribers.get(user_id, ()))

    def publish(self, user_ids: Iterable[int], topic: str, reason: str) -> int:
        """Queue an invalidation for every subscriber of ``user_ids``. Returns deliveries."""
        message = {"topic": topic, "reason": reason}
        delivered = 0
        for user_id in set(user_ids):
            for queue in list(self._subscribers.get(user_id, ())):
                try:
                    queue.put_nowait(message)
                    delivered += 1
                except asyncio.QueueFull:
                    logger.warning(f"Realtime queue full for user {user_id}, dropping {topic}")
        return delivered

broadcaster = ChangeBroadcaster(queue_size=app_config.realtime_queue_size)

def get_broadcaster() -> ChangeBroadcaster:
    return broadcaster

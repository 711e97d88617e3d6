"""
Queue strategies for hit events.

Redirects publish hit events and return immediately; the hit worker consumes
them and writes Hit rows. Backends: Redis Streams (shared between processes)
and an in-process deque (development, tests, single-process deployments).
"""

import asyncio
import logging
import socket
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Dict, List

from pydantic import ValidationError

from .models import HitEvent

logger = logging.getLogger(__name__)


class QueueStrategy(ABC):
    """
    Interface of a hit queue backend.

    publish() is on the redirect path: implementations report failure by
    returning False, the caller decides how loud to be about it.
    """

    @abstractmethod
    async def publish(self, queue_name: str, message: HitEvent) -> bool:
        """
        Publish a message to the queue.

        Returns:
            True if successful, False otherwise
        """

    @abstractmethod
    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[HitEvent]:
        """
        Consume up to batch_size messages, waiting at most block_time milliseconds.
        """

    @abstractmethod
    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        """Acknowledge processed messages"""

    @abstractmethod
    async def get_queue_length(self, queue_name: str) -> int:
        """Number of messages waiting in the queue"""


class RedisStreamQueue(QueueStrategy):
    """
    Redis Streams backend.

    - XADD to publish
    - XREADGROUP with a consumer group to consume (several workers share the load)
    - XACK once a batch is stored; unacknowledged messages stay pending and are
      delivered again: this consumer's own pending entries first, then entries
      left behind by other consumers for longer than claim_idle_ms, then new ones

    Redis calls block, so they run in a thread and never hold the event loop.
    """

    def __init__(self, redis_client, consumer_group: str = "hit_workers", claim_idle_ms: int = 60000):
        self.redis = redis_client
        self.consumer_group = consumer_group
        self.claim_idle_ms = claim_idle_ms
        self.consumer_name = f"worker-{socket.gethostname()}-{id(self)}"
        self._initialized_streams = set()

    def _ensure_stream_exists(self, queue_name: str):
        """Create the stream and consumer group on first use"""
        if queue_name in self._initialized_streams:
            return

        try:
            self.redis.xgroup_create(
                name=queue_name,
                groupname=self.consumer_group,
                id="0",
                mkstream=True
            )
            logger.info("Created Redis stream %s", queue_name)
        except Exception as e:
            # Group might already exist, that's OK
            if "BUSYGROUP" not in str(e):
                raise

        self._initialized_streams.add(queue_name)

    def _add(self, queue_name: str, message: HitEvent):
        self._ensure_stream_exists(queue_name)
        self.redis.xadd(queue_name, {"data": message.model_dump_json()})

    async def publish(self, queue_name: str, message: HitEvent) -> bool:
        try:
            await asyncio.to_thread(self._add, queue_name, message)
            return True
        except Exception:
            logger.exception("Redis publish to %s failed", queue_name)
            return False

    def _read_group(self, queue_name: str, stream_id: str, batch_size: int, block_time: int) -> list:
        # '0' replays this consumer's pending entries, '>' reads new ones.
        # block=None never waits, block=0 would wait forever.
        response = self.redis.xreadgroup(
            groupname=self.consumer_group,
            consumername=self.consumer_name,
            streams={queue_name: stream_id},
            count=batch_size,
            block=block_time or None
        )
        return [entry for _stream_name, entries in response or [] for entry in entries]

    def _claim_stale(self, queue_name: str, batch_size: int) -> list:
        """Take over entries another (probably dead) consumer never acknowledged"""
        response = self.redis.xautoclaim(
            queue_name,
            self.consumer_group,
            self.consumer_name,
            self.claim_idle_ms,
            start_id="0-0",
            count=batch_size,
        )
        return list(response[1]) if response else []

    def _fetch(self, queue_name: str, batch_size: int, block_time: int) -> list:
        self._ensure_stream_exists(queue_name)

        entries = self._read_group(queue_name, "0", batch_size, None)
        if not entries:
            entries = self._claim_stale(queue_name, batch_size)
        if not entries:
            entries = self._read_group(queue_name, ">", batch_size, block_time)
        return entries

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[HitEvent]:
        entries = await asyncio.to_thread(self._fetch, queue_name, batch_size, block_time)

        events = []
        for message_id, message_data in entries:
            message_id = message_id.decode("utf-8")
            try:
                event = HitEvent.model_validate_json(message_data[b"data"])
            except (KeyError, TypeError, ValidationError):
                # Unparseable (or trimmed) entries would be redelivered forever
                logger.warning("Dropping malformed hit message %s", message_id)
                await self.ack(queue_name, [message_id])
                continue
            event.message_id = message_id
            events.append(event)

        return events

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        if not message_ids:
            return True
        await asyncio.to_thread(self.redis.xack, queue_name, self.consumer_group, *message_ids)
        return True

    async def get_queue_length(self, queue_name: str) -> int:
        try:
            info = self.redis.xinfo_stream(queue_name)
            return info["length"]
        except Exception:
            return 0


class InMemoryQueue(QueueStrategy):
    """
    In-process queue backed by a deque.

    Not persistent and not shared between processes: only useful when the hit
    worker runs embedded in the web process (or in tests).
    """

    def __init__(self):
        self._queues: Dict[str, Deque[HitEvent]] = {}

    def _get_queue(self, queue_name: str) -> Deque[HitEvent]:
        return self._queues.setdefault(queue_name, deque())

    async def publish(self, queue_name: str, message: HitEvent) -> bool:
        self._get_queue(queue_name).append(message)
        return True

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[HitEvent]:
        """
        Pop up to batch_size messages. Waits block_time once when the queue is empty.
        """
        queue = self._get_queue(queue_name)
        if not queue and block_time:
            await asyncio.sleep(block_time / 1000)

        messages = []
        while queue and len(messages) < batch_size:
            messages.append(queue.popleft())
        return messages

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        # Messages are removed on consume
        return True

    async def requeue(self, queue_name: str, messages: List[HitEvent]):
        """Put messages back at the front, keeping their order"""
        self._get_queue(queue_name).extendleft(reversed(messages))

    async def get_queue_length(self, queue_name: str) -> int:
        return len(self._get_queue(queue_name))

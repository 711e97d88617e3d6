"""
Hit queue construction.

The backend comes from settings. Callers cache the result (see
dependencies.get_queue), so a process holds one queue for its lifetime.
"""

import logging
from enum import Enum
from typing import Optional

import redis

from redirector_app.config import Settings, settings
from .strategies import InMemoryQueue, QueueStrategy, RedisStreamQueue

logger = logging.getLogger(__name__)


class QueueBackend(str, Enum):
    REDIS_STREAMS = "redis_streams"
    MEMORY = "memory"


def connect_redis_queue(redis_url: str, consumer_group: str, claim_idle_ms: int = 60000) -> RedisStreamQueue:
    """Connect and ping; raises redis.RedisError when the server is unreachable"""
    client = redis.from_url(
        redis_url,
        decode_responses=False,
        socket_connect_timeout=2,
        socket_timeout=5,
    )
    client.ping()
    return RedisStreamQueue(client, consumer_group, claim_idle_ms)


def create_hit_queue(backend: Optional[str] = None, config: Settings = settings) -> QueueStrategy:
    """
    Build the hit queue for the configured backend.

    An unreachable Redis degrades to the in-memory queue: redirects keep
    working, hits are then only stored by a worker embedded in this process.
    """
    backend = QueueBackend(backend or config.queue_backend)

    if backend is QueueBackend.MEMORY:
        logger.info("Using in-memory hit queue")
        return InMemoryQueue()

    try:
        queue = connect_redis_queue(
            config.redis_url, config.queue_consumer_group, config.queue_claim_idle_ms
        )
    except redis.RedisError as e:
        logger.warning("Redis connection failed (%s), falling back to in-memory hit queue", e)
        return InMemoryQueue()

    logger.info("Using Redis hit queue (consumer group %s)", config.queue_consumer_group)
    return queue

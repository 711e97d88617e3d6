"""
Hit queue: redirects publish, the hit worker consumes.
"""

from .factory import QueueBackend, create_hit_queue
from .models import HitEvent
from .strategies import InMemoryQueue, QueueStrategy, RedisStreamQueue

__all__ = [
    "HitEvent",
    "InMemoryQueue",
    "QueueBackend",
    "QueueStrategy",
    "RedisStreamQueue",
    "create_hit_queue",
]

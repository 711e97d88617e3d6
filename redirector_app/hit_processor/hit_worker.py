"""
Hit Worker

Consumes hit events from the queue and stores them as Hit rows.

- Consumes messages in batches
- One transaction per batch, in its own session (never the request's)
- Acknowledges a batch only after it was committed; failed batches stay
  pending (Redis) or are put back (in-memory) for a retry
"""

import asyncio
import logging
import signal
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from redirector_app.config import settings
from redirector_app.database.connection import SessionLocal
from redirector_app.models import Hit
from redirector_app.queue.factory import create_hit_queue
from redirector_app.queue.models import HitEvent
from redirector_app.queue.strategies import InMemoryQueue, QueueStrategy

logger = logging.getLogger(__name__)


class HitWorker:
    """Batch writer for hit events"""

    def __init__(
        self,
        queue: QueueStrategy,
        db_session_factory=SessionLocal,
        batch_size: int = None,
        poll_interval: int = None,
    ):
        """
        Args:
            queue: Queue strategy for consuming messages
            db_session_factory: Factory for creating database sessions
            batch_size: Messages per batch (defaults to settings)
            poll_interval: Seconds to wait after a failed batch (defaults to settings)
        """
        self.queue = queue
        self.db_session_factory = db_session_factory
        self.batch_size = batch_size or settings.queue_batch_size
        self.poll_interval = poll_interval or settings.queue_worker_interval
        self.running = False
        self.processed_count = 0

    async def start(self):
        """Run until stop() is called or the task is cancelled"""
        self.running = True
        logger.info("Hit worker started (batch size %s)", self.batch_size)

        while self.running:
            try:
                await self.run_once(block_time=self.poll_interval * 1000)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Hit worker failed to process a batch")
                await asyncio.sleep(self.poll_interval)

        logger.info("Hit worker stopped after %s hits", self.processed_count)

    async def run_once(self, block_time: int = 0) -> int:
        """
        Consume and store one batch. Returns the number of stored hits.
        """
        messages = await self.queue.consume(
            queue_name=settings.queue_name,
            batch_size=self.batch_size,
            block_time=block_time
        )
        if not messages:
            return 0

        try:
            self.store_hits(messages)
        except SQLAlchemyError:
            if isinstance(self.queue, InMemoryQueue):
                await self.queue.requeue(settings.queue_name, messages)
            raise

        message_ids = [msg.message_id for msg in messages if msg.message_id]
        if message_ids:
            await self.queue.ack(settings.queue_name, message_ids)

        self.processed_count += len(messages)
        logger.debug("Stored %s hits, total %s", len(messages), self.processed_count)
        return len(messages)

    def store_hits(self, events: List[HitEvent]):
        """Insert one Hit row per event in a single transaction"""
        db = self.db_session_factory()
        try:
            db.add_all([
                Hit(
                    destination_id=event.destination_id,
                    alias_id=event.alias_id,
                    ip_address=event.ip_address,
                    user_agent=event.user_agent,
                    created_at=event.timestamp,
                )
                for event in events
            ])
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def stop(self):
        self.running = False


async def main():
    """
    Standalone entry point.

    Usage:
        python -m redirector_app.hit_processor.hit_worker
    """
    logging.basicConfig(level=settings.log_level)
    logger.info("Queue backend: %s", settings.queue_backend)

    queue = create_hit_queue()
    worker = HitWorker(queue=queue)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, worker.stop)

    await worker.start()


if __name__ == "__main__":
    asyncio.run(main())

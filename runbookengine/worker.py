"""Worker process entry point for queued runbook triggers."""

import asyncio
import signal

from runbookengine.core.config import get_settings
from runbookengine.core.logging import get_logger, setup_logging
from runbookengine.engine.orchestrator import RunbookEngine
from runbookengine.messaging.consumer import RabbitMQConsumer
from runbookengine.notification.transport import close_transport, get_transport
from runbookengine.storage.engine_storage import RedisEngineStorage
from runbookengine.storage.redis_client import (
    close_redis_pool,
    get_redis,
    init_redis_pool,
)
from runbookengine.storage.resource_store import RedisResourceRegistry

logger = get_logger(__name__)


class WorkerManager:
    """Runs the trigger consumer and owns its resources."""

    def __init__(self):
        self._settings = get_settings()
        self._consumer: RabbitMQConsumer | None = None

    async def start(self) -> None:
        """Start consuming triggers until stopped."""
        setup_logging()
        logger.info("Starting worker manager", queue=self._settings.rabbitmq_queue)

        await init_redis_pool()

        redis = get_redis()
        engine = RunbookEngine(
            storage=RedisEngineStorage(redis),
            registry=RedisResourceRegistry(redis),
            transport=get_transport(),
            settings=self._settings,
        )
        self._consumer = RabbitMQConsumer(engine.trigger)

        try:
            await self._run_consumer()
        finally:
            await self._cleanup()

    async def _run_consumer(self) -> None:
        """Run message consumer."""
        if self._consumer:
            try:
                await self._consumer.start_consuming()
            except asyncio.CancelledError:
                logger.info("Consumer cancelled")
            except Exception as e:
                logger.error("Consumer error", error=str(e), exc_info=True)

    async def stop(self) -> None:
        """Signal the consumer to stop."""
        logger.info("Stopping worker")
        if self._consumer:
            self._consumer.stop()

    async def _cleanup(self) -> None:
        """Clean up resources."""
        logger.info("Cleaning up resources")
        if self._consumer:
            await self._consumer.disconnect()
        await close_transport()
        await close_redis_pool()
        logger.info("Cleanup complete")


async def main() -> None:
    """Main entry point for worker process."""
    manager = WorkerManager()

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(manager.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await manager.start()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

"""RabbitMQ trigger consumer."""

from typing import Any, Callable, Coroutine

import aio_pika
from aio_pika import IncomingMessage
from aio_pika.abc import AbstractRobustConnection
from pydantic import ValidationError

from runbookengine.core.config import get_settings
from runbookengine.core.errors import SelectionError, StorageUnavailableError
from runbookengine.core.logging import get_logger
from runbookengine.models.trigger import TriggerRequest

logger = get_logger(__name__)

# Type alias for trigger handler
TriggerHandler = Callable[[TriggerRequest], Coroutine[Any, Any, Any]]


class RabbitMQConsumer:
    """Consumes trigger requests published by the anomaly detector."""

    def __init__(self, handler: TriggerHandler):
        """Initialize consumer.

        Args:
            handler: Async function to run for each valid trigger
        """
        self._settings = get_settings()
        self._handler = handler
        self._connection: AbstractRobustConnection | None = None
        self._should_stop = False

    async def connect(self) -> None:
        """Connect to RabbitMQ."""
        self._connection = await aio_pika.connect_robust(
            self._settings.rabbitmq_url,
            reconnect_interval=5,
        )
        logger.info("Connected to RabbitMQ")

    async def disconnect(self) -> None:
        """Disconnect from RabbitMQ."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Disconnected from RabbitMQ")

    async def start_consuming(self) -> None:
        """Start consuming trigger messages."""
        if not self._connection:
            await self.connect()

        channel = await self._connection.channel()
        # Triggers are processed one at a time per worker
        await channel.set_qos(prefetch_count=1)

        queue = await channel.declare_queue(
            self._settings.rabbitmq_queue,
            durable=True,
        )

        logger.info("Starting trigger consumption", queue=self._settings.rabbitmq_queue)

        async with queue.iterator() as queue_iter:
            async for message in queue_iter:
                if self._should_stop:
                    break
                await self.process_message(message)

    async def process_message(self, message: IncomingMessage) -> None:
        """Process a single message.

        Malformed or unresolvable triggers are logged and acknowledged. A
        trigger that failed because runbook storage was unreachable is
        requeued once; a second failure rejects it.
        """
        try:
            async with message.process(requeue=True, reject_on_redelivered=True):
                await self._dispatch(message)
        except StorageUnavailableError as e:
            logger.warning(
                "Trigger not processed, storage unavailable",
                message_id=message.message_id,
                redelivered=message.redelivered,
                error=str(e),
            )

    async def _dispatch(self, message: IncomingMessage) -> None:
        try:
            request = TriggerRequest.model_validate_json(message.body)
        except ValidationError as e:
            logger.error(
                "Invalid trigger message",
                message_id=message.message_id,
                errors=e.error_count(),
                error=str(e),
            )
            return

        try:
            await self._handler(request)
        except StorageUnavailableError:
            raise
        except SelectionError as e:
            logger.warning(
                "Trigger rejected",
                message_id=message.message_id,
                error=str(e),
            )
        except Exception as e:
            logger.error("Error processing trigger", error=str(e), exc_info=True)

    def stop(self) -> None:
        """Signal consumer to stop."""
        self._should_stop = True
        logger.info("Consumer stop requested")

"""Execution record storage operations."""

from redis.asyncio import Redis
from redis.exceptions import WatchError

from runbookengine.core.config import get_settings
from runbookengine.core.errors import PersistenceError
from runbookengine.core.logging import get_logger
from runbookengine.models.execution import Execution, StepResult
from runbookengine.storage.redis_client import RedisKeys, get_redis

logger = get_logger(__name__)

_STEPS_FIELD = {"steps_completed"}


class ExecutionStore:
    """Execution storage using Redis.

    The execution header (status, timestamps, error) lives in a JSON string;
    step results are appended to a separate list so each step is flushed on
    its own without rewriting the record.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis
        self._settings = get_settings()

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def create(self, execution: Execution) -> Execution:
        """Persist a new execution record.

        Raises:
            PersistenceError: If the execution id is already taken
        """
        key = RedisKeys.execution_detail(execution.execution_id)
        created = await self.redis.set(
            key,
            execution.model_dump_json(exclude=_STEPS_FIELD),
            nx=True,
        )
        if not created:
            raise PersistenceError(f"Execution {execution.execution_id} already exists")

        if execution.steps_completed:
            await self.redis.rpush(
                RedisKeys.execution_steps(execution.execution_id),
                *[r.model_dump_json() for r in execution.steps_completed],
            )
        await self.redis.zadd(
            RedisKeys.execution_runbook_index(execution.runbook_id),
            {execution.execution_id: execution.started_at.timestamp()},
        )
        return execution

    async def append_step(self, execution_id: str, result: StepResult) -> None:
        """Append one step result.

        The append happens in a WATCH/MULTI transaction that checks the
        execution is still running and that ``result.index`` is the next
        position, so a retried or concurrent write can never reorder steps.

        Raises:
            PersistenceError: If the record is missing, terminal, out of
                order, or keeps changing underneath the transaction
        """
        detail_key = RedisKeys.execution_detail(execution_id)
        steps_key = RedisKeys.execution_steps(execution_id)

        for _ in range(self._settings.cas_max_retries):
            async with self.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(detail_key, steps_key)
                    raw = await pipe.get(detail_key)
                    if raw is None:
                        raise PersistenceError(f"Execution {execution_id} not found")
                    header = Execution.model_validate_json(raw)
                    if header.status.is_terminal:
                        raise PersistenceError(
                            f"Execution {execution_id} is already {header.status.value}"
                        )
                    length = await pipe.llen(steps_key)
                    if length != result.index:
                        raise PersistenceError(
                            f"Step {result.index} out of order for execution "
                            f"{execution_id} ({length} recorded)"
                        )
                    pipe.multi()
                    pipe.rpush(steps_key, result.model_dump_json())
                    await pipe.execute()
                    return
                except WatchError:
                    logger.debug("Step append conflict, retrying", execution_id=execution_id)

        raise PersistenceError(f"Execution {execution_id} changed concurrently")

    async def save_header(self, execution: Execution) -> None:
        """Overwrite status, timestamps and error of an existing execution.

        Raises:
            PersistenceError: If the execution does not exist
        """
        updated = await self.redis.set(
            RedisKeys.execution_detail(execution.execution_id),
            execution.model_dump_json(exclude=_STEPS_FIELD),
            xx=True,
        )
        if not updated:
            raise PersistenceError(f"Execution {execution.execution_id} not found")

    async def get(self, execution_id: str) -> Execution | None:
        """Get an execution with its step results."""
        raw = await self.redis.get(RedisKeys.execution_detail(execution_id))
        if raw is None:
            return None
        execution = Execution.model_validate_json(raw)
        steps = await self.redis.lrange(RedisKeys.execution_steps(execution_id), 0, -1)
        execution.steps_completed = [StepResult.model_validate_json(s) for s in steps]
        return execution

    async def list_for_runbook(self, runbook_id: str) -> list[Execution]:
        """List a runbook's executions, newest first."""
        execution_ids = await self.redis.zrevrange(
            RedisKeys.execution_runbook_index(runbook_id), 0, -1
        )
        executions = []
        for execution_id in execution_ids:
            execution = await self.get(execution_id)
            if execution:
                executions.append(execution)
        return executions

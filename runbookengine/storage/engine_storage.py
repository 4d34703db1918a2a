"""Redis implementation of the engine storage port."""

from datetime import datetime

from redis.asyncio import Redis

from runbookengine.core.errors import PersistenceError
from runbookengine.models.execution import Execution, StepResult
from runbookengine.models.runbook import Runbook
from runbookengine.storage.base import EngineStorage
from runbookengine.storage.execution_store import ExecutionStore
from runbookengine.storage.runbook_store import RunbookStore


class RedisEngineStorage(EngineStorage):
    """Engine storage backed by the Redis runbook and execution stores."""

    def __init__(self, redis: Redis | None = None):
        self.runbooks = RunbookStore(redis)
        self.executions = ExecutionStore(redis)

    async def get_runbook(self, runbook_id: str) -> Runbook | None:
        return await self.runbooks.get(runbook_id)

    async def list_enabled_runbooks(self, user_id: str) -> list[Runbook]:
        return await self.runbooks.list_for_user(user_id, enabled_only=True)

    async def update_runbook_cooldown(self, runbook_id: str, triggered_at: datetime) -> None:
        if not await self.runbooks.set_last_triggered(runbook_id, triggered_at):
            raise PersistenceError(f"Runbook {runbook_id} not found")

    async def create_execution(self, execution: Execution) -> Execution:
        return await self.executions.create(execution)

    async def append_step_result(self, execution_id: str, result: StepResult) -> None:
        await self.executions.append_step(execution_id, result)

    async def finalize_execution(self, execution: Execution) -> None:
        await self.executions.save_header(execution)

    async def get_execution(self, execution_id: str) -> Execution | None:
        return await self.executions.get(execution_id)

    async def list_executions(self, runbook_id: str) -> list[Execution]:
        return await self.executions.list_for_runbook(runbook_id)

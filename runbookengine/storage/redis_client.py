"""Redis client management."""

import redis.asyncio as redis
from redis.asyncio import Redis

from runbookengine.core.config import get_settings

# Global connection pool
_pool: redis.ConnectionPool | None = None


async def init_redis_pool() -> None:
    """Initialize Redis connection pool."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=20,
        )


async def close_redis_pool() -> None:
    """Close Redis connection pool."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


def get_redis() -> Redis:
    """Get Redis client from pool.

    Raises:
        RuntimeError: If pool not initialized
    """
    if _pool is None:
        raise RuntimeError("Redis pool not initialized. Call init_redis_pool() first.")
    return redis.Redis(connection_pool=_pool)


class RedisKeys:
    """Redis key patterns."""

    # Runbooks
    RUNBOOK_DETAIL = "ops:runbooks:detail:{runbook_id}"
    RUNBOOK_USER_INDEX = "ops:runbooks:user:{user_id}"
    RUNBOOK_ALL = "ops:runbooks:all"

    # Executions
    EXECUTION_DETAIL = "ops:executions:detail:{execution_id}"
    EXECUTION_STEPS = "ops:executions:steps:{execution_id}"
    EXECUTION_RUNBOOK_INDEX = "ops:executions:runbook:{runbook_id}"

    # Infrastructure registries
    SERVER_DETAIL = "ops:servers:detail:{server_id}"
    SERVER_USER_INDEX = "ops:servers:user:{user_id}"
    SERVER_NAMES = "ops:servers:names:{user_id}"
    SERVICE_DETAIL = "ops:services:detail:{service_id}"
    SERVICE_NAMES = "ops:services:names:{user_id}"
    INCIDENT_DETAIL = "ops:incidents:detail:{incident_id}"
    LOGS = "ops:logs:{server_id}"

    @classmethod
    def runbook_detail(cls, runbook_id: str) -> str:
        return cls.RUNBOOK_DETAIL.format(runbook_id=runbook_id)

    @classmethod
    def runbook_user_index(cls, user_id: str) -> str:
        return cls.RUNBOOK_USER_INDEX.format(user_id=user_id)

    @classmethod
    def execution_detail(cls, execution_id: str) -> str:
        return cls.EXECUTION_DETAIL.format(execution_id=execution_id)

    @classmethod
    def execution_steps(cls, execution_id: str) -> str:
        return cls.EXECUTION_STEPS.format(execution_id=execution_id)

    @classmethod
    def execution_runbook_index(cls, runbook_id: str) -> str:
        return cls.EXECUTION_RUNBOOK_INDEX.format(runbook_id=runbook_id)

    @classmethod
    def server_detail(cls, server_id: str) -> str:
        return cls.SERVER_DETAIL.format(server_id=server_id)

    @classmethod
    def server_user_index(cls, user_id: str) -> str:
        return cls.SERVER_USER_INDEX.format(user_id=user_id)

    @classmethod
    def server_names(cls, user_id: str) -> str:
        return cls.SERVER_NAMES.format(user_id=user_id)

    @classmethod
    def service_detail(cls, service_id: str) -> str:
        return cls.SERVICE_DETAIL.format(service_id=service_id)

    @classmethod
    def service_names(cls, user_id: str) -> str:
        return cls.SERVICE_NAMES.format(user_id=user_id)

    @classmethod
    def incident_detail(cls, incident_id: str) -> str:
        return cls.INCIDENT_DETAIL.format(incident_id=incident_id)

    @classmethod
    def logs(cls, server_id: str) -> str:
        return cls.LOGS.format(server_id=server_id)

"""Runbook storage operations."""

from datetime import datetime

from redis.asyncio import Redis

from runbookengine.core.clock import ensure_utc, utcnow
from runbookengine.models.runbook import Runbook
from runbookengine.storage.redis_client import RedisKeys, get_redis

# Held outside the config blob so that edits never overwrite it
_ENGINE_FIELDS = {"last_triggered_at"}


def _millis(value: datetime) -> str:
    return str(int(value.timestamp() * 1000))


class RunbookStore:
    """Runbook storage operations using Redis."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def create(self, runbook: Runbook) -> Runbook:
        """Create a new runbook.

        Args:
            runbook: Runbook to create

        Returns:
            Created runbook
        """
        key = RedisKeys.runbook_detail(runbook.runbook_id)
        mapping = {
            "config": runbook.model_dump_json(exclude=_ENGINE_FIELDS),
            "user_id": runbook.user_id,
            "enabled": str(runbook.enabled).lower(),
            "version": str(runbook.metadata.version),
            "created_at": _millis(runbook.metadata.created_at),
            "updated_at": _millis(runbook.metadata.updated_at),
        }
        if runbook.last_triggered_at is not None:
            mapping["last_triggered_at"] = runbook.last_triggered_at.isoformat()

        await self.redis.hset(key, mapping=mapping)
        await self.redis.sadd(RedisKeys.RUNBOOK_ALL, runbook.runbook_id)
        # Scored by creation time so listing follows creation order
        await self.redis.zadd(
            RedisKeys.runbook_user_index(runbook.user_id),
            {runbook.runbook_id: runbook.metadata.created_at.timestamp()},
        )
        return runbook

    async def get(self, runbook_id: str) -> Runbook | None:
        """Get a runbook by ID.

        Args:
            runbook_id: Runbook ID

        Returns:
            Runbook if found, None otherwise
        """
        key = RedisKeys.runbook_detail(runbook_id)
        config, last_triggered = await self.redis.hmget(key, ["config", "last_triggered_at"])
        if not config:
            return None
        runbook = Runbook.model_validate_json(config)
        if last_triggered:
            runbook.last_triggered_at = ensure_utc(datetime.fromisoformat(last_triggered))
        return runbook

    async def update(self, runbook_id: str, runbook: Runbook) -> Runbook | None:
        """Replace a runbook's user-editable definition.

        The stored last-triggered time is kept regardless of ``runbook``.

        Returns:
            Updated runbook if found, None otherwise
        """
        existing = await self.get(runbook_id)
        if not existing:
            return None

        runbook.runbook_id = runbook_id
        runbook.user_id = existing.user_id
        runbook.metadata.created_at = existing.metadata.created_at
        runbook.metadata.updated_at = utcnow()
        runbook.metadata.version = existing.metadata.version + 1
        runbook.last_triggered_at = existing.last_triggered_at

        await self.redis.hset(
            RedisKeys.runbook_detail(runbook_id),
            mapping={
                "config": runbook.model_dump_json(exclude=_ENGINE_FIELDS),
                "enabled": str(runbook.enabled).lower(),
                "version": str(runbook.metadata.version),
                "updated_at": _millis(runbook.metadata.updated_at),
            },
        )
        return runbook

    async def delete(self, runbook_id: str) -> bool:
        """Delete a runbook.

        Returns:
            True if deleted, False if not found
        """
        existing = await self.get(runbook_id)
        if not existing:
            return False

        await self.redis.zrem(RedisKeys.runbook_user_index(existing.user_id), runbook_id)
        await self.redis.srem(RedisKeys.RUNBOOK_ALL, runbook_id)
        await self.redis.delete(RedisKeys.runbook_detail(runbook_id))
        return True

    async def list_all(self) -> list[Runbook]:
        """List all runbooks (oldest first)."""
        runbook_ids = await self.redis.smembers(RedisKeys.RUNBOOK_ALL)
        runbooks = []
        for runbook_id in runbook_ids:
            runbook = await self.get(runbook_id)
            if runbook:
                runbooks.append(runbook)
        runbooks.sort(key=lambda r: r.metadata.created_at)
        return runbooks

    async def list_for_user(self, user_id: str, enabled_only: bool = False) -> list[Runbook]:
        """List a user's runbooks in creation order.

        Args:
            user_id: Owning user
            enabled_only: Drop disabled runbooks

        Returns:
            List of runbooks
        """
        runbook_ids = await self.redis.zrange(RedisKeys.runbook_user_index(user_id), 0, -1)
        runbooks = []
        for runbook_id in runbook_ids:
            runbook = await self.get(runbook_id)
            if runbook and (runbook.enabled or not enabled_only):
                runbooks.append(runbook)
        return runbooks

    async def set_enabled(self, runbook_id: str, enabled: bool) -> bool:
        """Set runbook enabled status.

        Returns:
            True if updated, False if not found
        """
        runbook = await self.get(runbook_id)
        if not runbook:
            return False

        runbook.enabled = enabled
        runbook.metadata.updated_at = utcnow()

        await self.redis.hset(
            RedisKeys.runbook_detail(runbook_id),
            mapping={
                "config": runbook.model_dump_json(exclude=_ENGINE_FIELDS),
                "enabled": str(enabled).lower(),
                "updated_at": _millis(runbook.metadata.updated_at),
            },
        )
        return True

    async def set_last_triggered(self, runbook_id: str, triggered_at: datetime) -> bool:
        """Stamp the runbook's last dispatch time.

        Returns:
            True if updated, False if the runbook does not exist
        """
        key = RedisKeys.runbook_detail(runbook_id)
        if not await self.redis.exists(key):
            return False
        await self.redis.hset(key, "last_triggered_at", ensure_utc(triggered_at).isoformat())
        return True

"""Redis-backed registry of servers, services, incidents and logs."""

from datetime import datetime
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import WatchError

from runbookengine.core.clock import utcnow
from runbookengine.core.config import get_settings
from runbookengine.core.errors import ConcurrentUpdateError
from runbookengine.core.logging import get_logger
from runbookengine.models.resources import (
    HealthStatus,
    Incident,
    IncidentStatus,
    LogEntry,
    Server,
    Service,
)
from runbookengine.storage.base import ResourceRegistry
from runbookengine.storage.redis_client import RedisKeys, get_redis

logger = get_logger(__name__)


class RedisResourceRegistry(ResourceRegistry):
    """Resource registry using Redis JSON records and per-user name indexes."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis
        self._settings = get_settings()

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    # Servers

    async def put_server(self, server: Server) -> Server:
        """Register or replace a server."""
        await self.redis.set(RedisKeys.server_detail(server.server_id), server.model_dump_json())
        await self.redis.hset(RedisKeys.server_names(server.user_id), server.name, server.server_id)
        await self.redis.zadd(
            RedisKeys.server_user_index(server.user_id),
            {server.server_id: server.created_at.timestamp()},
        )
        return server

    async def get_server(self, server_id: str) -> Server | None:
        raw = await self.redis.get(RedisKeys.server_detail(server_id))
        return Server.model_validate_json(raw) if raw else None

    async def get_server_by_name(self, user_id: str, name: str) -> Server | None:
        server_id = await self.redis.hget(RedisKeys.server_names(user_id), name)
        if not server_id:
            return None
        return await self.get_server(server_id)

    async def first_server(self, user_id: str) -> Server | None:
        server_ids = await self.redis.zrange(RedisKeys.server_user_index(user_id), 0, 0)
        if not server_ids:
            return None
        return await self.get_server(server_ids[0])

    async def scale_server(self, server_id: str, count: int, scaled_at: datetime) -> Server | None:
        """Add instances with a compare-and-swap on the server record.

        Raises:
            ConcurrentUpdateError: If every attempt lost to another writer
        """
        key = RedisKeys.server_detail(server_id)

        for attempt in range(1, self._settings.cas_max_retries + 1):
            async with self.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        return None
                    server = Server.model_validate_json(raw)
                    server.metadata = {
                        **server.metadata,
                        "instances": server.instances + count,
                        "last_scaled_at": scaled_at.isoformat(),
                        "scaled_by": "runbook",
                    }
                    pipe.multi()
                    pipe.set(key, server.model_dump_json())
                    await pipe.execute()
                    return server
                except WatchError:
                    logger.debug("Server scale conflict", server_id=server_id, attempt=attempt)

        raise ConcurrentUpdateError(f"Server {server_id} was modified concurrently, scale aborted")

    # Services

    async def put_service(self, service: Service) -> Service:
        """Register or replace a service."""
        await self.redis.set(RedisKeys.service_detail(service.service_id), service.model_dump_json())
        await self.redis.hset(RedisKeys.service_names(service.user_id), service.name, service.service_id)
        return service

    async def get_service(self, service_id: str) -> Service | None:
        raw = await self.redis.get(RedisKeys.service_detail(service_id))
        return Service.model_validate_json(raw) if raw else None

    async def get_service_by_name(self, user_id: str, name: str) -> Service | None:
        service_id = await self.redis.hget(RedisKeys.service_names(user_id), name)
        if not service_id:
            return None
        return await self.get_service(service_id)

    async def update_service_health(
        self,
        service_id: str,
        status: HealthStatus,
        health_score: int,
    ) -> Service | None:
        service = await self.get_service(service_id)
        if not service:
            return None
        service.status = status
        service.health_score = health_score
        service.updated_at = utcnow()
        await self.redis.set(RedisKeys.service_detail(service_id), service.model_dump_json())
        return service

    # Incidents

    async def put_incident(self, incident: Incident) -> Incident:
        """Register or replace an incident."""
        await self.redis.set(
            RedisKeys.incident_detail(incident.incident_id),
            incident.model_dump_json(),
        )
        return incident

    async def get_incident(self, incident_id: str) -> Incident | None:
        raw = await self.redis.get(RedisKeys.incident_detail(incident_id))
        return Incident.model_validate_json(raw) if raw else None

    async def update_incident(
        self,
        incident_id: str,
        status: IncidentStatus,
        annotation: dict[str, Any],
    ) -> Incident | None:
        incident = await self.get_incident(incident_id)
        if not incident:
            return None
        incident.status = status
        incident.ai_analysis = {**(incident.ai_analysis or {}), "automation": annotation}
        incident.updated_at = utcnow()
        await self.redis.set(RedisKeys.incident_detail(incident_id), incident.model_dump_json())
        return incident

    # Logs

    async def add_log(self, entry: LogEntry) -> None:
        await self.redis.rpush(RedisKeys.logs(entry.server_id), entry.model_dump_json())

    async def list_logs(self, server_id: str) -> list[LogEntry]:
        raw_entries = await self.redis.lrange(RedisKeys.logs(server_id), 0, -1)
        return [LogEntry.model_validate_json(raw) for raw in raw_entries]

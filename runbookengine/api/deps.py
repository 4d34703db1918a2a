"""API dependency injection."""

from typing import Annotated

from fastapi import Depends, Query

from runbookengine.engine.orchestrator import RunbookEngine
from runbookengine.notification.transport import get_transport
from runbookengine.schemas.common import PaginationParams
from runbookengine.storage.engine_storage import RedisEngineStorage
from runbookengine.storage.redis_client import get_redis
from runbookengine.storage.resource_store import RedisResourceRegistry
from runbookengine.storage.runbook_store import RunbookStore


def get_runbook_store() -> RunbookStore:
    """Get runbook store instance."""
    return RunbookStore(get_redis())


def get_engine_storage() -> RedisEngineStorage:
    """Get engine storage instance."""
    return RedisEngineStorage(get_redis())


def get_engine(
    storage: Annotated[RedisEngineStorage, Depends(get_engine_storage)],
) -> RunbookEngine:
    """Get a runbook engine bound to the request's storage."""
    return RunbookEngine(
        storage=storage,
        registry=RedisResourceRegistry(get_redis()),
        transport=get_transport(),
    )


# Type aliases for dependency injection
RunbookStoreDep = Annotated[RunbookStore, Depends(get_runbook_store)]
EngineStorageDep = Annotated[RedisEngineStorage, Depends(get_engine_storage)]
EngineDep = Annotated[RunbookEngine, Depends(get_engine)]


def get_pagination(
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
) -> PaginationParams:
    """Get pagination parameters from query."""
    return PaginationParams(page=page, page_size=page_size)


PaginationDep = Annotated[PaginationParams, Depends(get_pagination)]

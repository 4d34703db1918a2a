"""Runbook management API routes."""

import uuid

from fastapi import APIRouter, HTTPException, Query

from runbookengine.api.deps import PaginationDep, RunbookStoreDep
from runbookengine.core.clock import utcnow
from runbookengine.models.runbook import Runbook, RunbookMetadata
from runbookengine.schemas.common import APIResponse, PaginatedResponse
from runbookengine.schemas.runbook import (
    RUNBOOK_TEMPLATES,
    RunbookCreate,
    RunbookCreateResponse,
    RunbookResponse,
    RunbookStatusUpdate,
    RunbookTemplate,
    RunbookUpdate,
)

router = APIRouter(prefix="/runbooks", tags=["runbooks"])


def _to_response(runbook: Runbook) -> RunbookResponse:
    return RunbookResponse.model_validate(runbook.model_dump())


@router.post("", response_model=APIResponse[RunbookCreateResponse])
async def create_runbook(
    data: RunbookCreate,
    store: RunbookStoreDep,
) -> APIResponse[RunbookCreateResponse]:
    """Create a new runbook."""
    runbook_id = f"rb_{utcnow().strftime('%Y%m%d')}_{uuid.uuid4().hex[:8]}"

    runbook = Runbook(
        runbook_id=runbook_id,
        user_id=data.user_id,
        name=data.name,
        description=data.description,
        enabled=data.enabled,
        trigger_conditions=data.trigger_conditions,
        cooldown_minutes=data.cooldown_minutes,
        steps=data.steps,
        metadata=RunbookMetadata(),
    )

    created = await store.create(runbook)

    return APIResponse(
        data=RunbookCreateResponse(
            runbook_id=created.runbook_id,
            created_at=created.metadata.created_at,
        )
    )


@router.get("", response_model=PaginatedResponse[RunbookResponse])
async def list_runbooks(
    store: RunbookStoreDep,
    pagination: PaginationDep,
    user_id: str | None = Query(default=None, description="Filter by owning user"),
    enabled: bool | None = Query(default=None, description="Filter by enabled status"),
    name_contains: str | None = Query(default=None, description="Filter by name substring"),
) -> PaginatedResponse[RunbookResponse]:
    """List runbooks in creation order with optional filtering."""
    if user_id:
        runbooks = await store.list_for_user(user_id)
    else:
        runbooks = await store.list_all()

    if enabled is not None:
        runbooks = [r for r in runbooks if r.enabled == enabled]
    if name_contains:
        needle = name_contains.lower()
        runbooks = [r for r in runbooks if needle in r.name.lower()]

    return PaginatedResponse(
        data=[_to_response(r) for r in pagination.slice(runbooks)],
        total=len(runbooks),
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/templates", response_model=APIResponse[list[RunbookTemplate]])
async def list_templates() -> APIResponse[list[RunbookTemplate]]:
    """Preset runbooks users can start from."""
    return APIResponse(data=RUNBOOK_TEMPLATES)


@router.get("/{runbook_id}", response_model=APIResponse[RunbookResponse])
async def get_runbook(
    runbook_id: str,
    store: RunbookStoreDep,
) -> APIResponse[RunbookResponse]:
    """Get a single runbook by ID."""
    runbook = await store.get(runbook_id)
    if not runbook:
        raise HTTPException(status_code=404, detail=f"Runbook {runbook_id} not found")

    return APIResponse(data=_to_response(runbook))


@router.put("/{runbook_id}", response_model=APIResponse[RunbookResponse])
async def replace_runbook(
    runbook_id: str,
    data: RunbookCreate,
    store: RunbookStoreDep,
) -> APIResponse[RunbookResponse]:
    """Replace an existing runbook's definition.

    Ownership and the last-triggered time are kept from the stored runbook.
    """
    existing = await store.get(runbook_id)
    if not existing:
        raise HTTPException(status_code=404, detail=f"Runbook {runbook_id} not found")

    replacement = Runbook(
        runbook_id=runbook_id,
        user_id=existing.user_id,
        name=data.name,
        description=data.description,
        enabled=data.enabled,
        trigger_conditions=data.trigger_conditions,
        cooldown_minutes=data.cooldown_minutes,
        steps=data.steps,
        metadata=existing.metadata,
    )
    result = await store.update(runbook_id, replacement)

    if not result:
        raise HTTPException(status_code=404, detail=f"Runbook {runbook_id} not found")

    return APIResponse(data=_to_response(result))


@router.patch("/{runbook_id}", response_model=APIResponse[RunbookResponse])
async def update_runbook(
    runbook_id: str,
    data: RunbookUpdate,
    store: RunbookStoreDep,
) -> APIResponse[RunbookResponse]:
    """Partially update an existing runbook."""
    existing = await store.get(runbook_id)
    if not existing:
        raise HTTPException(status_code=404, detail=f"Runbook {runbook_id} not found")

    updated_dict = existing.model_dump()
    # Explicit nulls leave the stored value untouched
    updated_dict.update(data.model_dump(exclude_unset=True, exclude_none=True))

    result = await store.update(runbook_id, Runbook.model_validate(updated_dict))

    if not result:
        raise HTTPException(status_code=404, detail=f"Runbook {runbook_id} not found")

    return APIResponse(data=_to_response(result))


@router.delete("/{runbook_id}", response_model=APIResponse)
async def delete_runbook(
    runbook_id: str,
    store: RunbookStoreDep,
) -> APIResponse:
    """Delete a runbook. Its execution history is kept."""
    deleted = await store.delete(runbook_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Runbook {runbook_id} not found")

    return APIResponse(message=f"Runbook {runbook_id} deleted")


@router.patch("/{runbook_id}/status", response_model=APIResponse[RunbookResponse])
async def update_runbook_status(
    runbook_id: str,
    data: RunbookStatusUpdate,
    store: RunbookStoreDep,
) -> APIResponse[RunbookResponse]:
    """Enable or disable a runbook."""
    updated = await store.set_enabled(runbook_id, data.enabled)
    if not updated:
        raise HTTPException(status_code=404, detail=f"Runbook {runbook_id} not found")

    runbook = await store.get(runbook_id)
    return APIResponse(data=_to_response(runbook))

"""Runbook execution API routes."""

from fastapi import APIRouter, HTTPException, Query

from runbookengine.api.deps import EngineDep, EngineStorageDep, PaginationDep
from runbookengine.models.execution import Execution, ExecutionStatus, TriggerOutcome
from runbookengine.models.trigger import TriggerRequest
from runbookengine.schemas.common import APIResponse, PaginatedResponse
from runbookengine.schemas.runbook import PreviewResponse, RunbookPreview

router = APIRouter(tags=["executions"])


@router.post("/runbooks/execute", response_model=APIResponse[TriggerOutcome])
async def execute_runbooks(
    request: TriggerRequest,
    engine: EngineDep,
) -> APIResponse[TriggerOutcome]:
    """Run a runbook by ID, or every runbook matching an anomaly.

    Each selected runbook gets its own execution record; step failures are
    reported per runbook and never fail the request.
    """
    outcome = await engine.trigger(request)
    return APIResponse(data=outcome)


@router.post("/runbooks/preview", response_model=APIResponse[PreviewResponse])
async def preview_runbooks(
    request: TriggerRequest,
    engine: EngineDep,
) -> APIResponse[PreviewResponse]:
    """Show which runbooks a trigger would run, without running them."""
    runbooks = await engine.preview(request)
    return APIResponse(
        data=PreviewResponse(
            would_execute=len(runbooks),
            runbooks=[
                RunbookPreview(runbook_id=r.runbook_id, name=r.name, steps=r.steps)
                for r in runbooks
            ],
        )
    )


@router.get("/runbooks/{runbook_id}/executions", response_model=PaginatedResponse[Execution])
async def list_runbook_executions(
    runbook_id: str,
    storage: EngineStorageDep,
    pagination: PaginationDep,
    status: ExecutionStatus | None = Query(default=None, description="Filter by status"),
) -> PaginatedResponse[Execution]:
    """Execution history of a runbook, newest first.

    History outlives the runbook: a deleted runbook's executions are still
    listed.
    """
    executions = await storage.list_executions(runbook_id)
    if not executions and not await storage.get_runbook(runbook_id):
        raise HTTPException(status_code=404, detail=f"Runbook {runbook_id} not found")

    if status is not None:
        executions = [e for e in executions if e.status == status]

    return PaginatedResponse(
        data=pagination.slice(executions),
        total=len(executions),
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/executions/{execution_id}", response_model=APIResponse[Execution])
async def get_execution(
    execution_id: str,
    storage: EngineStorageDep,
) -> APIResponse[Execution]:
    """Get a single execution with its step results."""
    execution = await storage.get_execution(execution_id)
    if not execution:
        raise HTTPException(status_code=404, detail=f"Execution {execution_id} not found")

    return APIResponse(data=execution)

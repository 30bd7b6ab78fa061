"""Request task REST API routes - V1."""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query

from ...models.failed_message import RetryResult
from ...models.task import RequestTaskResponse, TaskListResponse, FlushResponse
from ...services.pipeline import RelayPipeline
from .responses import task_response

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])

# Relay pipeline (set by main.py)
pipeline: RelayPipeline = None


def get_pipeline() -> RelayPipeline:
    """Dependency to get the relay pipeline."""
    if pipeline is None:
        raise HTTPException(status_code=500, detail="Pipeline not initialized")
    return pipeline


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    status: Optional[str] = Query(None, pattern="^(pending|failed)$", description="pending or failed"),
    conversation_id: Optional[str] = Query(None, description="Filter by conversation"),
    limit: int = Query(100, ge=1, le=1000),
    relay: RelayPipeline = Depends(get_pipeline)
):
    """List request tasks."""
    if conversation_id:
        tasks = relay.store.tasks.list_by_conversation(conversation_id)
    elif status == "failed":
        tasks = relay.store.tasks.list_failed(limit=limit)
    else:
        tasks = relay.store.tasks.list_pending(limit=limit, include_retrying=True)

    return TaskListResponse(tasks=[task_response(t) for t in tasks], total=len(tasks))


@router.post("/flush", response_model=FlushResponse)
async def force_process(relay: RelayPipeline = Depends(get_pipeline)):
    """Seal every conversation buffer now."""
    tasks = await relay.aggregator.force_process()
    return FlushResponse(tasks=[task_response(t) for t in tasks], total=len(tasks))


@router.get("/{task_id}", response_model=RequestTaskResponse)
async def get_task(
    task_id: str,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Get a request task."""
    task = relay.store.tasks.get_by_task_id(task_id)

    if not task:
        raise HTTPException(status_code=404, detail=f"Request task not found: {task_id}")

    return task_response(task)


@router.post("/{task_id}/retry", response_model=RetryResult)
async def retry_task(
    task_id: str,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Retry the failed messages of a task as one dispatch."""
    return await relay.retry.retry_by_task_id(task_id)

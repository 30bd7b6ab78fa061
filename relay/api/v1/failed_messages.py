"""Failed message REST API routes - V1."""

from fastapi import APIRouter, HTTPException, Depends, Query

from ...models.failed_message import (
    FailedMessageListResponse,
    RetryFailedMessagesRequest,
    RetryResult,
    RetryBatchResponse
)
from ...services.pipeline import RelayPipeline
from .responses import failed_message_response

router = APIRouter(prefix="/api/v1/failed-messages", tags=["Failed Messages"])

# Relay pipeline (set by main.py)
pipeline: RelayPipeline = None


def get_pipeline() -> RelayPipeline:
    """Dependency to get the relay pipeline."""
    if pipeline is None:
        raise HTTPException(status_code=500, detail="Pipeline not initialized")
    return pipeline


@router.get("", response_model=FailedMessageListResponse)
async def list_failed_messages(
    limit: int = Query(100, ge=1, le=1000),
    relay: RelayPipeline = Depends(get_pipeline)
):
    """List unretried failed messages, oldest first."""
    failed = relay.retry.get_retryable_messages(limit=limit)
    return FailedMessageListResponse(
        failed_messages=[failed_message_response(f) for f in failed],
        total=len(failed)
    )


@router.post("/retry", response_model=RetryBatchResponse)
async def retry_failed_messages(
    request: RetryFailedMessagesRequest,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Retry several failed messages."""
    results = await relay.retry.retry_failed_messages(request.ids)
    succeeded = sum(1 for r in results if r.success)
    return RetryBatchResponse(results=results, succeeded=succeeded, failed=len(results) - succeeded)


@router.post("/{failed_message_id}/retry", response_model=RetryResult)
async def retry_failed_message(
    failed_message_id: int,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Retry one failed message."""
    return await relay.retry.retry_failed_message(failed_message_id)

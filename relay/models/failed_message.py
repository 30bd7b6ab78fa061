"""Failed message and retry API models."""

from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field


class FailedMessageResponse(BaseModel):
    """Response model for a failed delivery record."""

    id: int = Field(description="Failed message ID")
    conversation_id: str = Field(description="Conversation ID")
    message_id: Optional[int] = Field(None, description="First message of the failed batch")
    request_task_id: Optional[str] = Field(None, description="Failed request task")
    error: str = Field(description="Error text")
    attempts: int = Field(description="Failed dispatches of the task so far")
    failed_at: datetime = Field(description="Failure timestamp")
    retried: bool = Field(description="Whether a retry was attempted")
    retry_history: List[Dict[str, Any]] = Field(default_factory=list, description="Retry attempts, oldest first")
    context: Dict[str, Any] = Field(default_factory=dict, description="Failure context")


class FailedMessageListResponse(BaseModel):
    """Response model for failed message listings."""

    failed_messages: List[FailedMessageResponse] = Field(description="Unretried failed messages")
    total: int = Field(description="Number of records returned")


class RetryFailedMessagesRequest(BaseModel):
    """Request model for retrying several failed messages."""

    ids: List[int] = Field(description="Failed message IDs", min_length=1)


class RetryResult(BaseModel):
    """Outcome of one retry request."""

    success: bool = Field(description="Whether the retried task ended completed")
    message: str = Field(description="Human readable outcome")
    failed_message_id: Optional[int] = Field(None, description="Failed message that was retried")
    task_id: Optional[str] = Field(None, description="Request task that was re-dispatched")
    status: Optional[str] = Field(None, description="Task status after the retry")


class RetryBatchResponse(BaseModel):
    """Response model for a multi-id retry."""

    results: List[RetryResult] = Field(description="Per-id results")
    succeeded: int = Field(description="Number of successful retries")
    failed: int = Field(description="Number of unsuccessful retries")

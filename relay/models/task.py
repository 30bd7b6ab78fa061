"""Request task API models."""

from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field

from .enums import RequestTaskStatus


class RequestTaskResponse(BaseModel):
    """Response model for a request task."""

    id: int = Field(description="Numeric request task ID")
    task_id: str = Field(description="Unique task identifier")
    conversation_id: str = Field(description="Conversation ID")
    status: RequestTaskStatus = Field(description="Task status")
    aggregated_content: str = Field(description="Batch content sent to the backend")
    message_count: int = Field(description="Number of batch messages")
    response: Optional[str] = Field(None, description="Backend reply")
    error_message: Optional[str] = Field(None, description="Last error")
    created_at: datetime = Field(description="Creation timestamp")
    processing_started_at: Optional[datetime] = Field(None, description="Dispatch start")
    completed_at: Optional[datetime] = Field(None, description="Dispatch end")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional metadata")


class TaskListResponse(BaseModel):
    """Response model for a task listing."""

    tasks: List[RequestTaskResponse] = Field(description="List of tasks")
    total: int = Field(description="Number of tasks returned")


class FlushResponse(BaseModel):
    """Response model for manual flush triggers."""

    tasks: List[RequestTaskResponse] = Field(description="Tasks sealed by the flush")
    total: int = Field(description="Number of tasks sealed")

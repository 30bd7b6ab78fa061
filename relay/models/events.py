"""Delivery notifications published by the dispatcher."""

from datetime import datetime
from typing import List
from pydantic import BaseModel, Field

from .enums import RequestTaskStatus


class ReplyEvent(BaseModel):
    """A backend reply was stored for a request task."""

    task_id: str = Field(description="Request task that was delivered")
    conversation_id: str = Field(description="Conversation ID")
    answer: str = Field(description="Backend reply")
    message_ids: List[int] = Field(default_factory=list, description="Batch messages the reply answers")
    reply_message_id: int = Field(description="Stored assistant message")
    received_at: datetime = Field(description="Time the reply was stored")


class ErrorEvent(BaseModel):
    """A dispatch attempt failed and was recorded."""

    task_id: str = Field(description="Request task that failed")
    conversation_id: str = Field(description="Conversation ID")
    error: str = Field(description="Error text")
    status: RequestTaskStatus = Field(description="failed or timeout")
    message_ids: List[int] = Field(default_factory=list, description="Batch messages of the task")
    failed_message_id: int = Field(description="Failed message record of the attempt")
    attempts: int = Field(description="Failed dispatches of the task so far")

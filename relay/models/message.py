"""Message API models."""

from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field

from .enums import MessageRole, MessageStatus


class PushMessageRequest(BaseModel):
    """Request model for pushing a user message into a conversation."""

    content: str = Field(description="Message text", min_length=1)


class MessageResponse(BaseModel):
    """Response model for a stored message."""

    id: int = Field(description="Message ID")
    conversation_id: str = Field(description="Conversation ID")
    role: MessageRole = Field(description="Message author")
    content: str = Field(description="Message text")
    status: MessageStatus = Field(description="Delivery state")
    retry_count: int = Field(default=0, description="Failed deliveries so far")
    request_task_id: Optional[str] = Field(None, description="Request task the message was folded into")
    error_message: Optional[str] = Field(None, description="Last delivery error")
    created_at: datetime = Field(description="Arrival time")
    sent_at: Optional[datetime] = Field(None, description="Delivery time")
    received_at: Optional[datetime] = Field(None, description="Time the reply was received")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional metadata")


class ConversationMessagesResponse(BaseModel):
    """Response model for conversation messages."""

    conversation_id: str = Field(description="Conversation ID")
    messages: List[MessageResponse] = Field(description="List of messages")
    total: int = Field(description="Total number of messages")
    buffered: int = Field(default=0, description="Messages waiting in the batch buffer")

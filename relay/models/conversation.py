"""Conversation API models."""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field

from .enums import ConversationStatus


class ConversationResponse(BaseModel):
    """Response model for conversation details."""

    id: str = Field(description="Conversation ID")
    status: ConversationStatus = Field(description="Lifecycle status")
    remote_conversation_id: Optional[str] = Field(None, description="Conversation id on the completion backend")
    created_at: datetime = Field(description="Creation timestamp")
    last_active: datetime = Field(description="Last message timestamp")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional metadata")

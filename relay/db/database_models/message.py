"""Message database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional

from ...models.enums import MessageRole, MessageStatus
from ...utils.clock import utc_now


@dataclass
class MessageDO:
    """Message data object - maps to messages table."""

    conversation_id: str
    role: MessageRole
    content: str
    status: MessageStatus = MessageStatus.PENDING
    id: Optional[int] = None
    retry_count: int = 0
    request_task_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    sent_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

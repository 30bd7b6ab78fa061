"""Conversation database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional

from ...models.enums import ConversationStatus
from ...utils.clock import utc_now


@dataclass
class ConversationDO:
    """Conversation data object - maps to conversations table."""

    id: str
    status: ConversationStatus = ConversationStatus.ACTIVE
    remote_conversation_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    last_active: datetime = field(default_factory=utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict)

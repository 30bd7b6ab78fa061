"""Failed message database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Optional

from ...utils.clock import utc_now


@dataclass
class FailedMessageDO:
    """Failed message data object - maps to failed_messages table."""

    conversation_id: str
    error: str
    attempts: int
    id: Optional[int] = None
    message_id: Optional[int] = None
    request_task_id: Optional[str] = None
    failed_at: datetime = field(default_factory=utc_now)
    retried: bool = False
    retry_history: List[Dict[str, Any]] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)

"""Request task database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional

from ...models.enums import RequestTaskStatus
from ...utils.clock import utc_now


@dataclass
class RequestTaskDO:
    """
    Request task data object - maps to request_tasks table.

    aggregated_content is written once at creation; only the status,
    response, error and timestamps change afterwards.
    """

    task_id: str
    conversation_id: str
    aggregated_content: str
    message_count: int
    status: RequestTaskStatus = RequestTaskStatus.PENDING
    id: Optional[int] = None
    response: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    processing_started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

"""Status enums shared by the store and the pipeline."""

from enum import Enum


class ConversationStatus(str, Enum):
    """Lifecycle of a conversation."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"
    ARCHIVED = "archived"


class MessageRole(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, Enum):
    """Delivery state of a message."""

    PENDING = "pending"
    SENT = "sent"
    RECEIVED = "received"
    FAILED = "failed"
    AGGREGATED = "aggregated"


class RequestTaskStatus(str, Enum):
    """
    Lifecycle of a request task.

    pending/retrying -> processing -> completed | failed | timeout.
    failed and timeout are terminal until the retry coordinator moves the
    task to retrying.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    RETRYING = "retrying"

    @property
    def is_dispatchable(self) -> bool:
        return self in (RequestTaskStatus.PENDING, RequestTaskStatus.RETRYING)

    @property
    def is_retriable(self) -> bool:
        return self in (RequestTaskStatus.FAILED, RequestTaskStatus.TIMEOUT)

    @property
    def is_terminal(self) -> bool:
        return self in (
            RequestTaskStatus.COMPLETED,
            RequestTaskStatus.FAILED,
            RequestTaskStatus.TIMEOUT,
        )

"""Pydantic models for API request/response."""

from .enums import ConversationStatus, MessageRole, MessageStatus, RequestTaskStatus
from .delivery import DeliveryConfig, SaveDeliverySettingRequest, DeliverySettingResponse
from .conversation import ConversationResponse
from .message import PushMessageRequest, MessageResponse, ConversationMessagesResponse
from .task import RequestTaskResponse, TaskListResponse, FlushResponse
from .failed_message import (
    FailedMessageResponse,
    FailedMessageListResponse,
    RetryFailedMessagesRequest,
    RetryResult,
    RetryBatchResponse
)
from .maintenance import HealthCheck, HealthReport, CleanupRequest, CleanupResponse
from .events import ReplyEvent, ErrorEvent

__all__ = [
    "ConversationStatus",
    "MessageRole",
    "MessageStatus",
    "RequestTaskStatus",
    "DeliveryConfig",
    "SaveDeliverySettingRequest",
    "DeliverySettingResponse",
    "ConversationResponse",
    "PushMessageRequest",
    "MessageResponse",
    "ConversationMessagesResponse",
    "RequestTaskResponse",
    "TaskListResponse",
    "FlushResponse",
    "FailedMessageResponse",
    "FailedMessageListResponse",
    "RetryFailedMessagesRequest",
    "RetryResult",
    "RetryBatchResponse",
    "HealthCheck",
    "HealthReport",
    "CleanupRequest",
    "CleanupResponse",
    "ReplyEvent",
    "ErrorEvent",
]

"""Repository layer for data access."""

from .conversation import ConversationRepository
from .message import MessageRepository
from .request_task import RequestTaskRepository
from .failed_message import FailedMessageRepository
from .delivery_setting import DeliverySettingRepository

__all__ = [
    "ConversationRepository",
    "MessageRepository",
    "RequestTaskRepository",
    "FailedMessageRepository",
    "DeliverySettingRepository",
]

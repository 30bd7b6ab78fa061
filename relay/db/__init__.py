"""Database package - connection, models, and repositories."""

from .connection import DatabaseConnection
from .store import ConversationStore
from .repositories.conversation import ConversationRepository
from .repositories.message import MessageRepository
from .repositories.request_task import RequestTaskRepository
from .repositories.failed_message import FailedMessageRepository
from .repositories.delivery_setting import DeliverySettingRepository

__all__ = [
    "DatabaseConnection",
    "ConversationStore",
    "ConversationRepository",
    "MessageRepository",
    "RequestTaskRepository",
    "FailedMessageRepository",
    "DeliverySettingRepository",
]

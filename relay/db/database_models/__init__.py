"""Database models (Data Objects) - map to database tables."""

from .conversation import ConversationDO
from .message import MessageDO
from .request_task import RequestTaskDO
from .failed_message import FailedMessageDO
from .delivery_setting import DeliverySettingDO

__all__ = [
    "ConversationDO",
    "MessageDO",
    "RequestTaskDO",
    "FailedMessageDO",
    "DeliverySettingDO",
]

"""API v1 package."""

from .conversations import router as conversations_router
from .tasks import router as tasks_router
from .failed_messages import router as failed_messages_router
from .settings import router as settings_router
from .maintenance import router as maintenance_router

__all__ = [
    "conversations_router",
    "tasks_router",
    "failed_messages_router",
    "settings_router",
    "maintenance_router",
]

"""Conversation store - the repositories behind one DuckDB connection."""

from contextlib import contextmanager
from typing import Iterator, Optional

from .connection import DatabaseConnection
from .database_models.conversation import ConversationDO
from .repositories.conversation import ConversationRepository
from .repositories.message import MessageRepository
from .repositories.request_task import RequestTaskRepository
from .repositories.failed_message import FailedMessageRepository
from .repositories.delivery_setting import DeliverySettingRepository
from ..exceptions import PersistenceError
from ..utils.logger import get_app_logger


class ConversationStore:
    """
    System of record for conversations, messages, request tasks and
    failed messages.

    All repositories share the connection of ``db``, so a block run inside
    :meth:`transaction` commits or rolls back every write it made.
    """

    def __init__(self, db: DatabaseConnection):
        self.db = db
        self.logger = get_app_logger()

        self.conversations = ConversationRepository(db.conn)
        self.messages = MessageRepository(db.conn)
        self.tasks = RequestTaskRepository(db.conn)
        self.failed = FailedMessageRepository(db.conn)
        self.settings = DeliverySettingRepository(db.conn)

    @contextmanager
    def transaction(self) -> Iterator["ConversationStore"]:
        """Run a multi-step state transition atomically."""
        with self.db.transaction():
            yield self

    def get_or_create_conversation(self, conversation_id: str) -> ConversationDO:
        """
        Find a conversation, creating it on first use.

        Raises:
            PersistenceError: If the conversation could not be created
        """
        conversation = self.conversations.get(conversation_id)
        if conversation:
            return conversation

        conversation = ConversationDO(id=conversation_id)
        if not self.conversations.create(conversation):
            raise PersistenceError(f"Failed to create conversation {conversation_id}")
        return conversation

    def remote_conversation_id(self, conversation_id: str) -> Optional[str]:
        """Backend conversation id remembered for a conversation, if any."""
        conversation = self.conversations.get(conversation_id)
        return conversation.remote_conversation_id if conversation else None

    def ping(self) -> bool:
        return self.db.ping()

    def close(self):
        self.db.close()

"""Conversation repository for database operations."""

import json
from datetime import datetime
from typing import Optional, List

from .base import BaseRepository
from ..database_models.conversation import ConversationDO
from ...models.enums import ConversationStatus
from ...utils.clock import utc_now


class ConversationRepository(BaseRepository):
    """Repository for Conversation CRUD operations."""

    _COLUMNS = "id, status, remote_conversation_id, created_at, last_active, metadata"

    def _to_do(self, row) -> ConversationDO:
        return ConversationDO(
            id=row[0],
            status=ConversationStatus(row[1]),
            remote_conversation_id=row[2],
            created_at=row[3],
            last_active=row[4],
            metadata=self._loads(row[5], {})
        )

    def create(self, conversation: ConversationDO) -> bool:
        """
        Create a new conversation record.

        Args:
            conversation: ConversationDO instance

        Returns:
            True if successful, False otherwise
        """
        try:
            self.conn.execute("""
                INSERT INTO conversations (id, status, remote_conversation_id, created_at, last_active, metadata)
                VALUES (?, ?, ?, ?, ?, ?)
            """, [
                conversation.id,
                conversation.status.value,
                conversation.remote_conversation_id,
                conversation.created_at,
                conversation.last_active,
                json.dumps(conversation.metadata or {})
            ])
            self.logger.info(f"Created conversation record: {conversation.id}")
            return True
        except Exception as e:
            self.logger.error(f"Failed to create conversation: {e}")
            return False

    def get(self, conversation_id: str) -> Optional[ConversationDO]:
        """
        Get conversation by ID.

        Args:
            conversation_id: Conversation ID

        Returns:
            ConversationDO instance or None
        """
        try:
            result = self.conn.execute(f"""
                SELECT {self._COLUMNS}
                FROM conversations
                WHERE id = ?
            """, [conversation_id]).fetchone()

            return self._to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get conversation {conversation_id}: {e}")
            return None

    def list_all(self, status: Optional[ConversationStatus] = None) -> List[ConversationDO]:
        """
        List conversations, most recently active first.

        Args:
            status: Optional status filter

        Returns:
            List of ConversationDO instances
        """
        try:
            if status is None:
                results = self.conn.execute(f"""
                    SELECT {self._COLUMNS}
                    FROM conversations
                    ORDER BY last_active DESC
                """).fetchall()
            else:
                results = self.conn.execute(f"""
                    SELECT {self._COLUMNS}
                    FROM conversations
                    WHERE status = ?
                    ORDER BY last_active DESC
                """, [status.value]).fetchall()

            return [self._to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list conversations: {e}")
            return []

    def touch(self, conversation_id: str, when: Optional[datetime] = None) -> bool:
        """
        Update the last-active timestamp.

        Args:
            conversation_id: Conversation ID
            when: Timestamp to record, defaults to now

        Returns:
            True if successful, False otherwise
        """
        try:
            self.conn.execute("""
                UPDATE conversations SET last_active = ? WHERE id = ?
            """, [when or utc_now(), conversation_id])
            return True
        except Exception as e:
            self.logger.error(f"Failed to touch conversation {conversation_id}: {e}")
            return False

    def update_status(self, conversation_id: str, status: ConversationStatus) -> bool:
        """Set the lifecycle status of a conversation."""
        try:
            self.conn.execute("""
                UPDATE conversations SET status = ? WHERE id = ?
            """, [status.value, conversation_id])
            return True
        except Exception as e:
            self.logger.error(f"Failed to update conversation status: {e}")
            return False

    def set_remote_conversation_id(self, conversation_id: str, remote_id: str) -> bool:
        """Remember the backend's own id for this conversation."""
        try:
            self.conn.execute("""
                UPDATE conversations SET remote_conversation_id = ? WHERE id = ?
            """, [remote_id, conversation_id])
            return True
        except Exception as e:
            self.logger.error(f"Failed to set remote conversation id: {e}")
            return False

"""Message repository for database operations."""

import json
from datetime import datetime
from typing import Optional, List, Sequence

from .base import BaseRepository
from ..database_models.message import MessageDO
from ...models.enums import MessageRole, MessageStatus


class MessageRepository(BaseRepository):
    """Repository for Message CRUD operations."""

    _COLUMNS = (
        "id, conversation_id, role, content, status, retry_count, request_task_id, "
        "error_message, created_at, sent_at, received_at, metadata"
    )

    def _to_do(self, row) -> MessageDO:
        return MessageDO(
            id=row[0],
            conversation_id=row[1],
            role=MessageRole(row[2]),
            content=row[3],
            status=MessageStatus(row[4]),
            retry_count=row[5] or 0,
            request_task_id=row[6],
            error_message=row[7],
            created_at=row[8],
            sent_at=row[9],
            received_at=row[10],
            metadata=self._loads(row[11], {})
        )

    def add(self, message: MessageDO) -> Optional[int]:
        """
        Add a new message.

        Args:
            message: MessageDO instance

        Returns:
            Message ID if successful, None otherwise
        """
        try:
            result = self.conn.execute("""
                INSERT INTO messages (
                    id, conversation_id, role, content, status, retry_count, request_task_id,
                    error_message, created_at, sent_at, received_at, metadata
                )
                VALUES (nextval('messages_id_seq'), ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
            """, [
                message.conversation_id,
                message.role.value,
                message.content,
                message.status.value,
                message.retry_count,
                message.request_task_id,
                message.error_message,
                message.created_at,
                message.sent_at,
                message.received_at,
                json.dumps(message.metadata or {})
            ]).fetchone()

            message_id = result[0] if result else None
            if message_id:
                message.id = message_id
                self.logger.debug(f"Added message {message_id} to conversation {message.conversation_id}")
            return message_id
        except Exception as e:
            self.logger.error(f"Failed to add message: {e}")
            return None

    def get(self, message_id: int) -> Optional[MessageDO]:
        """Get message by ID."""
        try:
            result = self.conn.execute(f"""
                SELECT {self._COLUMNS} FROM messages WHERE id = ?
            """, [message_id]).fetchone()
            return self._to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get message {message_id}: {e}")
            return None

    def get_by_conversation(self, conversation_id: str, limit: int = 100) -> List[MessageDO]:
        """
        Get messages for a conversation.

        Args:
            conversation_id: Conversation ID
            limit: Maximum number of messages to return

        Returns:
            List of MessageDO instances (chronological order)
        """
        try:
            results = self.conn.execute(f"""
                SELECT {self._COLUMNS}
                FROM messages
                WHERE conversation_id = ?
                ORDER BY id DESC
                LIMIT ?
            """, [conversation_id, limit]).fetchall()

            messages = [self._to_do(row) for row in results]

            # Reverse to get chronological order
            messages.reverse()
            return messages
        except Exception as e:
            self.logger.error(f"Failed to get conversation messages: {e}")
            return []

    def get_by_task(self, task_id: str, role: MessageRole = MessageRole.USER) -> List[MessageDO]:
        """
        Get the batch members of a request task in arrival order.

        Args:
            task_id: Request task identifier
            role: Message role to select (the batch is made of user messages)

        Returns:
            List of MessageDO instances
        """
        try:
            results = self.conn.execute(f"""
                SELECT {self._COLUMNS}
                FROM messages
                WHERE request_task_id = ? AND role = ?
                ORDER BY id ASC
            """, [task_id, role.value]).fetchall()
            return [self._to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to get messages for task {task_id}: {e}")
            return []

    def get_pending_user_messages(self, limit: int = 1000) -> List[MessageDO]:
        """
        Get user messages that were never sealed into a batch.

        Returns:
            List of MessageDO instances, oldest first
        """
        try:
            results = self.conn.execute(f"""
                SELECT {self._COLUMNS}
                FROM messages
                WHERE role = ? AND status = ? AND request_task_id IS NULL
                ORDER BY id ASC
                LIMIT ?
            """, [MessageRole.USER.value, MessageStatus.PENDING.value, limit]).fetchall()
            return [self._to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to get pending messages: {e}")
            return []

    def assign_to_task(self, message_ids: Sequence[int], task_id: str) -> bool:
        """
        Link messages to a request task and mark them aggregated.

        Only messages that are still pending and unassigned are touched; the
        call fails if any of the given messages was already sealed elsewhere.

        Args:
            message_ids: IDs of the batch members
            task_id: Request task identifier

        Returns:
            True if every message was assigned, False otherwise
        """
        if not message_ids:
            return True
        try:
            ids = list(message_ids)
            result = self.conn.execute(f"""
                UPDATE messages
                SET status = ?, request_task_id = ?
                WHERE id IN ({self._placeholders(ids)})
                  AND request_task_id IS NULL
                RETURNING id
            """, [MessageStatus.AGGREGATED.value, task_id, *ids]).fetchall()

            if len(result) != len(ids):
                self.logger.error(
                    f"Only {len(result)} of {len(ids)} messages could be assigned to task {task_id}"
                )
                return False
            return True
        except Exception as e:
            self.logger.error(f"Failed to assign messages to task {task_id}: {e}")
            return False

    def reassign_to_task(self, message_ids: Sequence[int], task_id: str) -> bool:
        """
        Link messages to a replacement request task, whatever task they had.

        Used when the original task of a failed batch no longer exists.

        Returns:
            True if every message was reassigned, False otherwise
        """
        if not message_ids:
            return True
        try:
            ids = list(message_ids)
            result = self.conn.execute(f"""
                UPDATE messages
                SET status = ?, request_task_id = ?
                WHERE id IN ({self._placeholders(ids)})
                RETURNING id
            """, [MessageStatus.AGGREGATED.value, task_id, *ids]).fetchall()

            if len(result) != len(ids):
                self.logger.error(
                    f"Only {len(result)} of {len(ids)} messages could be reassigned to task {task_id}"
                )
                return False
            return True
        except Exception as e:
            self.logger.error(f"Failed to reassign messages to task {task_id}: {e}")
            return False

    def mark_sent(self, message_ids: Sequence[int], sent_at: datetime) -> bool:
        """Mark batch members as delivered."""
        if not message_ids:
            return True
        try:
            ids = list(message_ids)
            self.conn.execute(f"""
                UPDATE messages
                SET status = ?, sent_at = ?, error_message = NULL
                WHERE id IN ({self._placeholders(ids)})
            """, [MessageStatus.SENT.value, sent_at, *ids])
            return True
        except Exception as e:
            self.logger.error(f"Failed to mark messages as sent: {e}")
            return False

    def mark_failed(self, message_ids: Sequence[int], error_message: str) -> bool:
        """Mark batch members as failed and bump their retry count."""
        if not message_ids:
            return True
        try:
            ids = list(message_ids)
            self.conn.execute(f"""
                UPDATE messages
                SET status = ?, error_message = ?, retry_count = retry_count + 1
                WHERE id IN ({self._placeholders(ids)})
            """, [MessageStatus.FAILED.value, error_message[:255], *ids])
            return True
        except Exception as e:
            self.logger.error(f"Failed to mark messages as failed: {e}")
            return False

    def count_by_status(self, status: MessageStatus) -> int:
        """Count messages in the given status."""
        try:
            result = self.conn.execute("""
                SELECT COUNT(*) FROM messages WHERE status = ?
            """, [status.value]).fetchone()
            return result[0] if result else 0
        except Exception as e:
            self.logger.error(f"Failed to count messages: {e}")
            return 0

"""Failed message repository for database operations."""

import json
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from .base import BaseRepository
from ..database_models.failed_message import FailedMessageDO
from ...utils.clock import utc_now


class FailedMessageRepository(BaseRepository):
    """Repository for FailedMessage records and their retry history."""

    _COLUMNS = (
        "id, conversation_id, message_id, request_task_id, error, attempts, "
        "failed_at, retried, retry_history, context"
    )

    def _to_do(self, row) -> FailedMessageDO:
        return FailedMessageDO(
            id=row[0],
            conversation_id=row[1],
            message_id=row[2],
            request_task_id=row[3],
            error=row[4],
            attempts=row[5],
            failed_at=row[6],
            retried=bool(row[7]),
            retry_history=self._loads(row[8], []),
            context=self._loads(row[9], {})
        )

    def create(self, failed: FailedMessageDO) -> Optional[int]:
        """
        Create a failed message record.

        Args:
            failed: FailedMessageDO instance

        Returns:
            Record ID if successful, None otherwise
        """
        try:
            result = self.conn.execute("""
                INSERT INTO failed_messages (
                    id, conversation_id, message_id, request_task_id, error, attempts,
                    failed_at, retried, retry_history, context
                )
                VALUES (nextval('failed_messages_id_seq'), ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
            """, [
                failed.conversation_id,
                failed.message_id,
                failed.request_task_id,
                failed.error,
                failed.attempts,
                failed.failed_at,
                failed.retried,
                json.dumps(failed.retry_history or []),
                json.dumps(failed.context or {})
            ]).fetchone()

            record_id = result[0] if result else None
            if record_id:
                failed.id = record_id
                self.logger.info(
                    f"Recorded failed message {record_id} for task {failed.request_task_id}"
                )
            return record_id
        except Exception as e:
            self.logger.error(f"Failed to create failed message: {e}")
            return None

    def get(self, failed_message_id: int) -> Optional[FailedMessageDO]:
        """Get failed message by ID."""
        try:
            result = self.conn.execute(f"""
                SELECT {self._COLUMNS} FROM failed_messages WHERE id = ?
            """, [failed_message_id]).fetchone()
            return self._to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get failed message {failed_message_id}: {e}")
            return None

    def list_unretried(self, limit: int = 100) -> List[FailedMessageDO]:
        """List failed messages that were never retried, oldest first."""
        try:
            results = self.conn.execute(f"""
                SELECT {self._COLUMNS}
                FROM failed_messages
                WHERE retried = FALSE
                ORDER BY failed_at ASC, id ASC
                LIMIT ?
            """, [limit]).fetchall()
            return [self._to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list unretried failed messages: {e}")
            return []

    def list_by_task(self, task_id: str, unretried_only: bool = False) -> List[FailedMessageDO]:
        """
        List failed messages recorded for a request task.

        Args:
            task_id: Request task identifier
            unretried_only: Skip records whose retried flag is set

        Returns:
            List of FailedMessageDO instances, oldest first
        """
        try:
            query = f"SELECT {self._COLUMNS} FROM failed_messages WHERE request_task_id = ?"
            if unretried_only:
                query += " AND retried = FALSE"
            query += " ORDER BY id ASC"
            results = self.conn.execute(query, [task_id]).fetchall()
            return [self._to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list failed messages for task {task_id}: {e}")
            return []

    def record_retry(self, failed_message_id: int, history: List[Dict[str, Any]]) -> bool:
        """
        Store the retry history of a record and set its retried flag.

        Args:
            failed_message_id: Record ID
            history: Complete retry history, oldest entry first

        Returns:
            True if successful, False otherwise
        """
        try:
            self.conn.execute("""
                UPDATE failed_messages
                SET retry_history = ?, retried = TRUE
                WHERE id = ?
            """, [json.dumps(history), failed_message_id])
            return True
        except Exception as e:
            self.logger.error(f"Failed to record retry for failed message {failed_message_id}: {e}")
            return False

    def link_task(self, failed_message_id: int, task_id: str) -> bool:
        """Point a record at the request task that now carries its messages."""
        try:
            self.conn.execute("""
                UPDATE failed_messages SET request_task_id = ? WHERE id = ?
            """, [task_id, failed_message_id])
            return True
        except Exception as e:
            self.logger.error(f"Failed to link failed message {failed_message_id} to task {task_id}: {e}")
            return False

    def count_unretried(self) -> int:
        """Count failed messages that were never retried."""
        try:
            result = self.conn.execute("""
                SELECT COUNT(*) FROM failed_messages WHERE retried = FALSE
            """).fetchone()
            return result[0] if result else 0
        except Exception as e:
            self.logger.error(f"Failed to count failed messages: {e}")
            return 0

    def cleanup_old_messages(self, days: int = 30, now: Optional[datetime] = None) -> int:
        """
        Delete failed message records older than the given number of days.

        Returns:
            Number of deleted records
        """
        cutoff = (now or utc_now()) - timedelta(days=days)
        try:
            result = self.conn.execute("""
                DELETE FROM failed_messages WHERE failed_at < ? RETURNING id
            """, [cutoff]).fetchall()
            if result:
                self.logger.info(f"Cleaned up {len(result)} failed messages older than {days} days")
            return len(result)
        except Exception as e:
            self.logger.error(f"Failed to clean up failed messages: {e}")
            return 0

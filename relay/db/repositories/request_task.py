"""Request task repository for database operations."""

import json
from datetime import datetime, timedelta
from typing import Optional, List, Dict

from .base import BaseRepository
from ..database_models.request_task import RequestTaskDO
from ...models.enums import RequestTaskStatus
from ...utils.clock import utc_now


class RequestTaskRepository(BaseRepository):
    """Repository for RequestTask CRUD operations and status transitions."""

    _COLUMNS = (
        "id, task_id, conversation_id, status, aggregated_content, message_count, response, "
        "error_message, created_at, processing_started_at, completed_at, metadata"
    )

    def _to_do(self, row) -> RequestTaskDO:
        return RequestTaskDO(
            id=row[0],
            task_id=row[1],
            conversation_id=row[2],
            status=RequestTaskStatus(row[3]),
            aggregated_content=row[4],
            message_count=row[5],
            response=row[6],
            error_message=row[7],
            created_at=row[8],
            processing_started_at=row[9],
            completed_at=row[10],
            metadata=self._loads(row[11], {})
        )

    def create(self, task: RequestTaskDO) -> Optional[int]:
        """
        Create a new request task record.

        Args:
            task: RequestTaskDO instance

        Returns:
            Numeric task ID if successful, None otherwise
        """
        try:
            result = self.conn.execute("""
                INSERT INTO request_tasks (
                    id, task_id, conversation_id, status, aggregated_content, message_count,
                    response, error_message, created_at, processing_started_at, completed_at, metadata
                )
                VALUES (nextval('request_tasks_id_seq'), ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
            """, [
                task.task_id,
                task.conversation_id,
                task.status.value,
                task.aggregated_content,
                task.message_count,
                task.response,
                task.error_message,
                task.created_at,
                task.processing_started_at,
                task.completed_at,
                json.dumps(task.metadata or {})
            ]).fetchone()

            record_id = result[0] if result else None
            if record_id:
                task.id = record_id
                self.logger.info(
                    f"Created request task {task.task_id} ({task.message_count} messages) "
                    f"for conversation {task.conversation_id}"
                )
            return record_id
        except Exception as e:
            self.logger.error(f"Failed to create request task: {e}")
            return None

    def get(self, record_id: int) -> Optional[RequestTaskDO]:
        """Get request task by numeric ID."""
        try:
            result = self.conn.execute(f"""
                SELECT {self._COLUMNS} FROM request_tasks WHERE id = ?
            """, [record_id]).fetchone()
            return self._to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get request task {record_id}: {e}")
            return None

    def get_by_task_id(self, task_id: str) -> Optional[RequestTaskDO]:
        """Get request task by its unique task identifier."""
        try:
            result = self.conn.execute(f"""
                SELECT {self._COLUMNS} FROM request_tasks WHERE task_id = ?
            """, [task_id]).fetchone()
            return self._to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get request task {task_id}: {e}")
            return None

    def list_by_conversation(self, conversation_id: str) -> List[RequestTaskDO]:
        """List tasks of a conversation in creation order."""
        try:
            results = self.conn.execute(f"""
                SELECT {self._COLUMNS}
                FROM request_tasks
                WHERE conversation_id = ?
                ORDER BY id ASC
            """, [conversation_id]).fetchall()
            return [self._to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list tasks for conversation {conversation_id}: {e}")
            return []

    def _list_by_statuses(self, statuses: List[RequestTaskStatus], limit: int) -> List[RequestTaskDO]:
        values = [s.value for s in statuses]
        try:
            results = self.conn.execute(f"""
                SELECT {self._COLUMNS}
                FROM request_tasks
                WHERE status IN ({self._placeholders(values)})
                ORDER BY id ASC
                LIMIT ?
            """, [*values, limit]).fetchall()
            return [self._to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list request tasks: {e}")
            return []

    def list_pending(self, limit: int = 100, include_retrying: bool = False) -> List[RequestTaskDO]:
        """List tasks waiting for dispatch, oldest first."""
        statuses = [RequestTaskStatus.PENDING]
        if include_retrying:
            statuses.append(RequestTaskStatus.RETRYING)
        return self._list_by_statuses(statuses, limit)

    def list_failed(self, limit: int = 100) -> List[RequestTaskDO]:
        """List failed and timed-out tasks, oldest first."""
        return self._list_by_statuses([RequestTaskStatus.FAILED, RequestTaskStatus.TIMEOUT], limit)

    def list_processing(self, limit: int = 1000) -> List[RequestTaskDO]:
        """List tasks marked as processing, oldest first."""
        return self._list_by_statuses([RequestTaskStatus.PROCESSING], limit)

    def count_by_status(self) -> Dict[str, int]:
        """Count tasks per status."""
        try:
            results = self.conn.execute("""
                SELECT status, COUNT(*) FROM request_tasks GROUP BY status
            """).fetchall()
            return {row[0]: row[1] for row in results}
        except Exception as e:
            self.logger.error(f"Failed to count request tasks: {e}")
            return {}

    def set_status(self, task_id: str, status: RequestTaskStatus) -> bool:
        """Set a task status without touching its timestamps."""
        try:
            self.conn.execute("""
                UPDATE request_tasks SET status = ? WHERE task_id = ?
            """, [status.value, task_id])
            return True
        except Exception as e:
            self.logger.error(f"Failed to set status of task {task_id}: {e}")
            return False

    def mark_processing(self, task_id: str, started_at: datetime) -> bool:
        """
        Move a dispatchable task to processing.

        Returns:
            True if the task was pending or retrying and is now processing
        """
        try:
            result = self.conn.execute("""
                UPDATE request_tasks
                SET status = ?, processing_started_at = ?
                WHERE task_id = ? AND status IN (?, ?)
                RETURNING id
            """, [
                RequestTaskStatus.PROCESSING.value,
                started_at,
                task_id,
                RequestTaskStatus.PENDING.value,
                RequestTaskStatus.RETRYING.value
            ]).fetchall()
            return len(result) == 1
        except Exception as e:
            self.logger.error(f"Failed to mark task {task_id} as processing: {e}")
            return False

    def release(self, task_id: str, status: RequestTaskStatus) -> bool:
        """
        Move a processing task back to a dispatchable status.

        Returns:
            True if the task was processing and now has the given status
        """
        try:
            result = self.conn.execute("""
                UPDATE request_tasks
                SET status = ?
                WHERE task_id = ? AND status = ?
                RETURNING id
            """, [status.value, task_id, RequestTaskStatus.PROCESSING.value]).fetchall()
            return len(result) == 1
        except Exception as e:
            self.logger.error(f"Failed to release task {task_id}: {e}")
            return False

    def mark_completed(self, task_id: str, response: str, completed_at: datetime) -> bool:
        """Record a successful backend reply."""
        try:
            self.conn.execute("""
                UPDATE request_tasks
                SET status = ?, response = ?, error_message = NULL, completed_at = ?
                WHERE task_id = ?
            """, [RequestTaskStatus.COMPLETED.value, response, completed_at, task_id])
            return True
        except Exception as e:
            self.logger.error(f"Failed to mark task {task_id} as completed: {e}")
            return False

    def mark_failed(
        self,
        task_id: str,
        error_message: str,
        completed_at: datetime,
        status: RequestTaskStatus = RequestTaskStatus.FAILED
    ) -> bool:
        """Record a failed or timed-out attempt."""
        try:
            self.conn.execute("""
                UPDATE request_tasks
                SET status = ?, error_message = ?, completed_at = ?
                WHERE task_id = ?
            """, [status.value, error_message, completed_at, task_id])
            return True
        except Exception as e:
            self.logger.error(f"Failed to mark task {task_id} as {status.value}: {e}")
            return False

    def cleanup_old_tasks(self, days: int = 30, now: Optional[datetime] = None) -> int:
        """
        Delete terminal tasks older than the given number of days.

        Tasks that still have unretried failed messages are kept, so those
        records can be retried against their task.

        Returns:
            Number of deleted tasks
        """
        cutoff = (now or utc_now()) - timedelta(days=days)
        terminal = [
            RequestTaskStatus.COMPLETED.value,
            RequestTaskStatus.FAILED.value,
            RequestTaskStatus.TIMEOUT.value,
        ]
        try:
            result = self.conn.execute(f"""
                DELETE FROM request_tasks
                WHERE created_at < ? AND status IN ({self._placeholders(terminal)})
                  AND task_id NOT IN (
                      SELECT request_task_id FROM failed_messages
                      WHERE NOT retried AND request_task_id IS NOT NULL
                  )
                RETURNING id
            """, [cutoff, *terminal]).fetchall()
            if result:
                self.logger.info(f"Cleaned up {len(result)} request tasks older than {days} days")
            return len(result)
        except Exception as e:
            self.logger.error(f"Failed to clean up request tasks: {e}")
            return 0

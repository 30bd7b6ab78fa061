"""Retry coordinator - re-dispatches failed deliveries within the retry budget."""

from typing import Iterable, List, Optional, Sequence, Tuple

from ..db.store import ConversationStore
from ..db.database_models.failed_message import FailedMessageDO
from ..db.database_models.message import MessageDO
from ..db.database_models.request_task import RequestTaskDO
from ..exceptions import (
    FailedMessageNotFoundError,
    NotFoundError,
    PersistenceError,
    RequestTaskNotFoundError,
    RetryBudgetExhaustedError
)
from ..models.delivery import DeliveryConfig
from ..models.enums import RequestTaskStatus
from ..models.failed_message import RetryResult
from ..utils.clock import utc_now
from ..utils.logger import get_app_logger
from .aggregator import build_aggregated_content, new_task_id
from .dispatcher import TaskDispatcher
from .settings_provider import SettingsProvider


class RetryCoordinator:
    """
    Re-dispatches the request tasks behind failed messages.

    Every retry appends one ``{timestamp, outcome}`` entry to the retry
    history of the failed messages involved and sets their ``retried`` flag.
    A failed message accepts at most ``max_retries`` retries, and a task
    that already failed ``max_retries + 1`` times is not retried at all.
    """

    def __init__(
        self,
        store: ConversationStore,
        settings_provider: SettingsProvider,
        dispatcher: TaskDispatcher
    ):
        self.store = store
        self.settings_provider = settings_provider
        self.dispatcher = dispatcher
        self.logger = get_app_logger()

    @staticmethod
    def _check_budget(failed: FailedMessageDO, config: DeliveryConfig):
        if len(failed.retry_history) >= config.max_retries or failed.attempts > config.max_retries:
            raise RetryBudgetExhaustedError(failed.id, config.max_retries)

    async def retry_failed_message(self, failed_message_id: int) -> RetryResult:
        """
        Retry the delivery behind one failed message.

        Args:
            failed_message_id: Failed message ID

        Returns:
            RetryResult describing the outcome

        Raises:
            ConfigurationMissingError: If no delivery configuration is active
            FailedMessageNotFoundError: If the record does not exist
            RetryBudgetExhaustedError: If the record used up its retries
        """
        config = self.settings_provider.get_active()

        failed = self.store.failed.get(failed_message_id)
        if failed is None:
            raise FailedMessageNotFoundError(failed_message_id)
        self._check_budget(failed, config)

        task = self._task_for(failed)
        result = await self._redispatch(task, [failed])
        result.failed_message_id = failed_message_id
        return result

    async def retry_failed_messages(self, failed_message_ids: Iterable[int]) -> List[RetryResult]:
        """
        Retry several failed messages one by one.

        A failing id does not stop the others; its error is reported in
        its result instead.

        Raises:
            ConfigurationMissingError: If no delivery configuration is active
        """
        self.settings_provider.get_active()

        results = []
        for failed_message_id in failed_message_ids:
            try:
                results.append(await self.retry_failed_message(failed_message_id))
            except (NotFoundError, RetryBudgetExhaustedError, PersistenceError) as e:
                self.logger.warning(f"Retry of failed message {failed_message_id} rejected: {e}")
                results.append(RetryResult(
                    success=False,
                    message=str(e),
                    failed_message_id=failed_message_id
                ))
        return results

    async def retry_by_task_id(self, task_id: str) -> RetryResult:
        """
        Retry every unretried failed message of a task as one dispatch.

        Returns:
            RetryResult; ``success`` is False with a "No failed messages
            found" message when the task has nothing to retry

        Raises:
            ConfigurationMissingError: If no delivery configuration is active
            RetryBudgetExhaustedError: If a record of the task used up its retries
        """
        config = self.settings_provider.get_active()

        failed_list = self.store.failed.list_by_task(task_id, unretried_only=True)
        task = self.store.tasks.get_by_task_id(task_id)
        if not failed_list or task is None:
            return RetryResult(
                success=False,
                message=f"No failed messages found for task ID: {task_id}",
                task_id=task_id
            )

        for failed in failed_list:
            self._check_budget(failed, config)

        return await self._redispatch(task, failed_list)

    async def retry_by_request_task_id(self, request_task_id: int) -> RetryResult:
        """Like :meth:`retry_by_task_id`, addressed by the numeric task ID."""
        self.settings_provider.get_active()

        task = self.store.tasks.get(request_task_id)
        if task is None:
            return RetryResult(
                success=False,
                message=f"No failed messages found for request task ID: {request_task_id}"
            )
        return await self.retry_by_task_id(task.task_id)

    async def retry_all(self, limit: int = 100) -> List[RetryResult]:
        """Retry the oldest unretried failed messages."""
        failed_list = self.store.failed.list_unretried(limit=limit)
        if not failed_list:
            self.logger.info("No unretried failed messages")
            return []
        return await self.retry_failed_messages([f.id for f in failed_list])

    def get_retryable_messages(self, limit: int = 100) -> List[FailedMessageDO]:
        """Unretried failed messages, oldest first."""
        return self.store.failed.list_unretried(limit=limit)

    def get_request_task_messages(self, task_id: str) -> List[MessageDO]:
        """
        Batch messages of a request task in arrival order.

        Raises:
            RequestTaskNotFoundError: If the task does not exist
        """
        if self.store.tasks.get_by_task_id(task_id) is None:
            raise RequestTaskNotFoundError(task_id)
        return self.store.messages.get_by_task(task_id)

    def _task_for(self, failed: FailedMessageDO) -> RequestTaskDO:
        """Find the task behind a failed message, or rebuild one from its batch messages."""
        if failed.request_task_id:
            task = self.store.tasks.get_by_task_id(failed.request_task_id)
            if task:
                return task

        message_ids = failed.context.get("message_ids") or (
            [failed.message_id] if failed.message_id is not None else []
        )
        messages = [m for m in (self.store.messages.get(mid) for mid in message_ids) if m is not None]
        if not messages:
            raise NotFoundError(f"Failed message {failed.id} has no task or message to retry")
        messages.sort(key=lambda m: m.id)

        if failed.request_task_id is None and messages[0].request_task_id:
            task = self.store.tasks.get_by_task_id(messages[0].request_task_id)
            if task:
                return task

        request_type = "batch" if len(messages) > 1 else "single"
        task = RequestTaskDO(
            task_id=new_task_id(request_type),
            conversation_id=messages[0].conversation_id,
            aggregated_content=build_aggregated_content([m.content for m in messages]),
            message_count=len(messages),
            metadata={"message_ids": [m.id for m in messages], "request_type": request_type}
        )
        with self.store.transaction():
            if self.store.tasks.create(task) is None:
                raise PersistenceError(f"Failed to create retry task for failed message {failed.id}")
            # The messages may still point at a task that was cleaned up.
            if not self.store.messages.reassign_to_task(task.metadata["message_ids"], task.task_id):
                raise PersistenceError(f"Failed to assign messages of failed message {failed.id} to {task.task_id}")
            if not self.store.failed.link_task(failed.id, task.task_id):
                raise PersistenceError(f"Failed to link failed message {failed.id} to {task.task_id}")
        failed.request_task_id = task.task_id

        self.logger.info(f"Rebuilt task {task.task_id} from {task.message_count} messages of failed message {failed.id}")
        return task

    async def _redispatch(self, task: RequestTaskDO, failed_list: Sequence[FailedMessageDO]) -> RetryResult:
        if self.dispatcher.is_in_flight(task.task_id):
            return RetryResult(
                success=False,
                message=f"Dispatch already in flight for task {task.task_id}",
                task_id=task.task_id,
                status=task.status.value
            )

        if task.status == RequestTaskStatus.COMPLETED:
            self._append_history(failed_list, "already_completed", task.task_id)
            self.logger.info(f"Task {task.task_id} already completed, retry is a no-op")
            return RetryResult(
                success=True,
                message=f"Task {task.task_id} already completed",
                task_id=task.task_id,
                status=task.status.value
            )

        if task.status == RequestTaskStatus.PROCESSING:
            # Processing without a running attempt means the attempt was interrupted.
            if not self.store.tasks.release(task.task_id, RequestTaskStatus.RETRYING):
                raise PersistenceError(f"Failed to release interrupted task {task.task_id}")
            self.logger.warning(f"Task {task.task_id} was interrupted while processing, retrying")
        elif task.status.is_retriable:
            if not self.store.tasks.set_status(task.task_id, RequestTaskStatus.RETRYING):
                raise PersistenceError(f"Failed to mark task {task.task_id} as retrying")
            self.logger.info(f"Task {task.task_id} {task.status.value} -> retrying")

        # Queued behind the conversation's other dispatches, within the concurrency bound.
        outcome_task = await self.dispatcher.submit(task)
        if outcome_task is None:
            outcome_task = self.store.tasks.get_by_task_id(task.task_id) or task
        success, outcome = self._outcome(outcome_task)
        self._append_history(failed_list, outcome, task.task_id)

        if success:
            message = f"Task {task.task_id} delivered on retry"
        else:
            message = f"Retry of task {task.task_id} ended {outcome_task.status.value}"
            if outcome_task.error_message:
                message += f": {outcome_task.error_message}"

        self.logger.info(message)
        return RetryResult(
            success=success,
            message=message,
            task_id=task.task_id,
            status=outcome_task.status.value
        )

    @staticmethod
    def _outcome(task: RequestTaskDO) -> Tuple[bool, str]:
        if task.status == RequestTaskStatus.COMPLETED:
            return True, "success"
        return False, task.status.value

    def _append_history(self, failed_list: Sequence[FailedMessageDO], outcome: str, task_id: Optional[str]):
        entry = {
            "timestamp": utc_now().isoformat(),
            "outcome": outcome,
            "task_id": task_id,
        }
        with self.store.transaction():
            for failed in failed_list:
                history = list(failed.retry_history) + [entry]
                if not self.store.failed.record_retry(failed.id, history):
                    raise PersistenceError(f"Failed to record retry of failed message {failed.id}")
                failed.retry_history = history
                failed.retried = True

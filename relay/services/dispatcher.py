"""Task dispatcher - drives request tasks through the remote completion backend."""

import asyncio
import uuid
from typing import Awaitable, Callable, List, Optional, Sequence, Set

from ..clients.completion_backend import CompletionBackend, BackendReply
from ..db.store import ConversationStore
from ..db.database_models.failed_message import FailedMessageDO
from ..db.database_models.message import MessageDO
from ..db.database_models.request_task import RequestTaskDO
from ..exceptions import (
    BackendTimeoutError,
    ConfigurationMissingError,
    PersistenceError,
    RequestTaskNotFoundError
)
from ..models.delivery import DeliveryConfig
from ..models.enums import MessageRole, MessageStatus, RequestTaskStatus
from ..models.events import ReplyEvent, ErrorEvent
from ..utils.clock import utc_now
from ..utils.keyed_lock import KeyedLock
from ..utils.logger import get_app_logger
from .settings_provider import SettingsProvider

ReplyListener = Callable[[ReplyEvent], Awaitable[None]]
ErrorListener = Callable[[ErrorEvent], Awaitable[None]]


class TaskDispatcher:
    """
    The only component that calls the completion backend.

    Sealed tasks are dispatched on dispatcher-owned asyncio tasks, so a slow
    backend never blocks ingestion. Tasks of one conversation run in the
    order they were submitted; different conversations run in parallel up
    to ``max_concurrency`` backend calls.
    """

    def __init__(
        self,
        store: ConversationStore,
        settings_provider: SettingsProvider,
        backend: CompletionBackend,
        max_concurrency: int = 4
    ):
        self.store = store
        self.settings_provider = settings_provider
        self.backend = backend
        self.logger = get_app_logger()

        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._locks = KeyedLock()
        self._in_flight: Set[str] = set()
        self._scheduled: Set[asyncio.Task] = set()
        self._reply_listeners: List[ReplyListener] = []
        self._error_listeners: List[ErrorListener] = []

    def on_reply(self, listener: ReplyListener):
        """Register a coroutine called with a ReplyEvent after each stored reply."""
        self._reply_listeners.append(listener)

    def on_error(self, listener: ErrorListener):
        """Register a coroutine called with an ErrorEvent after each recorded failure."""
        self._error_listeners.append(listener)

    async def _notify(self, listeners: Sequence[Callable], event):
        for listener in listeners:
            try:
                await listener(event)
            except Exception as e:
                self.logger.error(f"Listener {listener!r} failed for task {event.task_id}: {e}", exc_info=True)

    def is_in_flight(self, task_id: str) -> bool:
        """Whether a dispatch attempt for the task is running right now."""
        return task_id in self._in_flight

    @property
    def scheduled_count(self) -> int:
        return len(self._scheduled)

    def submit(self, task: RequestTaskDO) -> asyncio.Task:
        """
        Schedule a task for dispatch in the background.

        Args:
            task: A persisted request task

        Returns:
            The asyncio task running the dispatch; its result is the task as
            stored afterwards, or None if the dispatch was aborted
        """
        runner = asyncio.create_task(self._run(task.task_id, task.conversation_id))
        self._scheduled.add(runner)
        runner.add_done_callback(self._scheduled.discard)
        return runner

    async def _run(self, task_id: str, conversation_id: str) -> Optional[RequestTaskDO]:
        async with self._locks.hold(conversation_id):
            async with self._semaphore:
                try:
                    return await self.process(task_id)
                except ConfigurationMissingError:
                    self.logger.warning(f"No active delivery configuration, task {task_id} left for later")
                except Exception as e:
                    self.logger.error(f"Dispatch of task {task_id} aborted: {e}", exc_info=True)
        return None

    async def process(self, task_id: str) -> RequestTaskDO:
        """
        Dispatch one request task to the backend.

        Only pending and retrying tasks are sent; any other status is left
        untouched. Backend faults are recorded on the task and as a failed
        message instead of being raised.

        Args:
            task_id: Request task identifier

        Returns:
            The task as stored after the attempt

        Raises:
            ConfigurationMissingError: If no delivery configuration is active
            RequestTaskNotFoundError: If the task does not exist
        """
        config = self.settings_provider.get_active()

        task = self.store.tasks.get_by_task_id(task_id)
        if task is None:
            raise RequestTaskNotFoundError(task_id)

        if task_id in self._in_flight:
            self.logger.warning(f"Task {task_id} is already being dispatched, skipping")
            return task

        if not task.status.is_dispatchable:
            self.logger.info(f"Task {task_id} is {task.status.value}, nothing to dispatch")
            return task

        self._in_flight.add(task_id)
        try:
            await self._dispatch(task, config)
        finally:
            self._in_flight.discard(task_id)

        return self.store.tasks.get_by_task_id(task_id) or task

    async def _dispatch(self, task: RequestTaskDO, config: DeliveryConfig):
        if not self.store.tasks.mark_processing(task.task_id, utc_now()):
            self.logger.warning(f"Task {task.task_id} could not be claimed for processing")
            return

        messages = self.store.messages.get_by_task(task.task_id)
        message_ids = [m.id for m in messages]
        remote_id = self.store.remote_conversation_id(task.conversation_id)

        self.logger.info(
            f"Dispatching task {task.task_id} ({task.message_count} messages, config {config.name})"
        )

        try:
            reply = await self.backend.send(config, task.aggregated_content, remote_id)
        except Exception as e:
            status = RequestTaskStatus.TIMEOUT if isinstance(e, BackendTimeoutError) else RequestTaskStatus.FAILED
            await self._fail(task, message_ids, e, status)
            return

        try:
            assistant = self._record_success(task, message_ids, reply)
        except Exception as e:
            self.logger.error(f"Reply for task {task.task_id} could not be stored: {e}")
            await self._fail(task, message_ids, e, RequestTaskStatus.FAILED)
            return

        await self._notify(self._reply_listeners, ReplyEvent(
            task_id=task.task_id,
            conversation_id=task.conversation_id,
            answer=reply.answer,
            message_ids=message_ids,
            reply_message_id=assistant.id,
            received_at=assistant.received_at
        ))

    def _record_success(self, task: RequestTaskDO, message_ids: Sequence[int], reply: BackendReply) -> MessageDO:
        now = utc_now()
        assistant = MessageDO(
            conversation_id=task.conversation_id,
            role=MessageRole.ASSISTANT,
            content=reply.answer,
            status=MessageStatus.RECEIVED,
            request_task_id=task.task_id,
            created_at=now,
            received_at=now,
            metadata={
                "request_task_id": task.task_id,
                "original_message_ids": list(message_ids),
                "message_count": task.message_count,
            }
        )

        with self.store.transaction():
            if not self.store.messages.mark_sent(message_ids, now):
                raise PersistenceError(f"Failed to mark messages of {task.task_id} as sent")
            if self.store.messages.add(assistant) is None:
                raise PersistenceError(f"Failed to store reply of {task.task_id}")
            if not self.store.tasks.mark_completed(task.task_id, reply.answer, now):
                raise PersistenceError(f"Failed to complete task {task.task_id}")
            if not self.store.conversations.touch(task.conversation_id, now):
                raise PersistenceError(f"Failed to touch conversation {task.conversation_id}")
            if reply.conversation_id and not self.store.conversations.set_remote_conversation_id(
                task.conversation_id, reply.conversation_id
            ):
                raise PersistenceError(f"Failed to store remote conversation id of {task.conversation_id}")

        self.logger.info(f"Task {task.task_id} completed")
        return assistant

    async def _fail(
        self,
        task: RequestTaskDO,
        message_ids: Sequence[int],
        error: Exception,
        status: RequestTaskStatus
    ):
        failed = self._record_failure(task, message_ids, error, status)
        if failed is None:
            return
        await self._notify(self._error_listeners, ErrorEvent(
            task_id=task.task_id,
            conversation_id=task.conversation_id,
            error=failed.error,
            status=status,
            message_ids=list(message_ids),
            failed_message_id=failed.id,
            attempts=failed.attempts
        ))

    def _record_failure(
        self,
        task: RequestTaskDO,
        message_ids: Sequence[int],
        error: Exception,
        status: RequestTaskStatus
    ) -> Optional[FailedMessageDO]:
        """
        Record a failed attempt on the task, its messages and a new failed message.

        If the record cannot be written the task is handed back to the status
        it was dispatched from, so the attempt counts as not having happened.
        """
        error_text = str(error) or type(error).__name__
        attempts = len(self.store.failed.list_by_task(task.task_id)) + 1
        failed = FailedMessageDO(
            conversation_id=task.conversation_id,
            error=error_text,
            attempts=attempts,
            message_id=message_ids[0] if message_ids else None,
            request_task_id=task.task_id,
            context={
                "exception_class": type(error).__name__,
                "message_ids": list(message_ids),
                "request_type": task.metadata.get("request_type", "batch"),
                "status": status.value,
            }
        )

        try:
            with self.store.transaction():
                if not self.store.tasks.mark_failed(task.task_id, error_text, utc_now(), status):
                    raise PersistenceError(f"Failed to mark task {task.task_id} as {status.value}")
                if not self.store.messages.mark_failed(message_ids, error_text):
                    raise PersistenceError(f"Failed to mark messages of {task.task_id} as failed")
                if self.store.failed.create(failed) is None:
                    raise PersistenceError(f"Failed to record failure of {task.task_id}")
        except Exception as e:
            self.logger.critical(f"Failure of task {task.task_id} could not be recorded: {e} (cause: {error_text})")
            if self.store.tasks.release(task.task_id, task.status):
                self.logger.warning(f"Task {task.task_id} handed back as {task.status.value}")
            else:
                self.logger.critical(f"Task {task.task_id} could not be released from processing")
            return None

        self.logger.warning(f"Task {task.task_id} {status.value} (attempt {attempts}): {error_text}")
        return failed

    async def push(self, conversation_id: str, text: str) -> RequestTaskDO:
        """
        Deliver one message right away as a single-message task.

        Args:
            conversation_id: Conversation ID, created on first use
            text: Message text

        Returns:
            The task as stored after the dispatch

        Raises:
            ConfigurationMissingError: If no delivery configuration is active
        """
        self.settings_provider.get_active()

        message = MessageDO(
            conversation_id=conversation_id,
            role=MessageRole.USER,
            content=text
        )
        with self.store.transaction():
            self.store.get_or_create_conversation(conversation_id)
            if self.store.messages.add(message) is None:
                raise PersistenceError(f"Failed to store message for conversation {conversation_id}")
            task = RequestTaskDO(
                task_id=f"single_{uuid.uuid4().hex}",
                conversation_id=conversation_id,
                aggregated_content=text,
                message_count=1,
                metadata={"message_ids": [message.id], "request_type": "single"}
            )
            if self.store.tasks.create(task) is None:
                raise PersistenceError(f"Failed to create request task for {conversation_id}")
            if not self.store.messages.assign_to_task([message.id], task.task_id):
                raise PersistenceError(f"Failed to assign message {message.id} to {task.task_id}")
            if not self.store.conversations.touch(conversation_id, message.created_at):
                raise PersistenceError(f"Failed to touch conversation {conversation_id}")

        await self.submit(task)
        return self.store.tasks.get_by_task_id(task.task_id) or task

    def recover_interrupted(self, limit: int = 1000) -> int:
        """
        Move tasks stuck in processing without a running attempt back to retrying.

        A task stays in processing when the process stopped during its backend
        call. Its delivery outcome is unknown, so it is sent again.

        Returns:
            Number of recovered tasks
        """
        recovered = 0
        for task in self.store.tasks.list_processing(limit=limit):
            if task.task_id in self._in_flight:
                continue
            if self.store.tasks.release(task.task_id, RequestTaskStatus.RETRYING):
                self.logger.warning(f"Task {task.task_id} was interrupted while processing, moved to retrying")
                recovered += 1
        return recovered

    def resume_pending(self, limit: int = 1000) -> List[RequestTaskDO]:
        """
        Schedule stored pending and retrying tasks, oldest first.

        Interrupted tasks are recovered first and scheduled with them.

        Returns:
            The tasks that were scheduled
        """
        self.recover_interrupted(limit=limit)
        tasks = self.store.tasks.list_pending(limit=limit, include_retrying=True)
        for task in tasks:
            self.submit(task)
        if tasks:
            self.logger.info(f"Resumed {len(tasks)} pending request tasks")
        return tasks

    async def drain(self):
        """Wait until every scheduled dispatch has finished."""
        while self._scheduled:
            await asyncio.gather(*list(self._scheduled), return_exceptions=True)

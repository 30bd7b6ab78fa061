"""Message aggregator - buffers user messages per conversation and seals batches."""

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from ..db.store import ConversationStore
from ..db.database_models.message import MessageDO
from ..db.database_models.request_task import RequestTaskDO
from ..exceptions import PersistenceError
from ..models.delivery import DeliveryConfig
from ..models.enums import MessageRole
from ..utils.clock import utc_now
from ..utils.keyed_lock import KeyedLock
from ..utils.logger import get_app_logger
from .dispatcher import TaskDispatcher
from .settings_provider import SettingsProvider

BATCH_SEPARATOR = "\n\n"


def build_aggregated_content(texts: Sequence[str]) -> str:
    """Join batch texts in arrival order."""
    return BATCH_SEPARATOR.join(texts)


def split_aggregated_content(content: str) -> List[str]:
    """Recover the ordered batch texts from aggregated content."""
    return content.split(BATCH_SEPARATOR)


def new_task_id(prefix: str = "batch") -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


@dataclass
class BufferedMessage:
    """A pending message held in a conversation buffer."""

    message_id: int
    content: str
    arrived_at: float


class MessageAggregator:
    """
    Buffers pending user messages per conversation and seals them into
    request tasks.

    A buffer is sealed when it reaches the batch threshold, when its oldest
    message has waited for the batch time window, or on a manual flush.
    Sealing empties the buffer, so the window of the next batch starts at
    its own first message. All buffer mutations of one conversation run
    under that conversation's lock.
    """

    def __init__(
        self,
        store: ConversationStore,
        settings_provider: SettingsProvider,
        dispatcher: TaskDispatcher,
        tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the aggregator.

        Args:
            store: Conversation store
            settings_provider: Source of the active delivery configuration
            dispatcher: Receives every sealed task
            tick_seconds: Longest sleep of the background timer
            clock: Monotonic clock used for batch windows
        """
        self.store = store
        self.settings_provider = settings_provider
        self.dispatcher = dispatcher
        self.tick_seconds = tick_seconds
        self.clock = clock
        self.logger = get_app_logger()

        self._buffers: Dict[str, List[BufferedMessage]] = {}
        self._locks = KeyedLock()
        self._wakeup = asyncio.Event()
        self._timer_task: Optional[asyncio.Task] = None

    async def push(self, conversation_id: str, text: str) -> MessageDO:
        """
        Store a user message and add it to the conversation's buffer.

        Seals the buffer right away once it reaches the batch threshold.

        Args:
            conversation_id: Conversation ID, created on first use
            text: Message text

        Returns:
            The stored message

        Raises:
            ConfigurationMissingError: If no delivery configuration is active
        """
        config = self.settings_provider.get_active()

        async with self._locks.hold(conversation_id):
            message = MessageDO(
                conversation_id=conversation_id,
                role=MessageRole.USER,
                content=text
            )
            with self.store.transaction():
                self.store.get_or_create_conversation(conversation_id)
                if self.store.messages.add(message) is None:
                    raise PersistenceError(f"Failed to store message for conversation {conversation_id}")
                if not self.store.conversations.touch(conversation_id, message.created_at):
                    raise PersistenceError(f"Failed to touch conversation {conversation_id}")

            buffer = self._buffers.setdefault(conversation_id, [])
            buffer.append(BufferedMessage(message.id, text, self.clock()))
            self.logger.debug(
                f"Buffered message {message.id} for {conversation_id} ({len(buffer)}/{config.batch_threshold})"
            )

            if len(buffer) >= config.batch_threshold:
                try:
                    self._seal(conversation_id, trigger="size")
                except PersistenceError as e:
                    # Messages stay buffered; the timer seals them later.
                    self.logger.error(f"Size flush of {conversation_id} failed: {e}")

        self._wakeup.set()
        return message

    def _seal(self, conversation_id: str, trigger: str) -> Optional[RequestTaskDO]:
        """
        Turn the buffer of a conversation into one pending request task.

        Caller must hold the conversation lock. The buffer is only emptied
        once the task and the message assignments are committed.
        """
        buffer = self._buffers.get(conversation_id)
        if not buffer:
            return None

        message_ids = [entry.message_id for entry in buffer]
        task = RequestTaskDO(
            task_id=new_task_id(),
            conversation_id=conversation_id,
            aggregated_content=build_aggregated_content([entry.content for entry in buffer]),
            message_count=len(buffer),
            metadata={
                "message_ids": message_ids,
                "request_type": "batch",
                "trigger": trigger,
            }
        )

        with self.store.transaction():
            if self.store.tasks.create(task) is None:
                raise PersistenceError(f"Failed to create request task for {conversation_id}")
            if not self.store.messages.assign_to_task(message_ids, task.task_id):
                raise PersistenceError(f"Failed to assign messages to task {task.task_id}")

        del self._buffers[conversation_id]
        self.logger.info(
            f"Sealed {task.message_count} messages of {conversation_id} into {task.task_id} ({trigger})"
        )

        self.dispatcher.submit(task)
        return task

    async def flush(self, conversation_id: str) -> Optional[RequestTaskDO]:
        """
        Seal the buffer of one conversation now.

        Returns:
            The new request task, or None if the buffer was empty

        Raises:
            ConfigurationMissingError: If no delivery configuration is active
        """
        self.settings_provider.get_active()
        async with self._locks.hold(conversation_id):
            return self._seal(conversation_id, trigger="manual")

    def _is_expired(self, conversation_id: str, config: DeliveryConfig, now: float) -> bool:
        buffer = self._buffers.get(conversation_id)
        if not buffer:
            return False
        return now - buffer[0].arrived_at >= config.batch_time_window

    async def flush_expired(self) -> List[RequestTaskDO]:
        """
        Seal every buffer whose oldest message has waited for the batch window.

        Returns:
            The request tasks that were created
        """
        config = self.settings_provider.find_active()
        if config is None:
            if self._buffers:
                self.logger.warning("No active delivery configuration, expired buffers are kept")
            return []

        sealed = []
        now = self.clock()
        for conversation_id in list(self._buffers):
            if not self._is_expired(conversation_id, config, now):
                continue
            async with self._locks.hold(conversation_id):
                # A size flush may have emptied the buffer while we waited.
                if not self._is_expired(conversation_id, config, now):
                    continue
                try:
                    task = self._seal(conversation_id, trigger="time")
                except PersistenceError as e:
                    self.logger.error(f"Time flush of {conversation_id} failed: {e}")
                    continue
                if task:
                    sealed.append(task)
        return sealed

    async def force_process(self) -> List[RequestTaskDO]:
        """
        Seal every non-empty buffer immediately.

        Raises:
            ConfigurationMissingError: If no delivery configuration is active
        """
        self.settings_provider.get_active()

        sealed = []
        for conversation_id in list(self._buffers):
            async with self._locks.hold(conversation_id):
                task = self._seal(conversation_id, trigger="force")
            if task:
                sealed.append(task)

        self.logger.info(f"Force processed {len(sealed)} buffers")
        return sealed

    def reset(self) -> int:
        """
        Drop every buffer without creating tasks.

        The dropped messages stay pending in the store and can be buffered
        again with :meth:`reload_pending`.

        Returns:
            Number of discarded buffered messages
        """
        discarded = sum(len(buffer) for buffer in self._buffers.values())
        self._buffers.clear()
        self.logger.info(f"Aggregator reset, {discarded} buffered messages discarded")
        return discarded

    def reload_pending(self, limit: int = 1000) -> int:
        """
        Buffer stored user messages that are pending and not in any task.

        Message age is carried over into the buffer, so messages that
        already waited longer than the batch window are sealed on the
        next timer tick.

        Returns:
            Number of messages added to buffers
        """
        buffered_ids = {
            entry.message_id
            for buffer in self._buffers.values()
            for entry in buffer
        }
        now = self.clock()
        wall_now = utc_now()

        reloaded = 0
        for message in self.store.messages.get_pending_user_messages(limit=limit):
            if message.id in buffered_ids:
                continue
            age = max((wall_now - message.created_at).total_seconds(), 0.0)
            self._buffers.setdefault(message.conversation_id, []).append(
                BufferedMessage(message.id, message.content, now - age)
            )
            reloaded += 1

        for buffer in self._buffers.values():
            buffer.sort(key=lambda entry: entry.message_id)

        if reloaded:
            self.logger.info(f"Reloaded {reloaded} pending messages into buffers")
            self._wakeup.set()
        return reloaded

    def pending_count(self, conversation_id: str) -> int:
        """Number of messages buffered for a conversation."""
        return len(self._buffers.get(conversation_id, []))

    def buffered_conversations(self) -> List[str]:
        return [cid for cid, buffer in self._buffers.items() if buffer]

    def time_until_next_flush(self, conversation_id: str) -> Optional[float]:
        """
        Seconds until the timer seals this conversation's buffer.

        Returns:
            Remaining seconds, or None if the buffer is empty or no
            configuration is active
        """
        buffer = self._buffers.get(conversation_id)
        if not buffer:
            return None
        config = self.settings_provider.find_active()
        if config is None:
            return None
        elapsed = self.clock() - buffer[0].arrived_at
        return max(config.batch_time_window - elapsed, 0.0)

    def _next_delay(self) -> float:
        delays = [self.tick_seconds]
        for conversation_id in self.buffered_conversations():
            remaining = self.time_until_next_flush(conversation_id)
            if remaining is not None:
                delays.append(remaining)
        return max(min(delays), 0.01)

    async def _run_timer(self):
        self.logger.info("Batch timer started")
        while True:
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._next_delay())
            except asyncio.TimeoutError:
                pass

            try:
                await self.flush_expired()
            except Exception as e:
                self.logger.error(f"Batch timer tick failed: {e}", exc_info=True)

    def start(self):
        """Start the background batch timer."""
        if self._timer_task and not self._timer_task.done():
            return
        self._timer_task = asyncio.create_task(self._run_timer())

    async def stop(self):
        """Stop the background batch timer."""
        if not self._timer_task:
            return
        self._timer_task.cancel()
        try:
            await self._timer_task
        except asyncio.CancelledError:
            pass
        self._timer_task = None
        self.logger.info("Batch timer stopped")

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

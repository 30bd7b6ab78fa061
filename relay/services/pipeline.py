"""Wiring of the relay pipeline."""

import time
from typing import Callable, Optional

from ..clients.completion_backend import CompletionBackend
from ..db.connection import DatabaseConnection
from ..db.store import ConversationStore
from ..exceptions import PersistenceError
from ..utils.logger import get_app_logger
from .aggregator import MessageAggregator
from .dispatcher import TaskDispatcher, ReplyListener, ErrorListener
from .maintenance import MaintenanceService
from .retry_coordinator import RetryCoordinator
from .settings_provider import SettingsProvider


class RelayPipeline:
    """Owns the store, the backend client and the pipeline services."""

    def __init__(
        self,
        settings,
        backend: Optional[CompletionBackend] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Build the pipeline.

        Args:
            settings: Application settings instance
            backend: Completion backend client, created when not given
            clock: Monotonic clock for batch windows
        """
        self.settings = settings
        self.logger = get_app_logger()

        self.db = DatabaseConnection(settings.database_path)
        self.store = ConversationStore(self.db)
        self.backend = backend or CompletionBackend()

        self.settings_provider = SettingsProvider(self.store)
        self.dispatcher = TaskDispatcher(
            self.store,
            self.settings_provider,
            self.backend,
            max_concurrency=settings.max_concurrent_dispatches
        )
        self.aggregator = MessageAggregator(
            self.store,
            self.settings_provider,
            self.dispatcher,
            tick_seconds=settings.aggregator_tick_seconds,
            clock=clock
        )
        self.retry = RetryCoordinator(self.store, self.settings_provider, self.dispatcher)
        self.maintenance = MaintenanceService(
            self.store,
            self.settings_provider,
            self.backend,
            retention_days=settings.retention_days
        )

    def on_reply(self, listener: ReplyListener):
        """Subscribe to stored backend replies."""
        self.dispatcher.on_reply(listener)

    def on_error(self, listener: ErrorListener):
        """Subscribe to recorded delivery failures."""
        self.dispatcher.on_error(listener)

    async def start(self):
        """Seed configuration, pick up unfinished work and start the batch timer."""
        config = self.settings_provider.seed_from(self.settings)
        if config is None:
            self.logger.warning("No active delivery configuration, messages cannot be pushed yet")

        self.aggregator.reload_pending()
        self.dispatcher.resume_pending()
        self.aggregator.start()

    async def shutdown(self):
        """Stop the timer, seal remaining buffers and let running dispatches finish."""
        await self.aggregator.stop()

        if self.settings_provider.find_active() is not None:
            try:
                await self.aggregator.force_process()
            except PersistenceError as e:
                self.logger.error(f"Could not seal buffers on shutdown: {e}")

        await self.dispatcher.drain()
        await self.backend.close()
        self.store.close()

"""Shared pytest fixtures."""

import asyncio
from typing import List, Optional

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from relay.api.errors import register_exception_handlers
from relay.api.v1 import conversations, tasks, failed_messages, settings as settings_api, maintenance
from relay.clients.completion_backend import BackendReply
from relay.config import Settings
from relay.db.connection import DatabaseConnection
from relay.db.store import ConversationStore
from relay.models.delivery import SaveDeliverySettingRequest
from relay.services.aggregator import MessageAggregator
from relay.services.dispatcher import TaskDispatcher
from relay.services.pipeline import RelayPipeline
from relay.services.retry_coordinator import RetryCoordinator
from relay.services.settings_provider import SettingsProvider


class FakeBackend:
    """
    Scripted stand-in for CompletionBackend.

    ``outcomes`` is consumed in order; a string is returned as the answer and
    an exception instance is raised. Once empty, every call answers
    ``"reply to: <query>"``. Setting ``gate`` to an unset asyncio.Event
    holds every call until the event is set.
    """

    def __init__(self, outcomes: Optional[list] = None):
        self.outcomes = list(outcomes or [])
        self.calls: List[dict] = []
        self.gate: Optional[asyncio.Event] = None
        self.healthy = True
        self.closed = False
        self.remote_conversation_id = "remote-1"

    async def send(self, config, query, conversation_id=None):
        self.calls.append({"config": config, "query": query, "conversation_id": conversation_id})
        if self.gate is not None:
            await self.gate.wait()
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return BackendReply(answer=outcome, conversation_id=self.remote_conversation_id)
        return BackendReply(answer=f"reply to: {query}", conversation_id=self.remote_conversation_id)

    async def check_health(self, config):
        return self.healthy

    async def close(self):
        self.closed = True

    @property
    def queries(self) -> List[str]:
        return [call["query"] for call in self.calls]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def activate_config(provider: SettingsProvider, **overrides):
    """Save and activate a delivery configuration."""
    values = dict(
        name="test",
        base_url="http://backend.test/v1",
        api_key="test-api-key-123456",
        batch_threshold=5,
        batch_time_window=30,
        request_timeout=5,
        max_retries=3,
        activate=True
    )
    values.update(overrides)
    provider.save(SaveDeliverySettingRequest(**values))
    return provider.get_active()


@pytest.fixture
def db_conn(tmp_path):
    """Provide a fresh database connection."""
    db = DatabaseConnection(str(tmp_path / "relay.db"))
    yield db
    db.close()


@pytest.fixture
def store(db_conn):
    """Provide a ConversationStore."""
    return ConversationStore(db_conn)


@pytest.fixture
def provider(store):
    """Provide a SettingsProvider without an active configuration."""
    return SettingsProvider(store)


@pytest.fixture
def config(provider):
    """Activate the default test configuration."""
    return activate_config(provider)


@pytest.fixture
def backend():
    """Provide a FakeBackend that always answers."""
    return FakeBackend()


@pytest.fixture
def clock():
    """Provide a FakeClock."""
    return FakeClock()


@pytest.fixture
async def dispatcher(store, provider, backend):
    """Provide a TaskDispatcher; waits for its dispatches on teardown."""
    dispatcher = TaskDispatcher(store, provider, backend, max_concurrency=4)
    yield dispatcher
    if backend.gate is not None:
        backend.gate.set()
    await dispatcher.drain()


@pytest.fixture
async def aggregator(store, provider, dispatcher, clock):
    """Provide a MessageAggregator on the fake clock."""
    aggregator = MessageAggregator(store, provider, dispatcher, tick_seconds=0.01, clock=clock)
    yield aggregator
    await aggregator.stop()


@pytest.fixture
def coordinator(store, provider, dispatcher):
    """Provide a RetryCoordinator."""
    return RetryCoordinator(store, provider, dispatcher)


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at a temporary database, without bootstrap delivery."""
    return Settings(
        _env_file=None,
        database_path=str(tmp_path / "api.db"),
        log_level="WARNING",
        aggregator_tick_seconds=0.01,
        backend_base_url=None,
        backend_api_key=None
    )


@pytest.fixture
async def pipeline(test_settings):
    """Provide a started RelayPipeline with a FakeBackend."""
    relay = RelayPipeline(test_settings, backend=FakeBackend())
    await relay.start()
    yield relay
    await relay.shutdown()


@pytest.fixture
async def client(pipeline):
    """Create async HTTP client against a test app wired to the pipeline."""
    modules = (conversations, tasks, failed_messages, settings_api, maintenance)
    for module in modules:
        module.pipeline = pipeline

    # Test app without lifespan, the pipeline fixture owns startup
    test_app = FastAPI(title="Conversation Relay Test")
    register_exception_handlers(test_app)
    for module in modules:
        test_app.include_router(module.router)

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    for module in modules:
        module.pipeline = None

"""Tests for ConversationRepository."""

import pytest
from datetime import datetime, timedelta

from relay.db.database_models.conversation import ConversationDO
from relay.models.enums import ConversationStatus


@pytest.fixture
def repo(store):
    """Provide a ConversationRepository."""
    return store.conversations


def _make_conv(**overrides):
    """Factory for ConversationDO with sensible defaults."""
    defaults = dict(id="c1")
    defaults.update(overrides)
    return ConversationDO(**defaults)


class TestConversationRepository:
    """Tests for ConversationRepository."""

    class TestCreate:
        """SUT: ConversationRepository.create"""

        def test_returns_true(self, repo):
            """create() should return True on success."""
            assert repo.create(_make_conv()) is True

        def test_fields_persisted(self, repo):
            """Created conversation should be retrievable with all fields."""
            repo.create(_make_conv(metadata={"source": "test"}))
            result = repo.get("c1")
            assert result is not None
            assert result.id == "c1"
            assert result.status == ConversationStatus.ACTIVE
            assert result.remote_conversation_id is None
            assert result.metadata == {"source": "test"}

        def test_duplicate_returns_false(self, repo):
            """Creating the same id twice should fail without raising."""
            repo.create(_make_conv())
            assert repo.create(_make_conv()) is False

    class TestGet:
        """SUT: ConversationRepository.get"""

        def test_not_found(self, repo):
            """get() should return None for a missing id."""
            assert repo.get("missing") is None

    class TestListAll:
        """SUT: ConversationRepository.list_all"""

        def test_most_recent_first(self, repo):
            """Conversations should be ordered by last activity, newest first."""
            now = datetime(2024, 1, 1, 12, 0, 0)
            repo.create(_make_conv(id="old", last_active=now - timedelta(hours=1)))
            repo.create(_make_conv(id="new", last_active=now))
            assert [c.id for c in repo.list_all()] == ["new", "old"]

        def test_status_filter(self, repo):
            """Only conversations in the given status should be returned."""
            repo.create(_make_conv(id="a"))
            repo.create(_make_conv(id="b", status=ConversationStatus.CLOSED))
            result = repo.list_all(ConversationStatus.CLOSED)
            assert [c.id for c in result] == ["b"]

    class TestUpdates:
        """SUT: ConversationRepository.touch / update_status / set_remote_conversation_id"""

        def test_touch(self, repo):
            """touch() should record the given timestamp."""
            repo.create(_make_conv(last_active=datetime(2024, 1, 1)))
            when = datetime(2024, 6, 1, 8, 30)
            assert repo.touch("c1", when) is True
            assert repo.get("c1").last_active == when

        def test_update_status(self, repo):
            """update_status() should change the lifecycle status."""
            repo.create(_make_conv())
            assert repo.update_status("c1", ConversationStatus.ARCHIVED) is True
            assert repo.get("c1").status == ConversationStatus.ARCHIVED

        def test_set_remote_conversation_id(self, repo):
            """The backend conversation id should be stored."""
            repo.create(_make_conv())
            assert repo.set_remote_conversation_id("c1", "remote-1") is True
            assert repo.get("c1").remote_conversation_id == "remote-1"

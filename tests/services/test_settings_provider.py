"""Tests for SettingsProvider."""

import pytest
from pydantic import ValidationError

from relay.config import Settings
from relay.exceptions import ConfigurationMissingError, NotFoundError
from relay.models.delivery import SaveDeliverySettingRequest

from conftest import activate_config


class TestSettingsProvider:
    """Tests for SettingsProvider."""

    class TestGetActive:
        """SUT: SettingsProvider.get_active"""

        def test_missing(self, provider):
            """No active configuration should raise ConfigurationMissingError."""
            with pytest.raises(ConfigurationMissingError):
                provider.get_active()

        def test_snapshot(self, provider):
            """The active configuration should be returned as a frozen snapshot."""
            activate_config(provider, batch_threshold=2, max_retries=1)
            config = provider.get_active()
            assert config.batch_threshold == 2
            assert config.max_retries == 1
            with pytest.raises(ValidationError):
                config.batch_threshold = 10

        def test_snapshot_not_affected_by_later_changes(self, provider):
            """A snapshot taken earlier should keep its values."""
            before = activate_config(provider, batch_threshold=2)
            activate_config(provider, batch_threshold=7)
            assert before.batch_threshold == 2
            assert provider.get_active().batch_threshold == 7

    class TestSave:
        """SUT: SettingsProvider.save"""

        def test_without_activation(self, provider):
            """Saving without activate should leave nothing active."""
            provider.save(SaveDeliverySettingRequest(name="a", base_url="http://x", api_key="k"))
            assert provider.find_active() is None
            assert [s.name for s in provider.list_all()] == ["a"]

        def test_update_existing(self, provider):
            """Saving an existing name should update it instead of duplicating."""
            activate_config(provider, name="a", request_timeout=5)
            activate_config(provider, name="a", request_timeout=9)
            assert len(provider.list_all()) == 1
            assert provider.get_active().request_timeout == 9

    class TestActivate:
        """SUT: SettingsProvider.activate"""

        def test_single_active(self, provider):
            """Activating one configuration should deactivate the others."""
            activate_config(provider, name="a")
            provider.save(SaveDeliverySettingRequest(name="b", base_url="http://b", api_key="k"))
            config = provider.activate("b")
            assert config.name == "b"
            active = [s.name for s in provider.list_all() if s.is_active]
            assert active == ["b"]

        def test_unknown(self, provider):
            """Activating an unknown name should raise NotFoundError."""
            with pytest.raises(NotFoundError):
                provider.activate("missing")

    class TestSeedFrom:
        """SUT: SettingsProvider.seed_from"""

        def test_seeds_when_empty(self, provider):
            """Bootstrap settings should be stored and activated."""
            settings = Settings(
                _env_file=None,
                delivery_name="env",
                backend_base_url="http://env.test",
                backend_api_key="env-key",
                batch_threshold=3
            )
            config = provider.seed_from(settings)
            assert config.name == "env"
            assert config.batch_threshold == 3

        def test_keeps_existing_active(self, provider):
            """An existing active configuration should win over the environment."""
            activate_config(provider, name="stored")
            settings = Settings(_env_file=None, backend_base_url="http://env.test", backend_api_key="k")
            assert provider.seed_from(settings).name == "stored"
            assert len(provider.list_all()) == 1

        def test_no_bootstrap(self, provider):
            """Without backend url and key nothing should be seeded."""
            settings = Settings(_env_file=None, backend_base_url=None, backend_api_key=None)
            assert provider.seed_from(settings) is None
            assert provider.list_all() == []

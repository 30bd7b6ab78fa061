"""Delivery configuration provider."""

from typing import List, Optional

from ..db.store import ConversationStore
from ..db.database_models.delivery_setting import DeliverySettingDO
from ..exceptions import ConfigurationMissingError, NotFoundError, PersistenceError
from ..models.delivery import DeliveryConfig, SaveDeliverySettingRequest
from ..utils.logger import get_app_logger


class SettingsProvider:
    """Supplies the single active delivery configuration as an immutable snapshot."""

    def __init__(self, store: ConversationStore):
        self.store = store
        self.logger = get_app_logger()

    @staticmethod
    def _to_config(setting: DeliverySettingDO) -> DeliveryConfig:
        return DeliveryConfig(
            name=setting.name,
            base_url=setting.base_url,
            api_key=setting.api_key,
            batch_threshold=setting.batch_threshold,
            batch_time_window=setting.batch_time_window,
            request_timeout=setting.request_timeout,
            max_retries=setting.max_retries
        )

    def get_active(self) -> DeliveryConfig:
        """
        Get a snapshot of the active configuration.

        Raises:
            ConfigurationMissingError: If no configuration is active
        """
        setting = self.store.settings.find_active()
        if setting is None:
            raise ConfigurationMissingError()
        return self._to_config(setting)

    def find_active(self) -> Optional[DeliveryConfig]:
        """Like :meth:`get_active`, but returns None when nothing is active."""
        setting = self.store.settings.find_active()
        return self._to_config(setting) if setting else None

    def list_all(self) -> List[DeliverySettingDO]:
        return self.store.settings.list_all()

    def save(self, request: SaveDeliverySettingRequest) -> DeliverySettingDO:
        """
        Create or update a configuration by name, optionally activating it.

        Raises:
            PersistenceError: If the configuration could not be written
        """
        setting = DeliverySettingDO(
            name=request.name,
            base_url=request.base_url,
            api_key=request.api_key,
            batch_threshold=request.batch_threshold,
            batch_time_window=request.batch_time_window,
            request_timeout=request.request_timeout,
            max_retries=request.max_retries
        )

        with self.store.transaction():
            existing = self.store.settings.get_by_name(request.name)
            if existing:
                if not self.store.settings.update(setting):
                    raise PersistenceError(f"Failed to update delivery setting {request.name}")
            elif self.store.settings.create(setting) is None:
                raise PersistenceError(f"Failed to create delivery setting {request.name}")

            if request.activate:
                self._activate(request.name)

        self.logger.info(f"Saved delivery setting {request.name} (active={request.activate})")
        return self.store.settings.get_by_name(request.name)

    def activate(self, name: str) -> DeliveryConfig:
        """
        Make one configuration the active one.

        Raises:
            NotFoundError: If no configuration has that name
        """
        if self.store.settings.get_by_name(name) is None:
            raise NotFoundError(f"Delivery setting not found: {name}")

        with self.store.transaction():
            self._activate(name)

        self.logger.info(f"Activated delivery setting {name}")
        return self.get_active()

    def _activate(self, name: str):
        if not self.store.settings.deactivate_all():
            raise PersistenceError("Failed to deactivate delivery settings")
        if not self.store.settings.activate(name):
            raise PersistenceError(f"Failed to activate delivery setting {name}")

    def seed_from(self, settings) -> Optional[DeliveryConfig]:
        """
        Store the bootstrap configuration from process settings.

        Only runs when the backend url and key are set and the store has no
        active configuration yet.
        """
        active = self.find_active()
        if active is not None or not settings.has_bootstrap_delivery():
            return active

        self.save(SaveDeliverySettingRequest(
            name=settings.delivery_name,
            base_url=settings.backend_base_url,
            api_key=settings.backend_api_key,
            batch_threshold=settings.batch_threshold,
            batch_time_window=settings.batch_time_window,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            activate=True
        ))
        self.logger.info(f"Seeded delivery setting {settings.delivery_name} from environment")
        return self.get_active()

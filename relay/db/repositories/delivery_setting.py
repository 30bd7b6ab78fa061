"""Delivery setting repository for database operations."""

from typing import Optional, List

from .base import BaseRepository
from ..database_models.delivery_setting import DeliverySettingDO


class DeliverySettingRepository(BaseRepository):
    """Repository for DeliverySetting CRUD operations."""

    _COLUMNS = (
        "id, name, base_url, api_key, batch_threshold, batch_time_window, "
        "request_timeout, max_retries, is_active, created_at"
    )

    def _to_do(self, row) -> DeliverySettingDO:
        return DeliverySettingDO(
            id=row[0],
            name=row[1],
            base_url=row[2],
            api_key=row[3],
            batch_threshold=row[4],
            batch_time_window=row[5],
            request_timeout=row[6],
            max_retries=row[7],
            is_active=bool(row[8]),
            created_at=row[9]
        )

    def create(self, setting: DeliverySettingDO) -> Optional[int]:
        """
        Create a delivery setting record.

        Returns:
            Record ID if successful, None otherwise
        """
        try:
            result = self.conn.execute("""
                INSERT INTO delivery_settings (
                    id, name, base_url, api_key, batch_threshold, batch_time_window,
                    request_timeout, max_retries, is_active, created_at
                )
                VALUES (nextval('delivery_settings_id_seq'), ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
            """, [
                setting.name,
                setting.base_url,
                setting.api_key,
                setting.batch_threshold,
                setting.batch_time_window,
                setting.request_timeout,
                setting.max_retries,
                setting.is_active,
                setting.created_at
            ]).fetchone()

            record_id = result[0] if result else None
            if record_id:
                setting.id = record_id
                self.logger.info(f"Created delivery setting: {setting.name}")
            return record_id
        except Exception as e:
            self.logger.error(f"Failed to create delivery setting: {e}")
            return None

    def update(self, setting: DeliverySettingDO) -> bool:
        """Overwrite the tunable fields of an existing setting, matched by name."""
        try:
            self.conn.execute("""
                UPDATE delivery_settings
                SET base_url = ?, api_key = ?, batch_threshold = ?, batch_time_window = ?,
                    request_timeout = ?, max_retries = ?
                WHERE name = ?
            """, [
                setting.base_url,
                setting.api_key,
                setting.batch_threshold,
                setting.batch_time_window,
                setting.request_timeout,
                setting.max_retries,
                setting.name
            ])
            return True
        except Exception as e:
            self.logger.error(f"Failed to update delivery setting {setting.name}: {e}")
            return False

    def get_by_name(self, name: str) -> Optional[DeliverySettingDO]:
        """Get delivery setting by name."""
        try:
            result = self.conn.execute(f"""
                SELECT {self._COLUMNS} FROM delivery_settings WHERE name = ?
            """, [name]).fetchone()
            return self._to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get delivery setting {name}: {e}")
            return None

    def find_active(self) -> Optional[DeliverySettingDO]:
        """Get the active delivery setting, if any."""
        try:
            result = self.conn.execute(f"""
                SELECT {self._COLUMNS}
                FROM delivery_settings
                WHERE is_active = TRUE
                ORDER BY id DESC
                LIMIT 1
            """).fetchone()
            return self._to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get active delivery setting: {e}")
            return None

    def list_all(self) -> List[DeliverySettingDO]:
        """List all delivery settings."""
        try:
            results = self.conn.execute(f"""
                SELECT {self._COLUMNS} FROM delivery_settings ORDER BY id ASC
            """).fetchall()
            return [self._to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list delivery settings: {e}")
            return []

    def deactivate_all(self) -> bool:
        """Clear the active flag on every setting."""
        try:
            self.conn.execute("UPDATE delivery_settings SET is_active = FALSE WHERE is_active = TRUE")
            return True
        except Exception as e:
            self.logger.error(f"Failed to deactivate delivery settings: {e}")
            return False

    def activate(self, name: str) -> bool:
        """
        Set the active flag on one setting.

        Returns:
            True if a setting with that name exists and was activated
        """
        try:
            result = self.conn.execute("""
                UPDATE delivery_settings SET is_active = TRUE WHERE name = ? RETURNING id
            """, [name]).fetchall()
            return len(result) == 1
        except Exception as e:
            self.logger.error(f"Failed to activate delivery setting {name}: {e}")
            return False

"""Delivery setting database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...utils.clock import utc_now


@dataclass
class DeliverySettingDO:
    """Delivery setting data object - maps to delivery_settings table."""

    name: str
    base_url: str
    api_key: str
    batch_threshold: int = 5
    batch_time_window: int = 30
    request_timeout: int = 30
    max_retries: int = 3
    is_active: bool = False
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utc_now)

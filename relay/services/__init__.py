"""Services package."""

from .settings_provider import SettingsProvider
from .dispatcher import TaskDispatcher
from .aggregator import MessageAggregator, BATCH_SEPARATOR, split_aggregated_content
from .retry_coordinator import RetryCoordinator
from .maintenance import MaintenanceService
from .pipeline import RelayPipeline

__all__ = [
    "SettingsProvider",
    "TaskDispatcher",
    "MessageAggregator",
    "BATCH_SEPARATOR",
    "split_aggregated_content",
    "RetryCoordinator",
    "MaintenanceService",
    "RelayPipeline",
]

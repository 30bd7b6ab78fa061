"""Maintenance service - retention cleanup and health reporting."""

from typing import Optional

from ..clients.completion_backend import CompletionBackend
from ..db.store import ConversationStore
from ..models.enums import MessageStatus
from ..models.maintenance import HealthCheck, HealthReport, CleanupResponse
from ..utils.logger import get_app_logger
from .settings_provider import SettingsProvider

PENDING_MESSAGES_WARNING = 100
FAILED_MESSAGES_WARNING = 50


class MaintenanceService:
    """Housekeeping around the pipeline's records."""

    def __init__(
        self,
        store: ConversationStore,
        settings_provider: SettingsProvider,
        backend: CompletionBackend,
        retention_days: int = 30
    ):
        self.store = store
        self.settings_provider = settings_provider
        self.backend = backend
        self.retention_days = retention_days
        self.logger = get_app_logger()

    def cleanup(self, days: Optional[int] = None) -> CleanupResponse:
        """
        Delete terminal request tasks and failed message records older than ``days``.

        Args:
            days: Age threshold, defaults to the configured retention

        Returns:
            CleanupResponse with the number of deleted records
        """
        if days is None:
            days = self.retention_days
        # Records first, so tasks they kept alive can go in the same run.
        failed = self.store.failed.cleanup_old_messages(days)
        tasks = self.store.tasks.cleanup_old_tasks(days)
        self.logger.info(f"Retention cleanup ({days} days): {tasks} tasks, {failed} failed messages")
        return CleanupResponse(days=days, request_tasks=tasks, failed_messages=failed)

    async def health(self) -> HealthReport:
        """
        Check configuration, database, backend and queue pressure.

        Returns:
            HealthReport; ``unhealthy`` if any check errored, ``degraded`` if
            any check warned
        """
        checks = []

        config = self.settings_provider.find_active()
        if config is None:
            checks.append(HealthCheck(name="configuration", status="error", detail="No active delivery configuration"))
        else:
            checks.append(HealthCheck(name="configuration", status="ok", detail=f"Active configuration: {config.name}"))

        if self.store.ping():
            checks.append(HealthCheck(name="database", status="ok", detail="Database reachable"))
        else:
            checks.append(HealthCheck(name="database", status="error", detail="Database not reachable"))

        if config is not None:
            if await self.backend.check_health(config):
                checks.append(HealthCheck(name="backend", status="ok", detail=f"Backend reachable at {config.base_url}"))
            else:
                checks.append(HealthCheck(name="backend", status="error", detail=f"Backend not reachable at {config.base_url}"))

        pending = self.store.messages.count_by_status(MessageStatus.PENDING)
        checks.append(HealthCheck(
            name="pending_messages",
            status="warning" if pending > PENDING_MESSAGES_WARNING else "ok",
            detail=f"{pending} pending messages",
            value=pending
        ))

        unretried = self.store.failed.count_unretried()
        checks.append(HealthCheck(
            name="failed_messages",
            status="warning" if unretried > FAILED_MESSAGES_WARNING else "ok",
            detail=f"{unretried} unretried failed messages",
            value=unretried
        ))

        statuses = {check.status for check in checks}
        if "error" in statuses:
            overall = "unhealthy"
        elif "warning" in statuses:
            overall = "degraded"
        else:
            overall = "healthy"

        return HealthReport(status=overall, checks=checks)

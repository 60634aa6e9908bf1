"""Retention Sweeper: remove expired records and repair quota overruns."""

from __future__ import annotations

import time
from datetime import timedelta
from typing import TYPE_CHECKING

from notification_service.core.database import utcnow
from notification_service.core.services import BaseService
from notification_service.features.notifications.metrics import notifications_cleanup_total

if TYPE_CHECKING:
    from datetime import datetime

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.quota import QuotaEnforcer
    from notification_service.features.notifications.store import DeliveryRecordStore


class RetentionSweeper(BaseService):
    """Periodic and on-demand retention.

    Scheduled daily by ``workers.scheduler``; also run from the
    ``notification-service sweep`` and ``cleanup`` commands.
    """

    def __init__(
        self,
        store: DeliveryRecordStore,
        quota: QuotaEnforcer,
        settings: NotificationSettings,
    ) -> None:
        super().__init__()
        self._store = store
        self._quota = quota
        self._settings = settings

    async def sweep(self, now: datetime | None = None) -> int:
        """Delete every record whose ``expiresAt`` has passed; returns the count.

        Users left above ``max_per_user`` by concurrent intakes are trimmed
        back to the cap afterwards.
        """
        start_time = time.time()
        cutoff = now or utcnow()

        deleted = await self._store.delete_expired(cutoff)
        if deleted:
            notifications_cleanup_total.inc(deleted)

        trimmed = 0
        for user_id in await self._store.users_over_quota(self._settings.max_per_user):
            result = await self._quota.trim(user_id, self._settings.max_per_user)
            if result.is_ok:
                trimmed += result.value

        self.logger.info(
            f"Retention sweep removed {deleted} expired notifications",
            extra={
                "deleted": deleted,
                "quota_trimmed": trimmed,
                "cutoff": cutoff.isoformat(),
                "duration_ms": int((time.time() - start_time) * 1000),
                "operation": "sweeper.sweep",
            },
        )
        return deleted

    async def cleanup(
        self,
        older_than_days: int = 30,
        *,
        keep_read: bool = False,
        dry_run: bool = False,
    ) -> int:
        """Delete records created more than ``older_than_days`` ago.

        With ``keep_read`` read records survive; with ``dry_run`` nothing is
        deleted and the count of matching records is returned.
        """
        if older_than_days < 0:
            msg = "older_than_days must not be negative"
            raise ValueError(msg)

        cutoff = utcnow() - timedelta(days=older_than_days)
        affected = await self._store.cleanup(cutoff, keep_read=keep_read, dry_run=dry_run)
        if affected and not dry_run:
            notifications_cleanup_total.inc(affected)

        self.logger.info(
            f"Cleanup {'would remove' if dry_run else 'removed'} {affected} notifications "
            f"older than {older_than_days} days",
            extra={
                "affected": affected,
                "older_than_days": older_than_days,
                "keep_read": keep_read,
                "dry_run": dry_run,
                "operation": "sweeper.cleanup",
            },
        )
        return affected

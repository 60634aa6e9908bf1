"""Quota Enforcer: keep each user under the stored-notification cap."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notification_service.core.database import RepositoryError
from notification_service.core.results import Err, ErrorKind, Ok, Result
from notification_service.features.notifications.metrics import (
    notifications_errors_total,
    notifications_quota_evictions_total,
)

if TYPE_CHECKING:
    from notification_service.features.notifications.store import DeliveryRecordStore

logger = logging.getLogger(__name__)


class QuotaEnforcer:
    """Evict a user's oldest records so one more insert stays within the cap.

    Eviction is strictly by age. Concurrent intakes for the same user may
    briefly exceed the cap; the next enforcement or the retention sweep
    repairs it.
    """

    def __init__(self, store: DeliveryRecordStore) -> None:
        self._store = store

    async def enforce(self, user_id: str, max_per_user: int) -> Result[int]:
        """Make room for one new record; returns the number evicted."""
        try:
            count = await self._store.count_for_user(user_id)
            if count < max_per_user:
                return Ok(0)
            evicted = await self._store.evict_oldest(user_id, count - max_per_user + 1)
        except RepositoryError as e:
            notifications_errors_total.labels(channel="quota", kind=ErrorKind.QUOTA_EXCEEDED.value).inc()
            logger.error(
                f"Quota enforcement failed for {user_id}: {e}",
                extra={"user_id": user_id, "operation": "quota.enforce"},
            )
            return Err(ErrorKind.QUOTA_EXCEEDED, f"Could not enforce quota for {user_id}", {"user_id": user_id})

        if evicted:
            notifications_quota_evictions_total.inc(len(evicted))
            logger.info(
                f"Evicted {len(evicted)} notifications for {user_id} (cap {max_per_user})",
                extra={
                    "user_id": user_id,
                    "evicted_ids": evicted,
                    "max_per_user": max_per_user,
                    "operation": "quota.enforce",
                },
            )
        return Ok(len(evicted))

    async def trim(self, user_id: str, max_per_user: int) -> Result[int]:
        """Bring a user down to exactly the cap (used by the retention sweep)."""
        try:
            count = await self._store.count_for_user(user_id)
            if count <= max_per_user:
                return Ok(0)
            evicted = await self._store.evict_oldest(user_id, count - max_per_user)
        except RepositoryError as e:
            logger.error(
                f"Quota trim failed for {user_id}: {e}",
                extra={"user_id": user_id, "operation": "quota.trim"},
            )
            return Err(ErrorKind.QUOTA_EXCEEDED, f"Could not trim {user_id} to quota", {"user_id": user_id})

        notifications_quota_evictions_total.inc(len(evicted))
        return Ok(len(evicted))

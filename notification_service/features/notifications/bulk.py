"""Bulk Orchestrator: chunked intake with per-item failure isolation."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from notification_service.core.results import Err, ErrorKind, Ok, Result
from notification_service.core.services import BaseService
from notification_service.features.notifications.metrics import notifications_bulk_total
from notification_service.features.notifications.schemas import (
    BulkItemResult,
    BulkResult,
    DispatchResult,
    NotificationIntake,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.dispatcher import NotificationDispatcher


class BulkOrchestrator(BaseService):
    """Dispatch many intakes under one batch id.

    Intakes run in chunks of ``batch_size``: items of a chunk run
    concurrently, chunks run one after another. Every item is stamped with
    ``grouping.batchId`` and a failing item never stops the batch.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        settings: NotificationSettings,
        *,
        batch_id_factory: Callable[[], str] = lambda: f"batch_{uuid.uuid4().hex}",
    ) -> None:
        super().__init__()
        self._dispatcher = dispatcher
        self._settings = settings
        self._new_batch_id = batch_id_factory

    async def dispatch_bulk(
        self,
        intakes: Sequence[NotificationIntake | Mapping[str, Any]],
        *,
        batch_id: str | None = None,
    ) -> BulkResult:
        batch_id = batch_id or self._new_batch_id()
        size = self._settings.batch_size
        results: list[BulkItemResult] = []

        for offset in range(0, len(intakes), size):
            chunk = intakes[offset : offset + size]
            outcomes = await asyncio.gather(
                *(self._dispatch_one(item, batch_id) for item in chunk),
                return_exceptions=True,
            )
            for index, outcome in enumerate(outcomes, start=offset):
                results.append(self._item_result(index, outcome))

            self._lazy.debug(lambda o=offset, c=len(chunk): f"bulk.chunk: {batch_id} items {o}..{o + c - 1}")

        successful = sum(1 for r in results if r.ok)
        failed = len(results) - successful
        notifications_bulk_total.labels(result="successful").inc(successful)
        notifications_bulk_total.labels(result="failed").inc(failed)

        self.logger.info(
            f"Bulk batch {batch_id}: {successful}/{len(results)} dispatched",
            extra={
                "batch_id": batch_id,
                "total": len(results),
                "successful": successful,
                "failed": failed,
                "operation": "bulk.dispatch",
            },
        )
        return BulkResult(
            batch_id=batch_id,
            total=len(results),
            successful=successful,
            failed=failed,
            results=results,
        )

    async def _dispatch_one(
        self,
        item: NotificationIntake | Mapping[str, Any],
        batch_id: str,
    ) -> Result[DispatchResult]:
        try:
            intake = item if isinstance(item, NotificationIntake) else NotificationIntake.model_validate(item)
        except ValidationError as e:
            return Err(
                ErrorKind.VALIDATION,
                "Invalid notification intake",
                {"errors": e.errors(include_url=False, include_context=False)},
            )

        stamped = intake.model_copy(update={"grouping": intake.grouping.model_copy(update={"batch_id": batch_id})})
        return await self._dispatcher.dispatch(stamped)

    def _item_result(self, index: int, outcome: Result[DispatchResult] | BaseException) -> BulkItemResult:
        if isinstance(outcome, BaseException):
            self.logger.error(
                f"Bulk item {index} raised {type(outcome).__name__}: {outcome}",
                extra={"index": index, "operation": "bulk.dispatch"},
            )
            return BulkItemResult(index=index, ok=False, error_kind=ErrorKind.INTERNAL.value, error=str(outcome))
        if isinstance(outcome, Ok):
            value = outcome.value
            return BulkItemResult(
                index=index,
                ok=True,
                notification_id=value.notification_id,
                status=value.status,
                saved_to_database=value.saved_to_database,
            )
        return BulkItemResult(
            index=index,
            ok=False,
            notification_id=outcome.details.get("notification_id"),
            error_kind=outcome.kind.value,
            error=outcome.message,
        )

"""One driver call with timeout, classification and metrics.

Shared by the dispatcher (first attempts) and the retry controller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from notification_service.core.results import Err, Result, transient
from notification_service.features.notifications.channels import classify_exception
from notification_service.features.notifications.metrics import (
    notification_delivery_duration_seconds,
    notifications_delivered_total,
    notifications_errors_total,
)
from notification_service.features.notifications.store import ChannelPatch

if TYPE_CHECKING:
    from notification_service.features.notifications.channels import ChannelDriver, DeliveryReceipt
    from notification_service.features.notifications.templates import RenderedPayload

logger = logging.getLogger(__name__)


async def attempt_delivery(
    driver: ChannelDriver,
    user_id: str,
    payload: RenderedPayload,
) -> Result[DeliveryReceipt]:
    """Call ``driver.send`` under its timeout and record the outcome metrics.

    Never raises for delivery problems; cancellation still propagates.
    """
    channel = driver.channel.value
    start_time = time.time()
    try:
        result = await asyncio.wait_for(driver.send(user_id, payload), timeout=driver.timeout)
    except TimeoutError:
        result = transient(f"{channel} send timed out after {driver.timeout}s", channel=channel)
    except Exception as exc:
        logger.exception(
            f"Unexpected {channel} driver error for {payload.notification_id}",
            extra={"notification_id": payload.notification_id, "channel": channel, "operation": "delivery.attempt"},
        )
        result = classify_exception(exc, channel=channel)

    notification_delivery_duration_seconds.labels(channel=channel).observe(time.time() - start_time)
    if result.is_ok:
        notifications_delivered_total.labels(channel=channel, status="success").inc()
    else:
        notifications_delivered_total.labels(channel=channel, status="failure").inc()
        notifications_errors_total.labels(channel=channel, kind=result.kind.value).inc()
        logger.warning(
            f"{channel} delivery of {payload.notification_id} failed: {result.message}",
            extra={
                "notification_id": payload.notification_id,
                "user_id": user_id,
                "channel": channel,
                "kind": result.kind.value,
                "operation": "delivery.attempt",
            },
        )
    return result


def outcome_patch(result: Result[DeliveryReceipt], *, final_attempt: bool) -> ChannelPatch:
    """Channel patch for an attempt outcome.

    Failures are terminal when not retryable or when no attempts remain.
    """
    if isinstance(result, Err):
        return ChannelPatch.failure(result.message, terminal=not result.is_retryable or final_attempt)
    return ChannelPatch.success(result.value.external_message_id)

"""Notification dispatch engine.

This feature accepts notification intakes and fans them out across the
channels a recipient allows:
- Preference resolution with quiet hours and a per-user cache
- Per-user quota with oldest-first eviction
- Durable delivery records with per-channel outcomes
- Pluggable channel drivers (realtime, email, push, SMS, in-app)
- Exponential backoff retries owned per (notification, channel)
- Read/acknowledge tracking, retention sweep and bulk intake

Architecture:
    - Models: Notification, NotificationChannel, NotificationInteraction
    - Store: DeliveryRecordStore (atomic per-record operations)
    - Channels: ChannelRegistry of ChannelDriver implementations
    - Dispatcher: intake → record → concurrent first attempts → retries
    - Service: NotificationService facade used by the CLI and front-ends

Example:
    ```python
    result = await service.dispatch(
        {
            "userId": "u1",
            "type": "match",
            "title": "New Match",
            "message": "You matched with Alex",
            "channels": {"email": True, "inApp": True},
        }
    )
    if result.is_ok:
        await service.mark_read("u1", result.value.notification_id)
    ```
"""

from notification_service.features.notifications.acknowledgements import AcknowledgementService
from notification_service.features.notifications.bulk import BulkOrchestrator
from notification_service.features.notifications.dates import DateDetails, DateParticipant
from notification_service.features.notifications.dispatcher import NotificationDispatcher
from notification_service.features.notifications.models import (
    Channel,
    InteractionType,
    Notification,
    NotificationStatus,
    NotificationType,
    Priority,
)
from notification_service.features.notifications.preferences import (
    InMemoryPreferenceSource,
    PreferenceResolver,
    UserPreferences,
)
from notification_service.features.notifications.quota import QuotaEnforcer
from notification_service.features.notifications.retry import RetryController, RetryJob
from notification_service.features.notifications.schemas import (
    BulkResult,
    DispatchResult,
    HealthSnapshot,
    NotificationIntake,
    NotificationView,
)
from notification_service.features.notifications.service import NotificationService
from notification_service.features.notifications.store import DeliveryRecordStore
from notification_service.features.notifications.sweeper import RetentionSweeper

__all__ = [
    "AcknowledgementService",
    "BulkOrchestrator",
    "BulkResult",
    "Channel",
    "DateDetails",
    "DateParticipant",
    "DeliveryRecordStore",
    "DispatchResult",
    "HealthSnapshot",
    "InMemoryPreferenceSource",
    "InteractionType",
    "Notification",
    "NotificationDispatcher",
    "NotificationIntake",
    "NotificationService",
    "NotificationStatus",
    "NotificationType",
    "NotificationView",
    "Priority",
    "PreferenceResolver",
    "QuotaEnforcer",
    "RetentionSweeper",
    "RetryController",
    "RetryJob",
    "UserPreferences",
]

"""Prometheus metrics for the notification dispatch engine.

Metrics are registered on the default ``prometheus_client`` registry;
exposition is left to whatever process embeds the engine.

Usage:
    from notification_service.features.notifications.metrics import (
        notifications_created_total,
        notifications_delivered_total,
    )

    notifications_created_total.labels(type="match", priority="normal").inc()
    notifications_delivered_total.labels(channel="email", status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Intake Metrics
# =============================================================================

notifications_created_total = Counter(
    "notifications_created_total",
    "Total number of notifications accepted for dispatch",
    labelnames=["type", "priority"],
)
"""
Counter for accepted intakes, durable or delivery-only.

Labels:
    type: Notification type (match, message, system, ...)
    priority: Priority level (low, normal, high, urgent)
"""

notification_creation_duration_seconds = Histogram(
    "notification_creation_duration_seconds",
    "Time from intake to first-attempt completion in seconds",
    labelnames=["type", "priority"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# =============================================================================
# Delivery Metrics
# =============================================================================

notifications_delivered_total = Counter(
    "notifications_delivered_total",
    "Total number of channel delivery attempts by outcome",
    labelnames=["channel", "status"],
)
"""
Counter for per-channel attempts, first attempts and retries alike.

Labels:
    channel: Delivery channel (push, email, sms, realtime)
    status: success or failure
"""

notification_delivery_duration_seconds = Histogram(
    "notification_delivery_duration_seconds",
    "Channel driver call duration in seconds",
    labelnames=["channel"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

notifications_errors_total = Counter(
    "notifications_errors_total",
    "Total number of notification errors by channel and kind",
    labelnames=["channel", "kind"],
)
"""
Counter for classified failures.

Labels:
    channel: Delivery channel, or "store" / "quota" for engine-side errors
    kind: Error kind (transient_delivery, permanent_delivery, expired, internal, ...)
"""

# =============================================================================
# Retry Metrics
# =============================================================================

notification_retry_total = Counter(
    "notification_retry_total",
    "Total number of scheduled channel retries",
    labelnames=["channel"],
)

notification_retry_exhausted_total = Counter(
    "notification_retry_exhausted_total",
    "Total number of channels that ran out of retry attempts",
    labelnames=["channel"],
)

# =============================================================================
# Retention Metrics
# =============================================================================

notifications_cleanup_total = Counter(
    "notifications_cleanup_total",
    "Total number of notifications removed by the retention sweep",
)

notifications_quota_evictions_total = Counter(
    "notifications_quota_evictions_total",
    "Total number of notifications evicted to keep users under their cap",
)

# =============================================================================
# Bulk Metrics
# =============================================================================

notifications_bulk_total = Counter(
    "notifications_bulk_total",
    "Total number of bulk intake items by outcome",
    labelnames=["result"],
)
"""
Labels:
    result: successful or failed
"""

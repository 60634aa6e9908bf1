"""Delivery channel drivers and their registry."""

from notification_service.features.notifications.channels.base import ChannelDriver, DeliveryReceipt
from notification_service.features.notifications.channels.classifiers import (
    classify_exception,
    classify_http_status,
)
from notification_service.features.notifications.channels.email import EmailDriver
from notification_service.features.notifications.channels.in_app import InAppDriver
from notification_service.features.notifications.channels.push import PushDriver
from notification_service.features.notifications.channels.realtime import RealtimeDriver
from notification_service.features.notifications.channels.registry import ChannelRegistry
from notification_service.features.notifications.channels.sms import SmsDriver

__all__ = [
    "ChannelDriver",
    "ChannelRegistry",
    "DeliveryReceipt",
    "EmailDriver",
    "InAppDriver",
    "PushDriver",
    "RealtimeDriver",
    "SmsDriver",
    "classify_exception",
    "classify_http_status",
]

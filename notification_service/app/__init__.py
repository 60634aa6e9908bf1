"""Composition root and lifespan."""

from notification_service.app.container import NotificationContainer, build_drivers
from notification_service.app.lifespan import lifespan

__all__ = ["NotificationContainer", "build_drivers", "lifespan"]

"""Clients for external HTTP services."""

from notification_service.infra.external.base_client import RETRYABLE_TRANSPORT_ERRORS, BaseHTTPClient

__all__ = ["RETRYABLE_TRANSPORT_ERRORS", "BaseHTTPClient"]

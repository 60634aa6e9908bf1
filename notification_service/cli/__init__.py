"""Command-line interface (``notification-service``)."""

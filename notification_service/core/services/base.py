"""Base service class for engine components."""

from __future__ import annotations

import logging

from notification_service.infra.logging import get_lazy_logger


class BaseService:
    """Base class for the engine's service components.

    Loggers:
        - self.logger: Standard logger for INFO/WARNING/ERROR (always evaluated)
        - self._lazy: Lazy logger for DEBUG (zero overhead when DEBUG disabled)

    Example:
        class RetentionSweeper(BaseService):
            def __init__(self, store: DeliveryRecordStore):
                super().__init__()
                self.store = store

            async def sweep(self) -> int:
                self._lazy.debug(lambda: f"Sweeping with {self.store!r}")
                ...
    """

    def __init__(self) -> None:
        class_name = self.__class__.__name__
        self.logger = logging.getLogger(class_name)
        self._lazy = get_lazy_logger(class_name)

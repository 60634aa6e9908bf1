"""Map gateway failures onto delivery error kinds.

Key Functions:
- classify_http_status(): HTTP status code -> ErrorKind
- classify_exception(): exception raised by a driver call -> Err

Usage:
    try:
        response = await client.post("/send-email", json=body)
    except Exception as exc:
        return classify_exception(exc, channel="email")
"""

from __future__ import annotations

import asyncio

import httpx

from notification_service.core.results import Err, ErrorKind, permanent, transient
from notification_service.utils.retry import RetryError


def classify_http_status(status_code: int) -> ErrorKind:
    """Classify a non-2xx gateway response.

    Status Code Mapping:
    - 429: rate limited -> TRANSIENT_DELIVERY
    - 5xx: server error -> TRANSIENT_DELIVERY
    - other 4xx: client error -> PERMANENT_DELIVERY
    """
    if status_code == 429 or 500 <= status_code < 600:
        return ErrorKind.TRANSIENT_DELIVERY
    return ErrorKind.PERMANENT_DELIVERY


def classify_exception(exc: BaseException, *, channel: str) -> Err:
    """Convert an exception from a driver call into a delivery error.

    Timeouts and transport errors are transient. HTTP status errors follow
    ``classify_http_status``. Anything else (bad payload, unexpected
    response shape) is permanent so it is not retried forever.
    """
    if isinstance(exc, RetryError) and exc.last_exception is not None:
        exc = exc.last_exception

    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        kind = classify_http_status(status_code)
        message = f"{channel} gateway returned {status_code}"
        return Err(kind, message, {"channel": channel, "status_code": status_code})

    if isinstance(exc, TimeoutError | asyncio.TimeoutError | httpx.TimeoutException):
        return transient(f"{channel} gateway timed out", channel=channel)

    if isinstance(exc, httpx.TransportError):
        return transient(f"{channel} gateway unreachable: {type(exc).__name__}", channel=channel)

    return permanent(f"{channel} delivery failed: {type(exc).__name__}: {exc}", channel=channel)

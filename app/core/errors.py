"""Errors returned to the widget as {"error": "<message>"} JSON bodies.

Everything the widget sees before a stream starts is one of these. Once streaming
has begun, failures are reported in-band as a protocol "error" event instead.
"""

from fastapi import Request
from fastapi.responses import JSONResponse


class WidgetAPIError(Exception):
    status_code = 500
    message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None) -> None:
        self.message = message or self.message
        self.headers = headers or {}
        super().__init__(self.message)


class InvalidRequestError(WidgetAPIError):
    status_code = 400
    message = "Invalid request body"


class TenantNotFoundError(WidgetAPIError):
    # Inactive tenants are reported exactly like missing ones
    status_code = 404
    message = "Tenant not found or inactive"


class OriginNotAllowedError(WidgetAPIError):
    status_code = 403
    message = "Origin not allowed"


class RateLimitedError(WidgetAPIError):
    status_code = 429
    message = "Too many messages. Please wait a moment."

    def __init__(self, retry_after: int) -> None:
        super().__init__(headers={"Retry-After": str(retry_after)})
        self.retry_after = retry_after


class QuotaExceededError(WidgetAPIError):
    status_code = 429
    message = "This chat is temporarily unavailable. Please contact the business directly."


class MessageNotFoundError(WidgetAPIError):
    status_code = 404
    message = "Message not found"


class UpstreamError(WidgetAPIError):
    status_code = 502
    message = "An unexpected error occurred"


async def widget_api_error_handler(request: Request, exc: WidgetAPIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )

"""Input validation for the widget-facing endpoints.

validate_chat_request is pure: it either returns the canonical ChatRequest or the
reason for the first rule that failed. Rules run in a fixed order so the same
malformed body always yields the same message.
"""

import re
from typing import Any, Literal
from urllib.parse import urlsplit
from uuid import UUID

from pydantic import BaseModel

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

MESSAGE_MAX_CHARS = 1000

FEEDBACK_VALUES = ("positive", "negative")


class ChatTurnMessage(BaseModel):
    """One prior turn sent by the widget as history."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Canonical chat submission after validation (message already trimmed)."""

    tenant_id: UUID
    conversation_id: UUID | None = None
    visitor_id: str
    message: str
    history: list[ChatTurnMessage] = []


class ChatRequestValidation(BaseModel):
    """Either data (valid) or error (first rule violated)."""

    data: ChatRequest | None = None
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.data is not None


def is_valid_uuid(value: Any) -> bool:
    """True for an 8-4-4-4-12 hex string (case-insensitive)."""
    return isinstance(value, str) and bool(UUID_PATTERN.fullmatch(value))


def is_valid_message(message: str) -> bool:
    """True if the trimmed message has 1..1000 characters."""
    trimmed = message.strip()
    return 1 <= len(trimmed) <= MESSAGE_MAX_CHARS


def is_valid_feedback(value: Any) -> bool:
    return value in FEEDBACK_VALUES


def is_valid_origin(origin: str | None, tenant_domain: str) -> bool:
    """
    Check the request Origin against the tenant's configured domain.

    The origin hostname must equal the domain or be a subdomain of it. A tenant on the
    "localhost" domain accepts any origin mentioning localhost or 127.0.0.1. A missing
    origin never passes.
    """
    if not origin:
        return False

    if tenant_domain == "localhost" and ("localhost" in origin or "127.0.0.1" in origin):
        return True

    try:
        hostname = urlsplit(origin).hostname
    except ValueError:
        return False
    if not hostname:
        return False
    return hostname == tenant_domain or hostname.endswith(f".{tenant_domain}")


def _reject(reason: str) -> ChatRequestValidation:
    return ChatRequestValidation(error=reason)


def validate_chat_request(body: Any) -> ChatRequestValidation:
    """
    Validate a parsed JSON chat body.

    Order: tenantId, visitorId, message, conversationId, history. History entries are
    not length-capped here; the sliding window is applied when the provider call is built.
    """
    if not isinstance(body, dict):
        return _reject("Invalid request body")

    tenant_id = body.get("tenantId")
    if not is_valid_uuid(tenant_id):
        return _reject("Invalid or missing tenantId")

    visitor_id = body.get("visitorId")
    if not isinstance(visitor_id, str) or len(visitor_id) == 0:
        return _reject("Invalid or missing visitorId")

    message = body.get("message")
    if not isinstance(message, str) or not is_valid_message(message):
        return _reject(f"Message must be between 1 and {MESSAGE_MAX_CHARS} characters")

    conversation_id = body.get("conversationId")
    if conversation_id is not None and not is_valid_uuid(conversation_id):
        return _reject("Invalid conversationId")

    history = body.get("history")
    if not isinstance(history, list):
        return _reject("History must be an array")

    turns: list[ChatTurnMessage] = []
    for entry in history:
        if not isinstance(entry, dict) or entry.get("role") not in ("user", "assistant"):
            return _reject("Invalid message role in history")
        if not isinstance(entry.get("content"), str):
            return _reject("Invalid message content in history")
        turns.append(ChatTurnMessage(role=entry["role"], content=entry["content"]))

    return ChatRequestValidation(
        data=ChatRequest(
            tenant_id=UUID(tenant_id),
            conversation_id=UUID(conversation_id) if conversation_id is not None else None,
            visitor_id=visitor_id,
            message=message.strip(),
            history=turns,
        )
    )

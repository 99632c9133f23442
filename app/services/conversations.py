"""Conversation resolution for the chat path and the history-resume path."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from app.db import queries
from app.models.conversation import Conversation
from app.models.message import Message
from app.models.tenant import Tenant

logger = logging.getLogger(__name__)


@dataclass
class ConversationHistory:
    conversation: Conversation
    messages: list[Message] = field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(conversation: Conversation, expiry_hours: int, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return now - _as_utc(conversation.last_message_at) > timedelta(hours=expiry_hours)


def resolve_or_create(
    db: Session,
    tenant: Tenant,
    conversation_id: UUID | None,
    visitor_id: str,
) -> UUID:
    """
    Conversation id the turn is persisted under.

    A supplied id is trusted as-is (the widget continuing its own conversation) and
    is not re-fetched. Without one, the visitor's latest unexpired conversation is
    resumed; a new row is created only when there is none. Timestamps are not touched
    here; persistence updates last_message_at after a successful turn.
    """
    if conversation_id is not None:
        return conversation_id

    latest = queries.get_latest_conversation(db, tenant.id, visitor_id)
    if latest is not None and not is_expired(latest, tenant.conversation_expiry_hours):
        logger.debug("Resuming conversation %s for visitor %s", latest.id, visitor_id)
        return latest.id

    conversation = queries.create_conversation(db, tenant.id, visitor_id)
    logger.info("Created conversation %s tenant_id=%s", conversation.id, tenant.id)
    return conversation.id


def resume_latest(db: Session, tenant_id: UUID, visitor_id: str) -> ConversationHistory | None:
    """Newest conversation for (tenant, visitor) with its ordered messages, or None."""
    conversation = queries.get_latest_conversation(db, tenant_id, visitor_id)
    if conversation is None:
        return None
    return ConversationHistory(
        conversation=conversation,
        messages=queries.get_messages(db, conversation.id),
    )

"""Narrow query interface used by the chat pipeline and widget endpoints.

Functions that write commit their own unit of work so callers (including background
persistence) never see half-applied turns inside one function.
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.models.conversation import Conversation
from app.models.message import Message
from app.models.tenant import Tenant

HISTORY_MESSAGE_LIMIT = 50


def get_tenant(db: Session, tenant_id: UUID) -> Tenant | None:
    return db.query(Tenant).filter(Tenant.id == tenant_id).first()


def get_active_tenant(db: Session, tenant_id: UUID) -> Tenant | None:
    """Tenant row if it exists and is active; None otherwise (callers cannot tell which)."""
    return (
        db.query(Tenant)
        .filter(Tenant.id == tenant_id, Tenant.active.is_(True))
        .first()
    )


def create_conversation(
    db: Session,
    tenant_id: UUID,
    visitor_id: str,
    metadata: dict | None = None,
) -> Conversation:
    now = datetime.now(timezone.utc)
    conversation = Conversation(
        tenant_id=tenant_id,
        visitor_id=visitor_id,
        started_at=now,
        last_message_at=now,
        metadata_=metadata,
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def get_latest_conversation(db: Session, tenant_id: UUID, visitor_id: str) -> Conversation | None:
    """Most recently active conversation for (tenant, visitor)."""
    return (
        db.query(Conversation)
        .filter(Conversation.tenant_id == tenant_id, Conversation.visitor_id == visitor_id)
        .order_by(Conversation.last_message_at.desc())
        .first()
    )


def get_messages(db: Session, conversation_id: UUID, limit: int = HISTORY_MESSAGE_LIMIT) -> list[Message]:
    """Messages of a conversation in creation order."""
    return (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc())
        .limit(limit)
        .all()
    )


def save_message(
    db: Session,
    conversation_id: UUID,
    role: str,
    content: str,
    message_id: UUID | None = None,
    model_used: str | None = None,
    prompt_tokens: int | None = None,
    completion_tokens: int | None = None,
    tokens_used: int | None = None,
    created_at: datetime | None = None,
) -> Message:
    message = Message(
        conversation_id=conversation_id,
        role=role,
        content=content,
        model_used=model_used,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        tokens_used=tokens_used,
    )
    if message_id is not None:
        message.id = message_id
    if created_at is not None:
        message.created_at = created_at
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def touch_conversation(db: Session, conversation_id: UUID) -> None:
    """Set last_message_at to now."""
    db.execute(
        update(Conversation)
        .where(Conversation.id == conversation_id)
        .values(last_message_at=datetime.now(timezone.utc))
    )
    db.commit()


def increment_usage(db: Session, tenant_id: UUID) -> None:
    """Atomic messages_used += 1 (a single UPDATE, no read-then-write)."""
    db.execute(
        update(Tenant)
        .where(Tenant.id == tenant_id)
        .values(messages_used=Tenant.messages_used + 1)
    )
    db.commit()


def reset_usage(db: Session, tenant: Tenant) -> Tenant:
    tenant.messages_used = 0
    db.commit()
    db.refresh(tenant)
    return tenant


def set_feedback(db: Session, message_id: UUID, feedback: str) -> bool:
    """Overwrite feedback on a message. Returns False if the message does not exist."""
    message = db.query(Message).filter(Message.id == message_id).first()
    if message is None:
        return False
    message.feedback = feedback
    db.commit()
    return True


def list_conversations_with_counts(db: Session, tenant_id: UUID, limit: int = 50) -> list[tuple[Conversation, int]]:
    """Tenant conversations, newest activity first, with their message counts."""
    counts = (
        db.query(Message.conversation_id, func.count(Message.id).label("message_count"))
        .group_by(Message.conversation_id)
        .subquery()
    )
    rows = (
        db.query(Conversation, func.coalesce(counts.c.message_count, 0))
        .outerjoin(counts, counts.c.conversation_id == Conversation.id)
        .filter(Conversation.tenant_id == tenant_id)
        .order_by(Conversation.last_message_at.desc())
        .limit(limit)
        .all()
    )
    return [(conversation, int(count)) for conversation, count in rows]


def get_conversation(db: Session, tenant_id: UUID, conversation_id: UUID) -> Conversation | None:
    return (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.tenant_id == tenant_id)
        .first()
    )

"""Chat sessions between a tenant's widget and an anonymous visitor."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Base):
    """
    One chat session between a tenant and a visitor.

    visitor_id is the opaque, client-generated token stored by the widget; it is not
    tied to any account. The resume path addresses the conversation with the greatest
    last_message_at for a (tenant_id, visitor_id) pair.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index("ix_conversations_tenant_visitor_last", "tenant_id", "visitor_id", "last_message_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)
    visitor_id = Column(String, nullable=False)
    started_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    last_message_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSONB, nullable=True)

    # Relationships
    tenant = relationship("Tenant", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )

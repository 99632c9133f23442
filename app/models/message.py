"""Messages (turn halves) within a widget conversation."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class Message(Base):
    """
    One message in a conversation.

    Created by the stream relay after a turn completes: user message first (stamped with
    the turn start time), then the assistant message (stamped at completion), so ordering
    by created_at always yields user-then-assistant per turn. feedback is the only field
    changed after creation.
    """

    __tablename__ = "messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(UUID(as_uuid=True), ForeignKey("conversations.id"), nullable=False, index=True)
    role = Column(String(16), nullable=False)  # "user" | "assistant"
    content = Column(Text, nullable=False)
    # Assistant only
    model_used = Column(String, nullable=True)
    prompt_tokens = Column(Integer, nullable=True)
    completion_tokens = Column(Integer, nullable=True)
    tokens_used = Column(Integer, nullable=True)
    feedback = Column(String(16), nullable=True)  # "positive" | "negative"
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")

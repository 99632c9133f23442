import uuid
from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, func
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship

from app.db.base import Base


class Tenant(Base):
    """
    One business using the widget (one widget configuration).

    messages_used only grows during a billing period (the chat pipeline increments it,
    the operator reset lowers it) and is compared to message_limit with strict
    less-than: messages_used == message_limit blocks further turns.
    """

    __tablename__ = "tenants"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    domain = Column(String, nullable=False)  # allowed origin host; "localhost" for development
    active = Column(Boolean, nullable=False, default=True)
    plan = Column(String(16), nullable=False, default="starter")  # starter | pro | agency | enterprise
    message_limit = Column(Integer, nullable=False, default=1000)
    messages_used = Column(Integer, nullable=False, default=0)
    ai_model = Column(String, nullable=False)  # "<provider>/<model-name>"
    bot_name = Column(String, nullable=False, default="Assistant")
    welcome_message = Column(Text, nullable=False, default="Hi! How can I help you today?")
    system_prompt = Column(Text, nullable=False, default="")
    document_context = Column(Text, nullable=True)  # optional knowledge blob appended to the prompt
    # Branding
    primary_color = Column(String(16), nullable=False, default="#2563EB")
    border_radius = Column(Integer, nullable=False, default=12)
    position = Column(String(16), nullable=False, default="bottom-right")  # bottom-right | bottom-left
    customization = Column(JSONB, nullable=True)  # bubbleIconUrl, logoUrl, greetingMessage, glowEffect, starterQuestions
    # Widget resumes the latest conversation only while it is younger than this
    conversation_expiry_hours = Column(Integer, nullable=False, default=24)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    conversations = relationship("Conversation", back_populates="tenant", cascade="all, delete-orphan")

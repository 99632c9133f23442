"""Public payloads exchanged with the embedded widget (camelCase on the wire)."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WidgetModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class WidgetConfigRead(WidgetModel):
    """Subset of the tenant row the widget needs to render itself. No quota or prompt data."""

    bot_name: str
    welcome_message: str
    primary_color: str
    border_radius: int
    position: str
    bubble_icon_url: Optional[str] = None
    logo_url: Optional[str] = None
    greeting_message: Optional[str] = None
    glow_effect: bool = False
    starter_questions: list[str] = []


class ConversationRead(WidgetModel):
    id: UUID
    started_at: datetime
    last_message_at: datetime


class MessageRead(WidgetModel):
    id: UUID
    role: str
    content: str
    feedback: Optional[str] = None
    created_at: datetime


class ConversationHistoryRead(WidgetModel):
    """Resume payload; conversation is null (not a 404) when the visitor has no history."""

    conversation: Optional[ConversationRead] = None
    messages: list[MessageRead] = []


class FeedbackResponse(BaseModel):
    success: bool = True

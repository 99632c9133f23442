from pydantic import BaseModel, ConfigDict
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional


Plan = Literal["starter", "pro", "agency", "enterprise"]
Position = Literal["bottom-right", "bottom-left"]


class TenantBase(BaseModel):
    name: str
    domain: str
    plan: Plan = "starter"
    message_limit: int = 1000
    bot_name: str = "Assistant"
    welcome_message: str = "Hi! How can I help you today?"
    system_prompt: str = ""
    document_context: Optional[str] = None
    primary_color: str = "#2563EB"
    border_radius: int = 12
    position: Position = "bottom-right"
    customization: Optional[dict] = None
    conversation_expiry_hours: int = 24


class TenantCreate(TenantBase):
    # Omitted: the plan's default model
    ai_model: Optional[str] = None


class TenantUpdate(BaseModel):
    name: Optional[str] = None
    domain: Optional[str] = None
    active: Optional[bool] = None
    plan: Optional[Plan] = None
    message_limit: Optional[int] = None
    ai_model: Optional[str] = None
    bot_name: Optional[str] = None
    welcome_message: Optional[str] = None
    system_prompt: Optional[str] = None
    document_context: Optional[str] = None
    primary_color: Optional[str] = None
    border_radius: Optional[int] = None
    position: Optional[Position] = None
    customization: Optional[dict] = None
    conversation_expiry_hours: Optional[int] = None


class TenantRead(TenantBase):
    id: UUID
    active: bool
    ai_model: str
    messages_used: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationSummary(BaseModel):
    id: UUID
    visitor_id: str
    started_at: datetime
    last_message_at: datetime
    message_count: int

    model_config = ConfigDict(from_attributes=True)


class MessageDetail(BaseModel):
    id: UUID
    role: str
    content: str
    model_used: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    tokens_used: Optional[int] = None
    feedback: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

from app.models.tenant import Tenant
from app.models.conversation import Conversation
from app.models.message import Message

__all__ = [
    "Tenant",
    "Conversation",
    "Message",
]

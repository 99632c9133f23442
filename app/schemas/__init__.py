from app.schemas.tenant import (
    TenantCreate,
    TenantRead,
    TenantUpdate,
    ConversationSummary,
    MessageDetail,
)
from app.schemas.widget import (
    WidgetConfigRead,
    ConversationRead,
    MessageRead,
    ConversationHistoryRead,
    FeedbackResponse,
)

__all__ = [
    "TenantCreate",
    "TenantRead",
    "TenantUpdate",
    "ConversationSummary",
    "MessageDetail",
    "WidgetConfigRead",
    "ConversationRead",
    "MessageRead",
    "ConversationHistoryRead",
    "FeedbackResponse",
]

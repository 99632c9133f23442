from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.errors import InvalidRequestError
from app.core.validation import is_valid_uuid
from app.db.session import get_db
from app.schemas.widget import ConversationHistoryRead, ConversationRead, MessageRead
from app.services.conversations import resume_latest

router = APIRouter(prefix="/conversations", tags=["widget"])


@router.get("", response_model=ConversationHistoryRead)
def get_latest_conversation(
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    visitor_id: Optional[str] = Query(None, alias="visitorId"),
    db: Session = Depends(get_db),
):
    """
    Resume the visitor's most recent conversation with its messages.

    No history is not an error: returns {"conversation": null, "messages": []}.
    """
    if not is_valid_uuid(tenant_id):
        raise InvalidRequestError("Invalid or missing tenantId")
    if not visitor_id:
        raise InvalidRequestError("Invalid or missing visitorId")

    history = resume_latest(db, UUID(tenant_id), visitor_id)
    if history is None:
        return ConversationHistoryRead()

    return ConversationHistoryRead(
        conversation=ConversationRead.model_validate(history.conversation),
        messages=[MessageRead.model_validate(m) for m in history.messages],
    )

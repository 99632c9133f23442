import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.errors import InvalidRequestError, MessageNotFoundError
from app.core.validation import is_valid_feedback, is_valid_uuid
from app.db import queries
from app.db.session import get_db
from app.schemas.widget import FeedbackResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feedback", tags=["widget"])


@router.post("", response_model=FeedbackResponse)
async def submit_feedback(request: Request, db: Session = Depends(get_db)):
    """
    Thumbs up/down on an assistant message. Re-submitting overwrites, so the widget
    can fire and forget.
    """
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError()
    if not isinstance(body, dict):
        raise InvalidRequestError()

    message_id = body.get("messageId")
    if not is_valid_uuid(message_id):
        raise InvalidRequestError("Invalid or missing messageId")

    feedback = body.get("feedback")
    if not is_valid_feedback(feedback):
        raise InvalidRequestError('Feedback must be "positive" or "negative"')

    if not await run_in_threadpool(queries.set_feedback, db, UUID(message_id), feedback):
        raise MessageNotFoundError()

    logger.info("Feedback saved message_id=%s feedback=%s", message_id, feedback)
    return FeedbackResponse()

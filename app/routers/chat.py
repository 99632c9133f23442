"""Streaming chat turn endpoint used by the embedded widget.

Pipeline: validate body, guard access (tenant, origin, rate limit, quota), resolve the
conversation, compose the tenant prompt, open the provider stream and relay it. The
turn is persisted in a BackgroundTask after the stream ends. Anything that fails
before the stream starts is an HTTP error with {"error": "..."}; after that, failures
are reported in-band.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from app.ai.mock import mock_chat_stream
from app.ai.prompts import compose_system_prompt
from app.ai.providers import ProviderHandle, resolve_model, stream_chat
from app.ai.stream_events import UnknownProviderError
from app.core.config import settings
from app.core.errors import InvalidRequestError, UpstreamError, WidgetAPIError
from app.core.rate_limit import SlidingWindowRateLimiter, caller_identity, get_rate_limiter
from app.core.validation import ChatRequest, validate_chat_request
from app.core.wire_protocol import CONVERSATION_ID_HEADER, MEDIA_TYPE
from app.db.session import get_db, get_session_factory
from app.services.access_guard import guard_chat_access
from app.services.conversations import resolve_or_create
from app.services.stream_relay import (
    ChatTurn,
    build_provider_messages,
    persist_chat_turn,
    prime_stream,
    relay_stream,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@dataclass
class PreparedTurn:
    turn: ChatTurn
    handle: ProviderHandle | None
    system_prompt: str
    messages: list[dict]


def _prepare_turn(
    db: Session,
    chat_request: ChatRequest,
    origin: str | None,
    identity: str,
    limiter: SlidingWindowRateLimiter,
) -> PreparedTurn:
    """Everything before the provider call that touches the database. Runs in the threadpool."""
    tenant = guard_chat_access(db, chat_request.tenant_id, origin, identity, limiter)

    if settings.mock_ai:
        handle = None
    else:
        try:
            handle = resolve_model(tenant.ai_model)
        except UnknownProviderError as e:
            logger.error("Tenant %s has unsupported model %s: %s", tenant.id, tenant.ai_model, e)
            raise UpstreamError() from e

    conversation_id = resolve_or_create(db, tenant, chat_request.conversation_id, chat_request.visitor_id)
    turn = ChatTurn(
        tenant_id=tenant.id,
        conversation_id=conversation_id,
        user_message=chat_request.message,
        model=tenant.ai_model,
    )

    logger.info(
        "Chat turn tenant_id=%s conversation_id=%s history_len=%d mock=%s",
        tenant.id,
        conversation_id,
        len(chat_request.history),
        settings.mock_ai,
    )
    return PreparedTurn(
        turn=turn,
        handle=handle,
        system_prompt=compose_system_prompt(tenant),
        messages=build_provider_messages(
            chat_request.history,
            chat_request.message,
            settings.chat_history_window,
        ),
    )


@router.post("")
async def chat(
    request: Request,
    db: Session = Depends(get_db),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> StreamingResponse:
    """
    Run one chat turn and stream the reply as `data: <json>` frames.

    Body: {tenantId, visitorId, message, conversationId?, history?}. The response
    carries X-Conversation-Id so the widget can continue the same conversation.
    Database work runs in the threadpool so open streams keep flowing.
    """
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError()

    validation = validate_chat_request(body)
    if not validation.valid:
        raise InvalidRequestError(validation.error)

    try:
        prepared = await run_in_threadpool(
            _prepare_turn,
            db,
            validation.data,
            request.headers.get("origin"),
            caller_identity(request),
            limiter,
        )
        if prepared.handle is None:
            events = mock_chat_stream()
        else:
            events = stream_chat(prepared.handle, prepared.system_prompt, prepared.messages)
        first_event = await prime_stream(events)
    except WidgetAPIError:
        raise
    except Exception as e:
        logger.exception("Chat turn failed before streaming: %s", e)
        raise UpstreamError() from e

    turn = prepared.turn
    return StreamingResponse(
        relay_stream(turn, first_event, events),
        media_type=MEDIA_TYPE,
        headers={
            CONVERSATION_ID_HEADER: str(turn.conversation_id),
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
        background=BackgroundTask(persist_chat_turn, turn, session_factory),
    )

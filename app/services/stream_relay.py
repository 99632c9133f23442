"""
Relay a provider token stream to the widget and persist the finished turn.

The relay forwards each provider delta as one wire frame as soon as it arrives.
Once a terminal event (finish or error) has been sent, persist_chat_turn runs as a
BackgroundTask after the response body is complete: it opens its own DB session,
and any failure there is logged and dropped, since the visitor already has the
full answer. A turn that is persisted may still be lost if storage fails; turns
are never retried.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from app.ai.stream_events import ProviderError, ProviderEvent, StreamFinish, TextDelta
from app.core.errors import UpstreamError
from app.core.validation import ChatTurnMessage
from app.core.wire_protocol import (
    encode_done,
    encode_error,
    encode_finish,
    encode_start,
    encode_text_delta,
)
from app.db import queries

logger = logging.getLogger(__name__)

STREAM_ERROR_TEXT = "Something went wrong while generating a response. Please try again."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatTurn:
    """Everything persistence needs about one turn; filled in while the stream runs."""

    tenant_id: UUID
    conversation_id: UUID
    user_message: str
    model: str
    assistant_message_id: UUID = field(default_factory=uuid.uuid4)
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None
    text_parts: list[str] = field(default_factory=list)
    finish: StreamFinish | None = None
    error: str | None = None
    # True once a terminal event went out; unfinished turns (client gone) are not persisted
    completed: bool = False

    @property
    def assistant_text(self) -> str:
        return "".join(self.text_parts)


def build_provider_messages(history: list[ChatTurnMessage], message: str, window: int) -> list[dict]:
    """
    Most recent `window` history entries, then the new user message last. Entries with
    blank content (an assistant reply cancelled before its first token) are dropped;
    some providers reject empty messages.
    """
    recent = history[-window:] if window > 0 else []
    messages = [{"role": turn.role, "content": turn.content} for turn in recent if turn.content.strip()]
    messages.append({"role": "user", "content": message})
    return messages


async def prime_stream(events: AsyncIterator[ProviderEvent]) -> ProviderEvent | None:
    """
    Wait for the first provider event before any header is committed, so a provider
    that fails to open (bad key, unknown model, outage) becomes a 502 instead of a
    stream that errors immediately.
    """
    try:
        return await events.__anext__()
    except StopAsyncIteration:
        return None
    except ProviderError as e:
        logger.error("Provider stream failed to open: %s", e)
        raise UpstreamError() from e


async def relay_stream(
    turn: ChatTurn,
    first_event: ProviderEvent | None,
    events: AsyncIterator[ProviderEvent],
) -> AsyncIterator[bytes]:
    """
    Wire frames for one turn: start, text-delta per provider delta, one terminal
    event, then the done sentinel. Errors raised by the provider after this point are
    reported in-band as an error event; headers are already on the wire.
    """
    yield encode_start(str(turn.assistant_message_id))

    try:
        event = first_event
        while event is not None:
            if isinstance(event, TextDelta):
                if event.text:
                    turn.text_parts.append(event.text)
                    yield encode_text_delta(event.text)
            elif isinstance(event, StreamFinish):
                turn.finish = event
            event = await anext(events, None)
    except ProviderError as e:
        logger.warning("Provider stream failed mid-turn conversation_id=%s: %s", turn.conversation_id, e)
        turn.error = STREAM_ERROR_TEXT
    except Exception:
        logger.exception("Unexpected error while relaying conversation_id=%s", turn.conversation_id)
        turn.error = STREAM_ERROR_TEXT
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()

    turn.finished_at = _utcnow()
    if turn.error is not None:
        yield encode_error(turn.error)
    else:
        finish = turn.finish or StreamFinish()
        turn.finish = finish
        yield encode_finish(finish.finish_reason, finish.prompt_tokens, finish.completion_tokens)
    turn.completed = True
    yield encode_done()

    logger.info(
        "Chat turn streamed conversation_id=%s chars=%d error=%s",
        turn.conversation_id,
        len(turn.assistant_text),
        turn.error is not None,
    )


def persist_chat_turn(turn: ChatTurn, session_factory: Callable[[], Session]) -> None:
    """
    Save the user message, the assistant message (model and token usage), bump the
    conversation's last_message_at, then increment the tenant's usage.

    Intended to be run as a BackgroundTask after the stream completed. Uses a new DB
    session; catches and logs errors so failures never reach the response. A turn
    that ended with an error event still stores both messages; the assistant content
    is whatever text arrived (possibly empty) and usage is left null.
    """
    if not turn.completed:
        logger.info("Skipping persistence for unfinished turn conversation_id=%s", turn.conversation_id)
        return

    db = session_factory()
    try:
        queries.save_message(
            db,
            conversation_id=turn.conversation_id,
            role="user",
            content=turn.user_message,
            created_at=turn.started_at,
        )

        finish = turn.finish or StreamFinish()
        # Assistant must sort after the user message even on coarse clocks
        finished_at = max(turn.finished_at or _utcnow(), turn.started_at + timedelta(microseconds=1))
        queries.save_message(
            db,
            conversation_id=turn.conversation_id,
            role="assistant",
            content=turn.assistant_text,
            message_id=turn.assistant_message_id,
            model_used=turn.model,
            prompt_tokens=finish.prompt_tokens,
            completion_tokens=finish.completion_tokens,
            tokens_used=finish.total_tokens,
            created_at=finished_at,
        )
        queries.touch_conversation(db, turn.conversation_id)
        queries.increment_usage(db, turn.tenant_id)
        logger.info(
            "Persisted chat turn conversation_id=%s tenant_id=%s tokens=%s",
            turn.conversation_id,
            turn.tenant_id,
            finish.total_tokens,
        )
    except Exception as e:
        logger.exception("persist_chat_turn failed for conversation %s: %s", turn.conversation_id, e)
        db.rollback()
    finally:
        db.close()

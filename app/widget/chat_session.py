"""
Client side of a widget chat: transcript, turn state machine and stream consumption.

A ChatSession is what the embedded widget runs per page: it posts a turn to
/chat, renders the reply as it streams (text is batched and flushed once per frame
interval), and supports cancel, retry, history resume and feedback. It only depends
on the wire protocol module and httpx.

States:
    idle       nothing in flight; send_message accepted
    sending    request posted, waiting for response headers
    streaming  reading events into the assistant placeholder
    error      last turn failed; `error` holds the text to show, retry() re-sends
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from app.core.wire_protocol import (
    CONVERSATION_ID_HEADER,
    EVENT_ERROR,
    EVENT_FINISH,
    EVENT_START,
    EVENT_TEXT_DELTA,
    StreamLineDecoder,
    WireEvent,
)

logger = logging.getLogger(__name__)

IDLE = "idle"
SENDING = "sending"
STREAMING = "streaming"
ERROR = "error"

GENERIC_ERROR = "Something went wrong. Please try again."
HISTORY_WINDOW = 20
FRAME_INTERVAL = 1 / 60

CHAT_PATH = "/api/v1/chat"
CONVERSATIONS_PATH = "/api/v1/conversations"
FEEDBACK_PATH = "/api/v1/feedback"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ChatMessage:
    id: str
    role: str  # "user" | "assistant"
    content: str
    created_at: str = field(default_factory=_now_iso)
    feedback: Optional[str] = None
    streaming: bool = False


class ChatSession:
    def __init__(
        self,
        api_base: str,
        tenant_id: str,
        visitor_id: Optional[str] = None,
        origin: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        frame_interval: float = FRAME_INTERVAL,
        on_change: Optional[Callable[["ChatSession"], None]] = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.tenant_id = tenant_id
        # Persisting the visitor id across page loads is up to the embedder
        self.visitor_id = visitor_id or str(uuid.uuid4())
        self.origin = origin
        self.frame_interval = frame_interval
        self.on_change = on_change

        self.messages: list[ChatMessage] = []
        self.state = IDLE
        self.error: Optional[str] = None
        self.conversation_id: Optional[str] = None

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))
        self._task: Optional[asyncio.Task] = None
        self._placeholder: Optional[ChatMessage] = None
        self._pending = ""
        self._flush_handle: Optional[asyncio.TimerHandle] = None
        self._last_user_text = ""
        self._history_loaded = False

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.cancel()
        if self._owns_client:
            await self._client.aclose()

    @property
    def busy(self) -> bool:
        return self.state in (SENDING, STREAMING)

    def _headers(self) -> dict[str, str]:
        return {"Origin": self.origin} if self.origin else {}

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _set_state(self, state: str) -> None:
        if self.state != state:
            self.state = state
            self._notify()

    # Sending

    def send_message(self, text: str) -> Optional[asyncio.Task]:
        """
        Start a turn. Ignored (returns None) while a turn is in flight or for blank text.

        The user message and an empty streaming assistant placeholder are appended before
        this returns; the request itself runs in the returned task.
        """
        if self.busy or not text or not text.strip():
            return None

        trimmed = text.strip()
        self._last_user_text = trimmed
        self.error = None

        history = [{"role": m.role, "content": m.content} for m in self.messages[-HISTORY_WINDOW:]]
        placeholder = ChatMessage(id=str(uuid.uuid4()), role="assistant", content="", streaming=True)
        self.messages.append(ChatMessage(id=str(uuid.uuid4()), role="user", content=trimmed))
        self.messages.append(placeholder)
        self._placeholder = placeholder
        self._pending = ""
        self._set_state(SENDING)

        payload = {
            "tenantId": self.tenant_id,
            "conversationId": self.conversation_id,
            "visitorId": self.visitor_id,
            "message": trimmed,
            "history": history,
        }
        self._task = asyncio.get_running_loop().create_task(self._run_turn(payload, placeholder))
        return self._task

    async def _run_turn(self, payload: dict[str, Any], placeholder: ChatMessage) -> None:
        try:
            async with self._client.stream(
                "POST",
                f"{self.api_base}{CHAT_PATH}",
                json=payload,
                headers=self._headers(),
            ) as response:
                conversation_id = response.headers.get(CONVERSATION_ID_HEADER)
                if conversation_id:
                    self.conversation_id = conversation_id

                if not response.is_success:
                    await response.aread()
                    self._fail(placeholder, _error_from_body(response))
                    return

                self._set_state(STREAMING)
                decoder = StreamLineDecoder()
                async for chunk in response.aiter_bytes():
                    for event in decoder.feed(chunk):
                        if self._handle_event(event, placeholder):
                            return
                for event in decoder.flush():
                    if self._handle_event(event, placeholder):
                        return
        except httpx.HTTPError as e:
            logger.debug("Chat request failed: %s", e)
            self._fail(placeholder, GENERIC_ERROR)
            return

        self._complete(placeholder)

    def _handle_event(self, event: WireEvent, placeholder: ChatMessage) -> bool:
        """Apply one event; True when the turn is over and reading should stop."""
        if event.done:
            self._complete(placeholder)
            return True
        if event.type == EVENT_START:
            message_id = event.data.get("messageId")
            if isinstance(message_id, str) and message_id:
                placeholder.id = message_id
        elif event.type == EVENT_TEXT_DELTA:
            self._pending += event.delta
            self._schedule_flush()
        elif event.type == EVENT_FINISH:
            self._flush_pending()
        elif event.type == EVENT_ERROR:
            error_text = event.data.get("errorText")
            self._fail(placeholder, error_text if isinstance(error_text, str) and error_text else GENERIC_ERROR)
            return True
        return False

    # Batched rendering

    def _schedule_flush(self) -> None:
        if self.frame_interval <= 0:
            self._flush_pending()
            return
        if self._flush_handle is None:
            self._flush_handle = asyncio.get_running_loop().call_later(self.frame_interval, self._flush_pending)

    def _flush_pending(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if self._pending and self._placeholder is not None:
            self._placeholder.content += self._pending
            self._pending = ""
            self._notify()

    # Turn endings

    def _complete(self, placeholder: ChatMessage) -> None:
        if placeholder is not self._placeholder:
            return  # cancelled, or superseded by a newer turn
        self._flush_pending()
        placeholder.streaming = False
        self._placeholder = None
        self._task = None
        self._set_state(IDLE)

    def _fail(self, placeholder: ChatMessage, reason: str) -> None:
        if placeholder is not self._placeholder:
            return
        self._flush_pending()
        placeholder.streaming = False
        if not placeholder.content and self.messages and self.messages[-1] is placeholder:
            self.messages.pop()
        self._placeholder = None
        self._task = None
        self.error = reason
        self._set_state(ERROR)

    def cancel(self) -> None:
        """
        Stop the in-flight turn. Text received so far stays in the transcript and the
        state returns to idle. Does nothing when no turn is running.
        """
        task, placeholder = self._task, self._placeholder
        if task is None or placeholder is None:
            return
        self._flush_pending()
        placeholder.streaming = False
        self._placeholder = None
        self._task = None
        self._set_state(IDLE)
        if not task.done():
            task.cancel()

    def retry(self) -> Optional[asyncio.Task]:
        """After an error, drop the failed user message and send the same text again."""
        if self.state != ERROR or not self._last_user_text:
            return None
        if self.messages and self.messages[-1].role == "user":
            self.messages.pop()
        self.error = None
        self.state = IDLE
        return self.send_message(self._last_user_text)

    # History and feedback

    async def load_history(self) -> bool:
        """
        Restore the visitor's latest conversation (once per session). Returns True when a
        transcript was loaded; any failure leaves the session as it was.
        """
        if self._history_loaded:
            return False
        self._history_loaded = True

        try:
            response = await self._client.get(
                f"{self.api_base}{CONVERSATIONS_PATH}",
                params={"tenantId": self.tenant_id, "visitorId": self.visitor_id},
                headers=self._headers(),
            )
            if not response.is_success:
                return False
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("History load failed: %s", e)
            return False

        conversation = data.get("conversation") if isinstance(data, dict) else None
        messages = data.get("messages") if isinstance(data, dict) else None
        if not conversation or not messages:
            return False

        self.conversation_id = conversation.get("id")
        self.messages = [
            ChatMessage(
                id=m["id"],
                role=m["role"],
                content=m["content"],
                created_at=m.get("createdAt") or _now_iso(),
                feedback=m.get("feedback"),
            )
            for m in messages
        ]
        self._notify()
        return True

    async def submit_feedback(self, message_id: str, value: str) -> None:
        """Record feedback locally right away, then tell the server. Network failures are ignored."""
        for message in self.messages:
            if message.id == message_id:
                message.feedback = value
        self._notify()

        try:
            response = await self._client.post(
                f"{self.api_base}{FEEDBACK_PATH}",
                json={"messageId": message_id, "feedback": value},
                headers=self._headers(),
            )
            if not response.is_success:
                logger.debug("Feedback rejected status=%s", response.status_code)
        except httpx.HTTPError as e:
            logger.debug("Feedback request failed: %s", e)


def _error_from_body(response: httpx.Response) -> str:
    """The `error` field of a JSON error body, else the generic message."""
    try:
        data = response.json()
    except ValueError:
        return GENERIC_ERROR
    if isinstance(data, dict) and isinstance(data.get("error"), str) and data["error"]:
        return data["error"]
    return GENERIC_ERROR

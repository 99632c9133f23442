"""Line-framed event stream between the chat endpoint and the widget.

Every frame is `data: <json>` followed by a blank line. A turn is, in order:

    data: {"type": "start", "messageId": "<uuid>"}
    data: {"type": "text-delta", "delta": "Hel"}          (zero or more)
    data: {"type": "finish", "finishReason": "stop",
           "usage": {"promptTokens": 12, "completionTokens": 34}}
      or data: {"type": "error", "errorText": "..."}       (at most one terminal)
    data: [DONE]

Concatenating the deltas in arrival order gives the assistant text; there are no indices.
Consumers ignore lines they cannot parse and event types they do not know.
"""

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
MEDIA_TYPE = "text/event-stream"
CONVERSATION_ID_HEADER = "X-Conversation-Id"

EVENT_START = "start"
EVENT_TEXT_DELTA = "text-delta"
EVENT_FINISH = "finish"
EVENT_ERROR = "error"
KNOWN_EVENTS = frozenset({EVENT_START, EVENT_TEXT_DELTA, EVENT_FINISH, EVENT_ERROR})


def encode_event(payload: dict[str, Any]) -> bytes:
    return f"{DATA_PREFIX}{json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def encode_start(message_id: str) -> bytes:
    return encode_event({"type": EVENT_START, "messageId": message_id})


def encode_text_delta(delta: str) -> bytes:
    return encode_event({"type": EVENT_TEXT_DELTA, "delta": delta})


def encode_finish(finish_reason: str, prompt_tokens: int | None, completion_tokens: int | None) -> bytes:
    return encode_event(
        {
            "type": EVENT_FINISH,
            "finishReason": finish_reason,
            "usage": {"promptTokens": prompt_tokens, "completionTokens": completion_tokens},
        }
    )


def encode_error(error_text: str) -> bytes:
    return encode_event({"type": EVENT_ERROR, "errorText": error_text})


def encode_done() -> bytes:
    return f"{DATA_PREFIX}{DONE_SENTINEL}\n\n".encode("utf-8")


@dataclass(frozen=True)
class WireEvent:
    """A decoded protocol event; `done` marks the closing sentinel."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    done: bool = False

    @property
    def delta(self) -> str:
        value = self.data.get("delta")
        return value if isinstance(value, str) else ""


DONE = WireEvent(type="done", done=True)


class StreamLineDecoder:
    """
    Incremental decoder: feed raw byte chunks as they arrive, get back complete events.

    Chunk boundaries are arbitrary; a partial line (or a partial UTF-8 sequence) is kept
    until the next chunk completes it.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes) -> list[WireEvent]:
        self._buffer += self._utf8.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def flush(self) -> list[WireEvent]:
        """Decode whatever is left once the transport is exhausted."""
        self._buffer += self._utf8.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        return self._parse_lines([rest])

    def _parse_lines(self, lines: list[str]) -> list[WireEvent]:
        events = []
        for line in lines:
            event = self._parse_line(line.rstrip("\r"))
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def _parse_line(line: str) -> WireEvent | None:
        if not line or not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX):]
        if data == DONE_SENTINEL:
            return DONE
        try:
            payload = json.loads(data)
        except ValueError:
            logger.debug("Ignoring unparseable stream line: %.80s", data)
            return None
        if not isinstance(payload, dict) or payload.get("type") not in KNOWN_EVENTS:
            return None
        return WireEvent(type=payload["type"], data=payload)

"""Tests for the data-line event stream encoder and the incremental decoder."""

import json

from app.core.wire_protocol import (
    DONE,
    StreamLineDecoder,
    encode_done,
    encode_error,
    encode_finish,
    encode_start,
    encode_text_delta,
)


def _turn_bytes():
    return b"".join(
        [
            encode_start("msg-1"),
            encode_text_delta("Hi"),
            encode_text_delta(" there!"),
            encode_finish("stop", 10, 3),
            encode_done(),
        ]
    )


def test_frames_are_data_lines_with_blank_separator():
    frame = encode_text_delta("Hi")
    assert frame.startswith(b"data: ")
    assert frame.endswith(b"\n\n")
    assert json.loads(frame[len(b"data: "):].decode()) == {"type": "text-delta", "delta": "Hi"}
    assert encode_done() == b"data: [DONE]\n\n"


def test_finish_and_error_payloads():
    finish = json.loads(encode_finish("stop", 12, 34)[6:].decode())
    assert finish == {
        "type": "finish",
        "finishReason": "stop",
        "usage": {"promptTokens": 12, "completionTokens": 34},
    }
    error = json.loads(encode_error("Provider down")[6:].decode())
    assert error == {"type": "error", "errorText": "Provider down"}


def test_decoder_handles_single_chunk():
    events = StreamLineDecoder().feed(_turn_bytes())

    assert [e.type for e in events] == ["start", "text-delta", "text-delta", "finish", "done"]
    assert events[0].data["messageId"] == "msg-1"
    assert "".join(e.delta for e in events) == "Hi there!"
    assert events[-1] is DONE


def test_decoder_buffers_lines_split_across_chunks():
    data = _turn_bytes()
    decoder = StreamLineDecoder()
    events = []
    # Three-byte chunks split both JSON payloads and the "data: " prefixes
    for i in range(0, len(data), 3):
        events.extend(decoder.feed(data[i:i + 3]))
    events.extend(decoder.flush())

    assert [e.type for e in events] == ["start", "text-delta", "text-delta", "finish", "done"]
    assert "".join(e.delta for e in events) == "Hi there!"


def test_decoder_reassembles_split_utf8_sequences():
    data = encode_text_delta("café ☕")
    decoder = StreamLineDecoder()
    events = []
    for i in range(len(data)):
        events.extend(decoder.feed(data[i:i + 1]))

    assert len(events) == 1
    assert events[0].delta == "café ☕"


def test_decoder_ignores_noise():
    noise = (
        b": keep-alive comment\n"
        b"\n"
        b"event: ping\n"
        b"data: {not json}\n"
        b'data: {"type": "tool-call", "name": "x"}\n'
        b"data: [1, 2, 3]\n"
        b'data: {"type": "text-delta", "delta": "ok"}\r\n\r\n'
    )
    events = StreamLineDecoder().feed(noise)

    assert len(events) == 1
    assert events[0].delta == "ok"


def test_flush_parses_unterminated_last_line():
    decoder = StreamLineDecoder()
    assert decoder.feed(b"data: [DONE]") == []
    assert decoder.flush() == [DONE]

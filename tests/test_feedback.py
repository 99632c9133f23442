"""Tests for POST /api/v1/feedback."""

import asyncio
import uuid
from unittest.mock import patch

import pytest

from app.db import queries
from app.models.message import Message


@pytest.fixture
def assistant_message(db_session, make_tenant):
    tenant = make_tenant()
    conversation = queries.create_conversation(db_session, tenant.id, "v1")
    return queries.save_message(db_session, conversation.id, "assistant", "Hello!")


def _stored_feedback(db_session, message_id):
    db_session.expire_all()
    return db_session.query(Message).filter(Message.id == message_id).one().feedback


def test_feedback_is_saved(client, db_session, assistant_message):
    resp = client.post(
        "/api/v1/feedback",
        json={"messageId": str(assistant_message.id), "feedback": "positive"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert _stored_feedback(db_session, assistant_message.id) == "positive"


def test_feedback_twice_is_idempotent(client, db_session, assistant_message):
    body = {"messageId": str(assistant_message.id), "feedback": "negative"}

    first = client.post("/api/v1/feedback", json=body)
    second = client.post("/api/v1/feedback", json=body)

    assert first.status_code == second.status_code == 200
    assert _stored_feedback(db_session, assistant_message.id) == "negative"
    assert db_session.query(Message).count() == 1


def test_feedback_overwrites_previous_value(client, db_session, assistant_message):
    client.post("/api/v1/feedback", json={"messageId": str(assistant_message.id), "feedback": "negative"})
    client.post("/api/v1/feedback", json={"messageId": str(assistant_message.id), "feedback": "positive"})

    assert _stored_feedback(db_session, assistant_message.id) == "positive"


@pytest.mark.parametrize(
    "body, error",
    [
        ({"messageId": "nope", "feedback": "positive"}, "Invalid or missing messageId"),
        ({"feedback": "positive"}, "Invalid or missing messageId"),
        ({"messageId": "00000000-0000-0000-0000-000000000001", "feedback": "meh"}, 'Feedback must be "positive" or "negative"'),
        (["not", "an", "object"], "Invalid request body"),
    ],
)
def test_feedback_bad_input_returns_400(client, body, error):
    resp = client.post("/api/v1/feedback", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"error": error}


def test_feedback_unknown_message_returns_404(client, db_session):
    resp = client.post("/api/v1/feedback", json={"messageId": str(uuid.uuid4()), "feedback": "positive"})

    assert resp.status_code == 404
    assert resp.json() == {"error": "Message not found"}


def test_feedback_write_runs_off_the_event_loop(client, db_session, assistant_message):
    real_set_feedback = queries.set_feedback
    loop_threads = []

    def recording_set_feedback(*args, **kwargs):
        try:
            asyncio.get_running_loop()
            loop_threads.append(True)
        except RuntimeError:
            loop_threads.append(False)
        return real_set_feedback(*args, **kwargs)

    with patch("app.routers.feedback.queries.set_feedback", side_effect=recording_set_feedback):
        resp = client.post("/api/v1/feedback", json={"messageId": str(assistant_message.id), "feedback": "positive"})

    assert resp.status_code == 200
    assert loop_threads == [False]

"""Tests for conversation resolution and history resume."""

import uuid
from datetime import datetime, timedelta, timezone

from app.db import queries
from app.models.conversation import Conversation
from app.services.conversations import is_expired, resolve_or_create, resume_latest


def _conversation(db_session, tenant, visitor_id, hours_ago):
    at = datetime.now(timezone.utc) - timedelta(hours=hours_ago)
    conversation = Conversation(tenant_id=tenant.id, visitor_id=visitor_id, started_at=at, last_message_at=at)
    db_session.add(conversation)
    db_session.commit()
    db_session.refresh(conversation)
    return conversation


def test_supplied_id_is_returned_without_lookup(db_session, make_tenant):
    tenant = make_tenant()
    supplied = uuid.uuid4()

    assert resolve_or_create(db_session, tenant, supplied, "v1") == supplied
    assert db_session.query(Conversation).count() == 0


def test_new_visitor_gets_a_new_conversation(db_session, make_tenant):
    tenant = make_tenant()

    conversation_id = resolve_or_create(db_session, tenant, None, "v1")

    row = db_session.query(Conversation).filter(Conversation.id == conversation_id).one()
    assert row.tenant_id == tenant.id
    assert row.visitor_id == "v1"


def test_recent_conversation_is_resumed(db_session, make_tenant):
    tenant = make_tenant(conversation_expiry_hours=24)
    _conversation(db_session, tenant, "v1", hours_ago=5)
    latest = _conversation(db_session, tenant, "v1", hours_ago=1)

    assert resolve_or_create(db_session, tenant, None, "v1") == latest.id
    assert db_session.query(Conversation).count() == 2


def test_expired_conversation_is_not_resumed(db_session, make_tenant):
    tenant = make_tenant(conversation_expiry_hours=2)
    old = _conversation(db_session, tenant, "v1", hours_ago=3)

    conversation_id = resolve_or_create(db_session, tenant, None, "v1")

    assert conversation_id != old.id
    assert db_session.query(Conversation).count() == 2


def test_is_expired_handles_naive_timestamps():
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    conversation = Conversation(last_message_at=datetime(2026, 1, 1, 9, 0))

    assert is_expired(conversation, 2, now=now)
    assert not is_expired(conversation, 4, now=now)


def test_resume_latest_returns_none_without_history(db_session, make_tenant):
    tenant = make_tenant()
    assert resume_latest(db_session, tenant.id, "nobody") is None


def test_resume_latest_returns_ordered_messages(db_session, make_tenant):
    tenant = make_tenant()
    other = make_tenant(name="Other")
    _conversation(db_session, other, "v1", hours_ago=0)
    conversation = _conversation(db_session, tenant, "v1", hours_ago=1)
    start = datetime.now(timezone.utc)
    queries.save_message(db_session, conversation.id, "assistant", "Hello!", created_at=start + timedelta(seconds=1))
    queries.save_message(db_session, conversation.id, "user", "Hi", created_at=start)

    history = resume_latest(db_session, tenant.id, "v1")

    assert history.conversation.id == conversation.id
    assert [(m.role, m.content) for m in history.messages] == [("user", "Hi"), ("assistant", "Hello!")]

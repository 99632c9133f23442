"""Operator endpoints for managing tenants (stand-in for the dashboard's server actions).

All routes require the X-Admin-Key header to match ADMIN_API_KEY.
"""

import hmac
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.ai.models import get_default_model_for_plan, is_valid_model
from app.core.config import settings
from app.db import queries
from app.db.session import get_db
from app.models.tenant import Tenant
from app.schemas.tenant import (
    ConversationSummary,
    MessageDetail,
    TenantCreate,
    TenantRead,
    TenantUpdate,
)

logger = logging.getLogger(__name__)


def require_admin_key(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> None:
    if not settings.admin_api_key:
        raise HTTPException(status_code=503, detail="Operator API is not configured")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid admin key")


router = APIRouter(prefix="/tenants", tags=["tenants"], dependencies=[Depends(require_admin_key)])


def _get_tenant_or_404(db: Session, tenant_id: UUID) -> Tenant:
    tenant = queries.get_tenant(db, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant


@router.post("", response_model=TenantRead, status_code=201)
def create_tenant(body: TenantCreate, db: Session = Depends(get_db)):
    """Create a tenant. Without ai_model, the plan's default model is used."""
    data = body.model_dump()
    ai_model = data.pop("ai_model") or get_default_model_for_plan(body.plan).id
    if not is_valid_model(ai_model):
        raise HTTPException(status_code=400, detail=f"Unknown model: {ai_model}")

    tenant = Tenant(**data, ai_model=ai_model, active=True, messages_used=0)
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    logger.info("Created tenant id=%s domain=%s model=%s", tenant.id, tenant.domain, tenant.ai_model)
    return tenant


@router.get("/{tenant_id}", response_model=TenantRead)
def get_tenant(tenant_id: UUID, db: Session = Depends(get_db)):
    return _get_tenant_or_404(db, tenant_id)


@router.patch("/{tenant_id}", response_model=TenantRead)
def update_tenant(tenant_id: UUID, body: TenantUpdate, db: Session = Depends(get_db)):
    """Partial update (config edits, activation toggle). Only fields present in the body change."""
    tenant = _get_tenant_or_404(db, tenant_id)
    changes = body.model_dump(exclude_unset=True)

    if "ai_model" in changes and not is_valid_model(changes["ai_model"]):
        raise HTTPException(status_code=400, detail=f"Unknown model: {changes['ai_model']}")

    for field, value in changes.items():
        setattr(tenant, field, value)
    db.commit()
    db.refresh(tenant)
    logger.info("Updated tenant id=%s fields=%s", tenant.id, sorted(changes))
    return tenant


@router.post("/{tenant_id}/reset-usage", response_model=TenantRead)
def reset_tenant_usage(tenant_id: UUID, db: Session = Depends(get_db)):
    """Start a new billing period: messages_used back to 0."""
    tenant = _get_tenant_or_404(db, tenant_id)
    return queries.reset_usage(db, tenant)


@router.get("/{tenant_id}/conversations", response_model=list[ConversationSummary])
def list_tenant_conversations(
    tenant_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Conversations, most recent activity first, with message counts."""
    _get_tenant_or_404(db, tenant_id)
    rows = queries.list_conversations_with_counts(db, tenant_id, limit=limit)
    return [
        ConversationSummary(
            id=conversation.id,
            visitor_id=conversation.visitor_id,
            started_at=conversation.started_at,
            last_message_at=conversation.last_message_at,
            message_count=count,
        )
        for conversation, count in rows
    ]


@router.get("/{tenant_id}/conversations/{conversation_id}/messages", response_model=list[MessageDetail])
def list_conversation_messages(tenant_id: UUID, conversation_id: UUID, db: Session = Depends(get_db)):
    conversation = queries.get_conversation(db, tenant_id, conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return queries.get_messages(db, conversation.id, limit=1000)

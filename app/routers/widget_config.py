import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidRequestError
from app.core.validation import is_valid_uuid
from app.db.session import get_db
from app.models.tenant import Tenant
from app.schemas.widget import WidgetConfigRead
from app.services.access_guard import guard_tenant_origin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/config", tags=["widget"])


def build_widget_config(tenant: Tenant) -> WidgetConfigRead:
    """Public-safe view of a tenant: branding and copy only, never prompts or usage."""
    custom = tenant.customization if isinstance(tenant.customization, dict) else {}
    starter_questions = custom.get("starterQuestions") or []
    return WidgetConfigRead(
        bot_name=tenant.bot_name,
        welcome_message=tenant.welcome_message,
        primary_color=tenant.primary_color,
        border_radius=tenant.border_radius,
        position=tenant.position,
        bubble_icon_url=custom.get("bubbleIconUrl"),
        logo_url=custom.get("logoUrl"),
        greeting_message=custom.get("greetingMessage"),
        glow_effect=bool(custom.get("glowEffect", False)),
        starter_questions=[q for q in starter_questions if isinstance(q, str) and q.strip()],
    )


@router.get("", response_model=WidgetConfigRead)
def get_widget_config(
    request: Request,
    response: Response,
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    db: Session = Depends(get_db),
):
    """
    Widget configuration for an embed. 404 when the tenant is missing or inactive,
    403 when the page origin does not match the tenant domain. Cacheable for a few minutes.
    """
    if not is_valid_uuid(tenant_id):
        raise InvalidRequestError("Invalid or missing tenantId")

    tenant = guard_tenant_origin(db, UUID(tenant_id), request.headers.get("origin"))
    response.headers["Cache-Control"] = f"public, max-age={settings.config_cache_seconds}"
    return build_widget_config(tenant)

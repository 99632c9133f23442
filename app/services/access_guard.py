"""Access checks run before a chat turn (or config fetch) is served.

Order is fixed and the first failure short-circuits: tenant lookup, origin,
per-visitor rate limit, monthly quota. A rejected request never reaches the
conversation resolver or the provider.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.errors import (
    OriginNotAllowedError,
    QuotaExceededError,
    RateLimitedError,
    TenantNotFoundError,
)
from app.core.rate_limit import SlidingWindowRateLimiter, check_tenant_monthly_limit
from app.core.validation import is_valid_origin
from app.db import queries
from app.models.tenant import Tenant

logger = logging.getLogger(__name__)


def guard_tenant_origin(db: Session, tenant_id: UUID, origin: str | None) -> Tenant:
    """Active tenant whose domain matches the request origin, else 404 / 403."""
    tenant = queries.get_active_tenant(db, tenant_id)
    if tenant is None:
        raise TenantNotFoundError()

    if not is_valid_origin(origin, tenant.domain):
        logger.info("Origin rejected tenant_id=%s origin=%s domain=%s", tenant_id, origin, tenant.domain)
        raise OriginNotAllowedError()
    return tenant


def guard_chat_access(
    db: Session,
    tenant_id: UUID,
    origin: str | None,
    identity: str,
    limiter: SlidingWindowRateLimiter,
) -> Tenant:
    """All four chat checks; returns the tenant when the turn may proceed."""
    tenant = guard_tenant_origin(db, tenant_id, origin)

    decision = limiter.check(identity)
    if not decision.allowed:
        logger.info("Rate limited identity=%s retry_after=%s", identity, decision.retry_after)
        raise RateLimitedError(retry_after=decision.retry_after or int(limiter.window_seconds))

    if not check_tenant_monthly_limit(tenant.messages_used, tenant.message_limit):
        logger.warning(
            "Monthly quota exhausted tenant_id=%s used=%s limit=%s",
            tenant.id,
            tenant.messages_used,
            tenant.message_limit,
        )
        raise QuotaExceededError()

    return tenant

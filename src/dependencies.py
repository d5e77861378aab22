# src/dependencies.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Header, Request

from src.config import settings
from src.shared.exceptions import DomainError, ForbiddenError, UnauthorizedError
from src.shared.roles import Role, has_min_role, parse_role
from src.shared.utils.crypto import constant_time_equals
from src.webhooks.infrastructure.container import WebhookContainer
from src.webhooks.infrastructure.dependencies import get_webhook_container


def extract_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or request.headers.get("Authorization")
    if not auth:
        return None
    parts = auth.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def get_current_claims(request: Request) -> Dict[str, Any]:
    """Claims placed on request.state by JwtContextMiddleware."""
    claims = getattr(request.state, "user_claims", None)
    if not claims or not claims.get("sub"):
        raise UnauthorizedError("Missing or invalid bearer token")
    return claims


async def require_tenant_admin(
    tenant_id: str,
    request: Request,
    container: WebhookContainer = Depends(get_webhook_container),
) -> Dict[str, Any]:
    """
    Gate for /admin/tenants/{tenant_id}/... routes.

    SUPER_ADMIN may act on any tenant; TENANT_ADMIN only on the tenant in
    their token. The path may name the tenant by id, hex id or slug, so it is
    expanded through the tenant resolver before comparing with the claims.
    """
    claims = get_current_claims(request)
    role = parse_role(claims.get("role"))
    if has_min_role(role, Role.SUPER_ADMIN):
        return claims
    if not has_min_role(role, Role.TENANT_ADMIN):
        raise ForbiddenError("Tenant admin role required")

    own = {str(claims.get("tenant_id") or ""), str(claims.get("tenant_slug") or "")} - {""}
    if not own:
        raise ForbiddenError("Token is not scoped to a tenant")
    if tenant_id in own:
        return claims
    allowed = set(await container.tenant_resolver.match_values(tenant_id))
    if not own & allowed:
        raise ForbiddenError("Token is not scoped to this tenant")
    return claims


def require_cron_secret(x_cron_secret: Optional[str] = Header(default=None, alias="X-Cron-Secret")) -> None:
    expected = settings.CRON_SECRET_TOKEN
    if not expected:
        raise DomainError("Cron endpoint is not configured", code="cron_disabled", status_code=503)
    if not constant_time_equals(x_cron_secret, expected):
        raise UnauthorizedError("Invalid cron secret", code="invalid_cron_secret")

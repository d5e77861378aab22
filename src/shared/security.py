# src/shared/security.py

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union
from uuid import UUID

import jwt

from src.config import settings
from src.shared.exceptions import UnauthorizedError


def create_access_token(
    sub: Union[str, UUID],
    tenant_id: Union[str, UUID, None],
    role: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a JWT access token with user claims.

    Args:
        sub: Subject (user ID)
        tenant_id: Tenant the user belongs to (None for platform admins)
        role: User's role
        expires_delta: Token expiration time (defaults to config setting)
        extra_claims: Additional claims such as tenant_slug

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode: Dict[str, Any] = {
        "sub": str(sub),
        "tenant_id": str(tenant_id) if tenant_id is not None else None,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "typ": "access",
    }
    if extra_claims:
        to_encode.update(extra_claims)
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a JWT token.

    Raises:
        UnauthorizedError: If token is invalid, expired, or malformed
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM], options={"verify_exp": True})
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired", code="expired_token")
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(f"Invalid token: {e}")

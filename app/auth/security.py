from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional
from uuid import UUID

from jose import JWTError, jwt

from app.core.config import settings


class TokenClaims(NamedTuple):
    user_id: UUID
    tenant_id: UUID
    role: str


def create_access_token(
    *, user_id: UUID, tenant_id: UUID, role: str, expires_minutes: Optional[int] = None
) -> str:
    """Bearer token scoped to one school. Issued by the identity service; kept here for tooling and tests."""
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    claims = {
        "user_id": str(user_id),
        "tenant_id": str(tenant_id),
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    """Verify signature and expiry. Raises JWTError when the token is invalid or lacks a school scope."""
    payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    user_id = payload.get("user_id") or payload.get("sub")
    tenant_id = payload.get("tenant_id")
    role = payload.get("role")
    if not user_id or not tenant_id or not role:
        raise JWTError("Token is missing user, tenant or role claims")
    try:
        return TokenClaims(UUID(str(user_id)), UUID(str(tenant_id)), role)
    except ValueError as exc:
        raise JWTError("Token carries a malformed id") from exc

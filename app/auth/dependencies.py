from typing import Dict

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import Role, User
from app.auth.schemas import CurrentUser
from app.auth.security import decode_access_token
from app.core.models import Tenant
from app.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")

_credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the caller, their school scope and permissions. Inactive users or schools are rejected."""
    try:
        claims = decode_access_token(token)
    except JWTError:
        raise _credentials_exception

    # The school in the token must be the user's own school
    row = (
        await db.execute(
            select(User, Tenant)
            .join(Tenant, User.tenant_id == Tenant.id)
            .where(User.id == claims.user_id, User.tenant_id == claims.tenant_id)
        )
    ).first()
    if row is None:
        raise _credentials_exception
    user, tenant = row
    # A role change since the token was issued invalidates it
    if user.status != "ACTIVE" or tenant.status != "ACTIVE" or user.role != claims.role:
        raise _credentials_exception

    # Permissions come from the tenant-scoped role named in the user record
    role = (
        await db.execute(select(Role).where(Role.tenant_id == tenant.id, Role.name == user.role))
    ).scalar_one_or_none()
    permissions: Dict[str, Dict[str, bool]] = dict(role.permissions or {}) if role else {}

    return CurrentUser(
        id=user.id,
        tenant_id=tenant.id,
        role=user.role,
        permissions=permissions,
    )

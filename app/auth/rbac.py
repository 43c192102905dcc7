from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser

# School administrators manage fees without an explicit role grant
FEE_ADMIN_ROLES = ("SUPER_ADMIN", "ADMIN")


def has_permission(user: CurrentUser, module: str, action: str) -> bool:
    if user.role in FEE_ADMIN_ROLES:
        return True
    return bool((user.permissions or {}).get(module, {}).get(action, False))


def check_permission(module: str, action: str):
    """
    Route dependency: 403 unless the caller may perform `action` on `module`.

    Example:
        dependencies=[Depends(check_permission("fees", "create"))]
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_permission(current_user, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing '{action}' permission on {module}",
            )
        return current_user

    return _checker

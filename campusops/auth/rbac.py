from typing import Dict

from fastapi import Depends, HTTPException, status

from campusops.auth.dependencies import get_current_user
from campusops.auth.schemas import CurrentUser

# Roles that pass every module permission check within their tenant
ADMIN_ROLES = ("SUPER_ADMIN", "PLATFORM_ADMIN", "Admin")


async def require_platform_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require PLATFORM_ADMIN role. Used for platform-wide operations such as onboarding tenants."""
    if current_user.role != "PLATFORM_ADMIN":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Platform Admin can perform this action",
        )
    return current_user


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("employees", "update"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if current_user.role in ADMIN_ROLES:
            return
        permissions: Dict[str, Dict[str, bool]] = current_user.permissions or {}
        if not permissions.get(module, {}).get(action, False):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker

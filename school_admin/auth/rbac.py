"""Role -> permission table and the FastAPI dependency that enforces it.

Authorization runs as a route dependency, so it is always decided before the
handler looks up the target record: a caller without the permission gets 403
even when the id does not exist.
"""

from enum import Enum
from typing import Dict, FrozenSet

from fastapi import Depends, HTTPException, status

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole


class Permission(str, Enum):
    STUDENT_READ = "student:read"
    STUDENT_WRITE = "student:write"
    STUDENT_DELETE = "student:delete"
    FEE_READ = "fee:read"
    FEE_WRITE = "fee:write"
    FEE_DELETE = "fee:delete"
    USER_REGISTER = "user:register"


# teacher-or-above: admin, head_teacher, teacher
_TEACHING_STAFF = frozenset(
    {
        Permission.STUDENT_READ,
        Permission.STUDENT_WRITE,
        Permission.FEE_READ,
        Permission.FEE_WRITE,
    }
)

ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[Permission]] = {
    UserRole.ADMIN: frozenset(Permission),
    UserRole.HEAD_TEACHER: _TEACHING_STAFF,
    UserRole.TEACHER: _TEACHING_STAFF,
    UserRole.ACCOUNTANT: frozenset(
        {
            Permission.STUDENT_READ,
            Permission.FEE_READ,
            Permission.FEE_WRITE,
            Permission.FEE_DELETE,
        }
    ),
    UserRole.STUDENT: frozenset(),
    UserRole.PARENT: frozenset(),
}


def role_has_permission(role: UserRole, permission: Permission) -> bool:
    # every role must be listed; a missing one raises KeyError
    return permission in ROLE_PERMISSIONS[UserRole(role)]


def check_permission(permission: Permission):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission(Permission.FEE_DELETE))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not role_has_permission(current_user.role, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role {current_user.role.value} is not authorized to access this route",
            )
        return current_user

    return _checker

from __future__ import annotations

from functools import wraps

from flask import abort
from flask_login import current_user

from portal.core.models import Permission, PermissionAction, User, UserPermission, UserRole


class NotFoundError(LookupError):
    pass


class ForbiddenError(PermissionError):
    pass


def _coerce_action(action: PermissionAction | str) -> PermissionAction:
    return action if isinstance(action, PermissionAction) else PermissionAction(action.upper())


def current_grants(user: User) -> list[UserPermission]:
    return [grant for grant in user.permissions if grant.is_current()]


def has_permission(user: User | None, code: str, action: PermissionAction | str = PermissionAction.READ) -> bool:
    if user is None or not getattr(user, "is_authenticated", False) or not user.is_active:
        return False
    if user.role == UserRole.SUPER_ADMIN:
        return True
    action = _coerce_action(action)
    for grant in current_grants(user):
        permission: Permission = grant.permission
        if permission.code == code and permission.allows(action):
            return True
    return False


def require_permission(code: str, action: PermissionAction | str = PermissionAction.READ):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if not has_permission(current_user, code, action):
                abort(403)
            return fn(*args, **kwargs)

        return wrapper

    return decorator

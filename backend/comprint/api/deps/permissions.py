from __future__ import annotations

from typing import Callable, Sequence

from fastapi import Depends

from comprint.api.deps.auth import get_current_user
from comprint.auth.permissions import effective_permissions, is_permitted
from comprint.core.errors import AuthorizationError
from comprint.models.user import User


def require_permissions(required: str | Sequence[str]) -> Callable:
    """
    Enforce RBAC permissions using:
      - get_current_user()
      - User.role looked up in ROLE_BASE_PERMISSIONS

    Args:
      required: permission string OR list of permissions, all of which must be granted

    Returns the current user so handlers can depend on this alone.
    """
    required_list = [required] if isinstance(required, str) else list(required)

    async def _checker(user: User = Depends(get_current_user)) -> User:
        role = (user.role or "").strip().lower()
        if not role:
            raise AuthorizationError("User role is missing")

        grants = effective_permissions(role=role)

        if not all(is_permitted(role=role, grants=grants, required=p) for p in required_list):
            raise AuthorizationError("You do not have permission to perform this action")

        return user

    return _checker

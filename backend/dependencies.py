"""
backend/dependencies.py

Reusable FastAPI dependencies for the admin surface.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends

from backend.auth_context import require_principal
from backend.authz import Action, Principal, authorize


def require_admin_action(action: Action) -> Callable:
    """
    FastAPI dependency factory gating a route on an admin-surface action.

    Usage in routes:
        @router.get("/users", dependencies=[Depends(require_admin_action(Action.ADMIN_MANAGE_USERS))])
        def list_users(...):
            ...

    The services repeat the same check, so calling them outside HTTP stays safe.

    Raises:
        Forbidden: principal's role lacks the capability (rendered as 403)
    """
    def _check_admin(principal: Principal = Depends(require_principal)) -> Principal:
        authorize(principal, action, message="Admin access required")
        return principal

    return _check_admin

"""
backend/rbac.py

Role-Based Access Control (RBAC) for the privileged admin surface.

Roles grant capabilities; capabilities gate the admin-only operations
(dashboard, user management, project/task management across all owners).

Key principle: the admin role is a separate privileged surface. It does NOT
make an admin an implicit member of arbitrary projects, so member-facing
operations (task creation, project editing, ...) still follow the ownership
rules in backend/authz.py.

Pure Python logic - no FastAPI imports, no database access.
"""

from enum import Enum
from typing import Set


# ============================================================================
# Role Definitions
# ============================================================================

class Role:
    """Role constants for RBAC."""
    MEMBER = "member"
    ADMIN = "admin"


class Capability(str, Enum):
    """Capabilities of the admin surface."""

    ADMIN_DASHBOARD = "admin:dashboard"
    ADMIN_USERS = "admin:users"
    ADMIN_PROJECTS = "admin:projects"
    ADMIN_TASKS = "admin:tasks"


# ============================================================================
# Role to Capabilities Mapping
# ============================================================================

ROLE_CAPABILITIES: dict[str, Set[str]] = {
    "admin": {
        Capability.ADMIN_DASHBOARD,
        Capability.ADMIN_USERS,
        Capability.ADMIN_PROJECTS,
        Capability.ADMIN_TASKS,
    },
    "member": set(),
}


def role_capabilities(role: str) -> Set[str]:
    """
    Capabilities granted to a role.

    Args:
        role: User role ("member" or "admin")

    Returns:
        Set of capability strings; empty set for unknown roles.
    """
    role_lower = role.lower() if role else ""
    return set(ROLE_CAPABILITIES.get(role_lower, set()))


def has_capability(role: str, capability: str) -> bool:
    """
    Check if a role grants a capability.

    Returns False for unknown roles or capabilities.
    """
    return capability in role_capabilities(role)


def is_admin(role: str) -> bool:
    return (role or "").lower() == Role.ADMIN

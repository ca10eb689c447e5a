"""
backend/authz.py

Authorization Policy: single source of truth for who may do what to a project
or its tasks. All services go through this module; no handler re-derives
ownership checks on its own.

Pure decision logic: given a Principal, an Action and (where relevant) the
Project the action touches, decide whether it is permitted. No side effects
besides logging, no database access.

Precedence:
1. Admin-surface actions -> role capability check (backend/rbac.py)
2. Member-facing actions -> ownership / team-membership rules below.
   The admin role gets no implicit membership here.

Rules for member-facing actions:
    PROJECT_READ        owner or team member
    PROJECT_UPDATE      owner
    PROJECT_DELETE      owner
    TEAM_MANAGE         owner
    TASK_CREATE         owner or team member of the target project
    TASK_UPDATE         owner or team member of the parent project
    TASK_DELETE         owner or team member of the parent project
    TASK_ASSIGN         owner or team member of the parent project
    TASK_STATUS_UPDATE  any authenticated principal (no membership check)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from backend.config import IS_DEV
from backend.errors import Forbidden
from backend.models import Project
from backend.rbac import Capability, has_capability


# ============================================================================
# Principal
# ============================================================================

@dataclass(frozen=True)
class Principal:
    """
    Authenticated actor performing an operation.
    Resolved from the bearer credential before any policy check runs.
    """
    user_id: str
    role: str = "member"

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("Principal requires a user_id")


# ============================================================================
# Actions
# ============================================================================

class Action(str, Enum):
    """Every operation the policy can be asked about."""

    PROJECT_READ = "project:read"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"
    TEAM_MANAGE = "team:manage"

    TASK_CREATE = "task:create"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"
    TASK_STATUS_UPDATE = "task:status_update"
    TASK_ASSIGN = "task:assign"

    ADMIN_DASHBOARD = "admin:dashboard"
    ADMIN_MANAGE_USERS = "admin:manage_users"
    ADMIN_MANAGE_PROJECTS = "admin:manage_projects"
    ADMIN_MANAGE_TASKS = "admin:manage_tasks"


# Admin-surface actions and the capability each one needs
ADMIN_ACTION_CAPABILITIES: Dict[Action, Capability] = {
    Action.ADMIN_DASHBOARD: Capability.ADMIN_DASHBOARD,
    Action.ADMIN_MANAGE_USERS: Capability.ADMIN_USERS,
    Action.ADMIN_MANAGE_PROJECTS: Capability.ADMIN_PROJECTS,
    Action.ADMIN_MANAGE_TASKS: Capability.ADMIN_TASKS,
}


# ============================================================================
# Rules
# ============================================================================

def is_project_owner(principal: Principal, project: Project) -> bool:
    return project.owner == principal.user_id


def is_project_member(principal: Principal, project: Project) -> bool:
    """Owner or any team member (owner counts even if missing from the list)."""
    return is_project_owner(principal, project) or principal.user_id in project.team_members


def _any_principal(principal: Principal, project: Optional[Project]) -> bool:
    return True


Rule = Callable[[Principal, Project], bool]

MEMBER_RULES: Dict[Action, Rule] = {
    Action.PROJECT_READ: is_project_member,
    Action.PROJECT_UPDATE: is_project_owner,
    Action.PROJECT_DELETE: is_project_owner,
    Action.TEAM_MANAGE: is_project_owner,
    Action.TASK_CREATE: is_project_member,
    Action.TASK_UPDATE: is_project_member,
    Action.TASK_DELETE: is_project_member,
    Action.TASK_ASSIGN: is_project_member,
    Action.TASK_STATUS_UPDATE: _any_principal,
}


def is_permitted(principal: Principal, action: Action, project: Optional[Project] = None) -> bool:
    """
    Decide whether principal may perform action.

    Args:
        principal: Authenticated actor
        action: Action being attempted
        project: Project the action touches (the task's parent for task actions).
            Not needed for admin-surface actions or TASK_STATUS_UPDATE.

    Returns:
        True if permitted, False otherwise.
    """
    capability = ADMIN_ACTION_CAPABILITIES.get(action)
    if capability is not None:
        return has_capability(principal.role, capability)

    rule = MEMBER_RULES.get(action)
    if rule is None:
        # Unknown action: deny
        return False
    if project is None:
        return rule is _any_principal
    return rule(principal, project)


def authorize(
    principal: Principal,
    action: Action,
    project: Optional[Project] = None,
    message: Optional[str] = None,
) -> None:
    """
    Enforce the policy.

    Raises:
        Forbidden: If the principal is not permitted to perform the action
    """
    if not is_permitted(principal, action, project):
        project_id = project.id if project is not None else None
        print(f"[AUTHZ] Denied: user_id={principal.user_id}, role={principal.role}, "
              f"action={action.value}, project_id={project_id}")
        raise Forbidden(message or "Access denied")

    if IS_DEV:
        print(f"[AUTHZ] Granted: user_id={principal.user_id}, action={action.value}")

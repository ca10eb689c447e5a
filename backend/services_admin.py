"""
backend/services_admin.py

Admin surface: operations over all users, projects and tasks regardless of
ownership. Every function starts with an admin-capability check
(backend/rbac.py via authz.authorize), so a member calling any of them gets
Forbidden.

User deletion never orphans projects: a user who still owns projects cannot
be deleted. Their team memberships and task assignments are cleared on
deletion.
"""

from __future__ import annotations

from typing import Any, Dict, List

from backend.authz import Action, Principal, authorize
from backend.errors import InvalidOperation, NotFound
from backend.models import Project, Task, User, UserRole
from backend.services_projects import cascade_delete_project, require_project
from backend.store import EntityStore

RECENT_LIMIT = 5

ADMIN_ONLY = "Admin access required"


# ---------------------------------------------------------
# Projects
# ---------------------------------------------------------
def list_all_projects(store: EntityStore, principal: Principal) -> List[Project]:
    authorize(principal, Action.ADMIN_MANAGE_PROJECTS, message=ADMIN_ONLY)
    return store.projects.find(sort=["-created_at"])


def delete_any_project(store: EntityStore, principal: Principal, project_id: str) -> int:
    """Cascade-delete any project (same task-first order as the owner path)."""
    authorize(principal, Action.ADMIN_MANAGE_PROJECTS, message=ADMIN_ONLY)
    project = require_project(store, project_id)
    deleted = cascade_delete_project(store, project)
    print(f"[ADMIN] user_id={principal.user_id} deleted project_id={project.id}")
    return deleted


# ---------------------------------------------------------
# Tasks
# ---------------------------------------------------------
def list_all_tasks(store: EntityStore, principal: Principal) -> List[Task]:
    authorize(principal, Action.ADMIN_MANAGE_TASKS, message=ADMIN_ONLY)
    return store.tasks.find(sort=["-created_at"])


def delete_any_task(store: EntityStore, principal: Principal, task_id: str) -> None:
    authorize(principal, Action.ADMIN_MANAGE_TASKS, message=ADMIN_ONLY)
    if store.tasks.find_by_id(task_id) is None:
        raise NotFound("Task not found")
    store.tasks.delete_by_id(task_id)
    print(f"[ADMIN] user_id={principal.user_id} deleted task_id={task_id}")


# ---------------------------------------------------------
# Users
# ---------------------------------------------------------
def list_all_users(store: EntityStore, principal: Principal) -> List[User]:
    authorize(principal, Action.ADMIN_MANAGE_USERS, message=ADMIN_ONLY)
    return store.users.find(sort=["-created_at"])


def delete_user(store: EntityStore, principal: Principal, user_id: str) -> None:
    """
    Delete a user account.

    Raises:
        NotFound: user does not exist
        InvalidOperation: user still owns projects
    """
    authorize(principal, Action.ADMIN_MANAGE_USERS, message=ADMIN_ONLY)
    user = store.users.find_by_id(user_id)
    if user is None:
        raise NotFound("User not found")

    owned = store.projects.count({"owner": user.id})
    if owned:
        raise InvalidOperation(
            f"User owns {owned} project(s); delete or hand them over before deleting the user"
        )

    removed = store.projects.remove_member_everywhere(user.id)
    assigned = store.tasks.find({"assigned_to": user.id})
    for task in assigned:
        store.tasks.update_by_id(task.id, {"assigned_to": None})

    store.users.delete_by_id(user.id)
    print(f"[ADMIN] user_id={principal.user_id} deleted user_id={user.id} "
          f"(memberships={removed}, unassigned_tasks={len(assigned)})")


def update_user_role(store: EntityStore, principal: Principal, user_id: str, role: Any) -> User:
    authorize(principal, Action.ADMIN_MANAGE_USERS, message=ADMIN_ONLY)
    try:
        role_enum = UserRole(role)
    except ValueError:
        valid_roles = [r.value for r in UserRole]
        raise InvalidOperation(f"Invalid role name. Valid options: {valid_roles}")

    if store.users.find_by_id(user_id) is None:
        raise NotFound("User not found")

    updated = store.users.update_by_id(user_id, {"role": role_enum})
    print(f"[ADMIN] Set user {user_id} role to {role_enum.value}")
    return updated


# ---------------------------------------------------------
# Dashboard
# ---------------------------------------------------------
def dashboard_stats(store: EntityStore, principal: Principal) -> Dict[str, Any]:
    """
    Aggregate counts over all three entities.

    Returns:
        {
            "totals": {"users", "projects", "tasks"},
            "tasks_by_status": [{"key", "count"}],
            "projects_by_status": [...],
            "tasks_by_priority": [...],
            "users_by_role": [...],
            "recent": {"users": [User], "projects": [Project]},
        }
    """
    authorize(principal, Action.ADMIN_DASHBOARD, message=ADMIN_ONLY)
    return {
        "totals": {
            "users": store.users.count(),
            "projects": store.projects.count(),
            "tasks": store.tasks.count(),
        },
        "tasks_by_status": store.tasks.group_count("status"),
        "projects_by_status": store.projects.group_count("status"),
        "tasks_by_priority": store.tasks.group_count("priority"),
        "users_by_role": store.users.group_count("role"),
        "recent": {
            "users": store.users.find(sort=["-created_at"], limit=RECENT_LIMIT),
            "projects": store.projects.find(sort=["-created_at"], limit=RECENT_LIMIT),
        },
    }

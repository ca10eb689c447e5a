"""
backend/routes_admin.py

Admin-only endpoints: dashboard statistics and management of all users,
projects and tasks.

Security guarantees:
- Every route is gated by require_admin_action (role capability, backend/rbac.py)
- The services re-check the same capability
- Ownership is deliberately NOT checked here; this is the privileged surface
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from backend import services_admin, services_projects
from backend.auth_context import get_store
from backend.authz import Action, Principal
from backend.dependencies import require_admin_action
from backend.schemas_projects import (
    MessageResponse,
    ProjectListResponse,
    ProjectResponse,
    TaskListResponse,
    TaskResponse,
    UserSummary,
)
from backend.schemas_users import (
    DashboardRecent,
    DashboardResponse,
    DashboardTotals,
    GroupCount,
    RoleUpdateRequest,
    UserListResponse,
)
from backend.store import EntityStore


router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
)


# ---------------------------------------------------------
# Dashboard
# ---------------------------------------------------------
@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    principal: Principal = Depends(require_admin_action(Action.ADMIN_DASHBOARD)),
    store: EntityStore = Depends(get_store),
) -> DashboardResponse:
    stats = services_admin.dashboard_stats(store, principal)
    users = services_projects.user_directory(store, stats["recent"]["projects"])
    return DashboardResponse(
        totals=DashboardTotals(**stats["totals"]),
        tasks_by_status=[GroupCount(**g) for g in stats["tasks_by_status"]],
        projects_by_status=[GroupCount(**g) for g in stats["projects_by_status"]],
        tasks_by_priority=[GroupCount(**g) for g in stats["tasks_by_priority"]],
        users_by_role=[GroupCount(**g) for g in stats["users_by_role"]],
        recent=DashboardRecent(
            users=[UserSummary.from_user(u) for u in stats["recent"]["users"]],
            projects=[ProjectResponse.from_project(p, users) for p in stats["recent"]["projects"]],
        ),
    )


# ---------------------------------------------------------
# Users
# ---------------------------------------------------------
@router.get("/users", response_model=UserListResponse)
def list_users(
    principal: Principal = Depends(require_admin_action(Action.ADMIN_MANAGE_USERS)),
    store: EntityStore = Depends(get_store),
) -> UserListResponse:
    users = services_admin.list_all_users(store, principal)
    return UserListResponse(count=len(users), users=[UserSummary.from_user(u) for u in users])


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str = Path(..., description="User ID"),
    principal: Principal = Depends(require_admin_action(Action.ADMIN_MANAGE_USERS)),
    store: EntityStore = Depends(get_store),
) -> MessageResponse:
    """
    Delete a user.

    Raises:
        404: user not found
        400: user still owns projects
    """
    services_admin.delete_user(store, principal, user_id)
    return MessageResponse(message="User deleted successfully")


@router.patch("/users/{user_id}/role", response_model=UserSummary)
def update_user_role(
    request: RoleUpdateRequest,
    user_id: str = Path(..., description="User ID"),
    principal: Principal = Depends(require_admin_action(Action.ADMIN_MANAGE_USERS)),
    store: EntityStore = Depends(get_store),
) -> UserSummary:
    user = services_admin.update_user_role(store, principal, user_id, request.role)
    return UserSummary.from_user(user)


# ---------------------------------------------------------
# Projects
# ---------------------------------------------------------
@router.get("/projects", response_model=ProjectListResponse)
def list_projects(
    principal: Principal = Depends(require_admin_action(Action.ADMIN_MANAGE_PROJECTS)),
    store: EntityStore = Depends(get_store),
) -> ProjectListResponse:
    projects = services_admin.list_all_projects(store, principal)
    users = services_projects.user_directory(store, projects)
    return ProjectListResponse(
        count=len(projects),
        projects=[ProjectResponse.from_project(p, users) for p in projects],
    )


@router.delete("/projects/{project_id}", response_model=MessageResponse)
def delete_project(
    project_id: str = Path(..., description="Project ID"),
    principal: Principal = Depends(require_admin_action(Action.ADMIN_MANAGE_PROJECTS)),
    store: EntityStore = Depends(get_store),
) -> MessageResponse:
    services_admin.delete_any_project(store, principal, project_id)
    return MessageResponse(message="Project and associated tasks deleted successfully by admin")


# ---------------------------------------------------------
# Tasks
# ---------------------------------------------------------
@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    principal: Principal = Depends(require_admin_action(Action.ADMIN_MANAGE_TASKS)),
    store: EntityStore = Depends(get_store),
) -> TaskListResponse:
    tasks = services_admin.list_all_tasks(store, principal)
    users = services_projects.user_directory(store, tasks=tasks)
    return TaskListResponse(count=len(tasks), tasks=[TaskResponse.from_task(t, users) for t in tasks])


@router.delete("/tasks/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: str = Path(..., description="Task ID"),
    principal: Principal = Depends(require_admin_action(Action.ADMIN_MANAGE_TASKS)),
    store: EntityStore = Depends(get_store),
) -> MessageResponse:
    services_admin.delete_any_task(store, principal, task_id)
    return MessageResponse(message="Task deleted successfully by admin")

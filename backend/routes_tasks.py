"""
backend/routes_tasks.py

Task endpoints. Permission on a task follows its parent project (see
backend.authz); the status endpoint only requires authentication.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from backend import services_projects, services_tasks
from backend.auth_context import get_store, require_principal
from backend.authz import Principal
from backend.schemas_projects import (
    MessageResponse,
    TaskAssignRequest,
    TaskCreateRequest,
    TaskResponse,
    TaskStatusRequest,
    TaskUpdateRequest,
)
from backend.store import EntityStore


router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)


@router.post("", response_model=TaskResponse, status_code=201)
def create_task(
    request: TaskCreateRequest,
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> TaskResponse:
    """
    Create a task in a project the caller belongs to.

    Raises:
        404: project not found
        403: caller is neither owner nor team member
        400: assigned_to is not a team member
    """
    task = services_tasks.create_task(
        store,
        principal,
        project_id=request.project_id,
        title=request.title,
        description=request.description,
        assigned_to=request.assigned_to,
        priority=request.priority,
        due_date=request.due_date,
    )
    return TaskResponse.from_task(task, services_projects.user_directory(store, tasks=[task]))


@router.get("/my-tasks", response_model=List[TaskResponse])
def list_my_tasks(
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> List[TaskResponse]:
    """Tasks assigned to the caller, earliest due date first."""
    tasks = services_tasks.list_my_tasks(store, principal)
    users = services_projects.user_directory(store, tasks=tasks)
    return [TaskResponse.from_task(t, users) for t in tasks]


@router.get("/project/{project_id}", response_model=List[TaskResponse])
def list_project_tasks(
    project_id: str = Path(..., description="Project ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> List[TaskResponse]:
    tasks = services_tasks.list_project_tasks(store, principal, project_id)
    users = services_projects.user_directory(store, tasks=tasks)
    return [TaskResponse.from_task(t, users) for t in tasks]


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    request: TaskUpdateRequest,
    task_id: str = Path(..., description="Task ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> TaskResponse:
    task = services_tasks.update_task(store, principal, task_id, request.model_dump(exclude_unset=True))
    return TaskResponse.from_task(task, services_projects.user_directory(store, tasks=[task]))


@router.patch("/{task_id}/status", response_model=TaskResponse)
def update_task_status(
    request: TaskStatusRequest,
    task_id: str = Path(..., description="Task ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> TaskResponse:
    """Status fast-path: any authenticated caller unless STRICT_STATUS_UPDATES is set."""
    task = services_tasks.update_task_status(store, principal, task_id, request.status)
    return TaskResponse.from_task(task, services_projects.user_directory(store, tasks=[task]))


@router.patch("/{task_id}/assign", response_model=TaskResponse)
def assign_task(
    request: TaskAssignRequest,
    task_id: str = Path(..., description="Task ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> TaskResponse:
    """
    Assign the task to a team member of its project.

    Raises:
        400: user is not a team member
    """
    task = services_tasks.assign_task(store, principal, task_id, request.user_id)
    return TaskResponse.from_task(task, services_projects.user_directory(store, tasks=[task]))


@router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: str = Path(..., description="Task ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> MessageResponse:
    services_tasks.delete_task(store, principal, task_id)
    return MessageResponse(message="Task deleted successfully")

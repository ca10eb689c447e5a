"""
backend/routes_projects.py

Project and team-membership endpoints.

Security guarantees:
- All endpoints require authentication (require_principal)
- Ownership / membership decisions are made by backend.authz, never here
- owner is always the authenticated principal on create (never from the body)
- Input validation via Pydantic schemas
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from backend import services_projects
from backend.auth_context import get_store, require_principal
from backend.authz import Principal
from backend.schemas_projects import (
    MessageResponse,
    ProjectCreateRequest,
    ProjectDetailResponse,
    ProjectResponse,
    ProjectUpdateRequest,
    TaskResponse,
    TeamMemberRequest,
    UserSummary,
)
from backend.store import EntityStore


router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
)

team_router = APIRouter(
    prefix="/api/team",
    tags=["team"],
)


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    request: ProjectCreateRequest,
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> ProjectResponse:
    """
    Create a new project owned by the caller.

    The caller becomes owner and first team member; status starts at "planning".
    """
    project = services_projects.create_project(
        store,
        principal,
        title=request.title,
        description=request.description,
        start_date=request.start_date,
        end_date=request.end_date,
    )
    return ProjectResponse.from_project(project, services_projects.user_directory(store, [project]))


@router.get("", response_model=List[ProjectResponse])
def list_projects(
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> List[ProjectResponse]:
    """Projects the caller owns or belongs to, newest first."""
    projects = services_projects.list_projects(store, principal)
    users = services_projects.user_directory(store, projects)
    return [ProjectResponse.from_project(p, users) for p in projects]


@router.get("/{project_id}", response_model=ProjectDetailResponse)
def get_project(
    project_id: str = Path(..., description="Project ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> ProjectDetailResponse:
    """
    Project detail plus its tasks.

    Raises:
        404: project not found
        403: caller is neither owner nor team member
    """
    project, tasks = services_projects.get_project(store, principal, project_id)
    users = services_projects.user_directory(store, [project], tasks)
    return ProjectDetailResponse(
        project=ProjectResponse.from_project(project, users),
        tasks=[TaskResponse.from_task(t, users) for t in tasks],
    )


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    request: ProjectUpdateRequest,
    project_id: str = Path(..., description="Project ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> ProjectResponse:
    """Owner-only partial update (empty values keep the current value)."""
    project = services_projects.update_project(
        store, principal, project_id, request.model_dump(exclude_unset=True)
    )
    return ProjectResponse.from_project(project, services_projects.user_directory(store, [project]))


@router.delete("/{project_id}", response_model=MessageResponse)
def delete_project(
    project_id: str = Path(..., description="Project ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> MessageResponse:
    """Owner-only delete; the project's tasks are deleted first."""
    services_projects.delete_project(store, principal, project_id)
    return MessageResponse(message="Project and associated tasks deleted successfully")


# ---------------------------------------------------------
# Team
# ---------------------------------------------------------
@team_router.get("/{project_id}", response_model=List[UserSummary])
def list_team_members(
    project_id: str = Path(..., description="Project ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> List[UserSummary]:
    users = services_projects.list_team_members(store, principal, project_id)
    return [UserSummary.from_user(u) for u in users]


@team_router.post("/{project_id}/add", response_model=ProjectResponse)
def add_team_member(
    request: TeamMemberRequest,
    project_id: str = Path(..., description="Project ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> ProjectResponse:
    """
    Add a user to the team (owner only).

    Raises:
        404: project or user not found
        403: caller is not the owner
        400: user already on the team
    """
    project = services_projects.add_team_member(store, principal, project_id, request.user_id)
    return ProjectResponse.from_project(project, services_projects.user_directory(store, [project]))


@team_router.post("/{project_id}/remove", response_model=ProjectResponse)
def remove_team_member(
    request: TeamMemberRequest,
    project_id: str = Path(..., description="Project ID"),
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> ProjectResponse:
    """
    Remove a user from the team (owner only).

    Raises:
        400: target is the project owner
        403: caller is not the owner
    """
    project = services_projects.remove_team_member(store, principal, project_id, request.user_id)
    return ProjectResponse.from_project(project, services_projects.user_directory(store, [project]))

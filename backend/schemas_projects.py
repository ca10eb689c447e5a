"""
backend/schemas_projects.py

Pydantic schemas for projects, team membership and tasks.
Request schemas validate input; response schemas never expose password hashes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.models import Project, ProjectStatus, Task, TaskPriority, TaskStatus, User


def strip_text(v):
    if isinstance(v, str):
        return v.strip()
    return v


def _blank_to_none(v):
    """Empty date strings mean "not sent" (partial updates skip them)."""
    if isinstance(v, str) and not v.strip():
        return None
    return v


# ========================================================================
# USERS (public view)
# ========================================================================

class UserSummary(BaseModel):
    """Public user view (never includes password_hash)."""
    id: str
    name: str
    email: str
    role: str
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role.value, created_at=user.created_at)


# ========================================================================
# PROJECT SCHEMAS
# ========================================================================

class ProjectCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, description="Project title")
    description: str = Field(..., min_length=1, max_length=5000, description="Project description")
    start_date: Optional[datetime] = Field(None, description="ISO date/datetime; defaults to now")
    end_date: Optional[datetime] = Field(None, description="ISO date/datetime")

    @field_validator("title", "description", mode="before")
    @classmethod
    def trim_text(cls, v):
        """Trim whitespace before length validation."""
        return strip_text(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def blank_date(cls, v):
        return _blank_to_none(v)


class ProjectUpdateRequest(BaseModel):
    """Partial update: absent or empty fields keep their current value."""
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[ProjectStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def trim_text(cls, v):
        """Whitespace-only text trims to "" and is skipped like any empty value."""
        return strip_text(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def blank_date(cls, v):
        return _blank_to_none(v)


class ProjectResponse(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    title: str
    description: str
    owner: str
    team_members: List[str] = Field(default_factory=list)
    status: ProjectStatus
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    created_at: str
    updated_at: str
    owner_user: Optional[UserSummary] = None
    team: List[UserSummary] = Field(default_factory=list)

    @classmethod
    def from_project(cls, project: Project, users: Optional[Dict[str, User]] = None) -> "ProjectResponse":
        """
        users: id -> User directory used to embed owner and team summaries.
        Without it only the raw ids are returned.
        """
        users = users or {}
        owner = users.get(project.owner)
        return cls(
            **project.model_dump(),
            owner_user=UserSummary.from_user(owner) if owner else None,
            team=[UserSummary.from_user(users[uid]) for uid in project.team_members if uid in users],
        )


class ProjectListResponse(BaseModel):
    count: int = 0
    projects: List[ProjectResponse] = Field(default_factory=list)


class TeamMemberRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="User to add or remove")


# ========================================================================
# TASK SCHEMAS
# ========================================================================

class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    project_id: str = Field(..., min_length=1)
    assigned_to: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def trim_text(cls, v):
        """Trim whitespace before length validation."""
        return strip_text(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def blank_date(cls, v):
        return _blank_to_none(v)


class TaskUpdateRequest(BaseModel):
    """Partial update; assigned_to is applied whenever it is sent (null unassigns)."""
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[str] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def trim_text(cls, v):
        return strip_text(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def blank_date(cls, v):
        return _blank_to_none(v)


class TaskStatusRequest(BaseModel):
    status: TaskStatus


class TaskAssignRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class TaskResponse(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    title: str
    description: str
    project: str
    assigned_to: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[str] = None
    created_at: str
    updated_at: str
    assignee: Optional[UserSummary] = None

    @classmethod
    def from_task(cls, task: Task, users: Optional[Dict[str, User]] = None) -> "TaskResponse":
        assignee = (users or {}).get(task.assigned_to) if task.assigned_to else None
        return cls(**task.model_dump(), assignee=UserSummary.from_user(assignee) if assignee else None)


class TaskListResponse(BaseModel):
    count: int = 0
    tasks: List[TaskResponse] = Field(default_factory=list)


class ProjectDetailResponse(BaseModel):
    project: ProjectResponse
    tasks: List[TaskResponse] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str

from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum

# Enums
class UserRole(str, Enum):
    member = "member"
    admin = "admin"

class ProjectStatus(str, Enum):
    planning = "planning"
    in_progress = "in-progress"
    completed = "completed"
    on_hold = "on-hold"

class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in-progress"
    review = "review"
    completed = "completed"

class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"

# Forward order of the task workflow (only enforced when ENFORCE_STATUS_TRANSITIONS is on)
TASK_STATUS_ORDER = [
    TaskStatus.todo,
    TaskStatus.in_progress,
    TaskStatus.review,
    TaskStatus.completed,
]

# Models
class User(BaseModel):
    id: str
    name: str
    email: str
    password_hash: str
    role: UserRole = UserRole.member
    created_at: str
    updated_at: str

class Project(BaseModel):
    id: str
    title: str
    description: str
    owner: str
    team_members: List[str] = Field(default_factory=list)  # ordered, owner first
    status: ProjectStatus = ProjectStatus.planning
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    created_at: str
    updated_at: str

    def is_owner(self, user_id: str) -> bool:
        return self.owner == user_id

    def is_member(self, user_id: str) -> bool:
        return user_id == self.owner or user_id in self.team_members

class Task(BaseModel):
    id: str
    title: str
    description: str
    project: str
    assigned_to: Optional[str] = None
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority = TaskPriority.medium
    due_date: Optional[str] = None
    created_at: str
    updated_at: str

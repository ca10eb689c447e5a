"""
backend/services_projects.py

Project and team-membership operations.

Each function takes the EntityStore and the acting Principal, runs the
Authorization Policy, and then performs the store calls. Errors propagate as
backend.errors types; nothing is swallowed here.

Partial updates follow the legacy "falsy skips" contract: a field that is
absent, None or empty keeps its current value, so an update can never clear a
field by sending "".
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from backend.authz import Action, Principal, authorize
from backend.config import IS_DEV
from backend.db import to_utc_iso, utcnow_iso
from backend.errors import InvalidOperation, NotFound
from backend.models import Project, ProjectStatus, Task, User
from backend.store import EntityStore

PROJECT_UPDATABLE_FIELDS = ("title", "description", "status", "start_date", "end_date")


# ---------------------------------------------------------
# Helpers shared with the task and admin services
# ---------------------------------------------------------
def partial_changes(fields: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    """Keep only allowed keys whose value is truthy (falsy values never overwrite)."""
    return {key: fields[key] for key in allowed if fields.get(key)}


def normalize_timestamp(value: Union[datetime, str, None]) -> Optional[str]:
    """
    Store dates as fixed-width UTC ISO-8601 so text ordering matches time ordering.

    Accepts a datetime (from the request schemas) or an ISO string; a date
    without a time means midnight UTC.

    Raises:
        InvalidOperation: string is not an ISO date/datetime
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return to_utc_iso(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_utc_iso(datetime.fromisoformat(text))
    except ValueError:
        raise InvalidOperation(f"Invalid date: {value}")


def normalize_dates(changes: Dict[str, Any], names: Iterable[str]) -> Dict[str, Any]:
    for name in names:
        if name in changes:
            changes[name] = normalize_timestamp(changes[name])
    return changes


def user_directory(
    store: EntityStore,
    projects: Iterable[Project] = (),
    tasks: Iterable[Task] = (),
) -> Dict[str, User]:
    """
    One query for every user referenced (owner, team, assignee) by records
    the caller has already been allowed to see. Used to embed user summaries
    in responses.
    """
    ids = set()
    for project in projects:
        ids.add(project.owner)
        ids.update(project.team_members)
    for task in tasks:
        if task.assigned_to:
            ids.add(task.assigned_to)
    if not ids:
        return {}
    return {user.id: user for user in store.users.find({"id": sorted(ids)})}


def require_project(store: EntityStore, project_id: str) -> Project:
    project = store.projects.find_by_id(project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


def cascade_delete_project(store: EntityStore, project: Project) -> int:
    """
    Delete a project and every task that belongs to it.

    Tasks go first, the project last: if the second call fails the project is
    still there and the delete can simply be re-run.

    Returns:
        Number of tasks deleted
    """
    deleted_tasks = store.tasks.delete_many({"project": project.id})
    store.projects.delete_by_id(project.id)
    print(f"[PROJECTS] Deleted project_id={project.id} with {deleted_tasks} task(s)")
    return deleted_tasks


# ---------------------------------------------------------
# Projects
# ---------------------------------------------------------
def create_project(
    store: EntityStore,
    principal: Principal,
    title: str,
    description: str,
    start_date: Union[datetime, str, None] = None,
    end_date: Union[datetime, str, None] = None,
) -> Project:
    """
    Create a project owned by the principal.

    The owner is the first (and only) team member on creation.
    """
    project = store.projects.create({
        "title": title,
        "description": description,
        "owner": principal.user_id,
        "team_members": [principal.user_id],
        "status": ProjectStatus.planning,
        "start_date": normalize_timestamp(start_date) if start_date else utcnow_iso(),
        "end_date": normalize_timestamp(end_date),
    })
    if IS_DEV:
        print(f"[PROJECTS] Created project_id={project.id}, owner={principal.user_id}")
    return project


def list_projects(store: EntityStore, principal: Principal) -> List[Project]:
    """Projects the principal owns or belongs to, newest first."""
    return store.projects.find(
        {"$or": [{"owner": principal.user_id}, {"team_members": principal.user_id}]},
        sort=["-created_at"],
    )


def get_project(store: EntityStore, principal: Principal, project_id: str) -> Tuple[Project, List[Task]]:
    """
    Project detail plus its tasks.

    Raises:
        NotFound: project does not exist
        Forbidden: principal is neither owner nor team member
    """
    project = require_project(store, project_id)
    authorize(principal, Action.PROJECT_READ, project)
    tasks = store.tasks.find({"project": project.id}, sort=["-created_at"])
    return project, tasks


def update_project(store: EntityStore, principal: Principal, project_id: str, fields: Dict[str, Any]) -> Project:
    """Owner-only partial update; owner and team members are never touched here."""
    project = require_project(store, project_id)
    authorize(principal, Action.PROJECT_UPDATE, project, "Not authorized to update this project")

    changes = partial_changes(fields, PROJECT_UPDATABLE_FIELDS)
    normalize_dates(changes, ("start_date", "end_date"))
    if "status" in changes:
        try:
            changes["status"] = ProjectStatus(changes["status"])
        except ValueError:
            raise InvalidOperation(f"Invalid project status: {changes['status']}")

    updated = store.projects.update_by_id(project.id, changes)
    if IS_DEV:
        print(f"[PROJECTS] Updated project_id={project.id}, fields={sorted(changes)}")
    return updated


def delete_project(store: EntityStore, principal: Principal, project_id: str) -> int:
    """Owner-only delete, cascading to the project's tasks."""
    project = require_project(store, project_id)
    authorize(principal, Action.PROJECT_DELETE, project, "Not authorized to delete this project")
    return cascade_delete_project(store, project)


# ---------------------------------------------------------
# Team membership
# ---------------------------------------------------------
def list_team_members(store: EntityStore, principal: Principal, project_id: str) -> List[User]:
    """Team members of a project in membership order (read permission required)."""
    project = require_project(store, project_id)
    authorize(principal, Action.PROJECT_READ, project)

    users = {u.id: u for u in store.users.find({"id": project.team_members})}
    return [users[uid] for uid in project.team_members if uid in users]


def add_team_member(store: EntityStore, principal: Principal, project_id: str, user_id: str) -> Project:
    """
    Append a user to the team.

    Raises:
        NotFound: project or user does not exist
        Forbidden: principal is not the owner
        InvalidOperation: user is already on the team
    """
    project = require_project(store, project_id)
    authorize(principal, Action.TEAM_MANAGE, project, "Only project owner can add team members")

    if store.users.find_by_id(user_id) is None:
        raise NotFound("User not found")

    if project.is_member(user_id):
        raise InvalidOperation("User is already a team member")

    updated = store.projects.update_by_id(project.id, {"team_members": project.team_members + [user_id]})
    print(f"[TEAM] Added user_id={user_id} to project_id={project.id}")
    return updated


def remove_team_member(store: EntityStore, principal: Principal, project_id: str, user_id: str) -> Project:
    """
    Remove a user from the team.

    Removing the owner is always rejected, whoever asks. Removing someone who
    is not on the team is a silent no-op.
    """
    project = require_project(store, project_id)

    if user_id == project.owner:
        raise InvalidOperation("Cannot remove project owner")

    authorize(principal, Action.TEAM_MANAGE, project, "Only project owner can remove team members")

    remaining = [uid for uid in project.team_members if uid != user_id]
    if remaining == project.team_members:
        return project

    updated = store.projects.update_by_id(project.id, {"team_members": remaining})
    print(f"[TEAM] Removed user_id={user_id} from project_id={project.id}")
    return updated

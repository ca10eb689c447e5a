"""
backend/services_tasks.py

Task operations. Permission on a task is derived from its parent project:
any owner or team member may edit, assign or delete it.

The status fast-path (update_task_status) checks nothing beyond
authentication unless STRICT_STATUS_UPDATES is set. Status values are not a
state machine unless ENFORCE_STATUS_TRANSITIONS is set.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from backend.authz import Action, Principal, authorize
from backend.config import ENFORCE_STATUS_TRANSITIONS, IS_DEV, STRICT_STATUS_UPDATES
from backend.errors import InvalidOperation, NotFound
from backend.models import TASK_STATUS_ORDER, Project, Task, TaskPriority, TaskStatus
from backend.services_projects import normalize_dates, normalize_timestamp, partial_changes, require_project
from backend.store import EntityStore

TASK_UPDATABLE_FIELDS = ("title", "description", "status", "priority", "due_date")


def _require_task(store: EntityStore, task_id: str) -> Task:
    task = store.tasks.find_by_id(task_id)
    if task is None:
        raise NotFound("Task not found")
    return task


def _parse_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise InvalidOperation(f"Invalid task status: {value}")


def _parse_priority(value: Any) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        raise InvalidOperation(f"Invalid task priority: {value}")


def _require_assignable(project: Project, user_id: str) -> None:
    if not project.is_member(user_id):
        raise InvalidOperation("User is not a team member")


def check_status_transition(current: TaskStatus, new: TaskStatus) -> None:
    """
    Forward-only, one step at a time (todo -> in-progress -> review -> completed).
    Only applied when ENFORCE_STATUS_TRANSITIONS is on; re-sending the current
    status is allowed.
    """
    if not ENFORCE_STATUS_TRANSITIONS or current == new:
        return
    if TASK_STATUS_ORDER.index(new) != TASK_STATUS_ORDER.index(current) + 1:
        raise InvalidOperation(f"Cannot move task from {current.value} to {new.value}")


def create_task(
    store: EntityStore,
    principal: Principal,
    project_id: str,
    title: str,
    description: str,
    assigned_to: Optional[str] = None,
    priority: Optional[str] = None,
    due_date: Union[datetime, str, None] = None,
) -> Task:
    """
    Create a task in a project the principal belongs to.

    Defaults: status "todo", priority "medium".

    Raises:
        NotFound: project does not exist
        Forbidden: principal is neither owner nor team member
        InvalidOperation: assigned_to is not a team member
    """
    project = require_project(store, project_id)
    authorize(principal, Action.TASK_CREATE, project)

    if assigned_to:
        _require_assignable(project, assigned_to)

    task = store.tasks.create({
        "title": title,
        "description": description,
        "project": project.id,
        "assigned_to": assigned_to or None,
        "status": TaskStatus.todo,
        "priority": _parse_priority(priority) if priority else TaskPriority.medium,
        "due_date": normalize_timestamp(due_date),
    })
    if IS_DEV:
        print(f"[TASKS] Created task_id={task.id}, project_id={project.id}, by={principal.user_id}")
    return task


def list_my_tasks(store: EntityStore, principal: Principal) -> List[Task]:
    """Tasks assigned to the principal, earliest due date first (undated last)."""
    return store.tasks.find({"assigned_to": principal.user_id}, sort=["due_date", "-created_at"])


def list_project_tasks(store: EntityStore, principal: Principal, project_id: str) -> List[Task]:
    """Tasks of one project, newest first (project read permission required)."""
    project = require_project(store, project_id)
    authorize(principal, Action.PROJECT_READ, project)
    return store.tasks.find({"project": project.id}, sort=["-created_at"])


def update_task(store: EntityStore, principal: Principal, task_id: str, fields: Dict[str, Any]) -> Task:
    """
    Partial update by any owner/team member of the parent project.

    title/description/status/priority/due_date skip falsy values.
    assigned_to is applied whenever the key is present: None unassigns,
    a user id must belong to the team.
    """
    task = _require_task(store, task_id)
    project = require_project(store, task.project)
    authorize(principal, Action.TASK_UPDATE, project)

    changes = partial_changes(fields, TASK_UPDATABLE_FIELDS)
    normalize_dates(changes, ("due_date",))
    if "status" in changes:
        changes["status"] = _parse_status(changes["status"])
        check_status_transition(task.status, changes["status"])
    if "priority" in changes:
        changes["priority"] = _parse_priority(changes["priority"])

    if "assigned_to" in fields:
        assignee = fields["assigned_to"] or None
        if assignee is not None:
            _require_assignable(project, assignee)
        changes["assigned_to"] = assignee

    updated = store.tasks.update_by_id(task.id, changes)
    if IS_DEV:
        print(f"[TASKS] Updated task_id={task.id}, fields={sorted(changes)}")
    return updated


def update_task_status(store: EntityStore, principal: Principal, task_id: str, status: Any) -> Task:
    """
    Status fast-path.

    Any authenticated principal may call it; with STRICT_STATUS_UPDATES the
    regular task-update permission applies instead.
    """
    task = _require_task(store, task_id)
    new_status = _parse_status(status)

    if STRICT_STATUS_UPDATES:
        authorize(principal, Action.TASK_UPDATE, require_project(store, task.project))
    else:
        authorize(principal, Action.TASK_STATUS_UPDATE)

    check_status_transition(task.status, new_status)

    updated = store.tasks.update_by_id(task.id, {"status": new_status})
    print(f"[TASKS] Status task_id={task.id}: {task.status.value} -> {new_status.value} "
          f"by user_id={principal.user_id}")
    return updated


def assign_task(store: EntityStore, principal: Principal, task_id: str, user_id: str) -> Task:
    """
    Assign a task to a member of its project.

    Raises:
        NotFound: task (or its project) does not exist
        Forbidden: principal is neither owner nor team member
        InvalidOperation: assignee is not on the team
    """
    task = _require_task(store, task_id)
    project = require_project(store, task.project)
    authorize(principal, Action.TASK_ASSIGN, project)
    _require_assignable(project, user_id)

    updated = store.tasks.update_by_id(task.id, {"assigned_to": user_id})
    print(f"[TASKS] Assigned task_id={task.id} to user_id={user_id}")
    return updated


def delete_task(store: EntityStore, principal: Principal, task_id: str) -> None:
    task = _require_task(store, task_id)
    project = require_project(store, task.project)
    authorize(principal, Action.TASK_DELETE, project)

    store.tasks.delete_by_id(task.id)
    print(f"[TASKS] Deleted task_id={task.id}, project_id={project.id}")

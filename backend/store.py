"""
backend/store.py

Entity Store: the persistence collaborator for User, Project and Task records.

Every collection exposes the same small surface:
    create(fields) -> record
    find_by_id(id) -> record | None
    find(filter, sort, limit) -> [record]
    update_by_id(id, fields) -> record
    delete_by_id(id) -> None
    delete_many(filter) -> int
    count(filter) -> int
    group_count(field) -> [{"key": ..., "count": ...}]

Filters are dicts:
    {"field": value}            equality (None -> IS NULL)
    {"field": [a, b]}           set membership (IN)
    {"team_members": user_id}   projects only: user is in the team
    {"$or": [filter, filter]}   any sub-filter matches

Sort is a list of field names; a leading "-" means descending. Missing values
always sort last.

Each mutating call commits on its own; there is no cross-call transaction.
Driver errors are logged and re-raised as errors.Unexpected, except unique
constraint conflicts, which become errors.InvalidOperation(duplicate_message).
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.config import IS_DEV
from backend.db import DBConnection, commit, execute_query, fetch_all, fetch_one, rollback, utcnow_iso
from backend.errors import InvalidOperation, NotFound, Unexpected
from backend.models import Project, Task, User


def new_id() -> str:
    return uuid.uuid4().hex


def _db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _is_unique_violation(error: Exception) -> bool:
    """UNIQUE/PRIMARY KEY conflict (sqlite3 or SQLAlchemy-wrapped Postgres); FK failures are not."""
    if not isinstance(error, (sqlite3.IntegrityError, IntegrityError)):
        return False
    if getattr(getattr(error, "orig", None), "pgcode", None) == "23505":
        return True
    error_msg = str(error).lower()
    return "unique" in error_msg or "duplicate key" in error_msg


class Collection:
    """Table-backed collection of pydantic records."""

    table: str = ""
    model: Type[BaseModel] = BaseModel
    columns: Tuple[str, ...] = ()
    immutable: Tuple[str, ...] = ("id", "created_at")
    duplicate_message = "Record already exists"

    def __init__(self, conn: DBConnection):
        self.conn = conn

    # ------------------------------------------------------------------
    # Driver plumbing
    # ------------------------------------------------------------------
    @contextmanager
    def _guard(self, op: str, write: bool = False) -> Iterator[None]:
        try:
            yield
            if write:
                commit(self.conn)
        except (sqlite3.Error, SQLAlchemyError) as e:
            print(f"[STORE] {op} on {self.table} failed: {e!r}")
            if write:
                try:
                    rollback(self.conn)
                except (sqlite3.Error, SQLAlchemyError) as rollback_error:
                    print(f"[STORE] rollback on {self.table} failed: {rollback_error!r}")
            # e.g. two registrations that both passed the email check
            if _is_unique_violation(e):
                raise InvalidOperation(self.duplicate_message) from e
            raise Unexpected() from e

    def _check_columns(self, names: Sequence[str]) -> None:
        unknown = [n for n in names if n not in self.columns]
        if unknown:
            raise ValueError(f"Unknown {self.table} field(s): {unknown}")

    # ------------------------------------------------------------------
    # Query building
    # ------------------------------------------------------------------
    def _where(self, filter: Optional[Dict[str, Any]], params: Dict[str, Any]) -> str:
        if not filter:
            return "1 = 1"

        clauses = []
        for key, value in filter.items():
            if key == "$or":
                parts = [f"({self._where(sub, params)})" for sub in value]
                clauses.append(" OR ".join(parts) if parts else "1 = 0")
                continue

            special = self._special_filter(key, value, params)
            if special is not None:
                clauses.append(special)
                continue

            self._check_columns([key])
            if value is None:
                clauses.append(f"{key} IS NULL")
            elif isinstance(value, (list, tuple, set, frozenset)):
                values = list(value)
                if not values:
                    clauses.append("1 = 0")
                    continue
                names = []
                for v in values:
                    name = f"p{len(params)}"
                    params[name] = _db_value(v)
                    names.append(f":{name}")
                clauses.append(f"{key} IN ({', '.join(names)})")
            else:
                name = f"p{len(params)}"
                params[name] = _db_value(value)
                clauses.append(f"{key} = :{name}")

        return " AND ".join(clauses)

    def _special_filter(self, key: str, value: Any, params: Dict[str, Any]) -> Optional[str]:
        """Hook for collection-specific filter keys. Returns None when key is a plain column."""
        return None

    def _order_by(self, sort: Optional[Sequence[str]]) -> str:
        if not sort:
            return ""
        parts = []
        for field in sort:
            descending = field.startswith("-")
            name = field.lstrip("-+")
            self._check_columns([name])
            # missing values last in both directions
            parts.append(f"CASE WHEN {name} IS NULL THEN 1 ELSE 0 END")
            parts.append(f"{name} {'DESC' if descending else 'ASC'}")
        return " ORDER BY " + ", ".join(parts)

    def _hydrate(self, rows: List[Dict[str, Any]]) -> List[BaseModel]:
        return [self.model(**row) for row in rows]

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------
    def create(self, fields: Dict[str, Any]) -> BaseModel:
        now = utcnow_iso()
        record = {"id": new_id(), "created_at": now, "updated_at": now}
        record.update({k: _db_value(v) for k, v in fields.items() if k in self.columns})
        names = [n for n in self.columns if n in record]

        with self._guard("create", write=True):
            execute_query(
                self.conn,
                f"INSERT INTO {self.table} ({', '.join(names)}) "
                f"VALUES ({', '.join(':' + n for n in names)})",
                {n: record[n] for n in names},
            )
            self._after_write(record["id"], fields)

        created = self.find_by_id(record["id"])
        if IS_DEV:
            print(f"[STORE] Created {self.table} id={record['id']}")
        return created

    def _after_write(self, record_id: str, fields: Dict[str, Any]) -> None:
        """Hook for writing child rows inside the same commit."""

    def find_by_id(self, record_id: str) -> Optional[BaseModel]:
        with self._guard("find_by_id"):
            row = fetch_one(self.conn, f"SELECT * FROM {self.table} WHERE id = :id", {"id": record_id})
        if row is None:
            return None
        return self._hydrate([row])[0]

    def find(
        self,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> List[BaseModel]:
        params: Dict[str, Any] = {}
        query = f"SELECT * FROM {self.table} WHERE {self._where(filter, params)}{self._order_by(sort)}"
        if limit is not None:
            query += " LIMIT :limit"
            params["limit"] = int(limit)
        with self._guard("find"):
            rows = fetch_all(self.conn, query, params)
        return self._hydrate(rows)

    def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        params: Dict[str, Any] = {}
        with self._guard("count"):
            row = fetch_one(
                self.conn,
                f"SELECT COUNT(*) AS n FROM {self.table} WHERE {self._where(filter, params)}",
                params,
            )
        return int(row["n"]) if row else 0

    def group_count(self, field: str) -> List[Dict[str, Any]]:
        self._check_columns([field])
        with self._guard("group_count"):
            rows = fetch_all(
                self.conn,
                f"SELECT {field} AS group_key, COUNT(*) AS n FROM {self.table} "
                f"GROUP BY {field} ORDER BY {field}",
            )
        return [{"key": row["group_key"], "count": int(row["n"])} for row in rows]

    def update_by_id(self, record_id: str, fields: Dict[str, Any]) -> BaseModel:
        changes = {
            k: _db_value(v) for k, v in fields.items()
            if k in self.columns and k not in self.immutable
        }
        changes["updated_at"] = utcnow_iso()
        assignments = ", ".join(f"{k} = :{k}" for k in changes)

        with self._guard("update_by_id", write=True):
            result = execute_query(
                self.conn,
                f"UPDATE {self.table} SET {assignments} WHERE id = :record_id",
                {**changes, "record_id": record_id},
            )
            if result.rowcount == 0:
                raise NotFound(f"{self.model.__name__} not found")
            self._after_write(record_id, fields)

        return self.find_by_id(record_id)

    def delete_by_id(self, record_id: str) -> None:
        with self._guard("delete_by_id", write=True):
            self._before_delete([record_id])
            execute_query(self.conn, f"DELETE FROM {self.table} WHERE id = :id", {"id": record_id})

    def delete_many(self, filter: Dict[str, Any]) -> int:
        params: Dict[str, Any] = {}
        where = self._where(filter, params)
        with self._guard("delete_many", write=True):
            ids = [r["id"] for r in fetch_all(self.conn, f"SELECT id FROM {self.table} WHERE {where}", params)]
            if ids:
                self._before_delete(ids)
            result = execute_query(self.conn, f"DELETE FROM {self.table} WHERE {where}", params)
        return result.rowcount

    def _before_delete(self, record_ids: List[str]) -> None:
        """Hook for removing child rows inside the same commit."""


class UserCollection(Collection):
    table = "users"
    model = User
    columns = ("id", "name", "email", "password_hash", "role", "created_at", "updated_at")
    duplicate_message = "Email already registered"


class TaskCollection(Collection):
    table = "tasks"
    model = Task
    columns = (
        "id", "title", "description", "project", "assigned_to",
        "status", "priority", "due_date", "created_at", "updated_at",
    )
    immutable = ("id", "created_at", "project")


class ProjectCollection(Collection):
    """Projects plus their ordered team_members list (project_members table)."""

    table = "projects"
    model = Project
    columns = (
        "id", "title", "description", "owner", "status",
        "start_date", "end_date", "created_at", "updated_at",
    )
    immutable = ("id", "created_at", "owner")

    def _special_filter(self, key: str, value: Any, params: Dict[str, Any]) -> Optional[str]:
        if key != "team_members":
            return None
        name = f"p{len(params)}"
        params[name] = value
        return (
            "EXISTS (SELECT 1 FROM project_members pm "
            f"WHERE pm.project_id = projects.id AND pm.user_id = :{name})"
        )

    def _members_for(self, project_ids: List[str]) -> Dict[str, List[str]]:
        members: Dict[str, List[str]] = {pid: [] for pid in project_ids}
        if not project_ids:
            return members
        params = {f"p{i}": pid for i, pid in enumerate(project_ids)}
        rows = fetch_all(
            self.conn,
            "SELECT project_id, user_id FROM project_members "
            f"WHERE project_id IN ({', '.join(':' + n for n in params)}) "
            "ORDER BY project_id, position",
            params,
        )
        for row in rows:
            members[row["project_id"]].append(row["user_id"])
        return members

    def _hydrate(self, rows: List[Dict[str, Any]]) -> List[BaseModel]:
        with self._guard("load team_members"):
            members = self._members_for([row["id"] for row in rows])
        return [self.model(**row, team_members=members[row["id"]]) for row in rows]

    def _after_write(self, record_id: str, fields: Dict[str, Any]) -> None:
        if "team_members" not in fields:
            return
        execute_query(self.conn, "DELETE FROM project_members WHERE project_id = :pid", {"pid": record_id})
        seen = set()
        for position, user_id in enumerate(fields["team_members"]):
            if user_id in seen:
                continue
            seen.add(user_id)
            execute_query(
                self.conn,
                "INSERT INTO project_members (project_id, user_id, position) VALUES (:pid, :uid, :pos)",
                {"pid": record_id, "uid": user_id, "pos": position},
            )

    def _before_delete(self, record_ids: List[str]) -> None:
        params = {f"p{i}": pid for i, pid in enumerate(record_ids)}
        execute_query(
            self.conn,
            f"DELETE FROM project_members WHERE project_id IN ({', '.join(':' + n for n in params)})",
            params,
        )

    def remove_member_everywhere(self, user_id: str) -> int:
        """Drop a user from every team list (used when the user is deleted)."""
        with self._guard("remove_member_everywhere", write=True):
            result = execute_query(
                self.conn, "DELETE FROM project_members WHERE user_id = :uid", {"uid": user_id}
            )
        return result.rowcount


class EntityStore:
    """Bundle of the three collections sharing one connection."""

    def __init__(self, conn: DBConnection):
        self.conn = conn
        self.users = UserCollection(conn)
        self.projects = ProjectCollection(conn)
        self.tasks = TaskCollection(conn)

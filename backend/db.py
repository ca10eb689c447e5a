# backend/db.py
# Database abstraction layer supporting PostgreSQL (production) and SQLite (dev)

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, List, Optional, Union
from urllib.parse import urlparse

from sqlalchemy import create_engine, pool, text
from sqlalchemy.engine import Connection, Engine

from backend.config import DATABASE_PATH, DATABASE_URL, IS_POSTGRES

DBConnection = Union[sqlite3.Connection, Connection]

# Global engine (SQLAlchemy) or None for SQLite
_engine: Optional[Engine] = None


def init_engine() -> None:
    """Initialize SQLAlchemy engine for PostgreSQL if DATABASE_URL is set."""
    global _engine

    if not IS_POSTGRES:
        # SQLite mode - no engine needed
        _engine = None
        print("[DB] Using SQLite (local dev mode)")
        return

    # Parse and validate URL
    parsed = urlparse(DATABASE_URL)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid DATABASE_URL: {DATABASE_URL[:20]}...")

    url = DATABASE_URL
    if url.startswith("postgres://"):
        # SQLAlchemy only accepts the postgresql:// scheme
        url = "postgresql://" + url[len("postgres://"):]

    _engine = create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
        echo=False,  # Set True for SQL debugging
    )

    print(f"[DB] Using PostgreSQL ({parsed.hostname})")


def sqlite_path() -> str:
    """Absolute path of the SQLite file (relative DATABASE_PATH resolves next to this module)."""
    path = FsPath(DATABASE_PATH)
    if path.is_absolute():
        return str(path)
    return str(FsPath(__file__).resolve().parent / path)


def connect_sqlite(path: str) -> sqlite3.Connection:
    """Open a SQLite connection configured the way the store expects."""
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_db_connection() -> Generator[DBConnection, None, None]:
    """
    Context manager for database connections.
    Yields sqlite3.Connection for SQLite or sqlalchemy.Connection for Postgres.
    """
    if IS_POSTGRES:
        if _engine is None:
            init_engine()

        with _engine.connect() as conn:
            yield conn
    else:
        conn = connect_sqlite(sqlite_path())
        try:
            yield conn
        finally:
            conn.close()


def execute_query(
    conn: DBConnection,
    query: str,
    params: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Execute a query with named parameters (":name" style works for both drivers).

    Returns:
        Cursor (SQLite) or CursorResult (PostgreSQL)
    """
    if isinstance(conn, sqlite3.Connection):
        return conn.execute(query, params or {})
    return conn.execute(text(query), params or {})


def row_to_dict(row: Any) -> Dict[str, Any]:
    """
    Convert a driver row (sqlite3.Row or SQLAlchemy Row) to a plain dict.

    Returns {} for None.
    """
    if row is None:
        return {}
    mapping = getattr(row, "_mapping", None)
    if mapping is not None:
        return dict(mapping)
    return dict(row)


def fetch_all(conn: DBConnection, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return [row_to_dict(r) for r in execute_query(conn, query, params).fetchall()]


def fetch_one(conn: DBConnection, query: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    row = execute_query(conn, query, params).fetchone()
    return row_to_dict(row) if row is not None else None


def commit(conn: DBConnection) -> None:
    conn.commit()


def rollback(conn: DBConnection) -> None:
    conn.rollback()


# ---------------------------------------------------------
# Timestamps
# ---------------------------------------------------------
_last_timestamp: Optional[datetime] = None
_timestamp_lock = threading.Lock()


def to_utc_iso(value: datetime) -> str:
    """
    Fixed-width ISO-8601 in UTC, so stored timestamps compare correctly as text.
    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utcnow_iso() -> str:
    """
    ISO-8601 UTC timestamp, strictly increasing within the process.

    Records created in the same microsecond still sort newest-first. Request
    handlers run on a threadpool, so the read-compare-store is locked.
    """
    global _last_timestamp
    with _timestamp_lock:
        now = datetime.now(timezone.utc)
        if _last_timestamp is not None and now <= _last_timestamp:
            now = _last_timestamp + timedelta(microseconds=1)
        _last_timestamp = now
    return to_utc_iso(now)


# ---------------------------------------------------------
# Schema
# ---------------------------------------------------------
SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        owner TEXT NOT NULL REFERENCES users(id),
        status TEXT NOT NULL DEFAULT 'planning',
        start_date TEXT,
        end_date TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS project_members (
        project_id TEXT NOT NULL REFERENCES projects(id),
        user_id TEXT NOT NULL REFERENCES users(id),
        position INTEGER NOT NULL,
        PRIMARY KEY (project_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        project TEXT NOT NULL REFERENCES projects(id),
        assigned_to TEXT REFERENCES users(id),
        status TEXT NOT NULL DEFAULT 'todo',
        priority TEXT NOT NULL DEFAULT 'medium',
        due_date TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_projects_owner ON projects(owner)",
    "CREATE INDEX IF NOT EXISTS idx_projects_created ON projects(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_project_members_user ON project_members(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned_to ON tasks(assigned_to)",
]


def init_schema(conn: DBConnection) -> None:
    """Create tables and indexes on an open connection (idempotent)."""
    for statement in SCHEMA_STATEMENTS:
        execute_query(conn, statement)
    commit(conn)


def init_db() -> None:
    with get_db_connection() as conn:
        init_schema(conn)
    print("[DB] Schema ensured: users, projects, project_members, tasks")


# Initialize engine on module import if Postgres mode
if IS_POSTGRES and _engine is None:
    init_engine()

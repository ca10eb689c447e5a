# backend/config.py
# Environment-aware configuration for the project tracker backend

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# JWT configuration
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = "HS256"

# Token lifetimes
ACCESS_TOKEN_MINUTES = int(os.environ.get("ACCESS_TOKEN_MINUTES", "1440"))

# Database configuration
# DATABASE_URL takes precedence (managed Postgres)
# Falls back to SQLite for local development
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()
DATABASE_PATH = os.environ.get("DATABASE_PATH", "tracker.db")

# Task status policy switches (both off = legacy behaviour)
# STRICT_STATUS_UPDATES: status fast-path requires project membership
# ENFORCE_STATUS_TRANSITIONS: status may only move one step forward
STRICT_STATUS_UPDATES = _env_flag("STRICT_STATUS_UPDATES")
ENFORCE_STATUS_TRANSITIONS = _env_flag("ENFORCE_STATUS_TRANSITIONS")

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(o.strip() for o in extra_origins.split(",") if o.strip())

# Database type detection
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://"))
IS_SQLITE = not IS_POSTGRES

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Database: {'PostgreSQL' if IS_POSTGRES else 'SQLite (local dev)'}")
print(f"[CONFIG] Access token: {ACCESS_TOKEN_MINUTES} minutes")
print(f"[CONFIG] Strict status updates: {STRICT_STATUS_UPDATES}, "
      f"enforce transitions: {ENFORCE_STATUS_TRANSITIONS}")

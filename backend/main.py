# ---------------------------------------------------------
# backend/main.py
# Project Tracker - project/task management backend
#
# Run: uvicorn backend.main:app --reload (from repo root)
#
# - FastAPI + SQLite (PostgreSQL when DATABASE_URL is set)
# - /api/auth      : register / login (JWT bearer tokens)
# - /api/users     : own profile
# - /api/projects  : projects the caller owns or belongs to
# - /api/team      : team membership (owner-managed)
# - /api/tasks     : tasks within those projects
# - /api/admin     : admin-only dashboard and management of everything
# ---------------------------------------------------------

from __future__ import annotations

import traceback
from contextlib import asynccontextmanager
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import CORS_ORIGINS, IS_PROD
from backend.db import init_db
from backend.errors import AppError, Unexpected
from backend.routes_admin import router as admin_router
from backend.routes_auth import router as auth_router
from backend.routes_auth import users_router
from backend.routes_projects import router as projects_router
from backend.routes_projects import team_router
from backend.routes_tasks import router as tasks_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="Project Tracker Backend", version="0.1", lifespan=lifespan)

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Error mapping: NotFound 404, Forbidden 403, InvalidOperation 400, Unexpected 500
# ---------------------------------------------------------
@app.exception_handler(AppError)
def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, Unexpected):
        cause = exc.__cause__
        print(f"[ERROR] {request.method} {request.url.path}: {cause!r}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    # Internal details stay in the server log
    print(f"[ERROR] Unhandled error on {request.method} {request.url.path}: {exc!r}")
    traceback.print_exc()
    return JSONResponse(status_code=500, content={"detail": Unexpected.default_message})


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(team_router)
app.include_router(tasks_router)
app.include_router(admin_router)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}

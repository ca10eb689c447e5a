"""
backend/auth_context.py

Shared authentication primitives for FastAPI dependency injection.

Contains:
- get_store: per-request EntityStore dependency
- hash_password / verify_password / create_access_token
- verify_token: JWT token verification
- require_principal: FastAPI dependency resolving the bearer token to a Principal

This module MUST NOT import backend.main to avoid circular dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.authz import Principal
from backend.config import ACCESS_TOKEN_MINUTES, ALGORITHM, IS_DEV, SECRET_KEY
from backend.db import get_db_connection
from backend.models import User
from backend.store import EntityStore

# Security scheme for HTTPBearer (401 raised by require_principal itself)
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------
# Store Helper
# ---------------------------------------------------------
def get_store() -> Generator[EntityStore, None, None]:
    """
    Yield an EntityStore bound to a fresh connection for one request.
    Tests override this dependency with an in-memory store.
    """
    with get_db_connection() as conn:
        yield EntityStore(conn)


# ---------------------------------------------------------
# Passwords and tokens
# ---------------------------------------------------------
def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


def verify_password(password: str, password_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password), password_hash)


def create_access_token(user: User, minutes: Optional[int] = None) -> str:
    """Signed JWT carrying the user id (sub) and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "role": user.role.value,
        "iat": now,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_MINUTES if minutes is None else minutes),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify JWT access token and return decoded payload.

    Raises:
        HTTPException(401): If token is expired or invalid
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


# ---------------------------------------------------------
# Principal resolution
# ---------------------------------------------------------
def require_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: EntityStore = Depends(get_store),
) -> Principal:
    """
    Resolve the bearer credential to a Principal.

    The user record is the source of truth for the role, so a role change by
    an admin takes effect on the next request without re-login.

    Raises:
        HTTPException(401): missing/invalid/expired token or unknown user
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authorized, no token")

    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        print("[AUTH] Missing user_id in token payload")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = store.users.find_by_id(user_id)
    if user is None:
        print(f"[AUTH] User not found: user_id={user_id}")
        raise HTTPException(status_code=401, detail="User not found")

    principal = Principal(user_id=user.id, role=user.role.value)
    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={principal.user_id}, role={principal.role}")
    return principal

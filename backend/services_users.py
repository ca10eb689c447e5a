"""
backend/services_users.py

Registration, login and self-service profile operations.
"""

from __future__ import annotations

from typing import Any, Dict

from backend.auth_context import hash_password, verify_password
from backend.authz import Principal
from backend.config import IS_DEV
from backend.errors import InvalidOperation, NotFound
from backend.models import User, UserRole
from backend.services_projects import partial_changes
from backend.store import EntityStore


class InvalidCredentials(Exception):
    """Raised when login email/password do not match."""
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


def register_user(store: EntityStore, name: str, email: str, password: str) -> User:
    """
    Create a member account.

    Raises:
        InvalidOperation: email already registered
    """
    email_norm = normalize_email(email)
    if store.users.find({"email": email_norm}, limit=1):
        raise InvalidOperation("Email already registered")

    user = store.users.create({
        "name": name.strip(),
        "email": email_norm,
        "password_hash": hash_password(password),
        "role": UserRole.member,
    })
    print(f"[REGISTER] User created with id={user.id}")
    return user


def authenticate(store: EntityStore, email: str, password: str) -> User:
    matches = store.users.find({"email": normalize_email(email)}, limit=1)
    if not matches or not verify_password(password, matches[0].password_hash):
        print("[LOGIN] Invalid credentials")
        raise InvalidCredentials("Invalid email or password")
    if IS_DEV:
        print(f"[LOGIN] User authenticated: id={matches[0].id}")
    return matches[0]


def get_profile(store: EntityStore, principal: Principal) -> User:
    user = store.users.find_by_id(principal.user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def update_profile(store: EntityStore, principal: Principal, fields: Dict[str, Any]) -> User:
    """Update own name/email/password; falsy values keep the current value. Role is never changed here."""
    user = get_profile(store, principal)
    changes = partial_changes(fields, ("name", "email", "password"))

    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
        if changes["email"] != user.email and store.users.find({"email": changes["email"]}, limit=1):
            raise InvalidOperation("Email already registered")
    if "password" in changes:
        changes["password_hash"] = hash_password(changes.pop("password"))

    return store.users.update_by_id(user.id, changes)

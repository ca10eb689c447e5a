"""
backend/routes_auth.py

Registration, login and profile endpoints.
Tokens carry the user id and role; the role is re-read from the database on
every request by require_principal.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from backend import services_users
from backend.auth_context import create_access_token, get_store, require_principal
from backend.authz import Principal
from backend.schemas_projects import UserSummary
from backend.schemas_users import LoginRequest, ProfileUpdateRequest, RegisterRequest, TokenResponse
from backend.store import EntityStore


router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
)

users_router = APIRouter(
    prefix="/api/users",
    tags=["users"],
)


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(
    request: RegisterRequest,
    store: EntityStore = Depends(get_store),
) -> TokenResponse:
    """
    Create a member account and return an access token.

    Raises:
        400: email already registered
    """
    user = services_users.register_user(store, request.name, request.email, request.password)
    return TokenResponse(access_token=create_access_token(user), user=UserSummary.from_user(user))


@router.post("/login", response_model=TokenResponse)
def login(
    request: LoginRequest,
    store: EntityStore = Depends(get_store),
) -> TokenResponse:
    """
    Exchange email/password for an access token.

    Raises:
        401: invalid credentials
    """
    try:
        user = services_users.authenticate(store, request.email, request.password)
    except services_users.InvalidCredentials:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return TokenResponse(access_token=create_access_token(user), user=UserSummary.from_user(user))


@users_router.get("/profile", response_model=UserSummary)
def get_profile(
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> UserSummary:
    return UserSummary.from_user(services_users.get_profile(store, principal))


@users_router.put("/profile", response_model=UserSummary)
def update_profile(
    request: ProfileUpdateRequest,
    principal: Principal = Depends(require_principal),
    store: EntityStore = Depends(get_store),
) -> UserSummary:
    user = services_users.update_profile(store, principal, request.model_dump(exclude_unset=True))
    return UserSummary.from_user(user)

"""
backend/errors.py

Domain error taxonomy shared by the store, the authorization policy and the
services. main.py maps every AppError to an HTTP response with its status_code.

- NotFound         -> 404  resource id does not resolve
- Forbidden        -> 403  authenticated principal lacks permission
- InvalidOperation -> 400  well-formed request that breaks a business invariant
- Unexpected       -> 500  persistence or infrastructure failure
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that surface directly to the caller."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Forbidden(AppError):
    status_code = 403
    default_message = "Access denied"


class InvalidOperation(AppError):
    status_code = 400
    default_message = "Invalid operation"


class Unexpected(AppError):
    """Raised for storage/infrastructure failures; message is kept generic."""
    status_code = 500
    default_message = "Something went wrong"

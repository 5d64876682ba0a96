"""
core/errors.py -- Domain error taxonomy for Avatar Engine.

Every error the auth and progression layers raise is an AppError subclass.
Each class carries the HTTP status the boundary layer maps it to, so api/main.py
needs exactly one exception handler for all of them:

  Unauthorized    -> 401  missing/invalid/expired token, or bad login credentials
  Forbidden       -> 403  valid identity, insufficient role or no bond
  NotFound        -> 404  referenced user/avatar/bond absent
  Conflict        -> 409  duplicate email on registration
  ValidationError -> 422  malformed input that slipped past pydantic

None of these are retried. Authentication and authorization failures are never
transient.

Layer rule: core/ is the kernel. No imports from api/, auth/, or avatars/.
"""

from __future__ import annotations

from collections.abc import Iterable


class AppError(Exception):
    """Base class for errors that map to a specific HTTP status."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class Unauthorized(AppError):
    # Token and credential failures share one message so responses never
    # reveal which part was wrong.
    status_code = 401
    code = "unauthorized"
    default_message = "Invalid credentials."


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Insufficient role."

    def __init__(
        self,
        message: str | None = None,
        required_roles: Iterable[str] = (),
        detail: str | None = None,
    ) -> None:
        # Enum members contribute their value ("admin"), not their repr.
        self.required_roles = frozenset(getattr(r, "value", r) for r in required_roles)
        if detail is None and self.required_roles:
            detail = "Required roles: " + ", ".join(sorted(self.required_roles))
        super().__init__(message, detail)


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."


class ValidationError(AppError):
    status_code = 422
    code = "validation_error"
    default_message = "Request validation failed."

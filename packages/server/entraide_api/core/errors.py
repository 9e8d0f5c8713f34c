"""
Error taxonomy shared by the identity gate, the service layer and the HTTP
exception handlers.

Every error carries a stable machine-readable ``code`` and the HTTP status
it maps to; handlers in ``entraide_api.main`` render them as the standard
``{"error": {...}}`` envelope.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional


class AppError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def details(self) -> dict[str, Any]:
        """Extra, caller-safe fields for the error envelope."""
        return {}


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class AuthFailureKind(str, Enum):
    MISSING_HEADER = "MISSING_AUTH_HEADER"
    MALFORMED_HEADER = "MALFORMED_AUTH_HEADER"
    EMPTY_TOKEN = "EMPTY_TOKEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    INVALID_FORMAT = "INVALID_TOKEN_FORMAT"
    INVALID_TOKEN = "INVALID_TOKEN"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"


AUTH_FAILURE_MESSAGES = {
    AuthFailureKind.MISSING_HEADER: "Authorization header is required",
    AuthFailureKind.MALFORMED_HEADER: "Authorization header must be in format: Bearer <token>",
    AuthFailureKind.EMPTY_TOKEN: "Access token cannot be empty",
    AuthFailureKind.EXPIRED_TOKEN: "Token has expired",
    AuthFailureKind.INVALID_FORMAT: "Invalid token format",
    AuthFailureKind.INVALID_TOKEN: "Invalid token",
    AuthFailureKind.USER_NOT_FOUND: "User not found or token is invalid",
    AuthFailureKind.INVALID_CREDENTIALS: "Invalid email or password",
}


class AuthFailure(AppError):
    status_code = 401

    def __init__(self, kind: AuthFailureKind, message: Optional[str] = None):
        super().__init__(message or AUTH_FAILURE_MESSAGES[kind], code=kind.value)
        self.kind = kind


class InternalAuthError(AppError):
    status_code = 500
    code = "INTERNAL_AUTH_ERROR"

    def __init__(self, message: str = "Internal authentication error"):
        super().__init__(message)


# ---------------------------------------------------------------------------
# Request / domain errors
# ---------------------------------------------------------------------------

class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_FAILED"

    def __init__(
        self,
        violations: Iterable[str],
        *,
        message: str = "Validation failed",
        code: Optional[str] = None,
    ):
        super().__init__(message, code=code)
        self.violations = list(violations)

    def details(self) -> dict[str, Any]:
        return {"violations": self.violations}


class NotFound(AppError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Any, message: Optional[str] = None):
        label = entity.replace("_", " ").capitalize()
        super().__init__(
            message or f"{label} not found",
            code=f"{entity.upper()}_NOT_FOUND",
        )
        self.entity = entity
        self.entity_id = entity_id

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "id": str(self.entity_id)}


class Unauthorized(AppError):
    """The caller is authenticated but does not own the target entity."""

    status_code = 403

    def __init__(self, action: str, message: str):
        super().__init__(message, code=f"UNAUTHORIZED_{action.upper()}")
        self.action = action


class ConflictReason(str, Enum):
    ALREADY_OFFERED = "ALREADY_OFFERED"
    ALREADY_VOLUNTEERING = "ALREADY_VOLUNTEERING"
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    STATUS_UNCHANGED = "STATUS_UNCHANGED"
    PROJECT_COMPLETED = "PROJECT_COMPLETED"
    TOOL_ALREADY_REQUESTED = "TOOL_ALREADY_REQUESTED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    OFFERING_ALREADY_RESOLVED = "OFFERING_ALREADY_RESOLVED"


class Conflict(AppError):
    status_code = 409

    def __init__(self, reason: ConflictReason, message: str):
        super().__init__(message, code=reason.value)
        self.reason = reason


class UpstreamFailure(AppError):
    """The store or blob store failed for a reason other than a constraint."""

    status_code = 502

    def __init__(self, operation: str, message: Optional[str] = None, *, cause: Optional[str] = None):
        super().__init__(
            message or f"{operation.replace('_', ' ').capitalize()} failed",
            code=f"{operation.upper()}_FAILED",
        )
        self.operation = operation
        # Only rendered when debug is on
        self.cause = cause

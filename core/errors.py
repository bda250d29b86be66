"""
core/errors.py -- Application error taxonomy.

Guards and route handlers raise these; api/main.py maps every AppError to the
standard JSON envelope ({success: false, message, code}) with the class's
HTTP status. Nothing here knows about FastAPI, so auth/ and catalog/ can
raise them without importing the web layer.
"""


class AppError(Exception):
    """Base class. Subclasses pin status_code and code."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing request fields."""

    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class Unauthenticated(AppError):
    """Missing, invalid or expired access / refresh token, or bad credentials."""

    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required."


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action."


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class InvalidOperation(AppError):
    """Request is well-formed but violates a business rule (400)."""

    status_code = 400
    code = "invalid_operation"
    default_message = "Operation not allowed."


class InternalError(AppError):
    """Unexpected failure. The detail goes to the log, never to the client."""

    default_message = "Internal server error."

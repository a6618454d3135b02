"""
Application error taxonomy.

Services raise these; ``app.main`` maps them onto HTTP responses. Everything
except ``InternalError`` is caller-correctable and is surfaced verbatim.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors carrying an HTTP-mappable status code"""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.error_code,
            "details": self.details,
        }


class ValidationError(AppError):
    """400 - malformed or out-of-policy input"""
    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class ForbiddenError(AppError):
    """403 - caller lacks permission"""
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action"


class NotFoundError(AppError):
    """404 - referenced entity does not exist"""
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    """409 - request conflicts with current state (slot taken, blacklisted, ...)"""
    status_code = 409
    error_code = "CONFLICT"
    default_message = "The request conflicts with the current state"


class InternalError(AppError):
    """500 - unexpected persistence or runtime failure"""

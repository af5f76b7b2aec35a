"""
TallyHub Backend — Custom Exception Hierarchy
===============================================

What:  Defines application-specific exceptions for each failure kind the API reports.
Why:   Services raise domain errors without knowing about HTTP; the global
       handlers in main.py turn each class into the standard error envelope
       with the right status code.
How:   Each exception carries a user-facing message, an optional `error`
       detail that is returned in the envelope, and a `context` dict that is
       logged but never returned.

Exception Hierarchy:
    TallyHubError (base)              → 500
    ├── ValidationError               → 400 Bad Request
    ├── ForbiddenError                → 403 Forbidden
    ├── NotFoundError                 → 404 Not Found
    ├── ConflictError                 → 409 Conflict
    ├── RateLimitExceededError        → 429 Too Many Requests
    ├── DatabaseError                 → 500 Internal Server Error
    └── RequestTimeoutError           → 504 Gateway Timeout

The status code is the only machine-readable signal clients get; there are
no error codes in the response body.
"""

from typing import Any, Dict, Optional


class TallyHubError(Exception):
    """
    Base exception for all TallyHub application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        error:    Optional extra detail returned in the envelope's `error` field
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error = error
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(TallyHubError):
    """
    Raised when client input fails validation.

    When:    Field rules violated, malformed id, bad pagination parameters,
             missing required query parameter.
    HTTP:    400 Bad Request

    Example response:
        {
            "success": false,
            "message": "Invalid data",
            "error": "Name is required, Password must be between 8 and 128 characters",
            "timestamp": "2024-01-15T12:00:00.000Z"
        }
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid data",
        error: Optional[str] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, error=error, context=ctx)
        self.field = field


class NotFoundError(TallyHubError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; the service layer converts that
    None into this exception so routes never branch on it.
    """

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if resource:
            ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(TallyHubError):
    """Raised when a write would violate a uniqueness rule (duplicate email)."""

    status_code = 409

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(TallyHubError):
    """Raised when an operation is not allowed in the current runtime mode."""

    status_code = 403

    def __init__(
        self,
        message: str = "Operation not allowed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(TallyHubError):
    """
    Raised when database operations fail unexpectedly.

    Security Note:
        The message returned to the client is always generic. Driver errors,
        SQL text and constraint names only go to the server log via `context`.
    """

    status_code = 500

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(TallyHubError):
    """
    Raised when a client exceeds a per-IP request budget.

    Response includes a Retry-After header with the seconds until the oldest
    request in the window expires.
    """

    status_code = 429

    def __init__(
        self,
        retry_after: int = 60,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = message or (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class RequestTimeoutError(TallyHubError):
    """Raised when a request exceeds its wall-clock budget."""

    status_code = 504

    def __init__(
        self,
        timeout: float = 30.0,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["timeout"] = timeout
        super().__init__(message="Request timed out", context=ctx)
        self.timeout = timeout

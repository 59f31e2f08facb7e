"""Domain exceptions raised by services and rendered by the API."""

from typing import Optional


class DetailingError(Exception):
    """Base class for business-rule failures."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(DetailingError):
    status_code = 400
    code = "VALIDATION_ERROR"


class PolicyError(DetailingError):
    """Action not allowed by a business policy (e.g. late cancellation)."""
    status_code = 400
    code = "POLICY_VIOLATION"


class AuthenticationError(DetailingError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(DetailingError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(DetailingError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(DetailingError):
    status_code = 409
    code = "CONFLICT"


class RateLimitError(DetailingError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after

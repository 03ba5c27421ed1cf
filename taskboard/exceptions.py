"""Request-level exceptions raised by the endpoint pipeline.

Every error is terminal for the current request. Only RateLimitExceeded is
meant to be retried, by the caller, after ``retry_after_ms``.
"""


class TaskboardError(Exception):
    """Base exception for errors surfaced to callers."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        """Convert to the JSON error envelope returned by the API."""
        return {"error": self.code, "message": self.message}


class AuthenticationError(TaskboardError):
    """No identity could be resolved for the request."""

    status_code = 401
    code = "not_authenticated"

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class AuthorizationError(TaskboardError):
    """Identity resolved but does not own the target resource."""

    status_code = 403
    code = "not_authorized"


class NotFoundError(TaskboardError):
    """Referenced record does not exist."""

    status_code = 404
    code = "not_found"


class ValidationError(TaskboardError):
    """Input failed a validation predicate."""

    status_code = 400
    code = "validation_error"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RateLimitExceeded(TaskboardError):
    """Exception raised when rate limit is exceeded."""

    status_code = 429
    code = "rate_limited"

    def __init__(self, action: str, retry_after_ms: int):
        super().__init__(f"Rate limit exceeded for {action}. Retry after {retry_after_ms}ms")
        self.action = action
        self.retry_after_ms = retry_after_ms

    def to_response(self) -> dict:
        response = super().to_response()
        response["retry_after_ms"] = self.retry_after_ms
        return response

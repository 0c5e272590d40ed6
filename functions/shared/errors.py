"""
Standardized error types for the API.
"""

from typing import Optional


class APIError(Exception):
    """Base class for API errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidRequestError(APIError):
    """Raised for missing or malformed request input."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="invalid_request",
            message=message,
            status_code=400,
            details=details,
        )


class InvalidArgumentError(APIError):
    """Raised when an argument is well-formed but out of range."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="invalid_argument",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Raised when the bearer token is missing or rejected."""

    def __init__(self, message: str = "Unauthorized", code: str = "unauthorized"):
        super().__init__(
            code=code,
            message=message,
            status_code=401,
        )


class StoreError(APIError):
    """Raised when Supabase cannot be reached or answers with an error."""

    def __init__(self, operation: str, status: Optional[int] = None, reason: str = ""):
        self.operation = operation
        self.upstream_status = status
        self.reason = reason
        super().__init__(
            code="store_error",
            message="Internal server error",
            status_code=500,
        )

    def __str__(self) -> str:
        return f"store {self.operation} failed (status={self.upstream_status}): {self.reason}"


class DuplicateUserError(StoreError):
    """Insert lost to an existing row with the same user_id."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("insert_user", 409, f"user_id {user_id} already exists")

class ConfigurationError(APIError):
    """Raised when a required setting or secret is missing."""

    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(
            code="not_configured",
            message="Service not configured",
            status_code=500,
        )


class TransientStoreError(StoreError):
    """A store failure worth retrying (transport error, 429 or 5xx)."""

    def __init__(
        self,
        operation: str,
        status: Optional[int] = None,
        reason: str = "",
        retry_after: Optional[float] = None,
    ):
        super().__init__(operation, status, reason)
        self.retry_after = retry_after

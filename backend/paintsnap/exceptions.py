"""
PaintSnap Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every failure the API can report.
Why:   Each class maps to exactly one HTTP status through the global handlers
       registered in main.py, so services never build HTTP responses.
How:   Each exception carries a message and an optional context dict.
Who:   Raised by services, dependencies and middleware; caught by global handlers.

Exception Hierarchy:
    PaintSnapError (base)
    ├── ValidationError          → 400 Bad Request
    ├── UnauthorizedError        → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── AccountLimitError        → 403 Forbidden (code: account_limit_reached)
    ├── NotFoundError            → 404 Not Found
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DependencyError          → 502 Bad Gateway
    │   └── DependencyTimeoutError → 504 Gateway Timeout
    ├── BlobStorageError         → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class PaintSnapError(Exception):
    """
    Base exception for all PaintSnap application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info. Returned only for 4xx errors.
    """

    status_code = 500
    error_code = "internal_server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PaintSnapError):
    """
    Raised when client input fails validation.

    When:    Missing fields, non-numeric or out-of-range tag positions,
             duplicate usernames, bad uploads.
    HTTP:    400 Bad Request
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(PaintSnapError):
    """
    Raised when a request carries no usable credentials.

    When:    No session and no bearer token, bad password, invalid or expired ID token.
    HTTP:    401 Unauthorized
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Not authenticated",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(PaintSnapError):
    """
    Raised when the authenticated user does not own the target entity.

    HTTP:    403 Forbidden
    """

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=f"You do not have access to this {resource}", context=ctx)


class AccountLimitError(PaintSnapError):
    """
    Raised when a create (or move) would exceed the user's tier quota.

    HTTP:    403 Forbidden with error code `account_limit_reached`
    Details: resource, limit, account_type and the upgrade URL, so the
             client can show an upgrade prompt.
    """

    status_code = 403
    error_code = "account_limit_reached"

    def __init__(
        self,
        resource: str,
        limit: int,
        account_type: str,
        upgrade_url: str,
    ):
        message = (
            f"You've reached the maximum of {limit} {resource} for a {account_type} account. "
            "Upgrade to premium for more."
        )
        super().__init__(
            message=message,
            context={
                "resource": resource,
                "limit": limit,
                "account_type": account_type,
                "upgrade_url": upgrade_url,
            },
        )
        self.upgrade_url = upgrade_url


class NotFoundError(PaintSnapError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class RateLimitExceededError(PaintSnapError):
    """
    Raised when a client exceeds the per-IP rate limit on credential endpoints.

    HTTP:    429 Too Many Requests, with a Retry-After header.
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DependencyError(PaintSnapError):
    """
    Raised when an upstream dependency (identity provider, blob store) fails.

    HTTP:    502 Bad Gateway
    Security: The message stays generic; the upstream error is logged only.
    """

    status_code = 502
    error_code = "dependency_error"

    def __init__(
        self,
        dependency: str,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["dependency"] = dependency
        super().__init__(
            message=message or f"The {dependency} service is unavailable. Please try again later.",
            context=ctx,
        )
        self.dependency = dependency


class DependencyTimeoutError(DependencyError):
    """
    Raised when an upstream call exceeds its configured hard timeout.

    HTTP:    504 Gateway Timeout
    """

    status_code = 504
    error_code = "dependency_timeout"

    def __init__(
        self,
        dependency: str,
        timeout: float,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["timeout_seconds"] = timeout
        super().__init__(
            dependency=dependency,
            message=f"The {dependency} service did not respond in time. Please try again.",
            context=ctx,
        )
        self.timeout = timeout


class BlobStorageError(PaintSnapError):
    """
    Raised when reading or writing an image blob fails.

    HTTP:    500 Internal Server Error
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "Image storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(PaintSnapError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error
    Security: The client always sees a generic message; the SQL error is logged.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

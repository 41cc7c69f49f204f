"""
Service Error Taxonomy

Errors raised by the aggregation services and auth flows. The API layer turns
each one into the standard response envelope using ``status_code`` and
``error_code``.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors surfaced to API clients"""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class ValidationError(ServiceError):
    """Malformed or missing input"""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class AuthError(ServiceError):
    """Missing, invalid or expired credentials"""

    status_code = 401
    error_code = "AUTH_ERROR"


class NotFoundError(ServiceError):
    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(ServiceError):
    status_code = 409
    error_code = "CONFLICT"


class UpstreamError(ServiceError):
    """
    An upstream merchant/order service call failed.

    ``upstream_status`` keeps the HTTP status the upstream answered with
    (``None`` for network failures).
    """

    status_code = 502
    error_code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message, error_code)
        self.upstream_status = upstream_status


class InternalError(ServiceError):
    status_code = 500
    error_code = "INTERNAL_ERROR"

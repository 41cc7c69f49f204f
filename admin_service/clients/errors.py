"""
External API Error Taxonomy

Every failure of an upstream HTTP call is reported as one of these classes.
The message carries the upstream ``message`` field when the error body has one.
"""

from typing import Optional


class ExternalApiError(Exception):
    """Base class for upstream call failures"""

    label = "API Error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(f"{self.label}: {message}")
        self.message = message
        self.status_code = status_code


class BadRequestError(ExternalApiError):
    label = "Bad Request"


class UnauthorizedError(ExternalApiError):
    label = "Unauthorized"


class ForbiddenError(ExternalApiError):
    label = "Forbidden"


class NotFoundError(ExternalApiError):
    label = "Not Found"


class RateLimitedError(ExternalApiError):
    label = "Rate Limited"


class ServerError(ExternalApiError):
    label = "Internal Server Error"


class GenericApiError(ExternalApiError):
    """Any other non-2xx status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.label = f"API Error ({status_code})"
        super().__init__(message, status_code)


class NetworkError(ExternalApiError):
    """The request was sent but no response came back"""

    label = "Network Error"


class RequestError(ExternalApiError):
    """The request could not be built or sent"""

    label = "Request Error"


STATUS_ERRORS = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    429: RateLimitedError,
    500: ServerError,
}


def error_for_status(status_code: int, message: str) -> ExternalApiError:
    """Map an HTTP status to its taxonomy class"""
    error_cls = STATUS_ERRORS.get(status_code, GenericApiError)
    return error_cls(message, status_code=status_code)

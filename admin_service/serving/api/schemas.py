"""
API Request/Response Models
"""

from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_serializer


ENVELOPE_OPTIONAL = frozenset({"data", "error", "total", "stats"})


class ApiResponse(BaseModel):
    """
    Standard response envelope.

    Unset optional envelope keys are left out of the body; nulls inside
    ``data`` are kept so payload shapes stay stable.
    """
    success: bool = True
    message: str = ""
    data: Optional[Any] = None
    error: Optional[str] = None
    total: Optional[int] = None
    stats: Optional[Dict[str, Any]] = None

    @model_serializer(mode="wrap")
    def drop_unset_envelope_keys(self, handler) -> Dict[str, Any]:
        body = handler(self)
        return {key: value for key, value in body.items() if value is not None or key not in ENVELOPE_OPTIONAL}


def ok(message: str, data: Any = None, **extra: Any) -> ApiResponse:
    return ApiResponse(success=True, message=message, data=data, **extra)


class CamelModel(BaseModel):
    """Request bodies arrive in camelCase"""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


def _check_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValueError("Invalid email address")
    return value


EmailAddress = Annotated[str, AfterValidator(_check_email)]


# =============================================================================
# AUTH
# =============================================================================

class RegisterRequest(CamelModel):
    email: EmailAddress
    password: str = Field(min_length=8)
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")


class LoginRequest(CamelModel):
    email: EmailAddress
    password: str = Field(min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(alias="refreshToken", min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=8)


class EmailRequest(CamelModel):
    """Body of forgot-password and resend-verification"""
    email: EmailAddress


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    new_password: str = Field(alias="newPassword", min_length=8)


class VerifyEmailRequest(CamelModel):
    token: str = Field(min_length=1)


# =============================================================================
# DASHBOARD
# =============================================================================

class StatUpdateRequest(CamelModel):
    metric_type: str = Field(alias="metricType", min_length=1)
    created_at: datetime = Field(alias="createdAt")
    value: int = Field(default=1, ge=0)


class FailureReasonUpdateRequest(CamelModel):
    reason: str = Field(min_length=1)
    created_at: datetime = Field(alias="createdAt")
    value: int = Field(default=1, ge=0)


# =============================================================================
# ORDERS
# =============================================================================

class OrderStatusUpdateRequest(CamelModel):
    status: str = Field(min_length=1)

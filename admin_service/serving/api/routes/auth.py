"""
Auth API Endpoints

Staff registration, login and account maintenance.
"""

from fastapi import APIRouter, Depends, status

from admin_service.serving.api.dependencies import get_auth_service, get_current_user
from admin_service.serving.api.schemas import (
    ApiResponse,
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
    ok,
)
from admin_service.services import AuthService
from admin_service.services.auth import AuthUser

router = APIRouter()


@router.post(
    "/register",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(body: RegisterRequest, auth: AuthService = Depends(get_auth_service)) -> ApiResponse:
    user, tokens = await auth.register(body.email, body.password, body.first_name, body.last_name)
    return ok(
        "User registered successfully. Please check your email to verify your account.",
        {"user": user.as_dict(), **tokens},
    )


@router.post("/login", response_model=ApiResponse)
async def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)) -> ApiResponse:
    user, tokens = await auth.login(body.email, body.password)
    return ok("Login successful", {"user": user.as_dict(), **tokens})


@router.post("/refresh-token", response_model=ApiResponse)
async def refresh_token(body: RefreshTokenRequest, auth: AuthService = Depends(get_auth_service)) -> ApiResponse:
    tokens = await auth.refresh_tokens(body.refresh_token)
    return ok("Token refreshed successfully", tokens)


@router.post("/change-password", response_model=ApiResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: AuthUser = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
) -> ApiResponse:
    await auth.change_password(user.id, body.current_password, body.new_password)
    return ok("Password changed successfully")


@router.post("/forgot-password", response_model=ApiResponse)
async def forgot_password(body: EmailRequest, auth: AuthService = Depends(get_auth_service)) -> ApiResponse:
    # Same answer whether or not the account exists
    await auth.forgot_password(body.email)
    return ok("If an account with that email exists, a password reset link has been sent")


@router.post("/reset-password", response_model=ApiResponse)
async def reset_password(body: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)) -> ApiResponse:
    await auth.reset_password(body.token, body.new_password)
    return ok("Password reset successfully")


@router.post("/verify-email", response_model=ApiResponse)
async def verify_email(body: VerifyEmailRequest, auth: AuthService = Depends(get_auth_service)) -> ApiResponse:
    await auth.verify_email(body.token)
    return ok("Email verified successfully")


@router.post("/resend-verification", response_model=ApiResponse)
async def resend_verification(body: EmailRequest, auth: AuthService = Depends(get_auth_service)) -> ApiResponse:
    await auth.resend_verification(body.email)
    return ok("Verification email sent")


@router.get("/profile", response_model=ApiResponse)
async def profile(user: AuthUser = Depends(get_current_user)) -> ApiResponse:
    return ok("Profile retrieved successfully", {"user": user.as_dict()})

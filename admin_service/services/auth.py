"""
Authentication Service

Staff accounts: registration, login, JWT access/refresh tokens, password
change and reset, email verification. Email delivery never fails an account
operation; delivery errors are logged.
"""

import asyncio
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import uuid

import jwt
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from admin_service.config.settings import SecuritySettings
from admin_service.database.connection import get_db
from admin_service.database.models import User
from admin_service.errors import AuthError, ConflictError, NotFoundError, ValidationError
from admin_service.services.email import EmailService

logger = structlog.get_logger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
MIN_PASSWORD_LENGTH = 8


@dataclass
class AuthUser:
    """Public view of a staff user"""
    id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    is_email_verified: bool

    @classmethod
    def from_model(cls, user: User) -> "AuthUser":
        return cls(
            id=str(user.id),
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_email_verified=user.is_email_verified,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "isEmailVerified": self.is_email_verified,
        }


# =============================================================================
# PASSWORDS & TOKENS
# =============================================================================

def hash_password(password: str, iterations: int = 390000) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def generate_token() -> str:
    """Random token for email verification and password reset links"""
    return secrets.token_hex(32)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class AuthService:
    """
    Account operations backed by the users table.

    Example:
        auth = AuthService(session_factory, settings.security, email_service)
        user, tokens = await auth.login("admin@example.com", "s3cret-pass")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: SecuritySettings,
        email_service: Optional[EmailService] = None,
    ):
        self._session_factory = session_factory
        self.settings = settings
        self._email = email_service

    # =========================================================================
    # TOKENS
    # =========================================================================

    def _encode(self, user: AuthUser, token_type: str) -> str:
        now = datetime.now(timezone.utc)
        if token_type == "access":
            secret = self.settings.jwt_secret_key
            expires = now + timedelta(minutes=self.settings.access_token_minutes)
        else:
            secret = self.settings.jwt_refresh_secret_key
            expires = now + timedelta(days=self.settings.refresh_token_days)

        payload = {
            "sub": user.id,
            "userId": user.id,
            "email": user.email,
            "type": token_type,
            "iat": now,
            "exp": expires,
        }
        return jwt.encode(payload, secret.get_secret_value(), algorithm=self.settings.jwt_algorithm)

    def generate_tokens(self, user: AuthUser) -> Dict[str, str]:
        return {
            "accessToken": self._encode(user, "access"),
            "refreshToken": self._encode(user, "refresh"),
        }

    def _decode(self, token: str, token_type: str) -> Dict[str, Any]:
        secret = (
            self.settings.jwt_secret_key if token_type == "access" else self.settings.jwt_refresh_secret_key
        )
        try:
            claims = jwt.decode(
                token,
                secret.get_secret_value(),
                algorithms=[self.settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("Token has expired", "TOKEN_EXPIRED") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError("Invalid or expired token", "INVALID_TOKEN") from exc

        if claims.get("type") != token_type:
            raise AuthError("Invalid or expired token", "INVALID_TOKEN")
        return claims

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """Decode an access token; raises AuthError when invalid."""
        return self._decode(token, "access")

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        return self._decode(token, "refresh")

    async def refresh_tokens(self, refresh_token: str) -> Dict[str, str]:
        claims = self.verify_refresh_token(refresh_token)
        user = await self.get_user_by_id(claims["userId"])
        if user is None:
            raise AuthError("User not found", "USER_NOT_FOUND")
        return self.generate_tokens(user)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def register(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ):
        """
        Create a user and send the verification email.

        Raises:
            ConflictError: The email is already registered. The verification
                email is re-sent first when the account is still unverified.
        """
        self._check_password(password)
        email = email.strip().lower()
        verification_token = generate_token()

        async with get_db(self._session_factory) as db:
            existing = await self._find_by_email(db, email)
            if existing is None:
                user = User(
                    email=email,
                    password_hash=hash_password(password, self.settings.password_hash_iterations),
                    first_name=first_name,
                    last_name=last_name,
                    email_verification_token=verification_token,
                )
                db.add(user)
                await db.flush()
                auth_user = AuthUser.from_model(user)
            else:
                pending_token = None if existing.is_email_verified else existing.email_verification_token
                existing_first_name = existing.first_name

        if existing is not None:
            if pending_token:
                await self._notify(
                    "send_email_verification", email, existing_first_name, pending_token
                )
            raise ConflictError("User already exists. Verification email resent if needed.", "USER_EXISTS")

        logger.info("User registered", user_id=auth_user.id)
        await self._notify("send_email_verification", auth_user.email, auth_user.first_name, verification_token)
        return auth_user, self.generate_tokens(auth_user)

    async def login(self, email: str, password: str):
        async with get_db(self._session_factory) as db:
            user = await self._find_by_email(db, email.strip().lower())
            if user is None or not verify_password(password, user.password_hash):
                raise AuthError("Invalid email or password", "INVALID_CREDENTIALS")
            auth_user = AuthUser.from_model(user)

        logger.info("User logged in", user_id=auth_user.id)
        return auth_user, self.generate_tokens(auth_user)

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        self._check_password(new_password)
        async with get_db(self._session_factory) as db:
            user = await db.get(User, self._uuid(user_id))
            if user is None:
                raise NotFoundError("User not found", "USER_NOT_FOUND")
            if not verify_password(current_password, user.password_hash):
                raise ValidationError("Current password is incorrect", "INVALID_PASSWORD")
            user.password_hash = hash_password(new_password, self.settings.password_hash_iterations)
            email, first_name = user.email, user.first_name

        logger.info("Password changed", user_id=user_id)
        await self._notify("send_password_change_confirmation", email, first_name)

    async def forgot_password(self, email: str) -> Optional[str]:
        """
        Issue a password reset token.

        Returns None for unknown emails so callers cannot tell whether an
        account exists.
        """
        reset_token = generate_token()
        async with get_db(self._session_factory) as db:
            user = await self._find_by_email(db, email.strip().lower())
            if user is None:
                return None
            user.password_reset_token = reset_token
            user.password_reset_expires = datetime.now(timezone.utc) + timedelta(
                minutes=self.settings.password_reset_minutes
            )
            email, first_name = user.email, user.first_name

        await self._notify("send_password_reset", email, first_name, reset_token)
        return reset_token

    async def reset_password(self, token: str, new_password: str) -> None:
        self._check_password(new_password)
        async with get_db(self._session_factory) as db:
            result = await db.execute(select(User).where(User.password_reset_token == token))
            user = result.scalar_one_or_none()
            if (
                user is None
                or user.password_reset_expires is None
                or _as_utc(user.password_reset_expires) <= datetime.now(timezone.utc)
            ):
                raise ValidationError("Invalid or expired reset token", "INVALID_RESET_TOKEN")

            user.password_hash = hash_password(new_password, self.settings.password_hash_iterations)
            user.password_reset_token = None
            user.password_reset_expires = None

        logger.info("Password reset", user_id=str(user.id))

    async def verify_email(self, token: str) -> None:
        async with get_db(self._session_factory) as db:
            result = await db.execute(select(User).where(User.email_verification_token == token))
            user = result.scalar_one_or_none()
            if user is None:
                raise ValidationError("Invalid verification token", "INVALID_VERIFICATION_TOKEN")
            user.is_email_verified = True
            user.email_verification_token = None

    async def resend_verification(self, email: str) -> str:
        token = generate_token()
        async with get_db(self._session_factory) as db:
            user = await self._find_by_email(db, email.strip().lower())
            if user is None:
                raise NotFoundError("User not found", "USER_NOT_FOUND")
            if user.is_email_verified:
                raise ValidationError("Email is already verified", "ALREADY_VERIFIED")
            user.email_verification_token = token
            email, first_name = user.email, user.first_name

        await self._notify("send_email_verification", email, first_name, token)
        return token

    async def get_user_by_id(self, user_id: str) -> Optional[AuthUser]:
        try:
            key = uuid.UUID(str(user_id))
        except ValueError:
            return None
        async with get_db(self._session_factory) as db:
            user = await db.get(User, key)
            return AuthUser.from_model(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[AuthUser]:
        async with get_db(self._session_factory) as db:
            user = await self._find_by_email(db, email.strip().lower())
            return AuthUser.from_model(user) if user else None

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    async def _find_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    def _uuid(user_id: str) -> uuid.UUID:
        try:
            return uuid.UUID(str(user_id))
        except ValueError as exc:
            raise NotFoundError("User not found", "USER_NOT_FOUND") from exc

    @staticmethod
    def _check_password(password: str) -> None:
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long", "WEAK_PASSWORD"
            )

    async def _notify(self, method: str, *args) -> None:
        """Send an account email; failures are logged and never raised."""
        if self._email is None:
            return
        try:
            await asyncio.to_thread(getattr(self._email, method), *args)
        except Exception as e:
            logger.error("Failed to send account email", kind=method, error=str(e))

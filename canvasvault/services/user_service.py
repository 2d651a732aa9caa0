"""User service: signup, verification, login, profile and password recovery.

This service orchestrates the account lifecycle:
- Signup creates an unverified user and mails a 6-digit OTP
- OTP verification marks the email verified and opens the first session
- Login checks the password and opens a session
- Profile reads/updates and self-blocking
- Password recovery by OTP or by emailed link

Session issuance, rotation and revocation are delegated to ``TokenService``.

Note: This service is asynchronous (uses `async def`) because it performs
database and cache I/O.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from canvasvault.core.config import Settings, get_settings
from canvasvault.core.enums import AuthAction
from canvasvault.core.errors import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from canvasvault.core.logging import AuthAuditLogger
from canvasvault.models.base import utc_now
from canvasvault.models.user import DEFAULT_USER_CREDITS, PROFILE_FIELDS, User
from canvasvault.services.mail_queue import MailQueue
from canvasvault.services.otp_service import OTPService, codes_match
from canvasvault.services.password_service import PasswordService
from canvasvault.services.token_service import IssuedSession, TokenService

logger = logging.getLogger(__name__)

OTP_EXPIRED_MESSAGE = "OTP expired or not found. Please request a new one."


class UserService:
    """Service for user accounts (orchestrator).

    Attributes:
        session: Database session
        token_service: Session issuer/rotator
        otp_service: One-time code store
        mail_queue: Outbound mail job producer
        password_service: Password hashing (sync)
        audit: Login audit trail
    """

    def __init__(
        self,
        session: AsyncSession,
        token_service: TokenService,
        otp_service: OTPService,
        mail_queue: MailQueue,
        settings: Settings | None = None,
        password_service: PasswordService | None = None,
        audit: AuthAuditLogger | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.token_service = token_service
        self.otp_service = otp_service
        self.mail_queue = mail_queue
        self.password_service = password_service or PasswordService(
            self.settings.bcrypt_rounds
        )
        self.audit = audit or AuthAuditLogger()

    async def _get_user_by_email(self, email: str, active_only: bool = True) -> Optional[User]:
        query = select(User).where(User.email == email)
        if active_only:
            query = query.where(User.block.is_(False))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def _get_active_user(self, user_id: int) -> User:
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.block.is_(False))
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def signup(self, name: str, email: str, password: str) -> User:
        """Register a new, unverified user and mail the verification OTP.

        Args:
            name: Display name
            email: Email address (unique)
            password: Plain text password (will be hashed)

        Returns:
            Created user

        Raises:
            ConflictError: If the email is already registered

        Example:
            >>> user = await service.signup("Ada", "a@b.com", "password123")
            >>> user.is_email_verified
            False
        """
        if await self._get_user_by_email(email, active_only=False) is not None:
            raise ConflictError("User already exists")

        user = User(
            name=name,
            email=email,
            password_hash=self.password_service.hash_password(password),
            is_email_verified=False,
            block=False,
            ai_credits=DEFAULT_USER_CREDITS,
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent signup for the same email
            await self.session.rollback()
            raise ConflictError("User already exists") from e

        otp = await self.otp_service.issue_verification_otp(user.id)
        await self.mail_queue.send_otp(user.email, otp)

        logger.info(f"User registered: ID {user.id}")
        return user

    async def verify_otp(
        self,
        email: str,
        otp: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> IssuedSession:
        """Confirm the signup OTP and open the first session.

        If no OTP is outstanding (expired or never issued) a fresh one is
        mailed and the request still fails, so the user retries with the new
        code.

        Args:
            email: Email address the OTP was sent to
            otp: 6-digit code
            ip_address: Client IP address
            user_agent: Client User-Agent header

        Returns:
            IssuedSession for the verified user

        Raises:
            NotFoundError: Unknown or blocked email
            BadRequestError: OTP expired/missing or mismatched
        """
        user = await self._get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")

        stored_otp = await self.otp_service.get_verification_otp(user.id)
        if stored_otp is None:
            new_otp = await self.otp_service.issue_verification_otp(user.id)
            await self.mail_queue.send_otp(user.email, new_otp)
            logger.info(f"Verification OTP re-issued for user {user.id}")
            raise BadRequestError(OTP_EXPIRED_MESSAGE)

        if not codes_match(stored_otp, otp):
            raise BadRequestError("Invalid OTP")

        user.is_email_verified = True
        self.session.add(user)
        await self.otp_service.consume_verification_otp(user.id)

        # issue_session commits the verification flag with the ledger row
        issued = await self.token_service.issue_session(user, ip_address, user_agent)
        logger.info(f"Email verified for user {user.id}")
        return issued

    async def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> IssuedSession:
        """Authenticate with email and password.

        Args:
            email: Email address
            password: Plain text password
            ip_address: Client IP address
            user_agent: Client User-Agent header

        Returns:
            IssuedSession for the user

        Raises:
            NotFoundError: Unknown or blocked user
            ForbiddenError: Email not verified
            AuthenticationError: Wrong password
        """
        user = await self._get_user_by_email(email)
        if user is None:
            self._audit_login(
                AuthAction.LOGIN_FAILED, ip_address, user_agent, reason="unknown user"
            )
            raise NotFoundError("User not found")

        if not user.is_email_verified:
            self._audit_login(
                AuthAction.LOGIN_FAILED, ip_address, user_agent, user.id, "email not verified"
            )
            raise ForbiddenError("Email not verified")

        if not self.password_service.verify_password(password, user.password_hash):
            self._audit_login(
                AuthAction.LOGIN_FAILED, ip_address, user_agent, user.id, "invalid password"
            )
            raise AuthenticationError("Invalid credentials")

        # Check if password needs rehashing (bcrypt rounds changed)
        if self.password_service.needs_rehash(user.password_hash):
            user.password_hash = self.password_service.hash_password(password)
            self.session.add(user)
            logger.info(f"Password rehashed for user {user.id}")

        issued = await self.token_service.issue_session(user, ip_address, user_agent)
        self._audit_login(AuthAction.LOGIN_SUCCESS, ip_address, user_agent, user.id)
        logger.info(f"User logged in: ID {user.id}")
        return issued

    def _audit_login(
        self,
        action: AuthAction,
        ip_address: Optional[str],
        user_agent: Optional[str],
        user_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.audit.log(
            action,
            ip=ip_address,
            user_agent=user_agent,
            url="/user/login",
            user_id=user_id,
            reason=reason,
        )

    async def get_profile(self, user_id: int) -> User:
        """Return the active user's profile.

        Raises:
            NotFoundError: Unknown or blocked user
        """
        return await self._get_active_user(user_id)

    async def update_profile(self, user_id: int, changes: Dict[str, Any]) -> User:
        """Apply a partial profile update.

        Only profile fields are writable; any other key is ignored.

        Args:
            user_id: Owning user
            changes: Field name to new value

        Returns:
            Updated user
        """
        user = await self._get_active_user(user_id)
        for field, value in changes.items():
            if field not in PROFILE_FIELDS:
                continue
            # name is required; the other profile fields may be cleared
            if field == "name" and value is None:
                continue
            setattr(user, field, value)
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        logger.info(f"Profile updated for user {user_id}: {sorted(changes)}")
        return user

    async def block_user(self, user_id: int) -> None:
        """Block the account and revoke every one of its sessions.

        Args:
            user_id: User blocking themselves

        Raises:
            NotFoundError: Unknown or already blocked user
        """
        user = await self._get_active_user(user_id)
        user.block = True
        user.blocked_at = utc_now()
        self.session.add(user)
        await self.session.commit()

        revoked = await self.token_service.revoke_all_sessions(user_id)
        logger.info(f"User {user_id} blocked ({revoked} sessions revoked)")

    async def _get_recoverable_user(self, email: str) -> User:
        user = await self._get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        if not user.is_email_verified:
            raise ForbiddenError("Email not verified")
        return user

    async def forgot_password_otp(self, email: str) -> str:
        """Mail a 6-digit password reset code.

        Returns:
            Confirmation message

        Raises:
            NotFoundError: Unknown or blocked user
            ForbiddenError: Email not verified
        """
        user = await self._get_recoverable_user(email)
        otp = await self.otp_service.issue_reset_otp(user.id)
        await self.mail_queue.send_password_reset_otp(user.email, otp)
        logger.info(f"Password reset OTP issued for user {user.id}")
        return "Password reset OTP sent to your email"

    async def forgot_password_link(self, email: str) -> str:
        """Mail a password reset link carrying a single-use token.

        Returns:
            Confirmation message

        Raises:
            NotFoundError: Unknown or blocked user
            ForbiddenError: Email not verified
        """
        user = await self._get_recoverable_user(email)
        token = await self.otp_service.issue_reset_token(user.id)
        reset_link = f"{self.settings.frontend_url}/reset-password?token={token}"
        await self.mail_queue.send_password_reset_link(user.email, reset_link)
        logger.info(f"Password reset link issued for user {user.id}")
        return "Password reset link sent to your email"

    async def _set_password(self, user: User, new_password: str) -> None:
        user.password_hash = self.password_service.hash_password(new_password)
        self.session.add(user)
        await self.session.commit()
        # Sessions opened with the old password are no longer trusted
        revoked = await self.token_service.revoke_all_sessions(user.id)
        logger.info(f"Password reset for user {user.id}: revoked {revoked} session(s)")

    async def reset_password_with_otp(self, email: str, otp: str, new_password: str) -> str:
        """Reset the password with a code from ``forgot_password_otp``.

        Raises:
            NotFoundError: Unknown or blocked user
            BadRequestError: OTP expired/missing or mismatched
        """
        user = await self._get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")

        stored_otp = await self.otp_service.get_reset_otp(user.id)
        if stored_otp is None:
            raise BadRequestError(OTP_EXPIRED_MESSAGE)
        if not codes_match(stored_otp, otp):
            raise BadRequestError("Invalid OTP")

        await self.otp_service.consume_reset_otp(user.id)
        await self._set_password(user, new_password)
        return "Password reset successfully"

    async def reset_password_with_token(self, token: str, new_password: str) -> str:
        """Reset the password with the token from a reset link.

        Raises:
            BadRequestError: Unknown or expired token
            NotFoundError: Token owner missing or blocked
        """
        user_id = await self.otp_service.resolve_reset_token(token)
        if user_id is None:
            raise BadRequestError("Invalid or expired reset token")

        user = await self._get_active_user(user_id)
        await self.otp_service.consume_reset_token(token)
        await self._set_password(user, new_password)
        return "Password reset successfully"

"""Token issuance, rotation and revocation.

Pattern: JWT access token + opaque refresh token.

- Issue: a random refresh token is handed to the client; only its SHA-256
  hash is stored in the ``auth_tokens`` ledger together with device/IP
  metadata. The access token is signed and its session marker written.
- Rotate: the presented refresh token is revoked with a conditional
  ``UPDATE ... WHERE revoked = false`` so that, of two concurrent rotations,
  exactly one wins. The successor row is created and linked in the same
  transaction; the old session marker is replaced by a new one.
- Revoke: same conditional update without a successor; the session marker
  recorded on the row is deleted.

Note: This service is asynchronous because it performs database and cache I/O.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from canvasvault.core.cache import CacheBackend
from canvasvault.core.config import Settings, get_settings
from canvasvault.core.errors import AuthenticationError, SessionNotFoundError
from canvasvault.models.auth_token import AuthToken
from canvasvault.models.base import utc_now
from canvasvault.models.user import User
from canvasvault.services.jwt_service import JWTService
from canvasvault.services.session_marker_service import SessionMarkerService

logger = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 64


@dataclass(frozen=True)
class IssuedSession:
    """Credentials produced by issuance or rotation.

    Attributes:
        access_token: Signed JWT for the ``Authorization`` header.
        refresh_token: Raw opaque refresh token for the cookie (never stored).
        device_id: Device the session belongs to.
        jti: Identifier of the access token.
        refresh_session_id: Ledger row id of the refresh token.
    """

    access_token: str
    refresh_token: str
    device_id: str
    jti: str
    refresh_session_id: int


def hash_refresh_token(raw_token: str) -> str:
    """One-way, deterministic digest of a raw refresh token.

    Args:
        raw_token: Raw refresh token value

    Returns:
        Hex SHA-256 digest
    """
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_refresh_token() -> str:
    """Generate a high-entropy opaque refresh token (64 random bytes, hex)."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


class TokenService:
    """Issuer and rotation/revocation service for user sessions.

    Attributes:
        session: Database session (ledger and credential store)
        markers: Session marker store
        jwt_service: Access token signer
        refresh_ttl: Refresh token lifetime
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheBackend,
        settings: Settings | None = None,
        jwt_service: JWTService | None = None,
    ):
        """Initialize token service with dependencies.

        Args:
            session: Async database session
            cache: Cache backend holding session markers
            settings: Application settings (defaults to cached settings)
            jwt_service: Access token signer (defaults to one built from settings)
        """
        self.session = session
        self.settings = settings or get_settings()
        self.jwt_service = jwt_service or JWTService(self.settings)
        self.markers = SessionMarkerService(cache, self.settings.access_token_ttl_seconds)
        self.refresh_ttl = timedelta(days=self.settings.refresh_token_expire_days)

    def _new_ledger_row(
        self,
        user_id: int,
        device_id: str,
        jti: str,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> tuple[str, AuthToken]:
        raw_token = generate_refresh_token()
        record = AuthToken(
            user_id=user_id,
            token_hash=hash_refresh_token(raw_token),
            ip_address=ip_address or "unknown",
            user_agent=user_agent or "unknown",
            device_id=device_id,
            access_jti=jti,
            revoked=False,
            expires_at=utc_now() + self.refresh_ttl,
        )
        self.session.add(record)
        return raw_token, record

    async def issue_session(
        self,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> IssuedSession:
        """Issue an access/refresh pair for a verified user.

        Commits the current transaction (including any pending changes the
        caller made to ``user``) before activating the session marker.

        Args:
            user: Verified, unblocked user
            ip_address: Client IP address
            user_agent: Client User-Agent header
            device_id: Existing device id to keep; a new one is minted if None

        Returns:
            IssuedSession with the raw refresh token for the cookie
        """
        device_id = device_id or str(uuid4())
        jti = str(uuid4())

        raw_token, record = self._new_ledger_row(
            user.id, device_id, jti, ip_address, user_agent
        )
        await self.session.flush()

        access_token = self.jwt_service.create_access_token(
            user_id=user.id, email=user.email, device_id=device_id, jti=jti
        )
        await self.session.commit()

        await self.markers.activate(user.id, device_id, jti)

        logger.info(f"Session issued for user {user.id} (session: {record.id})")
        return IssuedSession(
            access_token=access_token,
            refresh_token=raw_token,
            device_id=device_id,
            jti=jti,
            refresh_session_id=record.id,
        )

    async def rotate_session(
        self,
        raw_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> IssuedSession:
        """Exchange a refresh token for a new access/refresh pair.

        The old row is revoked and linked to its successor atomically; any
        failure after the revoke rolls the whole transaction back.

        Args:
            raw_token: Raw refresh token from the cookie
            ip_address: Client IP address
            user_agent: Client User-Agent header

        Returns:
            IssuedSession for the same device with a new jti

        Raises:
            SessionNotFoundError: Token unknown, revoked, expired or already rotated
            AuthenticationError: Owning user missing or blocked
        """
        now = utc_now()
        result = await self.session.execute(
            update(AuthToken)
            .where(
                AuthToken.token_hash == hash_refresh_token(raw_token),
                AuthToken.revoked.is_(False),
                AuthToken.expires_at > now,
            )
            .values(revoked=True, updated_at=now)
            .execution_options(synchronize_session=False)
            .returning(
                AuthToken.id,
                AuthToken.user_id,
                AuthToken.device_id,
                AuthToken.access_jti,
            )
        )
        old = result.one_or_none()
        if old is None:
            await self.session.rollback()
            raise SessionNotFoundError()

        try:
            user = (
                await self.session.execute(
                    select(User).where(User.id == old.user_id, User.block.is_(False))
                )
            ).scalar_one_or_none()
            if user is None:
                raise AuthenticationError("User not found or disabled")

            jti = str(uuid4())
            new_raw_token, successor = self._new_ledger_row(
                user.id, old.device_id, jti, ip_address, user_agent
            )
            await self.session.flush()

            await self.session.execute(
                update(AuthToken)
                .where(AuthToken.id == old.id, AuthToken.user_id == user.id)
                .values(replaced_by_token_id=successor.id)
                .execution_options(synchronize_session=False)
            )
            access_token = self.jwt_service.create_access_token(
                user_id=user.id, email=user.email, device_id=old.device_id, jti=jti
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.markers.revoke(old.user_id, old.device_id, old.access_jti)
        await self.markers.activate(user.id, old.device_id, jti)

        logger.info(
            f"Refresh token rotated for user {user.id}: session {old.id} -> {successor.id}"
        )
        return IssuedSession(
            access_token=access_token,
            refresh_token=new_raw_token,
            device_id=old.device_id,
            jti=jti,
            refresh_session_id=successor.id,
        )

    async def revoke_session(self, raw_token: str, user_id: Optional[int] = None) -> bool:
        """Revoke a refresh session and its access token's marker.

        Args:
            raw_token: Raw refresh token from the cookie
            user_id: Owning user; when given the lookup is scoped to it

        Returns:
            True if a live session was revoked, False if none matched
        """
        conditions = [
            AuthToken.token_hash == hash_refresh_token(raw_token),
            AuthToken.revoked.is_(False),
        ]
        if user_id is not None:
            conditions.append(AuthToken.user_id == user_id)

        result = await self.session.execute(
            update(AuthToken)
            .where(*conditions)
            .values(revoked=True, updated_at=utc_now())
            .execution_options(synchronize_session=False)
            .returning(AuthToken.id, AuthToken.user_id, AuthToken.device_id, AuthToken.access_jti)
        )
        row = result.one_or_none()
        await self.session.commit()

        if row is None:
            return False

        await self.markers.revoke(row.user_id, row.device_id, row.access_jti)
        logger.info(f"Refresh session {row.id} revoked for user {row.user_id}")
        return True

    async def revoke_all_sessions(self, user_id: int) -> int:
        """Revoke every live refresh session of a user (e.g., when blocked).

        Args:
            user_id: Owning user

        Returns:
            Number of sessions revoked
        """
        result = await self.session.execute(
            update(AuthToken)
            .where(AuthToken.user_id == user_id, AuthToken.revoked.is_(False))
            .values(revoked=True, updated_at=utc_now())
            .execution_options(synchronize_session=False)
            .returning(AuthToken.device_id, AuthToken.access_jti)
        )
        rows = result.all()
        await self.session.commit()

        for row in rows:
            await self.markers.revoke(user_id, row.device_id, row.access_jti)

        logger.info(f"Revoked {len(rows)} sessions for user {user_id}")
        return len(rows)

"""Integration tests for TokenService against SQLite and MemoryCache.

Tests cover:
- Issuance: ledger row (hash only), session marker, access token claims
- Rotation: single use (also under concurrency), successor link, marker swap
- Revocation: single session, user-scoped, all sessions
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import select

from canvasvault.core.database import init_db
from canvasvault.core.errors import AuthenticationError, SessionNotFoundError
from canvasvault.models.auth_token import AuthToken
from canvasvault.models.base import utc_now
from canvasvault.models.user import User
from canvasvault.services.token_service import TokenService, hash_refresh_token


@pytest.fixture
def token_service(db_session, cache, settings) -> TokenService:
    return TokenService(db_session, cache, settings)


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """File-backed SQLite engine where each session holds its own connection.

    Transactions start with BEGIN IMMEDIATE so a second writer waits for the
    first to commit, like a row lock on PostgreSQL.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    await init_db(engine)
    yield engine
    await engine.dispose()


async def ledger(session_maker) -> list[AuthToken]:
    async with session_maker() as session:
        result = await session.execute(select(AuthToken).order_by(AuthToken.id))
        return list(result.scalars().all())


@pytest.mark.integration
class TestIssueSession:
    async def test_issue(self, token_service, user_factory, session_maker):
        user = await user_factory()

        issued = await token_service.issue_session(user, "203.0.113.1", "pytest")

        rows = await ledger(session_maker)
        assert len(rows) == 1
        row = rows[0]
        assert row.id == issued.refresh_session_id
        assert row.token_hash == hash_refresh_token(issued.refresh_token)
        assert row.token_hash != issued.refresh_token
        assert row.device_id == issued.device_id
        assert row.access_jti == issued.jti
        assert row.ip_address == "203.0.113.1"
        assert row.revoked is False
        assert row.is_valid

        assert len(issued.refresh_token) == 128
        assert await token_service.markers.is_active(user.id, issued.device_id, issued.jti)

        claims = token_service.jwt_service.parse_claims(
            token_service.jwt_service.decode_token(issued.access_token)
        )
        assert claims.user_id == user.id
        assert claims.email == user.email
        assert claims.device_id == issued.device_id
        assert claims.jti == issued.jti

    async def test_each_login_is_a_new_device(self, token_service, user_factory):
        user = await user_factory()

        first = await token_service.issue_session(user)
        second = await token_service.issue_session(user)

        assert first.device_id != second.device_id
        assert first.refresh_token != second.refresh_token


@pytest.mark.integration
class TestRotateSession:
    async def test_rotate(self, token_service, user_factory, session_maker):
        user = await user_factory()
        original = await token_service.issue_session(user)

        rotated = await token_service.rotate_session(original.refresh_token, "1.1.1.1", "ua")

        assert rotated.device_id == original.device_id
        assert rotated.jti != original.jti
        assert rotated.refresh_token != original.refresh_token

        old_row, new_row = await ledger(session_maker)
        assert old_row.revoked is True
        assert old_row.replaced_by_token_id == new_row.id
        assert new_row.revoked is False
        assert new_row.ip_address == "1.1.1.1"

        markers = token_service.markers
        assert not await markers.is_active(user.id, original.device_id, original.jti)
        assert await markers.is_active(user.id, rotated.device_id, rotated.jti)

    async def test_replay_fails(self, token_service, user_factory):
        user = await user_factory()
        original = await token_service.issue_session(user)
        rotated = await token_service.rotate_session(original.refresh_token)

        with pytest.raises(SessionNotFoundError) as exc_info:
            await token_service.rotate_session(original.refresh_token)

        assert exc_info.value.message == "Session not found"
        # The legitimate successor still works
        assert await token_service.markers.is_active(user.id, rotated.device_id, rotated.jti)
        await token_service.rotate_session(rotated.refresh_token)

    async def test_unknown_token(self, token_service):
        with pytest.raises(SessionNotFoundError):
            await token_service.rotate_session("f" * 128)

    async def test_expired_token(self, token_service, user_factory, session_maker):
        user = await user_factory()
        issued = await token_service.issue_session(user)

        async with session_maker() as session:
            row = await session.get(AuthToken, issued.refresh_session_id)
            row.expires_at = utc_now()
            session.add(row)
            await session.commit()

        with pytest.raises(SessionNotFoundError):
            await token_service.rotate_session(issued.refresh_token)

    async def test_blocked_user_cannot_rotate(self, token_service, user_factory, session_maker):
        user = await user_factory()
        issued = await token_service.issue_session(user)

        async with session_maker() as session:
            db_user = await session.get(User, user.id)
            db_user.block = True
            session.add(db_user)
            await session.commit()

        with pytest.raises(AuthenticationError):
            await token_service.rotate_session(issued.refresh_token)

        # Rolled back: the presented row stays live
        rows = await ledger(session_maker)
        assert len(rows) == 1
        assert rows[0].revoked is False

    async def test_concurrent_rotation_has_one_winner(self, file_engine, cache, settings):
        maker = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
        async with maker() as session:
            user = User(name="Ada", email="a@b.com", password_hash="x")
            session.add(user)
            await session.commit()
            await session.refresh(user)
            original = await TokenService(session, cache, settings).issue_session(user)

        async with maker() as first, maker() as second:
            results = await asyncio.gather(
                TokenService(first, cache, settings).rotate_session(original.refresh_token),
                TokenService(second, cache, settings).rotate_session(original.refresh_token),
                return_exceptions=True,
            )

        assert sorted(type(r).__name__ for r in results) == [
            "IssuedSession",
            "SessionNotFoundError",
        ]
        rows = await ledger(maker)
        assert len(rows) == 2
        assert [row.revoked for row in rows] == [True, False]


@pytest.mark.integration
class TestRevokeSession:
    async def test_revoke(self, token_service, user_factory, session_maker):
        user = await user_factory()
        issued = await token_service.issue_session(user)

        assert await token_service.revoke_session(issued.refresh_token) is True

        assert (await ledger(session_maker))[0].revoked is True
        assert not await token_service.markers.is_active(user.id, issued.device_id, issued.jti)
        assert await token_service.revoke_session(issued.refresh_token) is False

    async def test_revoke_scoped_to_owner(self, token_service, user_factory):
        owner = await user_factory()
        other = await user_factory()
        issued = await token_service.issue_session(owner)

        assert await token_service.revoke_session(issued.refresh_token, user_id=other.id) is False
        assert await token_service.markers.is_active(owner.id, issued.device_id, issued.jti)

    async def test_revoke_all(self, token_service, user_factory, session_maker):
        user = await user_factory()
        other = await user_factory()
        sessions = [await token_service.issue_session(user) for _ in range(3)]
        kept = await token_service.issue_session(other)

        assert await token_service.revoke_all_sessions(user.id) == 3

        for issued in sessions:
            assert not await token_service.markers.is_active(user.id, issued.device_id, issued.jti)
        assert await token_service.markers.is_active(other.id, kept.device_id, kept.jti)
        rows = await ledger(session_maker)
        assert [row.revoked for row in rows] == [True, True, True, False]

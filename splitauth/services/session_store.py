"""Persistent session and token blacklist storage."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from splitauth.models.token_blacklist import TokenBlacklist
from splitauth.models.user_session import UserSession

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionStore:
    """Session rows and blacklist entries.

    Each mutation is committed on its own: every call touches a single
    logical unit (one session, one blacklist entry, or one bulk sweep), so
    there is nothing to group into a larger transaction. Concurrency control
    is left to the database's row-level atomicity.

    "Now" is always evaluated in SQL parameters so a row whose expires_at
    equals the current instant counts as expired everywhere.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # --- Sessions ---

    async def create_session(
        self,
        user_id: UUID,
        refresh_secret: str,
        user_agent: str | None,
        ip_address: str | None,
        expires_at: datetime,
    ) -> UserSession:
        """Persist a new session for a login."""
        now = _utcnow()
        record = UserSession(
            user_id=user_id,
            refresh_token=refresh_secret,
            user_agent=user_agent or None,
            ip_address=ip_address or None,
            created_at=now,
            updated_at=now,
            last_used_at=now,
            expires_at=expires_at,
        )
        self.session.add(record)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return record

    async def find_session_by_refresh_secret(
        self, refresh_secret: str, now: datetime | None = None
    ) -> UserSession | None:
        """Look up the live session for a refresh secret.

        Expired rows the reaper has not swept yet are treated as absent.
        """
        now = now or _utcnow()
        result = await self.session.execute(
            select(UserSession).where(
                UserSession.refresh_token == refresh_secret,
                UserSession.expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    async def touch_session(self, session_id: UUID) -> bool:
        """Stamp last_used_at. Best effort: failures are logged, not raised.

        Returns:
            True if the row was updated.
        """
        now = _utcnow()
        try:
            result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
                update(UserSession)
                .where(UserSession.id == session_id)
                .values(last_used_at=now, updated_at=now)
            )
            await self.session.commit()
            return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.warning(f"Failed to update last_used_at for session {session_id}: {e}")
            await self.session.rollback()
            return False

    async def delete_session(self, refresh_secret: str) -> int:
        """Delete the session holding this refresh secret. Missing is not an error."""
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            delete(UserSession).where(UserSession.refresh_token == refresh_secret)
        )
        await self.session.commit()
        return result.rowcount

    async def delete_all_sessions(self, user_id: UUID) -> int:
        """Delete every session owned by a user. Returns count removed."""
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            delete(UserSession).where(UserSession.user_id == user_id)
        )
        await self.session.commit()
        return result.rowcount

    async def delete_expired_sessions(self, now: datetime | None = None) -> int:
        """Remove sessions whose expires_at has passed. Returns count removed."""
        now = now or _utcnow()
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            delete(UserSession).where(UserSession.expires_at <= now)
        )
        await self.session.commit()
        return result.rowcount

    async def list_active_sessions(
        self, user_id: UUID, now: datetime | None = None
    ) -> list[UserSession]:
        """Sessions of a user that have not expired, most recently used first."""
        now = now or _utcnow()
        result = await self.session.execute(
            select(UserSession)
            .where(UserSession.user_id == user_id, UserSession.expires_at > now)
            .order_by(UserSession.last_used_at.desc())
        )
        return list(result.scalars().all())

    # --- Blacklist ---

    async def blacklist_token(
        self,
        jti: str,
        user_id: UUID,
        expires_at: datetime,
        reason: str | None = None,
    ) -> None:
        """Add a token to the blacklist. Re-blacklisting a jti is a no-op."""
        if await self.is_blacklisted(jti):
            return
        entry = TokenBlacklist(
            jti=jti,
            user_id=user_id,
            reason=reason or None,
            created_at=_utcnow(),
            expires_at=expires_at,
        )
        self.session.add(entry)
        try:
            await self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same jti
            await self.session.rollback()
            logger.debug(f"Token {jti} already blacklisted")
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def is_blacklisted(self, jti: str) -> bool:
        """Check if a token JTI has been revoked."""
        result = await self.session.execute(
            select(TokenBlacklist.jti).where(TokenBlacklist.jti == jti)
        )
        return result.scalar_one_or_none() is not None

    async def delete_expired_blacklist_entries(self, now: datetime | None = None) -> int:
        """Remove blacklist entries whose token has expired. Returns count removed."""
        now = now or _utcnow()
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            delete(TokenBlacklist).where(TokenBlacklist.expires_at <= now)
        )
        await self.session.commit()
        return result.rowcount

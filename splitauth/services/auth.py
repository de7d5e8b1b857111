"""Login, refresh, logout and revocation flows."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from splitauth.core.config import Settings
from splitauth.models.user_session import UserSession
from splitauth.services.errors import (
    InvalidRefreshTokenError,
    InvalidTokenError,
    SessionNotFoundError,
    TokenExpiredError,
)
from splitauth.services.session_store import SessionStore
from splitauth.services.token_codec import REFRESH_SECRET_LENGTH, TokenCodec
from splitauth.services.users import UserAuthenticator

logger = logging.getLogger(__name__)

LOGOUT_REASON = "user logout"

_REFRESH_SECRET_RE = re.compile(rf"^[A-Za-z0-9_-]{{{REFRESH_SECRET_LENGTH}}}$")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def is_well_formed_refresh_secret(value: str) -> bool:
    return bool(_REFRESH_SECRET_RE.match(value))


def parse_user_id(value: str) -> UUID:
    """Parse the user_id claim of a token."""
    try:
        return UUID(value)
    except (ValueError, TypeError, AttributeError) as e:
        raise InvalidTokenError("Invalid user id in token") from e


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    refresh_token: str
    expires_in: int


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    expires_in: int


@dataclass(frozen=True)
class CleanupResult:
    sessions_removed: int
    blacklist_removed: int


class AuthService:
    """Composes the token codec, session store and user check into auth flows.

    Every method is a single transition; the service keeps no state between
    calls. Typed errors from services.errors propagate to the caller
    untouched, storage errors propagate as SQLAlchemy exceptions.
    """

    def __init__(
        self,
        store: SessionStore,
        codec: TokenCodec,
        users: UserAuthenticator,
        refresh_ttl: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.codec = codec
        self.users = users
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        store: SessionStore,
        codec: TokenCodec,
        users: UserAuthenticator,
        config: Settings,
    ) -> "AuthService":
        return cls(
            store=store,
            codec=codec,
            users=users,
            refresh_ttl=timedelta(days=config.refresh_token_expire_days),
        )

    async def login(
        self,
        email: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        """Authenticate and open a new session.

        No token leaves this method unless its session row was stored, so
        every refresh secret a client holds is resolvable later.
        """
        user = await self.users.authenticate(email, password)

        access_token, jti = self.codec.issue_access_token(str(user.user_id), user.email)
        refresh_secret = self.codec.issue_refresh_secret()

        session = await self.store.create_session(
            user_id=user.user_id,
            refresh_secret=refresh_secret,
            user_agent=user_agent,
            ip_address=ip_address,
            expires_at=self._clock() + self.refresh_ttl,
        )
        logger.info(
            f"User {user.user_id} logged in (session={session.id}, jti={jti})",
            extra={
                "user_id": user.user_id,
                "session_id": session.id,
                "jti": jti,
                "client_ip": ip_address,
            },
        )

        return LoginResult(
            access_token=access_token,
            refresh_token=refresh_secret,
            expires_in=self.codec.access_ttl_seconds,
        )

    async def refresh_token(
        self,
        refresh_secret: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> RefreshResult:
        """Mint a new access token for a live session.

        The refresh secret is not rotated; it stays valid until it expires or
        logout deletes its session.
        """
        if not is_well_formed_refresh_secret(refresh_secret):
            raise InvalidRefreshTokenError()

        session = await self.store.find_session_by_refresh_secret(refresh_secret)
        if session is None:
            raise SessionNotFoundError()

        # Read before touching: a failed touch rolls back and expires the row
        session_id, user_id = session.id, session.user_id
        await self.store.touch_session(session_id)

        access_token, jti = self.codec.issue_access_token(str(user_id), "")
        logger.info(
            f"Refreshed access token for user {user_id} "
            f"(session={session_id}, jti={jti}, ip={ip_address}, ua={user_agent!r})",
            extra={"user_id": user_id, "session_id": session_id, "jti": jti},
        )
        return RefreshResult(access_token=access_token, expires_in=self.codec.access_ttl_seconds)

    async def logout(
        self,
        refresh_secret: str,
        access_token_jti: str | None,
        user_id: UUID,
        token_expires_at: datetime | None = None,
    ) -> None:
        """End one session and revoke the access token used to log out.

        Deleting an absent session is not an error. The blacklist entry lives
        as long as the token it neutralises: its own exp when known, else the
        longest any access token can live.
        """
        removed = await self.store.delete_session(refresh_secret)

        if access_token_jti:
            expires_at = token_expires_at or (self._clock() + self.codec.access_ttl)
            await self.store.blacklist_token(
                jti=access_token_jti,
                user_id=user_id,
                expires_at=expires_at,
                reason=LOGOUT_REASON,
            )

        logger.info(
            f"User {user_id} logged out (sessions_removed={removed}, "
            f"revoked_jti={access_token_jti or '-'})"
        )

    async def logout_with_access_token(self, refresh_secret: str, access_token: str) -> None:
        """Logout for callers that hold the raw access token, which may be expired.

        An expired token needs no blacklist entry, so only its session is
        removed. A live token is fully verified before its jti is stored.
        """
        claims = self.codec.parse_access_token_unverified(access_token)

        if claims.expires_at > self._clock():
            try:
                verified = self.codec.verify_access_token(access_token)
            except TokenExpiredError:
                verified = None
            if verified is not None:
                await self.logout(
                    refresh_secret,
                    verified.jti,
                    parse_user_id(verified.user_id),
                    verified.expires_at,
                )
                return

        removed = await self.store.delete_session(refresh_secret)
        logger.info(f"Logout with expired token {claims.jti} (sessions_removed={removed})")

    async def logout_all_sessions(self, user_id: UUID) -> int:
        """Delete every session of a user.

        Access tokens already handed out are not blacklisted; they run out on
        their own within the access TTL.
        """
        removed = await self.store.delete_all_sessions(user_id)
        logger.info(f"Logged out all sessions for user {user_id} (removed={removed})")
        return removed

    async def revoke_token(self, jti: str, user_id: UUID, reason: str | None = None) -> None:
        """Blacklist a token outside the logout flow (admin or explicit revocation)."""
        await self.store.blacklist_token(
            jti=jti,
            user_id=user_id,
            expires_at=self._clock() + self.codec.access_ttl,
            reason=reason,
        )
        logger.info(f"Revoked token {jti} for user {user_id} (reason={reason or '-'})")

    async def list_active_sessions(self, user_id: UUID) -> list[UserSession]:
        return await self.store.list_active_sessions(user_id)

    async def cleanup_expired_sessions(self) -> CleanupResult:
        """Sweep expired sessions, then expired blacklist entries.

        If the session sweep fails the error propagates and the blacklist
        sweep is skipped for this run.
        """
        sessions_removed = await self.store.delete_expired_sessions()
        blacklist_removed = await self.store.delete_expired_blacklist_entries()
        return CleanupResult(
            sessions_removed=sessions_removed,
            blacklist_removed=blacklist_removed,
        )

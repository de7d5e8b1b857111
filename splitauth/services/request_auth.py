"""Per-request bearer token authentication."""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from splitauth.services.auth import parse_user_id
from splitauth.services.errors import (
    AuthError,
    AuthUnavailableError,
    MalformedAuthError,
    MissingAuthError,
    TokenRevokedError,
)
from splitauth.services.session_store import SessionStore
from splitauth.services.token_codec import TokenCodec

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"


@dataclass(frozen=True)
class AuthContext:
    """Identity attached to a request once its bearer token checks out."""

    user_id: UUID
    jti: str
    email: str
    expires_at: datetime


def extract_bearer_token(authorization: str | None) -> str:
    """Pull the token out of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        raise MissingAuthError()
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1].strip():
        raise MalformedAuthError()
    return parts[1].strip()


class RequestAuthenticator:
    """Verifies a bearer token and confirms it has not been revoked.

    ``authenticate`` is the required mode and fails closed: if the blacklist
    cannot be read the request is rejected. ``authenticate_optional`` runs
    the same checks but turns any failure into an anonymous request.
    """

    def __init__(self, codec: TokenCodec, store: SessionStore):
        self.codec = codec
        self.store = store

    async def authenticate(self, authorization: str | None) -> AuthContext:
        token = extract_bearer_token(authorization)
        claims = self.codec.verify_access_token(token)
        user_id = parse_user_id(claims.user_id)

        try:
            revoked = await self.store.is_blacklisted(claims.jti)
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            # Drivers surface lost connections as raw OSError/TimeoutError
            logger.error(f"Blacklist lookup failed for jti {claims.jti}: {e}")
            raise AuthUnavailableError() from e

        if revoked:
            logger.warning(f"Revoked token presented (jti={claims.jti}, user={user_id})")
            raise TokenRevokedError()

        return AuthContext(
            user_id=user_id,
            jti=claims.jti,
            email=claims.email,
            expires_at=claims.expires_at,
        )

    async def authenticate_optional(self, authorization: str | None) -> AuthContext | None:
        if not authorization:
            return None
        try:
            return await self.authenticate(authorization)
        except AuthError as e:
            logger.debug(f"Optional auth ignored credentials: {e.message}")
            return None

"""Access token signing/verification and refresh secret generation."""

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from splitauth.core.config import ALLOWED_JWT_ALGORITHMS, Settings
from splitauth.services.errors import InvalidTokenError, TokenExpiredError

# 32 bytes of randomness, URL-safe base64 without padding
REFRESH_SECRET_BYTES = 32
REFRESH_SECRET_LENGTH = 43

# 128-bit token identifiers, hex encoded
JTI_BYTES = 16

REQUIRED_CLAIMS = ["exp", "iat", "nbf", "jti"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _from_timestamp(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=UTC)


@dataclass(frozen=True)
class AccessTokenClaims:
    """Decoded access token payload."""

    user_id: str
    email: str
    jti: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime


def _claims_from_payload(payload: dict[str, Any]) -> AccessTokenClaims:
    try:
        user_id = payload["user_id"]
        jti = payload["jti"]
        if not isinstance(user_id, str) or not isinstance(jti, str) or not jti:
            raise InvalidTokenError("Token carries malformed identity claims")
        return AccessTokenClaims(
            user_id=user_id,
            email=str(payload.get("email", "")),
            jti=jti,
            issued_at=_from_timestamp(payload["iat"]),
            not_before=_from_timestamp(payload["nbf"]),
            expires_at=_from_timestamp(payload["exp"]),
        )
    except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
        raise InvalidTokenError("Token is missing required claims") from e


class TokenCodec:
    """Issues and verifies HMAC-signed access tokens.

    The signing secret is fixed at construction and only read afterwards,
    so one instance is shared by every request handler without locking.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if algorithm not in ALLOWED_JWT_ALGORITHMS:
            raise ValueError(f"Unsupported token algorithm: {algorithm}")
        if access_ttl <= timedelta(0):
            raise ValueError("Access token TTL must be positive")
        self._secret = secret
        self._algorithm = algorithm
        self._access_ttl = access_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenCodec":
        return cls(
            secret=config.jwt_secret_key,
            algorithm=config.jwt_algorithm,
            access_ttl=timedelta(minutes=config.access_token_expire_minutes),
        )

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    @property
    def access_ttl_seconds(self) -> int:
        return int(self._access_ttl.total_seconds())

    def issue_access_token(self, user_id: str, email: str) -> tuple[str, str]:
        """Create a signed access token.

        Returns:
            (token, jti) - the jti is what logout and revocation blacklist.
        """
        jti = secrets.token_hex(JTI_BYTES)
        now = self._clock()
        payload = {
            "user_id": str(user_id),
            "email": email,
            "jti": jti,
            "iat": now,
            "nbf": now,
            "exp": now + self._access_ttl,
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        return str(token), jti

    @staticmethod
    def issue_refresh_secret() -> str:
        """Generate an opaque refresh secret from the OS CSPRNG."""
        return secrets.token_urlsafe(REFRESH_SECRET_BYTES)

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """Check algorithm, signature, exp and nbf, then return the claims.

        Only the configured algorithm is accepted; a token declaring any
        other one (including "none") fails as invalid even if it would
        otherwise verify.

        Raises:
            TokenExpiredError: signature is fine but the token has expired.
            InvalidTokenError: anything else.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except PyJWTError as e:
            raise InvalidTokenError() from e
        return _claims_from_payload(payload)

    def parse_access_token_unverified(self, token: str) -> AccessTokenClaims:
        """Decode claims without checking signature or expiry.

        Only for logout, which has to find the jti of a token that may
        already be expired. Never use the result as proof of identity.
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except PyJWTError as e:
            raise InvalidTokenError() from e
        return _claims_from_payload(payload)

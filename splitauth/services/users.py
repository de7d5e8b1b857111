"""User credential check consumed by the login flow.

The auth orchestrator only depends on the UserAuthenticator protocol;
DatabaseUserAuthenticator is the default implementation backed by the
``users`` table.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from splitauth.models.user import User
from splitauth.services.errors import (
    AuthError,
    InvalidCredentialsError,
    UserInactiveError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against when the email is unknown so both paths cost one Argon2 run
_DUMMY_HASH = ph.hash("splitauth-timing-equaliser")


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: UUID
    email: str


class UserAuthenticator(Protocol):
    async def authenticate(self, email: str, password: str) -> AuthenticatedUser:
        """Raise InvalidCredentialsError / UserNotFoundError on failure."""
        ...


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except (VerificationError, InvalidHashError):
        return False


class DatabaseUserAuthenticator:
    """Checks email/password pairs against the users table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def create_user(self, email: str, password: str) -> User:
        """Provision a new account."""
        if await self.get_user_by_email(email) is not None:
            raise AuthError("A user with this email already exists")

        user = User(
            email=normalize_email(email),
            password_hash=hash_password(password),
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        logger.info(f"Created user {user.id}")
        return user

    async def authenticate(self, email: str, password: str) -> AuthenticatedUser:
        """Return the identity behind an email/password pair.

        Unknown emails still pay for one hash verification so response
        timing does not reveal which accounts exist.
        """
        user = await self.get_user_by_email(email)

        if user is None:
            verify_password(password, _DUMMY_HASH)
            raise UserNotFoundError()

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise UserInactiveError()

        # Transparently upgrade hashes made with older parameters
        if ph.check_needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)

        user.last_login_at = datetime.now(UTC)
        await self.session.commit()

        return AuthenticatedUser(user_id=user.id, email=user.email)

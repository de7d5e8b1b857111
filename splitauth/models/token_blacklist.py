"""Blacklisted access tokens - survives process restarts."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from splitauth.core.database import Base
from splitauth.models.base import utcnow


class TokenBlacklist(Base):
    """A revoked access token identified by its JTI claim.

    Entries are created on logout or explicit revocation. ``expires_at``
    tracks the token's own expiry; past that point the token fails
    verification anyway, so the reaper deletes the row.
    """

    __tablename__ = "token_blacklist"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<TokenBlacklist {self.jti}>"

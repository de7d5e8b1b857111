"""Refresh sessions - one row per login on a device."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from splitauth.models.base import BaseModel, utcnow


class UserSession(BaseModel):
    """A persisted login session.

    ``refresh_token`` holds the opaque refresh secret handed to the client.
    It is 256 bits of CSPRNG output, so it is stored as-is and used as a
    direct lookup key instead of being run through a slow hash.

    Rows are deleted on logout, logout-all, or by the expiry reaper once
    ``expires_at`` has passed.
    """

    __tablename__ = "user_sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    refresh_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)

    # Informational only
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)

    last_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<UserSession {self.id} (user_id={self.user_id})>"

"""Pydantic schemas for authentication API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Request for login."""

    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=1, max_length=1024)


class TokenResponse(BaseModel):
    """Response with an access token and a refresh token."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class RefreshRequest(BaseModel):
    """Request for token refresh."""

    refresh_token: str = Field(..., min_length=1, max_length=256)


class AccessTokenResponse(BaseModel):
    """Response to a refresh: a new access token only, the refresh token stays the same."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class LogoutRequest(BaseModel):
    """Request for logout of the current session."""

    refresh_token: str = Field(..., min_length=1, max_length=256)


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class SessionResponse(BaseModel):
    """One active session, without its refresh secret."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_agent: str | None
    ip_address: str | None
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime


class WhoAmIResponse(BaseModel):
    """Identity resolved from an optional bearer token."""

    authenticated: bool
    user_id: UUID | None = None
    email: str | None = None

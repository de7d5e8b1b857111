# splitauth Schemas
from splitauth.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    SessionResponse,
    TokenResponse,
    WhoAmIResponse,
)

__all__ = [
    "AccessTokenResponse",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "RefreshRequest",
    "SessionResponse",
    "TokenResponse",
    "WhoAmIResponse",
]

# splitauth Services
from splitauth.services.auth import AuthService, CleanupResult, LoginResult, RefreshResult
from splitauth.services.expiry_reaper import ExpiryReaper
from splitauth.services.request_auth import AuthContext, RequestAuthenticator
from splitauth.services.session_store import SessionStore
from splitauth.services.token_codec import AccessTokenClaims, TokenCodec
from splitauth.services.users import AuthenticatedUser, DatabaseUserAuthenticator, UserAuthenticator

__all__ = [
    "AccessTokenClaims",
    "AuthContext",
    "AuthService",
    "AuthenticatedUser",
    "CleanupResult",
    "DatabaseUserAuthenticator",
    "ExpiryReaper",
    "LoginResult",
    "RefreshResult",
    "RequestAuthenticator",
    "SessionStore",
    "TokenCodec",
    "UserAuthenticator",
]

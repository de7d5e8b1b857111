"""Authentication API endpoints."""

import logging
import time
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from splitauth.api.dependencies import (
    get_app_settings,
    get_auth_service,
    optional_auth,
    require_auth,
)
from splitauth.core.config import Settings
from splitauth.core.request_utils import get_client_ip, get_user_agent
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
from splitauth.services.auth import AuthService
from splitauth.services.errors import (
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    SessionNotFoundError,
    UserInactiveError,
    UserNotFoundError,
)
from splitauth.services.request_auth import AuthContext

logger = logging.getLogger(__name__)

# Failed login attempts per client IP (monotonic timestamps)
_login_attempts: dict[str, list[float]] = defaultdict(list)


def _check_login_rate_limit(client_ip: str, config: Settings) -> None:
    """Check if a client IP has exceeded the failed login limit."""
    now = time.monotonic()
    window = config.login_rate_limit_window_seconds
    attempts = [t for t in _login_attempts.get(client_ip, []) if now - t < window]
    if attempts:
        _login_attempts[client_ip] = attempts
    else:
        # Forget clients whose failures have aged out
        _login_attempts.pop(client_ip, None)
    if len(attempts) >= config.login_rate_limit_attempts:
        logger.warning("Login rate limit exceeded for %s", client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )


def _record_login_attempt(client_ip: str) -> None:
    """Record a failed login attempt for rate limiting."""
    _login_attempts[client_ip].append(time.monotonic())


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    http_request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    config: Settings = Depends(get_app_settings),
) -> TokenResponse:
    """Authenticate and open a session.

    Returns a short-lived access token and a long-lived refresh token.
    Failed attempts are rate limited per client IP.
    """
    client_ip = get_client_ip(http_request, config.trusted_proxies_list) or "unknown"
    _check_login_rate_limit(client_ip, config)

    try:
        result = await auth_service.login(
            email=request.email,
            password=request.password,
            user_agent=get_user_agent(http_request),
            ip_address=client_ip if client_ip != "unknown" else None,
        )
    except (InvalidCredentialsError, UserNotFoundError) as e:
        # Same answer for both so the endpoint cannot be used to probe emails
        _record_login_attempt(client_ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=InvalidCredentialsError.default_message,
        ) from e
    except UserInactiveError as e:
        _record_login_attempt(client_ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        ) from e

    return TokenResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in=result.expires_in,
    )


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_token(
    request: RefreshRequest,
    http_request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    config: Settings = Depends(get_app_settings),
) -> AccessTokenResponse:
    """Exchange a refresh token for a new access token.

    The refresh token itself is not rotated.
    """
    try:
        result = await auth_service.refresh_token(
            refresh_secret=request.refresh_token,
            user_agent=get_user_agent(http_request),
            ip_address=get_client_ip(http_request, config.trusted_proxies_list),
        )
    except (SessionNotFoundError, InvalidRefreshTokenError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        ) from e

    return AccessTokenResponse(access_token=result.access_token, expires_in=result.expires_in)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: LogoutRequest,
    auth: AuthContext = Depends(require_auth),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Log out the current session.

    Deletes the session behind the refresh token and blacklists the access
    token used for this call until it would have expired anyway.
    """
    await auth_service.logout(
        refresh_secret=request.refresh_token,
        access_token_jti=auth.jti,
        user_id=auth.user_id,
        token_expires_at=auth.expires_at,
    )
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    auth: AuthContext = Depends(require_auth),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Log out every session of the current user."""
    await auth_service.logout_all_sessions(auth.user_id)
    return MessageResponse(message="All sessions logged out successfully")


@router.get("/sessions", response_model=list[SessionResponse])
async def list_sessions(
    auth: AuthContext = Depends(require_auth),
    auth_service: AuthService = Depends(get_auth_service),
) -> list[SessionResponse]:
    """List the current user's active sessions."""
    sessions = await auth_service.list_active_sessions(auth.user_id)
    return [SessionResponse.model_validate(s) for s in sessions]


@router.get("/whoami", response_model=WhoAmIResponse)
async def whoami(auth: AuthContext | None = Depends(optional_auth)) -> WhoAmIResponse:
    """Report who the bearer token belongs to, if anyone.

    Never rejects: a missing, malformed, expired or revoked token simply
    yields an anonymous answer.
    """
    if auth is None:
        return WhoAmIResponse(authenticated=False)
    return WhoAmIResponse(authenticated=True, user_id=auth.user_id, email=auth.email or None)

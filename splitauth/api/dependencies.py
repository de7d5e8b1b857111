"""FastAPI dependencies wiring the auth services into request handlers."""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from splitauth.core import get_db
from splitauth.core.config import Settings
from splitauth.services.auth import AuthService
from splitauth.services.errors import AuthError, AuthUnavailableError
from splitauth.services.request_auth import AuthContext, RequestAuthenticator
from splitauth.services.session_store import SessionStore
from splitauth.services.token_codec import TokenCodec
from splitauth.services.users import DatabaseUserAuthenticator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_codec(request: Request) -> TokenCodec:
    """The codec built once by the app factory from the signing secret."""
    return request.app.state.token_codec


def get_session_store(db: AsyncSession = Depends(get_db)) -> SessionStore:
    return SessionStore(db)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    codec: TokenCodec = Depends(get_token_codec),
    config: Settings = Depends(get_app_settings),
) -> AuthService:
    """Dependency to get auth service."""
    return AuthService.from_settings(
        store=store,
        codec=codec,
        users=DatabaseUserAuthenticator(db),
        config=config,
    )


def get_request_authenticator(
    store: SessionStore = Depends(get_session_store),
    codec: TokenCodec = Depends(get_token_codec),
) -> RequestAuthenticator:
    return RequestAuthenticator(codec=codec, store=store)


def auth_http_error(error: AuthError) -> HTTPException:
    """Translate an auth failure into the HTTP error returned to the client."""
    if isinstance(error, AuthUnavailableError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error.message,
        )
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error.message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_auth(
    request: Request,
    authenticator: RequestAuthenticator = Depends(get_request_authenticator),
) -> AuthContext:
    """Reject the request unless it carries a valid, unrevoked bearer token.

    The resolved identity is also stored on ``request.state.auth``.
    """
    try:
        context = await authenticator.authenticate(request.headers.get("Authorization"))
    except AuthError as e:
        raise auth_http_error(e) from e
    request.state.auth = context
    return context


async def optional_auth(
    request: Request,
    authenticator: RequestAuthenticator = Depends(get_request_authenticator),
) -> AuthContext | None:
    """Resolve the caller's identity if possible; never rejects the request."""
    context = await authenticator.authenticate_optional(request.headers.get("Authorization"))
    request.state.auth = context
    return context

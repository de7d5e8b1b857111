"""Authentication error taxonomy.

Every failure the auth flows can produce is a subclass of AuthError and
carries a user-facing message. The HTTP layer maps these to status codes;
nothing below the API package knows about HTTP.
"""


class AuthError(Exception):
    """Base authentication error."""

    default_message = "Authentication failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- Login ---


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""

    default_message = "Invalid email or password"


class UserNotFoundError(AuthError):
    """No account exists for the given email."""

    default_message = "User not found"


class UserInactiveError(AuthError):
    """User account is deactivated."""

    default_message = "User account is deactivated"


# --- Refresh ---


class SessionNotFoundError(AuthError):
    """No live session for the refresh secret.

    Covers never-issued, logged-out and expired secrets alike; callers
    cannot tell these apart.
    """

    default_message = "Session not found"


class InvalidRefreshTokenError(AuthError):
    """Refresh secret is not shaped like one the service issues."""

    default_message = "Invalid refresh token"


# --- Access tokens ---


class TokenError(AuthError):
    """JWT token error."""

    default_message = "Invalid token"


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    default_message = "Token has expired"


class InvalidTokenError(TokenError):
    """JWT token is malformed, badly signed, or uses the wrong algorithm."""

    default_message = "Invalid token"


class TokenRevokedError(TokenError):
    """JWT token was blacklisted by logout or revocation."""

    default_message = "Token has been revoked"


# --- Authorization header ---


class MissingAuthError(AuthError):
    default_message = "Missing authorization header"


class MalformedAuthError(AuthError):
    default_message = "Invalid authorization header format"


class AuthUnavailableError(AuthError):
    """Revocation status could not be confirmed (storage failure)."""

    default_message = "Authentication error"

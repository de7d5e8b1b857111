"""Helpers for reading client metadata off incoming requests."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)

# Matches user_sessions.user_agent; longer values are truncated
MAX_USER_AGENT_LENGTH = 512


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request, trusted_proxies: list[str] | None = None) -> str | None:
    """Get the client IP address recorded on a session.

    Priority order:
    1. X-Real-IP, but only when the socket peer is one of ``trusted_proxies``
       (a reverse proxy such as nginx running in front of the service)
    2. The direct socket peer

    X-Forwarded-For is never trusted: any client can set it.

    Returns:
        Client IP address or None if not available
    """
    peer = request.client.host if request.client else None

    if peer and trusted_proxies and peer in trusted_proxies:
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Ignoring invalid X-Real-IP from proxy {peer}: {real_ip!r}")

    return peer


def get_user_agent(request: Request) -> str | None:
    """Get the User-Agent header, trimmed to what the sessions table stores."""
    user_agent = request.headers.get("User-Agent")
    if not user_agent:
        return None
    return user_agent[:MAX_USER_AGENT_LENGTH]

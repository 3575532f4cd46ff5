"""HMAC-signed user tokens.

The service does not own user accounts; it only needs to know which user
a request or socket belongs to.  Tokens are stateless and signed with the
shared ``AUTH_SECRET``::

    {user_id}.{issued_at}.{hmac_hex_digest}

- ``user_id``: opaque account id (may itself contain dots)
- ``issued_at``: UTC epoch seconds
- ``hmac``: HMAC-SHA256(secret, "{user_id}.{issued_at}")

A token is accepted from ``Authorization: Bearer``, the ``token`` cookie,
or, for sockets, the ``token`` query parameter.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Annotated

import structlog
from fastapi import Depends, Request, WebSocket

from src.config.settings import Settings
from src.utils.errors import AuthenticationError, ConfigurationError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

TOKEN_COOKIE = "token"
_DEV_AUTH_SECRET = "agrosage-development-secret"


def resolve_auth_secret(settings: Settings) -> str:
    """Return the token signing secret.

    Production refuses to start without ``AUTH_SECRET``; other
    environments fall back to a fixed development secret.
    """
    if settings.auth_secret:
        return settings.auth_secret
    if settings.app_env == "production":
        raise ConfigurationError(message="AUTH_SECRET must be set in production")
    _logger.warning("auth_secret_missing", fallback="development secret")
    return _DEV_AUTH_SECRET


def _sign(payload: str, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def issue_token(user_id: str, secret: str, now: float | None = None) -> str:
    """Create a signed token for *user_id*.

    Parameters
    ----------
    user_id:
        Account id the token stands for.
    secret:
        Shared signing secret.
    now:
        Issue time in epoch seconds; defaults to the current time.
    """
    if not user_id:
        raise AuthenticationError(message="Cannot issue a token without a user id")
    if not secret:
        raise AuthenticationError(message="Cannot issue a token without a secret")
    issued_at = int(time.time() if now is None else now)
    payload = f"{user_id}.{issued_at}"
    return f"{payload}.{_sign(payload, secret)}"


def verify_token(
    token: str,
    secret: str,
    ttl_hours: int = 168,
    now: float | None = None,
) -> str:
    """Return the user id carried by a valid, unexpired *token*.

    Raises
    ------
    AuthenticationError
        If the token is malformed, forged, from the future or expired.
    """
    if not token or not secret:
        raise AuthenticationError(message="Authentication required")

    parts = token.rsplit(".", 2)
    if len(parts) != 3 or not parts[0]:
        raise AuthenticationError(message="Malformed token")
    user_id, issued_str, provided = parts

    expected = _sign(f"{user_id}.{issued_str}", secret)
    if not hmac.compare_digest(provided, expected):
        raise AuthenticationError(message="Invalid token signature")

    try:
        issued_at = int(issued_str)
    except ValueError as exc:
        raise AuthenticationError(message="Malformed token") from exc

    current = time.time() if now is None else now
    age = current - issued_at
    if age < 0 or age > ttl_hours * 3600:
        raise AuthenticationError(message="Token expired")
    return user_id


# ---------------------------------------------------------------------------
# FastAPI integration
# ---------------------------------------------------------------------------


def _token_from_request(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(TOKEN_COOKIE, "")


def get_current_user_id(request: Request) -> str:
    """Dependency resolving the caller's user id; raises AuthenticationError."""
    settings = request.app.state.settings
    return verify_token(
        _token_from_request(request),
        request.app.state.auth_secret,
        settings.auth_token_ttl_hours,
    )


def authenticate_websocket(websocket: WebSocket) -> str:
    """Resolve the user id of a socket from its query parameter or cookie."""
    token = websocket.query_params.get("token") or websocket.cookies.get(TOKEN_COOKIE, "")
    settings = websocket.app.state.settings
    return verify_token(token, websocket.app.state.auth_secret, settings.auth_token_ttl_hours)


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]

"""Session tokens issued after a successful initData verification.

A session is an HS256 JWT carrying the local user id, stored in an
HttpOnly cookie. Nothing is kept server-side: expiry lives in the token.
"""

import time

import jwt
from aiohttp import web


SESSION_COOKIE = "session"
SESSION_TTL_DAYS = 30
JWT_ALGORITHM = "HS256"


class SessionConfigError(RuntimeError):
    """Raised when sessions are requested but no signing secret is configured."""


def _require_secret(secret: str) -> str:
    if not secret:
        raise SessionConfigError("session secret is not configured")
    return secret


def issue_session_token(
    uid: int, secret: str, ttl_days: int = SESSION_TTL_DAYS, now: float | None = None,
) -> str:
    """Sign a session token for the local user id, valid for ttl_days."""
    _require_secret(secret)
    issued_at = int(now if now is not None else time.time())
    payload = {
        "uid": uid,
        "iat": issued_at,
        "exp": issued_at + ttl_days * 24 * 3600,
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def read_session_token(token: str | None, secret: str) -> int | None:
    """Return the user id from a valid session token, or None."""
    if not token:
        return None
    _require_secret(secret)
    try:
        payload = jwt.decode(
            token, secret, algorithms=[JWT_ALGORITHM], options={"require": ["exp", "uid"]},
        )
    except jwt.InvalidTokenError:
        return None

    uid = payload.get("uid")
    if isinstance(uid, bool) or not isinstance(uid, int) or uid <= 0:
        return None
    return uid


def set_session_cookie(
    response: web.StreamResponse, token: str, secure: bool, ttl_days: int = SESSION_TTL_DAYS,
) -> None:
    # Inside the Telegram WebView the app is cross-site, which needs SameSite=None
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=ttl_days * 24 * 3600,
        httponly=True,
        secure=secure,
        samesite="None" if secure else "Lax",
        path="/",
    )


def clear_session_cookie(response: web.StreamResponse) -> None:
    response.del_cookie(SESSION_COOKIE, path="/")

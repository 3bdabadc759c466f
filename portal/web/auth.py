"""
Session cookie.

Sign-in itself happens with the identity provider in the browser. After
POST /api/users/login the portal remembers the uid in an itsdangerous
signed, timestamped cookie; nothing session-related is stored server side.

Production needs PORTAL_SESSION_SECRET (16+ characters) and
PORTAL_PRODUCTION=1, which also makes the cookie Secure and SameSite=strict.
"""

import os
import warnings
from dataclasses import asdict, dataclass
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from portal.observability import is_production


SESSION_COOKIE = "portal_session"
SESSION_MAX_AGE = 7 * 24 * 3600
SESSION_SALT = "portal-session-v1"

_DEV_SECRET = "dev-only-portal-session-secret"


def _serializer() -> URLSafeTimedSerializer:
    secret = os.environ.get("PORTAL_SESSION_SECRET", "")
    if len(secret) < 16:
        if is_production():
            raise RuntimeError(
                "PORTAL_SESSION_SECRET must be at least 16 characters in production "
                "(e.g. python -c \"import secrets; print(secrets.token_urlsafe(32))\")"
            )
        warnings.warn("PORTAL_SESSION_SECRET unset; signing sessions with a development key", stacklevel=3)
        secret = _DEV_SECRET
    return URLSafeTimedSerializer(secret, salt=SESSION_SALT)


@dataclass(frozen=True)
class SessionUser:
    uid: str
    email: str
    role: str


def create_session_cookie(user: SessionUser) -> str:
    return _serializer().dumps(asdict(user))


def read_session_cookie(cookie_value: Optional[str]) -> Optional[SessionUser]:
    """The session in a cookie, or None if it is missing, forged or expired."""
    if not cookie_value:
        return None
    try:
        data = _serializer().loads(cookie_value, max_age=SESSION_MAX_AGE)
        return SessionUser(
            uid=str(data["uid"]),
            email=str(data.get("email", "")),
            role=str(data.get("role", "user")),
        )
    except (BadSignature, KeyError, TypeError, AttributeError):
        return None


def set_session_cookie_response(resp, user: SessionUser):
    prod = is_production()
    resp.set_cookie(
        SESSION_COOKIE,
        create_session_cookie(user),
        max_age=SESSION_MAX_AGE,
        path="/",
        httponly=True,
        secure=prod,
        samesite="strict" if prod else "lax",
    )
    return resp


def clear_session_cookie_response(resp):
    resp.delete_cookie(SESSION_COOKIE, path="/")
    return resp

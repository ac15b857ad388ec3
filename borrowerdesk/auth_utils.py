"""Staff session tokens and the session-gate dependency."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from jose import jwt

from borrowerdesk.database import Backend, get_backend
from borrowerdesk.services.errors import AuthenticationError

ALGORITHM = "HS256"
SESSION_TOKEN_TYPE = "session"


# ── Token helpers ────────────────────────────────────────────


def _generate_jti() -> str:
    """Generate a unique JWT ID so each issued cookie is distinct."""
    return uuid.uuid4().hex


def create_session_token(
    uid: str,
    *,
    secret_key: str,
    max_age_seconds: int,
    jti: Optional[str] = None,
) -> str:
    expire = datetime.now(timezone.utc) + timedelta(seconds=max_age_seconds)
    to_encode = {
        "sub": uid,
        "exp": expire,
        "type": SESSION_TOKEN_TYPE,
        "jti": jti or _generate_jti(),
    }
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def decode_session_token(token: str, *, secret_key: str) -> dict:
    """Decode and return the cookie payload. Raises JWTError on failure."""
    return jwt.decode(token, secret_key, algorithms=[ALGORITHM])


# ── Staff dependencies ──────────────────────────────────────


async def get_current_staff(
    request: Request,
    backend: Backend = Depends(get_backend),
):
    """Resolve the staff session from the session cookie or fail with 401."""
    cookie = request.cookies.get(backend.settings.session_cookie_name)
    staff = await backend.sessions.resolve(cookie)
    if staff is None:
        raise AuthenticationError()
    return staff

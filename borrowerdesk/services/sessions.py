"""Staff session resolution.

A staff member signs in on the client with Firebase Authentication and posts
the resulting ID token to ``POST /api/session``. The token is verified with
the Firebase Admin SDK, the ``users/{uid}`` record is checked, and a signed
session cookie is issued. Later requests present the cookie and are resolved
back to a ``StaffSession``.

Resolved sessions (including negative results) are cached per cookie value
for a short TTL so that a burst of requests from one console page reads the
staff record once.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from jose import JWTError
from starlette.concurrency import run_in_threadpool

from borrowerdesk.auth_utils import (
    SESSION_TOKEN_TYPE,
    create_session_token,
    decode_session_token,
)
from borrowerdesk.services.document_store import DocumentStore
from borrowerdesk.services.errors import (
    AuthenticationError,
    ConfigurationError,
    StaffNotFoundError,
    StoreError,
)

logger = logging.getLogger(__name__)

STAFF_ROLES = ("admin", "team lead", "team member", "auditor")
ACTIVE_STATUS = "active"

_FIREBASE_APP_NAME = "borrowerdesk"
_TOKEN_URI = "https://oauth2.googleapis.com/token"
_MAX_CACHE_ENTRIES = 1024


@dataclass(frozen=True)
class StaffSession:
    uid: str
    role: str
    status: str
    display_name: Optional[str] = None


def staff_from_record(uid: str, data: Optional[dict]) -> Optional[StaffSession]:
    """Return a session for an active staff record with a known role, else None."""
    if not data:
        return None
    role = data.get("role")
    status = data.get("status")
    if role not in STAFF_ROLES:
        return None
    if status != ACTIVE_STATUS:
        return None
    name = data.get("displayName")
    return StaffSession(
        uid=uid,
        role=role,
        status=status,
        display_name=name if isinstance(name, str) and name.strip() else None,
    )


class IdentityVerifier:
    """Verifies identity-provider ID tokens."""

    async def verify_id_token(self, id_token: str) -> str:
        """Return the uid the token was issued for. Raises AuthenticationError."""
        raise NotImplementedError


class FirebaseIdentityVerifier(IdentityVerifier):

    def __init__(self, app):
        self._app = app

    @classmethod
    def from_settings(cls, settings) -> "FirebaseIdentityVerifier":
        import firebase_admin
        from firebase_admin import credentials

        try:
            app = firebase_admin.get_app(_FIREBASE_APP_NAME)
        except ValueError:
            certificate = credentials.Certificate({
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "private_key": settings.firebase_private_key,
                "client_email": settings.firebase_client_email,
                "token_uri": _TOKEN_URI,
            })
            app = firebase_admin.initialize_app(
                certificate,
                {"projectId": settings.firebase_project_id},
                name=_FIREBASE_APP_NAME,
            )
        return cls(app)

    async def verify_id_token(self, id_token: str) -> str:
        from firebase_admin import auth
        from firebase_admin import exceptions as firebase_exceptions

        try:
            # The Admin SDK is synchronous (it may fetch public keys over HTTP)
            decoded = await run_in_threadpool(auth.verify_id_token, id_token, app=self._app)
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            raise AuthenticationError("Invalid id token.") from exc
        return decoded["uid"]


class SessionResolver:

    def __init__(
        self,
        store: Optional[DocumentStore],
        *,
        secret_key: str,
        max_age_seconds: int = 12 * 60 * 60,
        cache_ttl_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._secret_key = secret_key
        self._max_age_seconds = max_age_seconds
        self._cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._cache: dict[str, tuple[float, Optional[StaffSession]]] = {}

    @property
    def max_age_seconds(self) -> int:
        return self._max_age_seconds

    def clear_cache(self) -> None:
        self._cache.clear()

    def issue_cookie(self, uid: str) -> str:
        return create_session_token(
            uid, secret_key=self._secret_key, max_age_seconds=self._max_age_seconds,
        )

    async def load_staff(self, uid: str) -> Optional[StaffSession]:
        if self._store is None:
            raise ConfigurationError()
        snap = await self._store.get(f"users/{uid}")
        return staff_from_record(uid, snap.data)

    async def create_session_cookie(
        self, identity: Optional[IdentityVerifier], id_token: str,
    ) -> str:
        """Exchange a verified ID token for a signed session cookie."""
        if identity is None or self._store is None:
            raise ConfigurationError()
        uid = await identity.verify_id_token(id_token)
        staff = await self.load_staff(uid)
        if staff is None:
            raise StaffNotFoundError()
        logger.info("Issued staff session for %s (%s)", uid, staff.role)
        return self.issue_cookie(uid)

    async def resolve(self, cookie_value: Optional[str]) -> Optional[StaffSession]:
        if not cookie_value or self._store is None:
            return None

        now = self._clock()
        cached = self._cache.get(cookie_value)
        if cached is not None and cached[0] > now:
            return cached[1]

        try:
            payload = decode_session_token(cookie_value, secret_key=self._secret_key)
        except JWTError:
            staff = None
        else:
            uid = payload.get("sub")
            if payload.get("type") != SESSION_TOKEN_TYPE or not isinstance(uid, str) or not uid:
                staff = None
            else:
                try:
                    staff = await self.load_staff(uid)
                except StoreError as exc:
                    # not cached, the next request retries the lookup
                    logger.warning("Staff lookup failed for %s: %s", uid, exc)
                    return None

        self._remember(cookie_value, staff, now)
        return staff

    def _remember(self, cookie_value: str, staff: Optional[StaffSession], now: float) -> None:
        self._cache.pop(cookie_value, None)
        if len(self._cache) >= _MAX_CACHE_ENTRIES:
            live = [(key, entry) for key, entry in self._cache.items() if entry[0] > now]
            # insertion order is expiry order, so the oldest live entries go first
            keep = _MAX_CACHE_ENTRIES - 1
            self._cache = dict(live[-keep:] if len(live) > keep else live)
        self._cache[cookie_value] = (now + self._cache_ttl_seconds, staff)

"""Process-wide backend wiring.

The document store, identity verifier and session resolver are built once at
start-up from settings and kept on ``app.state.backend``. Request handlers get
them through ``Depends(get_backend)``; there is no module-level client.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from borrowerdesk.config import Settings
from borrowerdesk.services.errors import ConfigurationError

if TYPE_CHECKING:
    from borrowerdesk.services.document_store import DocumentStore
    from borrowerdesk.services.sessions import IdentityVerifier, SessionResolver

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def make_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # aiosqlite connections are bound to the loop that opened them
        engine = create_async_engine(
            database_url, poolclass=NullPool, connect_args={"timeout": 30},
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            # Take the write lock up front so read-merge-write cannot interleave
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine
    return create_async_engine(database_url, pool_pre_ping=True)


@dataclass
class Backend:
    settings: Settings
    store: Optional["DocumentStore"]
    identity: Optional["IdentityVerifier"]
    sessions: "SessionResolver"

    @property
    def has_credentials(self) -> bool:
        return self.store is not None

    def require_store(self) -> "DocumentStore":
        if self.store is None:
            raise ConfigurationError()
        return self.store

    async def aclose(self) -> None:
        if self.store is not None:
            await self.store.close()


def build_backend(settings: Settings) -> Backend:
    from borrowerdesk.services.document_store import FirestoreDocumentStore, SqlDocumentStore
    from borrowerdesk.services.sessions import FirebaseIdentityVerifier, SessionResolver

    store = None
    if settings.document_store == "sql":
        store = SqlDocumentStore(make_engine(settings.database_url))
    elif settings.has_firebase_credentials:
        store = FirestoreDocumentStore.from_settings(settings)
    else:
        logger.warning("Firebase Admin credentials are not configured; document store disabled")

    identity = None
    if settings.has_firebase_credentials:
        identity = FirebaseIdentityVerifier.from_settings(settings)

    sessions = SessionResolver(
        store,
        secret_key=settings.secret_key,
        max_age_seconds=settings.session_max_age_seconds,
        cache_ttl_seconds=settings.session_cache_ttl_seconds,
    )
    return Backend(settings=settings, store=store, identity=identity, sessions=sessions)


def get_backend(request: Request) -> Backend:
    return request.app.state.backend

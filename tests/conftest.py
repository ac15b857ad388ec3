"""Shared fixtures: a SQL document store in a temp SQLite file, a stub
identity provider and an app wired to both."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from borrowerdesk.api.session import limiter
from borrowerdesk.config import Settings
from borrowerdesk.database import Backend, make_engine
from borrowerdesk.main import create_app
from borrowerdesk.services.document_store import SqlDocumentStore
from borrowerdesk.services.sessions import SessionResolver

from tests.support import STAFF_RECORD, STAFF_UID, TEST_SECRET, StubIdentityVerifier, seed


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        environment="test",
        secret_key=TEST_SECRET,
        document_store="sql",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'borrowerdesk.db'}",
    )


@pytest.fixture
def store(test_settings):
    store = SqlDocumentStore(make_engine(test_settings.database_url))
    asyncio.run(store.create_all())
    return store


@pytest.fixture
def identity():
    return StubIdentityVerifier({
        "good-token": STAFF_UID,
        "stranger-token": "ghost",
    })


@pytest.fixture
def backend(test_settings, store, identity):
    sessions = SessionResolver(
        store,
        secret_key=TEST_SECRET,
        max_age_seconds=test_settings.session_max_age_seconds,
        cache_ttl_seconds=test_settings.session_cache_ttl_seconds,
    )
    return Backend(settings=test_settings, store=store, identity=identity, sessions=sessions)


@pytest.fixture
def client(backend):
    limiter.reset()
    with TestClient(create_app(backend)) as client:
        yield client


@pytest.fixture
def staff_client(client, backend, store):
    """Client carrying a valid session cookie for an active admin."""
    seed(store, f"users/{STAFF_UID}", STAFF_RECORD)
    client.cookies.set(
        backend.settings.session_cookie_name, backend.sessions.issue_cookie(STAFF_UID),
    )
    return client

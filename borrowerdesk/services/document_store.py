"""Document store adapters.

Paths alternate collection and document segments the way Firestore lays them
out: ``borrowers/B-100/kyc/K-1`` is document ``K-1`` in collection
``borrowers/B-100/kyc``.

Writes are merge writes unless told otherwise: nested mappings are merged key
by key and every other value (lists and ``None`` included) replaces what was
stored. Two adapters share that contract:

- ``FirestoreDocumentStore`` talks to Cloud Firestore through the async client.
- ``SqlDocumentStore`` keeps each document as a JSON row via SQLAlchemy. It is
  used for local development and the test-suite.

Neither adapter retries. Driver failures surface as ``StoreError``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from borrowerdesk.services.errors import StoreError

logger = logging.getLogger(__name__)

_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    path: str
    data: Optional[dict]

    @property
    def exists(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class Write:
    path: str
    data: dict
    merge: bool = True


def split_path(path: str) -> tuple[str, str]:
    """Return ``(collection_path, document_id)`` for a document path."""
    segments = path.strip("/").split("/")
    if len(segments) % 2 != 0 or any(not segment for segment in segments):
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(segments[:-1]), segments[-1]


def merge_fields(existing: dict, updates: dict) -> dict:
    merged = dict(existing)
    for key, value in updates.items():
        current = merged.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merged[key] = merge_fields(current, value)
        else:
            merged[key] = value
    return merged


def _to_json(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _sort_key(snapshot: DocumentSnapshot, field: str):
    value = snapshot.data.get(field) if snapshot.data else None
    if isinstance(value, datetime):
        value = value.isoformat()
    # documents without the field sort after everything else
    return (value is None, "" if value is None else str(value))


class DocumentStore:
    """Interface every adapter implements."""

    async def get(self, path: str) -> DocumentSnapshot:
        raise NotImplementedError

    async def get_all(self, paths: Iterable[str]) -> list[DocumentSnapshot]:
        raise NotImplementedError

    async def commit(self, writes: list[Write]) -> None:
        """Apply all writes atomically."""
        raise NotImplementedError

    async def query(
        self,
        collection: str,
        *,
        where: Optional[tuple[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[DocumentSnapshot]:
        raise NotImplementedError

    def new_id(self, collection: str) -> str:
        raise NotImplementedError

    async def set(self, path: str, data: dict, *, merge: bool = True) -> None:
        await self.commit([Write(path=path, data=data, merge=merge)])

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Cloud Firestore
# ---------------------------------------------------------------------------


class FirestoreDocumentStore(DocumentStore):

    def __init__(self, client):
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "FirestoreDocumentStore":
        from google.cloud import firestore
        from google.oauth2 import service_account

        credentials = service_account.Credentials.from_service_account_info({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "private_key": settings.firebase_private_key,
            "client_email": settings.firebase_client_email,
            "token_uri": _TOKEN_URI,
        })
        client = firestore.AsyncClient(
            project=settings.firebase_project_id, credentials=credentials,
        )
        return cls(client)

    async def get(self, path: str) -> DocumentSnapshot:
        from google.api_core.exceptions import GoogleAPIError

        try:
            snap = await self._client.document(path).get()
        except GoogleAPIError as exc:
            raise StoreError(f"Firestore read failed for {path}: {exc}") from exc
        return DocumentSnapshot(
            id=snap.id, path=path, data=snap.to_dict() if snap.exists else None,
        )

    async def get_all(self, paths: Iterable[str]) -> list[DocumentSnapshot]:
        from google.api_core.exceptions import GoogleAPIError

        paths = list(paths)
        if not paths:
            return []
        refs = [self._client.document(path) for path in paths]
        found: dict[str, Optional[dict]] = {}
        try:
            async for snap in self._client.get_all(refs):
                found[snap.reference.path] = snap.to_dict() if snap.exists else None
        except GoogleAPIError as exc:
            raise StoreError(f"Firestore batch read failed: {exc}") from exc
        return [
            DocumentSnapshot(id=split_path(path)[1], path=path, data=found.get(path))
            for path in paths
        ]

    async def commit(self, writes: list[Write]) -> None:
        from google.api_core.exceptions import GoogleAPIError

        batch = self._client.batch()
        for write in writes:
            batch.set(self._client.document(write.path), write.data, merge=write.merge)
        try:
            await batch.commit()
        except GoogleAPIError as exc:
            raise StoreError(f"Firestore write failed: {exc}") from exc

    async def query(
        self,
        collection: str,
        *,
        where: Optional[tuple[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[DocumentSnapshot]:
        from google.api_core.exceptions import GoogleAPIError
        from google.cloud.firestore_v1.base_query import FieldFilter

        q = self._client.collection(collection)
        if where is not None:
            field, value = where
            q = q.where(filter=FieldFilter(field, "==", value))
        if order_by:
            q = q.order_by(order_by, direction="DESCENDING" if descending else "ASCENDING")
        if limit:
            q = q.limit(limit)
        try:
            snaps = [snap async for snap in q.stream()]
        except GoogleAPIError as exc:
            raise StoreError(f"Firestore query failed on {collection}: {exc}") from exc
        return [
            DocumentSnapshot(id=snap.id, path=f"{collection}/{snap.id}", data=snap.to_dict())
            for snap in snaps
        ]

    def new_id(self, collection: str) -> str:
        return self._client.collection(collection).document().id


# ---------------------------------------------------------------------------
# SQL (SQLAlchemy)
# ---------------------------------------------------------------------------


class SqlDocumentStore(DocumentStore):
    """JSON documents in a single ``documents`` table.

    Query filtering and ordering happen in Python after loading the
    collection, which is fine for development data volumes.
    """

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def create_all(self) -> None:
        from borrowerdesk.database import Base
        import borrowerdesk.models  # noqa: F401  (registers the table)

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get(self, path: str) -> DocumentSnapshot:
        from borrowerdesk.models import StoredDocument

        _, doc_id = split_path(path)
        try:
            async with self._sessions() as db:
                row = await db.get(StoredDocument, path)
        except SQLAlchemyError as exc:
            raise StoreError(f"SQL read failed for {path}: {exc}") from exc
        return DocumentSnapshot(id=doc_id, path=path, data=dict(row.data) if row else None)

    async def get_all(self, paths: Iterable[str]) -> list[DocumentSnapshot]:
        from borrowerdesk.models import StoredDocument

        paths = list(paths)
        if not paths:
            return []
        try:
            async with self._sessions() as db:
                result = await db.execute(
                    select(StoredDocument).where(StoredDocument.path.in_(paths))
                )
                rows = {row.path: dict(row.data) for row in result.scalars().all()}
        except SQLAlchemyError as exc:
            raise StoreError(f"SQL batch read failed: {exc}") from exc
        return [
            DocumentSnapshot(id=split_path(path)[1], path=path, data=rows.get(path))
            for path in paths
        ]

    async def commit(self, writes: list[Write]) -> None:
        from borrowerdesk.models import StoredDocument

        try:
            async with self._sessions() as db, db.begin():
                for write in writes:
                    collection, doc_id = split_path(write.path)
                    body = _to_json(write.data)
                    row = await db.get(StoredDocument, write.path, with_for_update=True)
                    if row is None:
                        try:
                            async with db.begin_nested():
                                db.add(StoredDocument(
                                    path=write.path, collection=collection, doc_id=doc_id,
                                    data=body,
                                ))
                            continue
                        except IntegrityError:
                            # Created concurrently; merge into the committed row
                            row = await db.get(
                                StoredDocument, write.path,
                                with_for_update=True, populate_existing=True,
                            )
                    if write.merge:
                        row.data = merge_fields(row.data or {}, body)
                    else:
                        row.data = body
        except SQLAlchemyError as exc:
            raise StoreError(f"SQL write failed: {exc}") from exc

    async def query(
        self,
        collection: str,
        *,
        where: Optional[tuple[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[DocumentSnapshot]:
        from borrowerdesk.models import StoredDocument

        try:
            async with self._sessions() as db:
                result = await db.execute(
                    select(StoredDocument).where(StoredDocument.collection == collection)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"SQL query failed on {collection}: {exc}") from exc

        snaps = [
            DocumentSnapshot(id=row.doc_id, path=row.path, data=dict(row.data)) for row in rows
        ]
        if where is not None:
            field, value = where
            snaps = [snap for snap in snaps if snap.data.get(field) == value]
        if order_by:
            present = [snap for snap in snaps if snap.data.get(order_by) is not None]
            missing = [snap for snap in snaps if snap.data.get(order_by) is None]
            present.sort(key=lambda snap: _sort_key(snap, order_by), reverse=descending)
            snaps = present + missing
        if limit:
            snaps = snaps[:limit]
        return snaps

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    async def close(self) -> None:
        await self._engine.dispose()

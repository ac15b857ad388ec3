"""Borrower notes: create, toggle flags and list per application.

The snapshot view, flag merge and author hydration are shared with loan notes.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from borrowerdesk.services.actor_names import get_user_display_names, resolve_actor_name
from borrowerdesk.services.document_store import DocumentSnapshot, DocumentStore, Write
from borrowerdesk.services.errors import NotFoundError, ValidationError
from borrowerdesk.services.note_builder import NOTE_FLAGS, build_note_record, sanitize_note

logger = logging.getLogger(__name__)

UPDATABLE_NOTE_FLAGS = ("isActive", "callActive", "messageActive")
_NOTE_TEXT_FIELDS = (
    "loanId", "borrowerId", "applicationId", "type", "createdByName", "createdByUserId",
)


def notes_collection(borrower_id: str) -> str:
    return f"borrowers/{borrower_id}/notes"


def _format_timestamp(value) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str) and value:
        return value
    return None


def _optional_text(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def note_from_snapshot(snap: DocumentSnapshot) -> dict:
    """Client-facing view of a stored note."""
    data = snap.data or {}
    note = {
        "noteId": snap.id,
        "note": data["note"].strip() if isinstance(data.get("note"), str) else "",
        "createdAt": _format_timestamp(data.get("createdAt")),
    }
    for key in _NOTE_TEXT_FIELDS:
        value = _optional_text(data.get(key))
        if value is not None:
            note[key] = value
    for key in NOTE_FLAGS:
        if isinstance(data.get(key), bool):
            note[key] = data[key]
    return note


async def add_borrower_note(
    store: DocumentStore,
    *,
    borrower_id: str,
    note: str,
    application_id: Optional[str] = None,
    type: Optional[str] = None,
    created_by_name: Optional[str] = None,
    created_by_user_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    call_active: Optional[bool] = None,
    message_active: Optional[bool] = None,
) -> dict:
    """Create a note and, when it belongs to an application, touch the
    application's ``updatedAt`` in the same batch."""
    if not borrower_id:
        raise ValidationError("Missing borrower id.")
    text = sanitize_note(note) if isinstance(note, str) else ""
    if not text:
        raise ValidationError("Note cannot be empty.")

    now = datetime.now(timezone.utc)
    author = await resolve_actor_name(store, created_by_user_id, created_by_name)
    note_id = store.new_id(notes_collection(borrower_id))
    record = build_note_record(
        note_id=note_id,
        note=text,
        created_at=now.isoformat(),
        borrower_id=borrower_id,
        application_id=application_id,
        type=type,
        created_by_name=author,
        created_by_user_id=created_by_user_id,
        is_active=is_active,
        call_active=call_active,
        message_active=message_active,
    )

    writes = [
        Write(f"{notes_collection(borrower_id)}/{note_id}", {**record, "createdAt": now}, merge=False),
    ]
    if application_id:
        writes.append(Write(
            f"borrowers/{borrower_id}/application/{application_id}", {"updatedAt": now},
        ))
    await store.commit(writes)
    return record


async def merge_note_flags(
    store: DocumentStore, path: str, flags: dict, *, not_found: str = "Note not found.",
) -> dict:
    """Merge the boolean flags the client may toggle into the note at ``path``.

    Text and authorship are never touched. Non-boolean flag values are
    ignored; if none remain the call fails before reading the store.
    """
    updates = {
        key: flags[key]
        for key in UPDATABLE_NOTE_FLAGS
        if isinstance(flags.get(key), bool)
    }
    if not updates:
        raise ValidationError("Missing update fields.")

    snap = await store.get(path)
    if not snap.exists:
        raise NotFoundError(not_found)

    await store.set(path, updates)
    merged = DocumentSnapshot(id=snap.id, path=path, data={**snap.data, **updates})
    return note_from_snapshot(merged)


async def update_borrower_note_flags(
    store: DocumentStore, borrower_id: str, note_id: str, flags: dict,
) -> dict:
    if not borrower_id or not note_id:
        raise ValidationError("Missing borrower or note id.")
    return await merge_note_flags(store, f"{notes_collection(borrower_id)}/{note_id}", flags)


async def hydrate_note_authors(store: DocumentStore, notes: list[dict]) -> list[dict]:
    """Fill ``createdByName`` from the staff record for notes that only carry
    an author id."""
    missing = [
        note["createdByUserId"]
        for note in notes
        if "createdByName" not in note and "createdByUserId" in note
    ]
    if not missing:
        return notes

    names = await get_user_display_names(store, missing)
    for note in notes:
        if "createdByName" not in note and names.get(note.get("createdByUserId")):
            note["createdByName"] = names[note["createdByUserId"]]
    return notes


async def list_application_notes(
    store: DocumentStore, borrower_id: str, application_id: str,
) -> list[dict]:
    """Notes for one application, newest first, author names hydrated."""
    if not borrower_id or not application_id:
        return []

    snaps = await store.query(
        notes_collection(borrower_id),
        where=("applicationId", application_id),
        order_by="createdAt",
        descending=True,
    )
    return await hydrate_note_authors(store, [note_from_snapshot(snap) for snap in snaps])

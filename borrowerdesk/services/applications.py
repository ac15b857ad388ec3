"""Application-level mutations: manual checklist and status, plus the read
used by the console after a decision."""

from datetime import date, datetime, timezone
from typing import Optional

from borrowerdesk.services.actor_names import resolve_actor_name
from borrowerdesk.services.document_store import DocumentStore, Write
from borrowerdesk.services.errors import NotFoundError, ValidationError
from borrowerdesk.services.note_builder import build_note_record

APPLICATION_STATUSES = ("Reject", "Reviewed", "Approve", "Completed")


def application_path(borrower_id: str, application_id: str) -> str:
    return f"borrowers/{borrower_id}/application/{application_id}"


def clean_checklist(items) -> list[str]:
    """Trim, drop empty or non-string entries, dedupe keeping first occurrence."""
    cleaned = (item.strip() for item in items if isinstance(item, str))
    return list(dict.fromkeys(item for item in cleaned if item))


async def set_application_manual_checks(
    store: DocumentStore,
    borrower_id: str,
    application_id: str,
    manual_verified: list,
    actor_user_id: Optional[str] = None,
) -> dict:
    if not borrower_id or not application_id:
        raise ValidationError("Missing borrower or application id.")
    if not isinstance(manual_verified, list):
        raise ValidationError("manualVerified must be an array of strings.")

    unique = clean_checklist(manual_verified)
    verified_by = actor_user_id or None
    updated_at = datetime.now(timezone.utc)
    await store.set(application_path(borrower_id, application_id), {
        "manualVerified": unique,
        "manuallyVerifiedBy": verified_by,
        "updatedAt": updated_at,
    })
    return {
        "manualVerified": unique,
        "manuallyVerifiedBy": verified_by,
        "updatedAt": updated_at.isoformat(),
    }


async def set_application_status_with_note(
    store: DocumentStore,
    *,
    borrower_id: str,
    application_id: str,
    status,
    actor_name: Optional[str] = None,
    actor_user_id: Optional[str] = None,
) -> dict:
    if not borrower_id or not application_id:
        raise ValidationError("Missing borrower or application id.")
    if status not in APPLICATION_STATUSES:
        raise ValidationError("Status must be a valid value.")

    now = datetime.now(timezone.utc)
    actor = await resolve_actor_name(store, actor_user_id, actor_name)
    base = f"borrowers/{borrower_id}"
    note_id = store.new_id(f"{base}/notes")
    note = build_note_record(
        note_id=note_id,
        note=f"Status set to {status}.",
        created_at=now.isoformat(),
        application_id=application_id,
        created_by_name=actor,
        created_by_user_id=actor_user_id,
    )

    await store.commit([
        Write(f"{base}/notes/{note_id}", {**note, "createdAt": now}, merge=False),
        Write(application_path(borrower_id, application_id), {
            "status": status,
            "updatedAt": now,
            "statusUpdatedByName": actor,
            "statusUpdatedByUserId": actor_user_id or None,
        }),
    ])
    return {
        "updatedAt": now.isoformat(),
        "status": status,
        "statusUpdatedByName": actor,
        "note": note,
    }


def _jsonable(value):
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


async def get_application(store: DocumentStore, borrower_id: str, application_id: str) -> dict:
    if not borrower_id or not application_id:
        raise ValidationError("Missing borrower or application id.")
    snap = await store.get(application_path(borrower_id, application_id))
    if not snap.exists:
        raise NotFoundError("Application not found.")
    return {"applicationId": snap.id, **_jsonable(snap.data)}

"""Canonical borrower-note records.

Pure helpers, no I/O. A note record is sparse: optional fields are present
only when they carry a value, so nothing is ever written as ``None``.
"""

from typing import Any, Optional

UNKNOWN_STAFF = "Unknown staff"

NOTE_FLAGS = ("isActive", "callActive", "messageActive", "isSeen")
_OPTIONAL_TEXT_FIELDS = ("borrowerId", "applicationId", "type", "createdByUserId")


def sanitize_name(value: Any = None) -> str:
    if isinstance(value, str):
        trimmed = value.strip()
        if trimmed:
            return trimmed
    return UNKNOWN_STAFF


def sanitize_note(value: str) -> str:
    return value.strip()


def build_note_record(
    *,
    note_id: str,
    loan_id: Optional[str] = None,
    note: str,
    created_at: Any,
    borrower_id: Optional[str] = None,
    application_id: Optional[str] = None,
    type: Optional[str] = None,
    created_by_name: Optional[str] = None,
    created_by_user_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    call_active: Optional[bool] = None,
    message_active: Optional[bool] = None,
    is_seen: Optional[bool] = None,
) -> dict:
    """Build the note mapping written to ``borrowers/{id}/notes`` or, with
    ``loan_id``, to ``loans/{id}/notes``.

    ``note`` is trimmed but an empty result is allowed here; callers that
    accept free text reject empty notes before building the record.
    """
    record = {"noteId": note_id}
    if loan_id:
        record["loanId"] = loan_id
    record.update({
        "note": sanitize_note(note),
        "createdAt": created_at,
        "createdByName": sanitize_name(created_by_name),
    })

    optional_text = {
        "borrowerId": borrower_id,
        "applicationId": application_id,
        "type": type,
        "createdByUserId": created_by_user_id,
    }
    for key in _OPTIONAL_TEXT_FIELDS:
        value = optional_text[key]
        if isinstance(value, str) and value.strip():
            record[key] = value.strip()

    flags = {
        "isActive": is_active,
        "callActive": call_active,
        "messageActive": message_active,
        "isSeen": is_seen,
    }
    for key in NOTE_FLAGS:
        if isinstance(flags[key], bool):
            record[key] = flags[key]

    return record

"""KYC decisions recorded together with an audit note.

A decision is one atomic batch of three writes:

1. a new note on the borrower, linked to the application,
2. the application's ``updatedAt`` and ``kycDecisions.{kycId}`` entry,
3. the KYC record's ``isApproved`` (approve/reject) or ``isWaived``
   (waive/unwaive) flag.
"""

from datetime import datetime, timezone
from typing import Optional

from borrowerdesk.services.actor_names import resolve_actor_name
from borrowerdesk.services.document_store import DocumentStore, Write
from borrowerdesk.services.errors import ValidationError
from borrowerdesk.services.note_builder import build_note_record

DEFAULT_DOCUMENT_LABEL = "KYC document"

KYC_ACTIONS = ("approve", "reject", "waive", "unwaive")

_PAST_TENSE = {
    "approve": "approved",
    "reject": "rejected",
    "waive": "waived",
    "unwaive": "unwaived",
}

_KYC_UPDATES = {
    "approve": {"isApproved": True},
    "reject": {"isApproved": False},
    "waive": {"isWaived": True},
    "unwaive": {"isWaived": False},
}

_ACTION_ALIASES = {
    **{action: action for action in KYC_ACTIONS},
    **{past: action for action, past in _PAST_TENSE.items()},
}


def normalize_action(value) -> Optional[str]:
    """Map ``"Approved"``, ``" reject "`` and friends to a canonical action."""
    if not isinstance(value, str):
        return None
    return _ACTION_ALIASES.get(value.strip().lower())


def decision_note_text(action: str, document_label: Optional[str] = None) -> str:
    label = document_label.strip() if isinstance(document_label, str) else ""
    return f"{label or DEFAULT_DOCUMENT_LABEL} {_PAST_TENSE[action]}."


async def set_kyc_decision_with_note(
    store: DocumentStore,
    *,
    borrower_id: str,
    application_id: str,
    kyc_id: str,
    action,
    actor_name: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    document_label: Optional[str] = None,
) -> dict:
    """Apply a KYC decision and return the note that records it."""
    if not borrower_id or not application_id or not kyc_id:
        raise ValidationError("Missing borrower, application, or KYC id.")
    canonical = normalize_action(action)
    if canonical is None:
        raise ValidationError("Action must be a valid value.")

    now = datetime.now(timezone.utc)
    created_by = await resolve_actor_name(store, actor_user_id, actor_name)

    base = f"borrowers/{borrower_id}"
    note_id = store.new_id(f"{base}/notes")
    note = build_note_record(
        note_id=note_id,
        note=decision_note_text(canonical, document_label),
        created_at=now.isoformat(),
        application_id=application_id,
        created_by_name=created_by,
        created_by_user_id=actor_user_id,
    )

    await store.commit([
        Write(f"{base}/notes/{note_id}", {**note, "createdAt": now}, merge=False),
        Write(f"{base}/application/{application_id}", {
            "updatedAt": now,
            "kycDecisions": {
                kyc_id: {
                    "action": canonical,
                    "decidedAt": now,
                    "decidedByName": created_by,
                },
            },
        }),
        Write(f"{base}/kyc/{kyc_id}", dict(_KYC_UPDATES[canonical])),
    ])
    return note

"""Loans: approving an application into a loan, and loan notes.

An approval writes three documents in one batch: the new ``loans/{id}``
record, an audit note on the borrower and the application's approved
status. Loan notes live under ``loans/{id}/notes`` and share the borrower
note record shape plus ``loanId``.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from borrowerdesk.services.actor_names import resolve_actor_name
from borrowerdesk.services.applications import application_path
from borrowerdesk.services.borrower_notes import (
    hydrate_note_authors,
    merge_note_flags,
    note_from_snapshot,
    notes_collection,
)
from borrowerdesk.services.borrowers import (
    MAX_STORED_INTEGER,
    borrower_path,
    is_finite_number,
    is_number,
)
from borrowerdesk.services.document_store import DocumentStore, Write
from borrowerdesk.services.errors import ConflictError, NotFoundError, ValidationError
from borrowerdesk.services.note_builder import build_note_record, sanitize_note

logger = logging.getLogger(__name__)

LOANS_COLLECTION = "loans"
LOAN_CURRENCY = "PHP"
APPROVED_STATUS = "Approved"

_ZERO_BALANCES = {
    "principalOutstandingAmount": 0,
    "interestOutstandingAmount": 0,
    "feesOutstandingAmount": 0,
    "penaltiesOutstandingAmount": 0,
    "totalOutstandingAmount": 0,
}
_ZERO_TOTALS = {
    "totalPaidAmount": 0,
    "totalFeesChargedAmount": 0,
    "totalInterestChargedAmount": 0,
    "totalPenaltiesChargedAmount": 0,
}


def loan_notes_collection(loan_id: str) -> str:
    return f"{LOANS_COLLECTION}/{loan_id}/notes"


def parse_approved_at(value) -> datetime:
    """Parse an ISO-8601 date or timestamp; naive values are taken as UTC."""
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            pass
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    raise ValidationError("Approval date is invalid.")


def _round_half_up(value) -> int:
    return math.floor(value + 0.5)


def _to_amount_units(amount) -> int:
    """Whole pesos to centavos."""
    units = amount * 100
    if not is_finite_number(units) or units > MAX_STORED_INTEGER:
        raise ValidationError("Loan amount is too large.")
    return _round_half_up(units)


def _optional_string(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


async def approve_application_to_loan(
    store: DocumentStore,
    *,
    borrower_id: str,
    application_id: str,
    loan_amount,
    loan_interest,
    term_months,
    approved_at,
    actor_name: Optional[str] = None,
    actor_user_id: Optional[str] = None,
) -> dict:
    """Create the loan for an application and mark the application approved.

    Raises ConflictError when a loan already exists for the application or
    the borrower has no primary branch, NotFoundError when the borrower or
    application is missing.
    """
    if not borrower_id or not application_id:
        raise ValidationError("Missing borrower or application id.")
    if not is_number(loan_amount) or not is_finite_number(loan_amount) or loan_amount <= 0:
        raise ValidationError("Loan amount must be greater than 0.")
    if not is_number(loan_interest) or not is_finite_number(loan_interest) or loan_interest < 0:
        raise ValidationError("Loan interest must be 0 or higher.")
    if not is_number(term_months) or not is_finite_number(term_months) or term_months <= 0:
        raise ValidationError("Loan term must be greater than 0.")
    principal = _to_amount_units(loan_amount)
    term = _round_half_up(term_months)
    if term > MAX_STORED_INTEGER:
        raise ValidationError("Loan term is too large.")
    approved = parse_approved_at(approved_at)

    existing = await store.query(
        LOANS_COLLECTION, where=("applicationId", application_id), limit=1,
    )
    if existing:
        raise ConflictError("Loan already exists for this application.")

    borrower_snap, application_snap = await store.get_all([
        borrower_path(borrower_id), application_path(borrower_id, application_id),
    ])
    if not borrower_snap.exists:
        raise NotFoundError("Borrower record not found.")
    if not application_snap.exists:
        raise NotFoundError("Application record not found.")

    borrower = borrower_snap.data
    branch_id = _optional_string(borrower, "primaryBranchId")
    if not branch_id or not branch_id.strip():
        raise ConflictError("Primary branch id is missing.")
    loan_details = application_snap.data.get("loanDetails")
    if not isinstance(loan_details, dict):
        loan_details = {}

    actor = await resolve_actor_name(store, actor_user_id, actor_name)
    now = datetime.now(timezone.utc)
    note_id = store.new_id(notes_collection(borrower_id))
    loan_id = store.new_id(LOANS_COLLECTION)

    note = build_note_record(
        note_id=note_id,
        note=sanitize_note(f"Status set to {APPROVED_STATUS}."),
        created_at=now.isoformat(),
        application_id=application_id,
        created_by_name=actor,
        created_by_user_id=actor_user_id,
    )

    loan = {
        "loanId": loan_id,
        "borrowerId": borrower_id,
        "branchId": branch_id,
        "applicationId": application_id,
        "status": "approved",
        "currency": LOAN_CURRENCY,
        "principalAmount": principal,
        "termMonths": term,
        "loanInterest": loan_interest,
        "approvedAt": approved,
        "createdAt": now,
        "createdByUserId": actor_user_id or None,
        "updatedAt": now,
        "balances": dict(_ZERO_BALANCES),
        "totals": dict(_ZERO_TOTALS),
    }
    optional = {
        "productId": _optional_string(loan_details, "productId"),
        "productName": _optional_string(loan_details, "productName"),
        "borrowerName": _optional_string(borrower, "fullName"),
        "borrowerPhone": _optional_string(borrower, "phone"),
    }
    loan.update({key: value for key, value in optional.items() if value is not None})

    await store.commit([
        Write(f"{notes_collection(borrower_id)}/{note_id}", {**note, "createdAt": now}, merge=False),
        Write(application_path(borrower_id, application_id), {
            "status": APPROVED_STATUS,
            "updatedAt": now,
            "statusUpdatedByName": actor,
            "statusUpdatedByUserId": actor_user_id or None,
        }),
        Write(f"{LOANS_COLLECTION}/{loan_id}", loan, merge=False),
    ])
    logger.info("Approved application %s into loan %s", application_id, loan_id)
    return {
        "loanId": loan_id,
        "updatedAt": now.isoformat(),
        "status": APPROVED_STATUS,
        "statusUpdatedByName": actor,
        "note": note,
    }


async def add_loan_note(
    store: DocumentStore,
    *,
    loan_id: str,
    note: str,
    borrower_id: Optional[str] = None,
    application_id: Optional[str] = None,
    type: Optional[str] = None,
    created_by_name: Optional[str] = None,
    created_by_user_id: Optional[str] = None,
) -> dict:
    if not loan_id:
        raise ValidationError("Missing loan id.")
    text = sanitize_note(note) if isinstance(note, str) else ""
    if not text:
        raise ValidationError("Note cannot be empty.")

    now = datetime.now(timezone.utc)
    author = await resolve_actor_name(store, created_by_user_id, created_by_name)
    note_id = store.new_id(loan_notes_collection(loan_id))
    record = build_note_record(
        note_id=note_id,
        loan_id=loan_id,
        note=text,
        created_at=now.isoformat(),
        borrower_id=borrower_id,
        application_id=application_id,
        type=type,
        created_by_name=author,
        created_by_user_id=created_by_user_id,
    )
    await store.set(
        f"{loan_notes_collection(loan_id)}/{note_id}", {**record, "createdAt": now}, merge=False,
    )
    return record


async def update_loan_note_flags(
    store: DocumentStore, loan_id: str, note_id: str, flags: dict,
) -> dict:
    if not loan_id or not note_id:
        raise ValidationError("Missing loan or note id.")
    note = await merge_note_flags(
        store, f"{loan_notes_collection(loan_id)}/{note_id}", flags,
        not_found="Loan note not found.",
    )
    note.setdefault("loanId", loan_id)
    return note


async def list_loan_notes(store: DocumentStore, loan_id: str) -> list[dict]:
    """Notes on a loan, newest first, author names hydrated."""
    if not loan_id:
        return []
    snaps = await store.query(loan_notes_collection(loan_id), order_by="createdAt", descending=True)
    notes = [note_from_snapshot(snap) for snap in snaps]
    for note in notes:
        note.setdefault("loanId", loan_id)
    return await hydrate_note_authors(store, notes)

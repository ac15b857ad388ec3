"""Loan notes API.

Provides:
- GET   /{loan_id}/notes
- POST  /{loan_id}/notes
- PATCH /{loan_id}/notes/{note_id}
"""

from fastapi import APIRouter, Depends, Request

from borrowerdesk.api.borrowers import require_ids, store_failure
from borrowerdesk.auth_utils import get_current_staff
from borrowerdesk.database import Backend, get_backend
from borrowerdesk.schemas import LoanNoteCreatePayload, NoteFlagsPayload, read_payload
from borrowerdesk.services.errors import StoreError, ValidationError
from borrowerdesk.services.loans import add_loan_note, list_loan_notes, update_loan_note_flags
from borrowerdesk.services.sessions import StaffSession

router = APIRouter()


@router.get("/{loan_id}/notes")
async def read_loan_notes(
    loan_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing loan id.", loan_id)
    try:
        notes = await list_loan_notes(store, loan_id)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "read_loan_notes", "Unable to load loan notes.", staff,
            module="api.loans",
        )
    return {"notes": notes}


@router.post("/{loan_id}/notes")
async def create_loan_note(
    loan_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing loan id.", loan_id)
    payload = await read_payload(request, LoanNoteCreatePayload)
    if not payload.note or not payload.note.strip():
        raise ValidationError("Note cannot be empty.")
    try:
        note = await add_loan_note(
            store,
            loan_id=loan_id,
            note=payload.note,
            borrower_id=payload.borrower_id,
            application_id=payload.application_id,
            type=payload.type,
            created_by_name=payload.created_by_name,
            created_by_user_id=payload.created_by_user_id,
        )
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "create_loan_note", "Failed to add note.", staff,
            module="api.loans",
        )
    return {"note": note}


@router.patch("/{loan_id}/notes/{note_id}")
async def update_loan_note(
    loan_id: str,
    note_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing loan or note id.", loan_id, note_id)
    payload = await read_payload(request, NoteFlagsPayload)
    flags = payload.provided_flags()
    if not flags:
        raise ValidationError("Missing update fields.")
    try:
        note = await update_loan_note_flags(store, loan_id, note_id, flags)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "update_loan_note", "Failed to update loan note.", staff,
            module="api.loans",
        )
    return {"note": note}

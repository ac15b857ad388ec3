"""Borrower desk API: staff mutations on borrowers, KYC records, notes,
applications, loan approval and references.

Provides:
- POST  /{borrower_id}/follow-up/clear
- POST  /{borrower_id}/kyc-missing
- POST  /{borrower_id}/kyc/{kyc_id}/approval
- POST  /{borrower_id}/kyc/{kyc_id}/decision
- POST  /{borrower_id}/notes
- PATCH /{borrower_id}/notes/{note_id}
- GET   /{borrower_id}/application/{application_id}
- GET   /{borrower_id}/application/{application_id}/notes
- POST  /{borrower_id}/application/{application_id}/manual-checks
- POST  /{borrower_id}/application/{application_id}/status
- POST  /{borrower_id}/application/{application_id}/approve
- POST  /{borrower_id}/references/{reference_id}/status

Each handler gates in the same order: staff session (401, where required),
store credentials (500), path ids and body (400), then exactly one service
call. Store failures are logged and answered with a generic 500 message.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from borrowerdesk.auth_utils import get_current_staff
from borrowerdesk.database import Backend, get_backend
from borrowerdesk.schemas import (
    ApplicationStatusPayload,
    KycApprovalPayload,
    KycDecisionPayload,
    KycMissingPayload,
    LoanApprovalPayload,
    ManualChecksPayload,
    NoteCreatePayload,
    NoteFlagsPayload,
    ReferenceStatusPayload,
    read_payload,
)
from borrowerdesk.services.applications import (
    get_application,
    set_application_manual_checks,
    set_application_status_with_note,
)
from borrowerdesk.services.borrower_notes import (
    add_borrower_note,
    list_application_notes,
    update_borrower_note_flags,
)
from borrowerdesk.services.borrowers import (
    clear_borrower_follow_up,
    set_borrower_kyc_missing_count,
    set_government_id_approval,
    set_reference_contact_status,
)
from borrowerdesk.services.error_logger import log_error
from borrowerdesk.services.errors import StoreError, ValidationError
from borrowerdesk.services.kyc_decisions import set_kyc_decision_with_note
from borrowerdesk.services.loans import approve_application_to_loan
from borrowerdesk.services.sessions import StaffSession

logger = logging.getLogger(__name__)

router = APIRouter()


def require_ids(message: str, *ids: str) -> None:
    if not all(value and value.strip() for value in ids):
        raise ValidationError(message)


async def store_failure(
    exc: StoreError, request: Request, backend: Backend, function_name: str, detail: str,
    staff: StaffSession | None = None, module: str = "api.borrowers",
) -> HTTPException:
    await log_error(
        exc,
        store=backend.store,
        module=module,
        function_name=function_name,
        request_method=request.method,
        request_path=request.url.path,
        status_code=500,
        user_id=staff.uid if staff else None,
    )
    request.state.error_logged = True
    return HTTPException(status_code=500, detail=detail)


# ---------------------------------------------------------------------------
# Borrower
# ---------------------------------------------------------------------------

@router.post("/{borrower_id}/follow-up/clear")
async def clear_follow_up(
    borrower_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower id.", borrower_id)
    try:
        await clear_borrower_follow_up(store, borrower_id)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "clear_follow_up", "Failed to clear borrower follow-up.", staff,
        )
    return {"ok": True}


@router.post("/{borrower_id}/kyc-missing")
async def update_kyc_missing_count(
    borrower_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower id.", borrower_id)
    payload = await read_payload(request, KycMissingPayload)
    if payload.kyc_missing_count is None:
        raise ValidationError("kycMissingCount must be a number.")
    try:
        await set_borrower_kyc_missing_count(store, borrower_id, payload.kyc_missing_count)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "update_kyc_missing_count",
            "Failed to update KYC missing count.", staff,
        )
    return {"ok": True}


# ---------------------------------------------------------------------------
# KYC
# ---------------------------------------------------------------------------

@router.post("/{borrower_id}/kyc/{kyc_id}/approval")
async def update_kyc_approval(
    borrower_id: str,
    kyc_id: str,
    request: Request,
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or KYC id.", borrower_id, kyc_id)
    payload = await read_payload(request, KycApprovalPayload)
    if payload.is_approved is None:
        raise ValidationError("isApproved must be a boolean.")
    try:
        await set_government_id_approval(store, borrower_id, kyc_id, payload.is_approved)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "update_kyc_approval", "Failed to update KYC approval.",
        )
    return {"ok": True}


@router.post("/{borrower_id}/kyc/{kyc_id}/decision")
async def record_kyc_decision(
    borrower_id: str,
    kyc_id: str,
    request: Request,
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or KYC id.", borrower_id, kyc_id)
    payload = await read_payload(request, KycDecisionPayload)
    if not payload.application_id or not payload.application_id.strip():
        raise ValidationError("Missing application id.")
    if not payload.action or not payload.action.strip():
        raise ValidationError("Missing action.")
    try:
        note = await set_kyc_decision_with_note(
            store,
            borrower_id=borrower_id,
            application_id=payload.application_id.strip(),
            kyc_id=kyc_id,
            action=payload.action,
            actor_name=payload.actor_name,
            actor_user_id=payload.actor_user_id,
            document_label=payload.document_type,
        )
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "record_kyc_decision", "Failed to update KYC decision.",
        )
    return {"note": note}


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------

@router.post("/{borrower_id}/notes")
async def create_note(
    borrower_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower id.", borrower_id)
    payload = await read_payload(request, NoteCreatePayload)
    if not payload.note or not payload.note.strip():
        raise ValidationError("Note cannot be empty.")
    try:
        note = await add_borrower_note(
            store,
            borrower_id=borrower_id,
            note=payload.note,
            application_id=payload.application_id,
            type=payload.type,
            created_by_name=payload.created_by_name,
            created_by_user_id=payload.created_by_user_id,
            is_active=payload.is_active,
            call_active=payload.call_active,
            message_active=payload.message_active,
        )
    except StoreError as e:
        raise await store_failure(e, request, backend, "create_note", "Failed to add note.", staff)
    return {"note": note}


@router.patch("/{borrower_id}/notes/{note_id}")
async def update_note_flags(
    borrower_id: str,
    note_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or note id.", borrower_id, note_id)
    payload = await read_payload(request, NoteFlagsPayload)
    flags = payload.provided_flags()
    if not flags:
        raise ValidationError("Missing update fields.")
    try:
        note = await update_borrower_note_flags(store, borrower_id, note_id, flags)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "update_note_flags", "Failed to update borrower note.", staff,
        )
    return {"note": note}


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------

@router.get("/{borrower_id}/application/{application_id}")
async def read_application(
    borrower_id: str,
    application_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or application id.", borrower_id, application_id)
    try:
        application = await get_application(store, borrower_id, application_id)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "read_application", "Failed to load application.", staff,
        )
    return {"application": application}


@router.get("/{borrower_id}/application/{application_id}/notes")
async def read_application_notes(
    borrower_id: str,
    application_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or application id.", borrower_id, application_id)
    try:
        notes = await list_application_notes(store, borrower_id, application_id)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "read_application_notes", "Failed to load notes.", staff,
        )
    return {"notes": notes}


@router.post("/{borrower_id}/application/{application_id}/manual-checks")
async def update_manual_checks(
    borrower_id: str,
    application_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or application id.", borrower_id, application_id)
    payload = await read_payload(request, ManualChecksPayload)
    if payload.manual_verified is None:
        raise ValidationError("manualVerified must be an array of strings.")
    try:
        result = await set_application_manual_checks(
            store, borrower_id, application_id, payload.manual_verified, payload.actor_user_id,
        )
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "update_manual_checks", "Failed to update manual checklist.", staff,
        )
    return result


@router.post("/{borrower_id}/application/{application_id}/status")
async def update_application_status(
    borrower_id: str,
    application_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or application id.", borrower_id, application_id)
    payload = await read_payload(request, ApplicationStatusPayload)
    try:
        result = await set_application_status_with_note(
            store,
            borrower_id=borrower_id,
            application_id=application_id,
            status=payload.status,
            actor_name=payload.actor_name,
            actor_user_id=payload.actor_user_id,
        )
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "update_application_status",
            "Failed to update application status.", staff,
        )
    return result


@router.post("/{borrower_id}/application/{application_id}/approve")
async def approve_application(
    borrower_id: str,
    application_id: str,
    request: Request,
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or application id.", borrower_id, application_id)
    payload = await read_payload(request, LoanApprovalPayload)
    if not payload.is_complete():
        raise ValidationError("Missing required approval fields.")
    try:
        result = await approve_application_to_loan(
            store,
            borrower_id=borrower_id,
            application_id=application_id,
            loan_amount=payload.loan_amount,
            loan_interest=payload.loan_interest,
            term_months=payload.term_months,
            approved_at=payload.approved_at,
            actor_name=payload.actor_name,
            actor_user_id=payload.actor_user_id,
        )
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "approve_application", "Failed to approve loan.",
        )
    return result


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

@router.post("/{borrower_id}/references/{reference_id}/status")
async def update_reference_status(
    borrower_id: str,
    reference_id: str,
    request: Request,
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    require_ids("Missing borrower or reference id.", borrower_id, reference_id)
    payload = await read_payload(request, ReferenceStatusPayload)
    try:
        await set_reference_contact_status(store, borrower_id, reference_id, payload.contact_status)
    except StoreError as e:
        raise await store_failure(
            e, request, backend, "update_reference_status", "Failed to update reference status.", staff,
        )
    return {"ok": True}

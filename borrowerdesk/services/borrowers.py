"""Borrower-level mutations: follow-up flag, KYC missing count, government-ID
approval and reference contact status.

Every function validates its input before touching the store and writes with
merge semantics, so fields it does not name are left alone.
"""

import math
from datetime import datetime, timezone

from borrowerdesk.services.document_store import DocumentStore
from borrowerdesk.services.errors import ValidationError

REFERENCE_CONTACT_STATUSES = ("pending", "agreed", "declined", "no_response")

# Largest integer a Firestore field holds (signed 64-bit)
MAX_STORED_INTEGER = 2**63 - 1


def borrower_path(borrower_id: str) -> str:
    return f"borrowers/{borrower_id}"


async def clear_borrower_follow_up(store: DocumentStore, borrower_id: str) -> None:
    if not borrower_id:
        raise ValidationError("Missing borrower id.")
    await store.set(borrower_path(borrower_id), {
        "followUp": False,
        "followUpCount": 0,
        "followUpAt": None,
    })


def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_finite_number(value) -> bool:
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range read as Infinity
        return False


async def set_borrower_kyc_missing_count(store: DocumentStore, borrower_id: str, count) -> int:
    """Store ``floor(count)`` as ``kycMissingCount`` and return it."""
    if not borrower_id:
        raise ValidationError("Missing borrower id.")
    if not is_number(count):
        raise ValidationError("kycMissingCount must be a number.")
    if not is_finite_number(count) or count < 0:
        raise ValidationError("kycMissingCount must be a non-negative number.")

    value = math.floor(count)
    if value > MAX_STORED_INTEGER:
        raise ValidationError("kycMissingCount is too large.")
    await store.set(borrower_path(borrower_id), {"kycMissingCount": value})
    return value


async def set_government_id_approval(
    store: DocumentStore, borrower_id: str, kyc_id: str, is_approved,
) -> None:
    if not borrower_id or not kyc_id:
        raise ValidationError("Missing borrower or KYC id.")
    if not isinstance(is_approved, bool):
        raise ValidationError("isApproved must be a boolean.")
    await store.set(f"{borrower_path(borrower_id)}/kyc/{kyc_id}", {"isApproved": is_approved})


async def set_reference_contact_status(
    store: DocumentStore, borrower_id: str, reference_id: str, contact_status,
) -> None:
    if not borrower_id or not reference_id:
        raise ValidationError("Missing borrower or reference id.")
    if contact_status not in REFERENCE_CONTACT_STATUSES:
        raise ValidationError("contactStatus must be a valid value.")
    await store.set(f"{borrower_path(borrower_id)}/references/{reference_id}", {
        "contactStatus": contact_status,
        "updatedAt": datetime.now(timezone.utc),
    })

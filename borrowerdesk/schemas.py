"""Pydantic schemas for request payloads.

The console posts loosely-typed JSON, so payload fields are lenient: a value
of the wrong type reads as missing (``None``) and the handler decides whether
that is an error. Field names follow the camelCase the client sends.
"""

from typing import Annotated, Any, Optional, Type, TypeVar, Union

from fastapi import Request
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from borrowerdesk.services.errors import ValidationError


def _bool_or_none(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _number_or_none(value: Any) -> Optional[Union[int, float]]:
    if isinstance(value, bool):
        return None
    return value if isinstance(value, (int, float)) else None


def _list_or_none(value: Any) -> Optional[list]:
    return value if isinstance(value, list) else None


LenientBool = Annotated[Optional[bool], BeforeValidator(_bool_or_none)]
LenientStr = Annotated[Optional[str], BeforeValidator(_str_or_none)]
LenientNumber = Annotated[Optional[Union[int, float]], BeforeValidator(_number_or_none)]
LenientList = Annotated[Optional[list[Any]], BeforeValidator(_list_or_none)]


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


PayloadT = TypeVar("PayloadT", bound=_Payload)


async def read_payload(request: Request, model: Type[PayloadT]) -> PayloadT:
    """Parse the JSON body into ``model``.

    Raises ValidationError("Invalid JSON payload.") when the body is not JSON.
    A JSON value that is not an object reads as an empty object.
    """
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON payload.")
    if not isinstance(body, dict):
        body = {}
    return model.model_validate(body)


# ── Borrowers ─────────────────────────────────────────

class KycMissingPayload(_Payload):
    kyc_missing_count: LenientNumber = Field(default=None, alias="kycMissingCount")


class KycApprovalPayload(_Payload):
    is_approved: LenientBool = Field(default=None, alias="isApproved")


class KycDecisionPayload(_Payload):
    application_id: LenientStr = Field(default=None, alias="applicationId")
    action: LenientStr = None
    actor_name: LenientStr = Field(default=None, alias="actorName")
    actor_user_id: LenientStr = Field(default=None, alias="actorUserId")
    document_type: LenientStr = Field(default=None, alias="documentType")


class ReferenceStatusPayload(_Payload):
    contact_status: LenientStr = Field(default=None, alias="contactStatus")


# ── Notes ─────────────────────────────────────────────

class NoteCreatePayload(_Payload):
    note: LenientStr = None
    application_id: LenientStr = Field(default=None, alias="applicationId")
    type: LenientStr = None
    created_by_name: LenientStr = Field(default=None, alias="createdByName")
    created_by_user_id: LenientStr = Field(default=None, alias="createdByUserId")
    is_active: LenientBool = Field(default=None, alias="isActive")
    call_active: LenientBool = Field(default=None, alias="callActive")
    message_active: LenientBool = Field(default=None, alias="messageActive")


class NoteFlagsPayload(_Payload):
    is_active: LenientBool = Field(default=None, alias="isActive")
    call_active: LenientBool = Field(default=None, alias="callActive")
    message_active: LenientBool = Field(default=None, alias="messageActive")

    def provided_flags(self) -> dict:
        flags = {
            "isActive": self.is_active,
            "callActive": self.call_active,
            "messageActive": self.message_active,
        }
        return {key: value for key, value in flags.items() if value is not None}


# ── Applications ──────────────────────────────────────

class ManualChecksPayload(_Payload):
    manual_verified: LenientList = Field(default=None, alias="manualVerified")
    actor_user_id: LenientStr = Field(default=None, alias="actorUserId")


class ApplicationStatusPayload(_Payload):
    status: LenientStr = None
    actor_name: LenientStr = Field(default=None, alias="actorName")
    actor_user_id: LenientStr = Field(default=None, alias="actorUserId")


class LoanApprovalPayload(_Payload):
    loan_amount: LenientNumber = Field(default=None, alias="loanAmount")
    loan_interest: LenientNumber = Field(default=None, alias="loanInterest")
    term_months: LenientNumber = Field(default=None, alias="termMonths")
    approved_at: LenientStr = Field(default=None, alias="approvedAt")
    actor_name: LenientStr = Field(default=None, alias="actorName")
    actor_user_id: LenientStr = Field(default=None, alias="actorUserId")

    def is_complete(self) -> bool:
        return None not in (
            self.loan_amount, self.loan_interest, self.term_months, self.approved_at,
        )


# ── Loans ─────────────────────────────────────────────

class LoanNoteCreatePayload(_Payload):
    note: LenientStr = None
    borrower_id: LenientStr = Field(default=None, alias="borrowerId")
    application_id: LenientStr = Field(default=None, alias="applicationId")
    type: LenientStr = None
    created_by_name: LenientStr = Field(default=None, alias="createdByName")
    created_by_user_id: LenientStr = Field(default=None, alias="createdByUserId")


# ── Session ───────────────────────────────────────────

class SessionCreatePayload(_Payload):
    id_token: LenientStr = Field(default=None, alias="idToken")

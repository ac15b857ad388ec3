"""Tests for KYC decisions recorded with an audit note."""

from unittest.mock import AsyncMock

import pytest

from borrowerdesk.services.document_store import DocumentStore
from borrowerdesk.services.errors import StoreError, ValidationError
from borrowerdesk.services.kyc_decisions import (
    decision_note_text,
    normalize_action,
    set_kyc_decision_with_note,
)


class TestNormalizeAction:

    @pytest.mark.parametrize("value, expected", [
        ("approve", "approve"),
        ("Approved", "approve"),
        (" rejected ", "reject"),
        ("WAIVE", "waive"),
        ("unwaived", "unwaive"),
    ])
    def test_aliases(self, value, expected):
        assert normalize_action(value) == expected

    @pytest.mark.parametrize("value", ["maybe", "", None, 1])
    def test_unknown(self, value):
        assert normalize_action(value) is None


class TestDecisionNoteText:

    def test_default_label(self):
        assert decision_note_text("approve") == "KYC document approved."

    def test_custom_label(self):
        assert decision_note_text("reject", "Proof of billing") == "Proof of billing rejected."

    def test_blank_label_uses_default(self):
        assert decision_note_text("waive", "  ") == "KYC document waived."


class TestSetKycDecisionWithNote:

    @pytest.mark.asyncio
    async def test_approve_writes_note_application_and_kyc(self, store):
        await store.set("borrowers/B1/kyc/K1", {"type": "proof_of_billing", "isWaived": True})
        await store.set("borrowers/B1/application/APP-1", {"status": "Reviewed"})

        note = await set_kyc_decision_with_note(
            store,
            borrower_id="B1",
            application_id="APP-1",
            kyc_id="K1",
            action="Approved",
            actor_name="Jane Cruz",
            document_label="Proof of billing",
        )

        assert note["note"] == "Proof of billing approved."
        assert note["createdByName"] == "Jane Cruz"
        assert note["applicationId"] == "APP-1"

        stored_note = (await store.get(f"borrowers/B1/notes/{note['noteId']}")).data
        assert stored_note["note"] == "Proof of billing approved."

        kyc = (await store.get("borrowers/B1/kyc/K1")).data
        assert kyc == {"type": "proof_of_billing", "isWaived": True, "isApproved": True}

        application = (await store.get("borrowers/B1/application/APP-1")).data
        assert application["status"] == "Reviewed"
        assert application["updatedAt"]
        decision = application["kycDecisions"]["K1"]
        assert decision["action"] == "approve"
        assert decision["decidedByName"] == "Jane Cruz"

    @pytest.mark.asyncio
    async def test_decisions_for_other_kyc_records_are_kept(self, store):
        for kyc_id, action in (("K1", "approve"), ("K2", "waive")):
            await set_kyc_decision_with_note(
                store, borrower_id="B1", application_id="APP-1", kyc_id=kyc_id, action=action,
            )
        application = (await store.get("borrowers/B1/application/APP-1")).data
        assert set(application["kycDecisions"]) == {"K1", "K2"}
        assert (await store.get("borrowers/B1/kyc/K2")).data == {"isWaived": True}

    @pytest.mark.asyncio
    async def test_actor_name_comes_from_staff_record(self, store):
        await store.set("users/U1", {"displayName": "Mara Santos"})
        note = await set_kyc_decision_with_note(
            store,
            borrower_id="B1",
            application_id="APP-1",
            kyc_id="K1",
            action="reject",
            actor_name="Someone Else",
            actor_user_id="U1",
        )
        assert note["createdByName"] == "Mara Santos"
        assert note["createdByUserId"] == "U1"
        assert (await store.get("borrowers/B1/kyc/K1")).data == {"isApproved": False}

    @pytest.mark.asyncio
    async def test_unknown_actor_defaults(self, store):
        note = await set_kyc_decision_with_note(
            store, borrower_id="B1", application_id="APP-1", kyc_id="K1", action="unwaive",
        )
        assert note["createdByName"] == "Unknown staff"
        assert note["note"] == "KYC document unwaived."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"borrower_id": "B1", "application_id": "", "kyc_id": "K1", "action": "approve"},
        {"borrower_id": "B1", "application_id": "APP-1", "kyc_id": "K1", "action": "maybe"},
        {"borrower_id": "B1", "application_id": "APP-1", "kyc_id": "K1", "action": None},
    ])
    async def test_invalid_input_touches_nothing(self, kwargs):
        store = AsyncMock(spec=DocumentStore)
        with pytest.raises(ValidationError):
            await set_kyc_decision_with_note(store, **kwargs)
        store.commit.assert_not_called()
        store.get_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, store):
        store.commit = AsyncMock(side_effect=StoreError("write failed"))
        with pytest.raises(StoreError):
            await set_kyc_decision_with_note(
                store, borrower_id="B1", application_id="APP-1", kyc_id="K1", action="approve",
            )

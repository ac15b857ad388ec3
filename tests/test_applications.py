"""Tests for application checklist, status and read."""

from unittest.mock import AsyncMock

import pytest

from borrowerdesk.services.applications import (
    clean_checklist,
    get_application,
    set_application_manual_checks,
    set_application_status_with_note,
)
from borrowerdesk.services.document_store import DocumentStore
from borrowerdesk.services.errors import NotFoundError, ValidationError


class TestCleanChecklist:

    def test_trims_drops_empty_and_dedupes(self):
        assert clean_checklist(["a", " a ", "b", ""]) == ["a", "b"]

    def test_keeps_first_occurrence_order(self):
        assert clean_checklist(["id", "payslip", "id", "bank"]) == ["id", "payslip", "bank"]

    def test_drops_non_strings(self):
        assert clean_checklist(["a", 3, None, {"x": 1}]) == ["a"]


class TestManualChecks:

    @pytest.mark.asyncio
    async def test_replaces_checklist(self, store):
        await store.set("borrowers/B1/application/A1", {
            "status": "Reviewed", "manualVerified": ["old-item"],
        })

        result = await set_application_manual_checks(
            store, "B1", "A1", ["a", " a ", "b", ""], actor_user_id="U1",
        )

        assert result["manualVerified"] == ["a", "b"]
        assert result["manuallyVerifiedBy"] == "U1"
        data = (await store.get("borrowers/B1/application/A1")).data
        assert data["manualVerified"] == ["a", "b"]
        assert data["manuallyVerifiedBy"] == "U1"
        assert data["status"] == "Reviewed"
        assert data["updatedAt"] == result["updatedAt"]

    @pytest.mark.asyncio
    async def test_without_actor_records_none(self, store):
        result = await set_application_manual_checks(store, "B1", "A1", [])
        assert result["manuallyVerifiedBy"] is None
        assert (await store.get("borrowers/B1/application/A1")).data["manuallyVerifiedBy"] is None

    @pytest.mark.asyncio
    async def test_requires_list(self):
        store = AsyncMock(spec=DocumentStore)
        with pytest.raises(ValidationError):
            await set_application_manual_checks(store, "B1", "A1", "a,b")
        store.set.assert_not_called()


class TestStatusWithNote:

    @pytest.mark.asyncio
    async def test_sets_status_and_records_note(self, store):
        await store.set("users/U1", {"displayName": "Jane Cruz"})

        result = await set_application_status_with_note(
            store, borrower_id="B1", application_id="A1", status="Approve", actor_user_id="U1",
        )

        assert result["status"] == "Approve"
        assert result["statusUpdatedByName"] == "Jane Cruz"
        assert result["note"]["note"] == "Status set to Approve."
        data = (await store.get("borrowers/B1/application/A1")).data
        assert data["status"] == "Approve"
        assert data["statusUpdatedByUserId"] == "U1"
        note = (await store.get(f"borrowers/B1/notes/{result['note']['noteId']}")).data
        assert note["applicationId"] == "A1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["approve", "Pending", None])
    async def test_rejects_unknown_status(self, status):
        store = AsyncMock(spec=DocumentStore)
        with pytest.raises(ValidationError, match="Status must be a valid value."):
            await set_application_status_with_note(
                store, borrower_id="B1", application_id="A1", status=status,
            )
        store.commit.assert_not_called()


class TestGetApplication:

    @pytest.mark.asyncio
    async def test_returns_document(self, store):
        await store.set("borrowers/B1/application/A1", {"status": "Reviewed"})
        assert await get_application(store, "B1", "A1") == {"applicationId": "A1", "status": "Reviewed"}

    @pytest.mark.asyncio
    async def test_missing(self, store):
        with pytest.raises(NotFoundError):
            await get_application(store, "B1", "nope")

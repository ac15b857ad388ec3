"""API tests for loan approval and the loan notes endpoints."""

from unittest.mock import AsyncMock, patch

import pytest

from borrowerdesk.services.errors import StoreError

from tests.support import read, seed

APPROVE = "/api/borrowers/B1/application/A1/approve"
LOANS = "/api/loans"

APPROVAL_BODY = {
    "loanAmount": 15000,
    "loanInterest": 3,
    "termMonths": 12,
    "approvedAt": "2024-05-01T08:00:00.000Z",
    "actorName": "Jane Cruz",
}


@pytest.fixture
def approvable(store):
    seed(store, "borrowers/B1", {"fullName": "Ana Reyes", "primaryBranchId": "BR-1"})
    seed(store, "borrowers/B1/application/A1", {"status": "Reviewed"})


class TestApproveApplication:

    def test_approves_once(self, client, store, approvable):
        resp = client.post(APPROVE, json=APPROVAL_BODY)
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "Approved"
        assert body["statusUpdatedByName"] == "Jane Cruz"
        assert body["note"]["note"] == "Status set to Approved."
        assert read(store, f"loans/{body['loanId']}")["principalAmount"] == 1500000
        assert read(store, "borrowers/B1/application/A1")["status"] == "Approved"

        resp = client.post(APPROVE, json=APPROVAL_BODY)
        assert resp.status_code == 409
        assert resp.json() == {"error": "Loan already exists for this application."}

    @pytest.mark.parametrize("field, value", [
        ("loanAmount", "15000"),
        ("loanInterest", None),
        ("termMonths", True),
        ("approvedAt", 20240501),
    ])
    def test_missing_required_fields(self, client, approvable, field, value):
        resp = client.post(APPROVE, json={**APPROVAL_BODY, field: value})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing required approval fields."}

    def test_invalid_values(self, client, approvable):
        resp = client.post(APPROVE, json={**APPROVAL_BODY, "loanAmount": 0})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Loan amount must be greater than 0."}

        resp = client.post(APPROVE, json={**APPROVAL_BODY, "approvedAt": "soon"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Approval date is invalid."}

    def test_unknown_application(self, client, store):
        seed(store, "borrowers/B1", {"primaryBranchId": "BR-1"})
        resp = client.post(APPROVE, json=APPROVAL_BODY)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Application record not found."}

    def test_store_failure_is_generic(self, client, store, approvable):
        with patch.object(store, "commit", AsyncMock(side_effect=StoreError("quota exceeded"))):
            resp = client.post(APPROVE, json=APPROVAL_BODY)
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to approve loan."}


class TestLoanNotes:

    @pytest.mark.parametrize("method, path", [
        ("get", f"{LOANS}/L1/notes"),
        ("post", f"{LOANS}/L1/notes"),
        ("patch", f"{LOANS}/L1/notes/N1"),
    ])
    def test_requires_session(self, client, method, path):
        resp = getattr(client, method)(path)
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized."}

    def test_create_list_and_toggle(self, staff_client, store):
        resp = staff_client.post(f"{LOANS}/L1/notes", json={
            "note": " Promised to pay Friday. ",
            "borrowerId": "B1",
            "createdByUserId": "staff-1",
        })
        assert resp.status_code == 200
        created = resp.json()["note"]
        assert created["loanId"] == "L1"
        assert created["createdByName"] == "Jane Cruz"

        resp = staff_client.patch(f"{LOANS}/L1/notes/{created['noteId']}", json={"callActive": True})
        assert resp.status_code == 200
        assert resp.json()["note"]["callActive"] is True

        resp = staff_client.get(f"{LOANS}/L1/notes")
        assert resp.status_code == 200
        notes = resp.json()["notes"]
        assert [note["noteId"] for note in notes] == [created["noteId"]]
        assert notes[0]["note"] == "Promised to pay Friday."
        assert notes[0]["callActive"] is True

    def test_empty_note(self, staff_client):
        resp = staff_client.post(f"{LOANS}/L1/notes", json={"note": " "})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Note cannot be empty."}

    def test_update_without_flags(self, staff_client):
        resp = staff_client.patch(f"{LOANS}/L1/notes/N1", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing update fields."}

    def test_update_missing_note(self, staff_client):
        resp = staff_client.patch(f"{LOANS}/L1/notes/ghost", json={"isActive": False})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Loan note not found."}

    def test_store_failure_is_generic(self, staff_client, store):
        with patch.object(store, "query", AsyncMock(side_effect=StoreError("down"))):
            resp = staff_client.get(f"{LOANS}/L1/notes")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Unable to load loan notes."}

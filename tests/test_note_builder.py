"""Tests for the pure note-record helpers."""

from borrowerdesk.services.note_builder import (
    UNKNOWN_STAFF,
    build_note_record,
    sanitize_name,
    sanitize_note,
)


class TestSanitizeName:

    def test_trims_surrounding_whitespace(self):
        assert sanitize_name("  Jane  ") == "Jane"

    def test_missing_name_falls_back(self):
        assert sanitize_name() == UNKNOWN_STAFF
        assert sanitize_name(None) == "Unknown staff"

    def test_blank_name_falls_back(self):
        assert sanitize_name("   ") == UNKNOWN_STAFF

    def test_non_string_falls_back(self):
        assert sanitize_name(42) == UNKNOWN_STAFF


class TestSanitizeNote:

    def test_trims(self):
        assert sanitize_note("  Called borrower.\n") == "Called borrower."

    def test_empty_result_is_allowed(self):
        assert sanitize_note("   ") == ""


class TestBuildNoteRecord:

    def test_minimal_record(self):
        record = build_note_record(note_id="N1", note=" hello ", created_at="2024-01-01T00:00:00+00:00")
        assert record == {
            "noteId": "N1",
            "note": "hello",
            "createdAt": "2024-01-01T00:00:00+00:00",
            "createdByName": "Unknown staff",
        }

    def test_no_none_values_are_written(self):
        record = build_note_record(
            note_id="N1",
            note="x",
            created_at="t",
            application_id=None,
            created_by_user_id="",
            is_active=None,
        )
        assert None not in record.values()
        assert "applicationId" not in record
        assert "createdByUserId" not in record
        assert "isActive" not in record

    def test_optional_fields_included_when_given(self):
        record = build_note_record(
            note_id="N1",
            note="x",
            created_at="t",
            borrower_id="B1",
            application_id="APP-1",
            type="call",
            created_by_name="  Jane  ",
            created_by_user_id="U1",
            is_active=True,
            call_active=False,
            message_active=True,
            is_seen=False,
        )
        assert record["borrowerId"] == "B1"
        assert record["applicationId"] == "APP-1"
        assert record["type"] == "call"
        assert record["createdByName"] == "Jane"
        assert record["createdByUserId"] == "U1"
        assert record["isActive"] is True
        assert record["callActive"] is False
        assert record["messageActive"] is True
        assert record["isSeen"] is False

    def test_non_bool_flags_are_dropped(self):
        record = build_note_record(note_id="N1", note="x", created_at="t", is_active="yes", call_active=1)
        assert "isActive" not in record
        assert "callActive" not in record

"""Tests for the lenient request payload schemas."""

import math

from borrowerdesk.schemas import (
    KycDecisionPayload,
    KycMissingPayload,
    ManualChecksPayload,
    NoteCreatePayload,
    NoteFlagsPayload,
)


class TestLenientFields:
    """Values of the wrong type read as missing instead of failing validation."""

    def test_number_accepts_int_and_float(self):
        assert KycMissingPayload.model_validate({"kycMissingCount": 4}).kyc_missing_count == 4
        assert KycMissingPayload.model_validate({"kycMissingCount": 2.5}).kyc_missing_count == 2.5

    def test_number_keeps_infinity_for_the_service_to_reject(self):
        payload = KycMissingPayload.model_validate({"kycMissingCount": math.inf})
        assert payload.kyc_missing_count == math.inf

    def test_number_rejects_bool_and_string(self):
        assert KycMissingPayload.model_validate({"kycMissingCount": True}).kyc_missing_count is None
        assert KycMissingPayload.model_validate({"kycMissingCount": "4"}).kyc_missing_count is None

    def test_string_fields(self):
        payload = KycDecisionPayload.model_validate({
            "applicationId": 12, "action": "approve", "documentType": "Payslip",
        })
        assert payload.application_id is None
        assert payload.action == "approve"
        assert payload.document_type == "Payslip"

    def test_list_field(self):
        assert ManualChecksPayload.model_validate({"manualVerified": ["a"]}).manual_verified == ["a"]
        assert ManualChecksPayload.model_validate({"manualVerified": "a"}).manual_verified is None

    def test_unknown_fields_ignored(self):
        payload = NoteCreatePayload.model_validate({"note": "hi", "createdAt": "yesterday"})
        assert payload.note == "hi"


class TestNoteFlagsPayload:

    def test_only_boolean_flags_are_provided(self):
        payload = NoteFlagsPayload.model_validate({
            "isActive": False, "callActive": "true", "messageActive": True,
        })
        assert payload.provided_flags() == {"isActive": False, "messageActive": True}

    def test_no_flags(self):
        assert NoteFlagsPayload.model_validate({}).provided_flags() == {}

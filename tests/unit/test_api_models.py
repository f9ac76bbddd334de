"""
Unit tests for API request/response models.

Tests Pydantic model validation for the registration endpoints.
"""

import base64

import pytest
from pydantic import ValidationError

from src.api.models import (
    CodeVerifyRequest,
    EmergencyContactRequest,
    ImageUploadRequest,
    PersonUpdateRequest,
    RegistrationStatusResponse,
)


class TestPersonUpdateRequest:
    """Tests for PersonUpdateRequest model."""

    def test_partial_update_keeps_only_sent_fields(self) -> None:
        request = PersonUpdateRequest(full_name="Thandi Mokoena")
        assert request.model_dump(exclude_unset=True) == {"full_name": "Thandi Mokoena"}

    def test_explicit_null_is_kept(self) -> None:
        """Sending null clears a field rather than ignoring it."""
        request = PersonUpdateRequest.model_validate({"email": None})
        assert request.model_dump(exclude_unset=True) == {"email": None}

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PersonUpdateRequest.model_validate({"password": "x"})


class TestEmergencyContactRequest:
    """Tests for EmergencyContactRequest model."""

    def test_all_fields_optional(self) -> None:
        assert EmergencyContactRequest().model_dump(exclude_unset=True) == {}

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EmergencyContactRequest.model_validate({"nickname": "x"})


class TestCodeVerifyRequest:
    """Tests for CodeVerifyRequest model."""

    def test_six_digit_code(self) -> None:
        assert CodeVerifyRequest(code="012345").code == "012345"

    @pytest.mark.parametrize("code", ["123", "12345678901", "12a456", ""])
    def test_malformed_codes_rejected(self, code: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            CodeVerifyRequest(code=code)
        assert "code" in str(exc_info.value)


class TestImageUploadRequest:
    """Tests for ImageUploadRequest model."""

    def test_base64_decoded(self) -> None:
        encoded = base64.b64encode(b"\x89PNG-data").decode()
        assert ImageUploadRequest(image=encoded).image == b"\x89PNG-data"

    def test_missing_image_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ImageUploadRequest()  # type: ignore[call-arg]


class TestRegistrationStatusResponse:
    """Tests for RegistrationStatusResponse model."""

    def test_progress_bounded(self) -> None:
        with pytest.raises(ValidationError):
            RegistrationStatusResponse(
                registration_id="r", state="EMPTY", progress=1.5, missing=[], phone_verified=False
            )

"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime

from pydantic import Base64Bytes, BaseModel, ConfigDict, Field


class PersonUpdateRequest(BaseModel):
    """Request model for updating one or more personal fields."""

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = None
    id_number: str | None = None
    email: str | None = None
    phone_number: str | None = None
    address: str | None = None


class EmergencyContactRequest(BaseModel):
    """Request model for setting fields of one emergency contact."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    id_number: str | None = None
    phone_number: str | None = None
    relationship: str | None = None


class RegistrationStatusResponse(BaseModel):
    """Derived state of a registration."""

    registration_id: str
    state: str
    progress: float = Field(..., ge=0.0, le=1.0)
    missing: list[str]
    phone_verified: bool
    document_id: str | None = None
    biometric_status: str | None = None


class CodeRequestResponse(BaseModel):
    """Response model for an issued phone code. Never carries the code."""

    message: str
    phone_number: str
    expires_at: datetime
    expires_in_seconds: int


class CodeVerifyRequest(BaseModel):
    """Request model for confirming a phone code."""

    code: str = Field(
        ...,
        min_length=4,
        max_length=10,
        pattern=r"^[0-9]+$",
        description="Numeric verification code received by SMS",
    )


class CodeVerifyResponse(BaseModel):
    """Outcome of a code confirmation (mismatch is not an error)."""

    result: str
    phone_verified: bool


class ImageUploadRequest(BaseModel):
    """Request model carrying a base64-encoded image."""

    image: Base64Bytes = Field(..., description="Base64-encoded image bytes")


class DocumentResponse(BaseModel):
    """Response model for a captured identity document."""

    document_id: str
    size_bytes: int
    captured_at: datetime


class VerdictResponse(BaseModel):
    """Biometric verdict for the current document."""

    status: str
    document_id: str
    confidence: float | None = None


class SubmitResponse(BaseModel):
    """Response model for a finalized registration."""

    message: str
    registration_id: str
    submitted_at: datetime


class IncompleteDetail(BaseModel):
    """Every unmet submission requirement."""

    message: str
    missing: list[str]


class IncompleteResponse(BaseModel):
    """Error response for a submission that is not ready."""

    detail: IncompleteDetail


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str

"""
Domain value objects for the registration workflow.

All records are frozen dataclasses; the aggregate replaces them
rather than mutating them in place.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime

from .ports import CodeState, VerdictStatus

ImagePayload = bytes | str


@dataclass(frozen=True)
class PersonRecord:
    """Personal data captured during registration."""

    full_name: str = ""
    id_number: str = ""
    email: str = ""
    phone_number: str = ""
    address: str = ""

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def is_empty(self) -> bool:
        return not any(getattr(self, name).strip() for name in self.field_names())


@dataclass(frozen=True)
class EmergencyContact:
    """One of the two mandatory emergency contacts."""

    name: str = ""
    id_number: str = ""
    phone_number: str = ""
    relationship: str = ""

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @property
    def is_complete(self) -> bool:
        """All four fields are non-blank."""
        return all(getattr(self, name).strip() for name in self.field_names())

    def is_empty(self) -> bool:
        return not any(getattr(self, name).strip() for name in self.field_names())


@dataclass(frozen=True)
class VerificationCode:
    """Stored one-time code. Only the bcrypt hash of the value is kept."""

    code_id: str
    phone_number: str
    code_hash: str
    issued_at: datetime
    expires_at: datetime
    state: CodeState = CodeState.ISSUED
    attempts: int = 0


@dataclass(frozen=True)
class CodeHandle:
    """Caller-facing receipt for an issued code. Never carries the value."""

    code_id: str
    phone_number: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class DocumentRecord:
    """Captured identity document. Replacing it creates a new record."""

    document_id: str
    image: ImagePayload | None = field(repr=False, compare=False)
    size_bytes: int
    digest: str
    captured_at: datetime

    def without_image(self) -> "DocumentRecord":
        """Audit copy that keeps the id and digest but drops the payload."""
        return replace(self, image=None)


@dataclass(frozen=True)
class MatchOutcome:
    """Raw result reported by a biometric matcher."""

    verified: bool
    confidence: float | None = None


@dataclass(frozen=True)
class BiometricVerdict:
    """Biometric comparison result bound to one document version."""

    status: VerdictStatus
    document_id: str
    attempt_id: str
    decided_at: datetime
    confidence: float | None = None

    def is_bound_to(self, document: DocumentRecord | None) -> bool:
        return document is not None and document.document_id == self.document_id


@dataclass(frozen=True)
class RegistrationSnapshot:
    """Immutable view of a registration handed to persistence on submit."""

    registration_id: str
    person: PersonRecord
    primary_contact: EmergencyContact
    secondary_contact: EmergencyContact
    verified_phone_number: str
    document_id: str
    document_digest: str
    document_captured_at: datetime
    verdict: BiometricVerdict
    document_history: tuple[str, ...]
    created_at: datetime
    submitted_at: datetime

    def to_dict(self) -> dict:
        """Plain JSON-compatible representation."""
        return {
            "registration_id": self.registration_id,
            "person": {name: getattr(self.person, name) for name in PersonRecord.field_names()},
            "emergency_contacts": {
                "primary": _contact_dict(self.primary_contact),
                "secondary": _contact_dict(self.secondary_contact),
            },
            "verified_phone_number": self.verified_phone_number,
            "document": {
                "document_id": self.document_id,
                "digest": self.document_digest,
                "captured_at": self.document_captured_at.isoformat(),
                "history": list(self.document_history),
            },
            "biometric": {
                "status": self.verdict.status.value,
                "document_id": self.verdict.document_id,
                "confidence": self.verdict.confidence,
                "decided_at": self.verdict.decided_at.isoformat(),
            },
            "created_at": self.created_at.isoformat(),
            "submitted_at": self.submitted_at.isoformat(),
        }


def _contact_dict(contact: EmergencyContact) -> dict:
    return {name: getattr(contact, name) for name in EmergencyContact.field_names()}

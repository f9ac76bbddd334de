"""
Registration aggregate - the single consistency boundary of a registration.

Every completion check is a derived predicate recomputed from the current
fields; nothing here caches "done" flags. In particular phone-verified is
true only while the recorded phone number equals the number whose code
was consumed, and a biometric verdict only counts while it is bound to
the current document.

The aggregate is not thread-safe. RegistrationWorkflow serializes access.
"""

import uuid
from dataclasses import replace
from datetime import datetime

from .exceptions import AlreadySubmitted, DocumentMissing, InvalidField, RegistrationIncomplete
from .models import (
    BiometricVerdict,
    DocumentRecord,
    EmergencyContact,
    MatchOutcome,
    PersonRecord,
    RegistrationSnapshot,
)
from .ports import ContactSlot, RegistrationState, Requirement, VerdictStatus
from .verification import strip_phone_separators

PROGRESS_GROUPS = 4


class RegistrationAggregate:
    """Personal data, emergency contacts and verification results of one user."""

    def __init__(self, created_at: datetime, registration_id: str | None = None) -> None:
        self.registration_id = registration_id or uuid.uuid4().hex
        self.created_at = created_at
        self._person = PersonRecord()
        self._contacts = {slot: EmergencyContact() for slot in ContactSlot}
        self._verified_phone: str | None = None
        self._document: DocumentRecord | None = None
        self._document_history: list[str] = []
        self._verdict: BiometricVerdict | None = None
        self._submitted_at: datetime | None = None

    # -- read side ---------------------------------------------------------

    @property
    def person(self) -> PersonRecord:
        return self._person

    def contact(self, slot: ContactSlot) -> EmergencyContact:
        return self._contacts[ContactSlot(slot)]

    @property
    def document(self) -> DocumentRecord | None:
        return self._document

    @property
    def document_history(self) -> tuple[str, ...]:
        return tuple(self._document_history)

    @property
    def verdict(self) -> BiometricVerdict | None:
        return self._verdict

    @property
    def submitted_at(self) -> datetime | None:
        return self._submitted_at

    @property
    def is_submitted(self) -> bool:
        return self._submitted_at is not None

    @property
    def phone_verified(self) -> bool:
        if self._verified_phone is None:
            return False
        return strip_phone_separators(self._person.phone_number) == self._verified_phone

    @property
    def biometric_verified(self) -> bool:
        verdict = self._verdict
        return (
            verdict is not None
            and verdict.status == VerdictStatus.VERIFIED
            and verdict.is_bound_to(self._document)
        )

    def missing_requirements(self) -> tuple[Requirement, ...]:
        """Every unmet submission requirement, in checklist order."""
        person = self._person
        missing = []
        if not person.full_name.strip():
            missing.append(Requirement.FULL_NAME)
        if not person.id_number.strip():
            missing.append(Requirement.ID_NUMBER)
        if not person.phone_number.strip():
            missing.append(Requirement.PHONE_NUMBER)
        if not self.phone_verified:
            missing.append(Requirement.PHONE_VERIFIED)
        if not self._contacts[ContactSlot.PRIMARY].is_complete:
            missing.append(Requirement.PRIMARY_CONTACT)
        if not self._contacts[ContactSlot.SECONDARY].is_complete:
            missing.append(Requirement.SECONDARY_CONTACT)
        if self._document is None:
            missing.append(Requirement.DOCUMENT)
        if not self.biometric_verified:
            missing.append(Requirement.BIOMETRIC)
        return tuple(missing)

    @property
    def state(self) -> RegistrationState:
        if self.is_submitted:
            return RegistrationState.SUBMITTED
        if not self.missing_requirements():
            return RegistrationState.READY_TO_SUBMIT
        if self._is_blank():
            return RegistrationState.EMPTY
        return RegistrationState.IN_PROGRESS

    @property
    def progress(self) -> float:
        """
        Fraction of the four gating groups satisfied.

        Groups: personal info with verified phone, both emergency
        contacts, document present, biometric verified.
        """
        missing = set(self.missing_requirements())
        groups = (
            {
                Requirement.FULL_NAME,
                Requirement.ID_NUMBER,
                Requirement.PHONE_NUMBER,
                Requirement.PHONE_VERIFIED,
            },
            {Requirement.PRIMARY_CONTACT, Requirement.SECONDARY_CONTACT},
            {Requirement.DOCUMENT},
            {Requirement.BIOMETRIC},
        )
        satisfied = sum(1 for group in groups if not group & missing)
        return satisfied / PROGRESS_GROUPS

    def _is_blank(self) -> bool:
        return (
            self._person.is_empty()
            and all(c.is_empty() for c in self._contacts.values())
            and self._verified_phone is None
            and self._document is None
            and self._verdict is None
        )

    # -- write side --------------------------------------------------------

    def set_person_field(self, name: str, value: str) -> None:
        self._ensure_mutable()
        if name not in PersonRecord.field_names():
            raise InvalidField(name)
        self._person = replace(self._person, **{name: _text(name, value)})

    def set_emergency_contact(self, slot: ContactSlot, **values: str) -> None:
        """Replace the given fields of one contact; omitted fields are kept."""
        self._ensure_mutable()
        slot = ContactSlot(slot)
        unknown = set(values) - set(EmergencyContact.field_names())
        if unknown:
            raise InvalidField(", ".join(sorted(unknown)))
        cleaned = {name: _text(name, value) for name, value in values.items()}
        self._contacts[slot] = replace(self._contacts[slot], **cleaned)

    def record_phone_verified(self, phone_number: str) -> None:
        """Mark the (normalized) number whose code was just consumed."""
        self._ensure_mutable()
        self._verified_phone = strip_phone_separators(phone_number)

    def replace_document(self, document: DocumentRecord) -> None:
        """Make document current; any verdict for the previous one is dropped."""
        self._ensure_mutable()
        self._document = document
        self._document_history.append(document.document_id)
        self._verdict = None

    def begin_biometric(self, now: datetime) -> BiometricVerdict:
        """Start a comparison against the current document with a PENDING verdict."""
        self._ensure_mutable()
        if self._document is None:
            raise DocumentMissing(self.registration_id)
        self._verdict = BiometricVerdict(
            status=VerdictStatus.PENDING,
            document_id=self._document.document_id,
            attempt_id=uuid.uuid4().hex,
            decided_at=now,
        )
        return self._verdict

    def resolve_biometric(
        self, attempt_id: str, outcome: MatchOutcome, now: datetime
    ) -> BiometricVerdict | None:
        """
        Apply a matcher outcome to the pending attempt.

        Returns:
            The decided verdict, or None if the attempt is no longer the
            pending one for the current document (stale result)
        """
        if not self._is_pending_attempt(attempt_id):
            return None
        self._verdict = replace(
            self._verdict,
            status=VerdictStatus.VERIFIED if outcome.verified else VerdictStatus.FAILED,
            confidence=outcome.confidence,
            decided_at=now,
        )
        return self._verdict

    def abandon_biometric(self, attempt_id: str) -> None:
        """Drop a pending verdict whose comparison will never complete."""
        if self._is_pending_attempt(attempt_id):
            self._verdict = None

    def mark_submitted(self, now: datetime) -> None:
        self._ensure_mutable()
        self._submitted_at = now

    def snapshot(self, submitted_at: datetime) -> RegistrationSnapshot:
        """Immutable copy for persistence. Only valid once nothing is missing."""
        missing = self.missing_requirements()
        if missing:
            raise RegistrationIncomplete(missing)
        document = self._document
        return RegistrationSnapshot(
            registration_id=self.registration_id,
            person=self._person,
            primary_contact=self._contacts[ContactSlot.PRIMARY],
            secondary_contact=self._contacts[ContactSlot.SECONDARY],
            verified_phone_number=self._verified_phone,
            document_id=document.document_id,
            document_digest=document.digest,
            document_captured_at=document.captured_at,
            verdict=self._verdict,
            document_history=tuple(self._document_history),
            created_at=self.created_at,
            submitted_at=submitted_at,
        )

    def _is_pending_attempt(self, attempt_id: str) -> bool:
        verdict = self._verdict
        return (
            not self.is_submitted
            and verdict is not None
            and verdict.attempt_id == attempt_id
            and verdict.status == VerdictStatus.PENDING
            and verdict.is_bound_to(self._document)
        )

    def _ensure_mutable(self) -> None:
        if self.is_submitted:
            raise AlreadySubmitted(self.registration_id)


def _text(name: str, value: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidField(f"{name} must be a string")
    return value

"""
Unit tests for RegistrationAggregate.

Tests the derived predicates that gate submission:
- Missing requirement enumeration
- Progress projection over the four groups
- Phone-verified binding to the current number
- Verdict binding to the current document
- Immutability after submission
"""

from datetime import datetime, timezone

import pytest

from src.domain.aggregate import RegistrationAggregate
from src.domain.exceptions import (
    AlreadySubmitted,
    DocumentMissing,
    InvalidField,
    RegistrationIncomplete,
)
from src.domain.models import DocumentRecord, MatchOutcome
from src.domain.ports import ContactSlot, RegistrationState, Requirement, VerdictStatus

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)
CONTACT = {
    "name": "Sipho Mokoena",
    "id_number": "6502025009081",
    "phone_number": "0831112222",
    "relationship": "Father",
}


def document(document_id: str) -> DocumentRecord:
    return DocumentRecord(
        document_id=document_id, image=b"img", size_bytes=3, digest="d", captured_at=NOW
    )


def verified(aggregate: RegistrationAggregate) -> None:
    pending = aggregate.begin_biometric(NOW)
    aggregate.resolve_biometric(pending.attempt_id, MatchOutcome(verified=True, confidence=0.9), NOW)


def complete(aggregate: RegistrationAggregate) -> RegistrationAggregate:
    aggregate.set_person_field("full_name", "Thandi Mokoena")
    aggregate.set_person_field("id_number", "9001015009087")
    aggregate.set_person_field("phone_number", "0821234567")
    aggregate.record_phone_verified("0821234567")
    aggregate.set_emergency_contact(ContactSlot.PRIMARY, **CONTACT)
    aggregate.set_emergency_contact(ContactSlot.SECONDARY, **CONTACT)
    aggregate.replace_document(document("doc-1"))
    verified(aggregate)
    return aggregate


@pytest.fixture
def aggregate() -> RegistrationAggregate:
    return RegistrationAggregate(created_at=NOW)


class TestState:
    """Tests for the computed registration state."""

    def test_new_aggregate_is_empty(self, aggregate: RegistrationAggregate) -> None:
        assert aggregate.state == RegistrationState.EMPTY
        assert aggregate.progress == 0.0

    def test_any_input_moves_to_in_progress(self, aggregate: RegistrationAggregate) -> None:
        aggregate.set_person_field("email", "thandi@example.com")

        assert aggregate.state == RegistrationState.IN_PROGRESS

    def test_blank_input_keeps_empty(self, aggregate: RegistrationAggregate) -> None:
        """Whitespace is not information."""
        aggregate.set_person_field("full_name", "   ")

        assert aggregate.state == RegistrationState.EMPTY

    def test_complete_is_ready(self, aggregate: RegistrationAggregate) -> None:
        complete(aggregate)

        assert aggregate.state == RegistrationState.READY_TO_SUBMIT
        assert aggregate.missing_requirements() == ()
        assert aggregate.progress == 1.0

    def test_submitted_is_terminal(self, aggregate: RegistrationAggregate) -> None:
        complete(aggregate).mark_submitted(NOW)

        assert aggregate.state == RegistrationState.SUBMITTED


class TestMissingRequirements:
    """Tests for requirement enumeration."""

    def test_empty_lists_everything(self, aggregate: RegistrationAggregate) -> None:
        assert aggregate.missing_requirements() == tuple(Requirement)

    def test_partial_contact_not_complete(self, aggregate: RegistrationAggregate) -> None:
        """A contact needs all four fields, relationship included."""
        aggregate.set_emergency_contact(
            ContactSlot.PRIMARY, name="A", id_number="1", phone_number="0831112222"
        )

        assert Requirement.PRIMARY_CONTACT in aggregate.missing_requirements()

    def test_contact_fields_accumulate(self, aggregate: RegistrationAggregate) -> None:
        """Fields set in separate calls combine into one contact."""
        aggregate.set_emergency_contact(ContactSlot.SECONDARY, name="B", relationship="Aunt")
        aggregate.set_emergency_contact(ContactSlot.SECONDARY, id_number="2", phone_number="084")

        assert aggregate.contact(ContactSlot.SECONDARY).is_complete
        assert Requirement.SECONDARY_CONTACT not in aggregate.missing_requirements()

    def test_unknown_contact_field_rejected(self, aggregate: RegistrationAggregate) -> None:
        with pytest.raises(InvalidField):
            aggregate.set_emergency_contact(ContactSlot.PRIMARY, nickname="x")

    def test_unknown_person_field_rejected(self, aggregate: RegistrationAggregate) -> None:
        with pytest.raises(InvalidField):
            aggregate.set_person_field("password", "x")

    def test_email_and_address_optional(self, aggregate: RegistrationAggregate) -> None:
        complete(aggregate)

        assert aggregate.person.email == ""
        assert aggregate.person.address == ""
        assert aggregate.state == RegistrationState.READY_TO_SUBMIT


class TestPhoneVerified:
    """Tests for the derived phone-verified predicate."""

    def test_bound_to_current_number(self, aggregate: RegistrationAggregate) -> None:
        aggregate.set_person_field("phone_number", "082 123 4567")
        aggregate.record_phone_verified("0821234567")

        assert aggregate.phone_verified is True

    def test_changing_number_invalidates(self, aggregate: RegistrationAggregate) -> None:
        aggregate.set_person_field("phone_number", "0821234567")
        aggregate.record_phone_verified("0821234567")

        aggregate.set_person_field("phone_number", "0739876543")

        assert aggregate.phone_verified is False
        assert Requirement.PHONE_VERIFIED in aggregate.missing_requirements()

    def test_cleared_number_invalidates(self, aggregate: RegistrationAggregate) -> None:
        aggregate.set_person_field("phone_number", "0821234567")
        aggregate.record_phone_verified("0821234567")

        aggregate.set_person_field("phone_number", "")

        assert aggregate.phone_verified is False


class TestBiometricBinding:
    """Tests for verdict binding to the current document."""

    def test_begin_requires_document(self, aggregate: RegistrationAggregate) -> None:
        with pytest.raises(DocumentMissing):
            aggregate.begin_biometric(NOW)

    def test_pending_does_not_count(self, aggregate: RegistrationAggregate) -> None:
        aggregate.replace_document(document("doc-1"))
        pending = aggregate.begin_biometric(NOW)

        assert pending.status == VerdictStatus.PENDING
        assert aggregate.biometric_verified is False

    def test_failed_outcome(self, aggregate: RegistrationAggregate) -> None:
        aggregate.replace_document(document("doc-1"))
        pending = aggregate.begin_biometric(NOW)

        verdict = aggregate.resolve_biometric(pending.attempt_id, MatchOutcome(False, 0.2), NOW)

        assert verdict.status == VerdictStatus.FAILED
        assert verdict.confidence == 0.2

    def test_new_document_drops_verdict(self, aggregate: RegistrationAggregate) -> None:
        """Re-upload after VERIFIED resets readiness."""
        complete(aggregate)

        aggregate.replace_document(document("doc-2"))

        assert aggregate.verdict is None
        assert aggregate.state == RegistrationState.IN_PROGRESS
        assert aggregate.missing_requirements() == (Requirement.BIOMETRIC,)
        assert aggregate.document_history == ("doc-1", "doc-2")

    def test_stale_outcome_ignored(self, aggregate: RegistrationAggregate) -> None:
        """An outcome for a replaced document is not applied."""
        aggregate.replace_document(document("doc-1"))
        pending = aggregate.begin_biometric(NOW)
        aggregate.replace_document(document("doc-2"))

        assert aggregate.resolve_biometric(pending.attempt_id, MatchOutcome(True), NOW) is None
        assert aggregate.verdict is None

    def test_outcome_for_older_attempt_ignored(self, aggregate: RegistrationAggregate) -> None:
        aggregate.replace_document(document("doc-1"))
        first = aggregate.begin_biometric(NOW)
        second = aggregate.begin_biometric(NOW)

        assert aggregate.resolve_biometric(first.attempt_id, MatchOutcome(True), NOW) is None
        assert aggregate.verdict == second

    def test_abandon_clears_only_own_attempt(self, aggregate: RegistrationAggregate) -> None:
        aggregate.replace_document(document("doc-1"))
        first = aggregate.begin_biometric(NOW)
        second = aggregate.begin_biometric(NOW)

        aggregate.abandon_biometric(first.attempt_id)
        assert aggregate.verdict == second

        aggregate.abandon_biometric(second.attempt_id)
        assert aggregate.verdict is None


class TestProgress:
    """Tests for the progress projection."""

    def test_each_group_is_a_quarter(self, aggregate: RegistrationAggregate) -> None:
        aggregate.replace_document(document("doc-1"))
        assert aggregate.progress == 0.25

        verified(aggregate)
        assert aggregate.progress == 0.5

        aggregate.set_emergency_contact(ContactSlot.PRIMARY, **CONTACT)
        assert aggregate.progress == 0.5
        aggregate.set_emergency_contact(ContactSlot.SECONDARY, **CONTACT)
        assert aggregate.progress == 0.75

    def test_personal_group_needs_verified_phone(self, aggregate: RegistrationAggregate) -> None:
        aggregate.set_person_field("full_name", "Thandi Mokoena")
        aggregate.set_person_field("id_number", "9001015009087")
        aggregate.set_person_field("phone_number", "0821234567")
        assert aggregate.progress == 0.0

        aggregate.record_phone_verified("0821234567")
        assert aggregate.progress == 0.25

    def test_monotonic_with_more_information(self, aggregate: RegistrationAggregate) -> None:
        """Supplying strictly more never lowers progress."""
        steps = [
            lambda: aggregate.set_person_field("full_name", "Thandi Mokoena"),
            lambda: aggregate.set_person_field("id_number", "9001015009087"),
            lambda: aggregate.set_person_field("phone_number", "0821234567"),
            lambda: aggregate.record_phone_verified("0821234567"),
            lambda: aggregate.set_emergency_contact(ContactSlot.PRIMARY, **CONTACT),
            lambda: aggregate.set_emergency_contact(ContactSlot.SECONDARY, **CONTACT),
            lambda: aggregate.replace_document(document("doc-1")),
            lambda: verified(aggregate),
        ]
        seen = [aggregate.progress]
        for step in steps:
            step()
            seen.append(aggregate.progress)

        assert seen == sorted(seen)
        assert seen[-1] == 1.0

    def test_full_progress_iff_ready(self, aggregate: RegistrationAggregate) -> None:
        complete(aggregate)
        assert (aggregate.progress == 1.0) == (aggregate.state == RegistrationState.READY_TO_SUBMIT)

        aggregate.set_person_field("id_number", "")
        assert aggregate.progress < 1.0
        assert aggregate.state != RegistrationState.READY_TO_SUBMIT


class TestImmutability:
    """Tests for immutability after submission."""

    def test_mutators_rejected_after_submit(self, aggregate: RegistrationAggregate) -> None:
        complete(aggregate).mark_submitted(NOW)

        with pytest.raises(AlreadySubmitted):
            aggregate.set_person_field("full_name", "Someone Else")
        with pytest.raises(AlreadySubmitted):
            aggregate.set_emergency_contact(ContactSlot.PRIMARY, name="X")
        with pytest.raises(AlreadySubmitted):
            aggregate.replace_document(document("doc-2"))
        with pytest.raises(AlreadySubmitted):
            aggregate.mark_submitted(NOW)

    def test_snapshot_carries_everything(self, aggregate: RegistrationAggregate) -> None:
        snapshot = complete(aggregate).snapshot(NOW)

        assert snapshot.registration_id == aggregate.registration_id
        assert snapshot.verified_phone_number == "0821234567"
        assert snapshot.document_id == "doc-1"
        assert snapshot.verdict.status == VerdictStatus.VERIFIED
        data = snapshot.to_dict()
        assert data["emergency_contacts"]["primary"]["relationship"] == "Father"
        assert data["biometric"]["status"] == "VERIFIED"

    def test_snapshot_refused_while_incomplete(self, aggregate: RegistrationAggregate) -> None:
        aggregate.set_person_field("full_name", "Thandi Mokoena")

        with pytest.raises(RegistrationIncomplete) as exc_info:
            aggregate.snapshot(NOW)

        assert Requirement.BIOMETRIC in exc_info.value.missing

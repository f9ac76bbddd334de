"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock for expiry tests
- A mocked messaging gateway that captures issued codes
- In-memory stores and a deterministic biometric matcher
- Workflow factories and a helper that drives a registration to ready
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from src.adapters.biometric.static import StaticBiometricMatcher
from src.adapters.repository.memory import InMemoryCodeStore, InMemoryRegistrationRepository
from src.domain.documents import DocumentStore
from src.domain.ports import ContactSlot, VerifyResult
from src.domain.registration import RegistrationWorkflow
from src.domain.verification import ContactVerifier

PHONE = "0821234567"
OTHER_PHONE = "0739876543"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> Mock:
    """Messaging gateway double; the last sent code is in call_args."""
    return Mock()


@pytest.fixture
def code_store() -> InMemoryCodeStore:
    return InMemoryCodeStore()


@pytest.fixture
def verifier(code_store: InMemoryCodeStore, gateway: Mock, clock: FakeClock) -> ContactVerifier:
    """Verifier with the minimum bcrypt cost to keep tests fast."""
    return ContactVerifier(
        store=code_store,
        gateway=gateway,
        code_length=6,
        ttl_seconds=300,
        max_attempts=3,
        min_phone_digits=10,
        hash_rounds=4,
        clock=clock,
    )


@pytest.fixture
def last_code(gateway: Mock):
    """Return a function reading the most recently delivered code."""

    def read() -> str:
        return gateway.send_verification_code.call_args[0][1]

    return read


@pytest.fixture
def script_codes(monkeypatch: pytest.MonkeyPatch):
    """Make every ContactVerifier hand out the given codes in order."""

    def script(*codes: str) -> None:
        values = iter(codes)
        monkeypatch.setattr(ContactVerifier, "_generate_code", lambda self: next(values))

    return script


@pytest.fixture
def matcher() -> StaticBiometricMatcher:
    return StaticBiometricMatcher(verified=True, confidence=0.97)


@pytest.fixture
def repository() -> InMemoryRegistrationRepository:
    return InMemoryRegistrationRepository()


@pytest.fixture
def make_workflow(
    verifier: ContactVerifier,
    matcher: StaticBiometricMatcher,
    repository: InMemoryRegistrationRepository,
    clock: FakeClock,
):
    """Factory for workflows sharing the verifier, matcher and repository."""

    def make() -> RegistrationWorkflow:
        return RegistrationWorkflow(
            verifier=verifier,
            documents=DocumentStore(max_image_bytes=1024, clock=clock),
            matcher=matcher,
            repository=repository,
            clock=clock,
        )

    return make


@pytest.fixture
def workflow(make_workflow) -> RegistrationWorkflow:
    return make_workflow()


@pytest.fixture
def fill_profile(last_code):
    """Drive a workflow through every step so it is ready to submit."""

    def fill(workflow: RegistrationWorkflow) -> RegistrationWorkflow:
        workflow.set_person_field("full_name", "Thandi Mokoena")
        workflow.set_person_field("id_number", "9001015009087")
        workflow.set_person_field("phone_number", PHONE)
        workflow.set_emergency_contact(
            ContactSlot.PRIMARY,
            name="Sipho Mokoena",
            id_number="6502025009081",
            phone_number="0831112222",
            relationship="Father",
        )
        workflow.set_emergency_contact(
            ContactSlot.SECONDARY,
            name="Lerato Dube",
            id_number="9205050123089",
            phone_number="0843334444",
            relationship="Sister",
        )
        workflow.request_phone_code()
        assert workflow.confirm_phone_code(last_code()) == VerifyResult.SUCCESS
        workflow.upload_document(b"id-document-image")
        asyncio.run(workflow.capture_face(b"face-image"))
        return workflow

    return fill


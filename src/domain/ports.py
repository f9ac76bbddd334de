"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the enums shared across the layers.
Adapters implement these protocols.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import (
        DocumentRecord,
        ImagePayload,
        MatchOutcome,
        RegistrationSnapshot,
        VerificationCode,
    )


class CodeState(str, Enum):
    """
    Lifecycle of a one-time verification code.

    State Transitions (forward-only):
    - ISSUED -> CONSUMED   (correct value submitted in time)
    - ISSUED -> EXPIRED    (submitted after expiry)
    - ISSUED -> SUPERSEDED (newer code issued for the same number)
    - ISSUED -> LOCKED     (mismatch cap reached)

    Every state except ISSUED is terminal.
    """

    ISSUED = "ISSUED"
    CONSUMED = "CONSUMED"
    EXPIRED = "EXPIRED"
    SUPERSEDED = "SUPERSEDED"
    LOCKED = "LOCKED"


class VerifyResult(Enum):
    """
    Result of a verification attempt as reported by a code store.

    ContactVerifier returns SUCCESS, MISMATCH and LOCKED to its caller
    and raises for the remaining values.
    """

    SUCCESS = "success"
    MISMATCH = "mismatch"
    LOCKED = "locked"
    EXPIRED = "expired"
    SUPERSEDED = "superseded"
    NOT_FOUND = "not_found"


class VerdictStatus(str, Enum):
    """Outcome of a biometric comparison."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"


class RegistrationState(str, Enum):
    """
    Registration lifecycle, always computed from the aggregate.

    EMPTY -> IN_PROGRESS -> READY_TO_SUBMIT -> SUBMITTED

    Any mutation can move a registration back out of READY_TO_SUBMIT.
    SUBMITTED is terminal.
    """

    EMPTY = "EMPTY"
    IN_PROGRESS = "IN_PROGRESS"
    READY_TO_SUBMIT = "READY_TO_SUBMIT"
    SUBMITTED = "SUBMITTED"


class ContactSlot(str, Enum):
    """Position of an emergency contact in the required pair."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class Requirement(str, Enum):
    """A single condition that must hold before submission."""

    FULL_NAME = "full_name"
    ID_NUMBER = "id_number"
    PHONE_NUMBER = "phone_number"
    PHONE_VERIFIED = "phone_verified"
    PRIMARY_CONTACT = "primary_contact"
    SECONDARY_CONTACT = "secondary_contact"
    DOCUMENT = "document"
    BIOMETRIC = "biometric"


class CodeStore(Protocol):
    """Port interface for one-time code persistence."""

    def issue(self, code: VerificationCode) -> None:
        """
        Store a freshly issued code as the only active code for its number.

        Any ISSUED code for the same phone number must transition to
        SUPERSEDED in the same atomic step, so that no window exists
        where two codes are valid.
        """
        ...

    def consume(
        self, phone_number: str, submitted: str, now: datetime, max_attempts: int
    ) -> VerifyResult:
        """
        Adjudicate a submitted value against the active code.

        Implementations lock the phone number, then apply
        src.domain.verification.adjudicate() and persist its result.

        Return values by scenario:
        - SUCCESS: value matches, code transitions to CONSUMED
        - MISMATCH: value differs, attempt counted, code stays ISSUED
        - LOCKED: mismatch reached max_attempts, code transitions to LOCKED
        - EXPIRED: code past expiry, code transitions to EXPIRED
        - SUPERSEDED: no match, but value belongs to the code the active one
          replaced (only that one code is checked; the attempt is not counted)
        - NOT_FOUND: no ISSUED code for the number
        """
        ...

    def purge(self, before: datetime) -> int:
        """Delete codes that expired before the cutoff. Returns rows removed."""
        ...


class MessagingGateway(Protocol):
    """Port interface for out-of-band code delivery."""

    def send_verification_code(self, phone_number: str, code: str) -> None:
        """
        Deliver the literal code to the phone number.

        Raises:
            MessagingUnavailable: If the gateway cannot deliver
        """
        ...


class BiometricMatcher(Protocol):
    """Port interface for face-to-document comparison."""

    async def compare(
        self, document: DocumentRecord, face_image: ImagePayload
    ) -> MatchOutcome:
        """
        Compare a captured face against an identity document.

        May be slow and must tolerate cancellation.

        Raises:
            MatcherUnavailable: If the capability cannot be reached
        """
        ...


class RegistrationRepository(Protocol):
    """Port interface for finalized registration persistence."""

    def save(self, snapshot: RegistrationSnapshot) -> None:
        """
        Persist a submitted registration.

        Raises:
            RegistrationAlreadyPersisted: If the id was saved before
        """
        ...

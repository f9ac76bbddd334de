"""
Registration workflow - orchestration of the identity-verification steps.

Registration State Machine (computed, never stored)
===================================================

States:
- EMPTY: nothing supplied yet
- IN_PROGRESS: some data supplied, at least one requirement unmet
- READY_TO_SUBMIT: every requirement holds simultaneously
- SUBMITTED: terminal; the aggregate is immutable and persisted

READY_TO_SUBMIT requires phone verified for the current number, a
document, a VERIFIED biometric verdict bound to that document, both
emergency contacts complete, and full name / ID number / phone number.
Later mutations (re-uploading the document, changing the phone number)
move the registration back to IN_PROGRESS.

Concurrency:
- One RLock per workflow serializes every operation on the aggregate.
- The biometric comparison runs as an asyncio.Task outside the lock.
  Re-uploading the document, starting a new capture, cancelling or
  abandoning cancels the running comparison, and a result that no longer
  targets the current document is discarded.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from datetime import datetime

from .aggregate import RegistrationAggregate
from .documents import DocumentStore, validate_image
from .exceptions import (
    AlreadySubmitted,
    ComparisonSuperseded,
    DocumentMissing,
    MatcherUnavailable,
    RegistrationClosed,
    RegistrationIncomplete,
)
from .models import (
    BiometricVerdict,
    CodeHandle,
    DocumentRecord,
    ImagePayload,
    RegistrationSnapshot,
)
from .ports import (
    BiometricMatcher,
    ContactSlot,
    RegistrationRepository,
    RegistrationState,
    Requirement,
    VerifyResult,
)
from .verification import ContactVerifier, utcnow

logger = logging.getLogger(__name__)


class RegistrationWorkflow:
    """
    Single source of truth for whether a registration may be finalized.

    Exposes the operations a caller (UI or API handler) invokes and
    enforces their ordering.
    """

    def __init__(
        self,
        verifier: ContactVerifier,
        documents: DocumentStore,
        matcher: BiometricMatcher,
        repository: RegistrationRepository,
        clock: Callable[[], datetime] = utcnow,
        registration_id: str | None = None,
    ) -> None:
        self._verifier = verifier
        self._documents = documents
        self._matcher = matcher
        self._repository = repository
        self._clock = clock
        self._aggregate = RegistrationAggregate(clock(), registration_id)
        self._lock = threading.RLock()
        self._comparison: asyncio.Task | None = None
        self._closed = False

    @property
    def registration_id(self) -> str:
        return self._aggregate.registration_id

    @property
    def aggregate(self) -> RegistrationAggregate:
        """Read access to the aggregate. Mutate only through the workflow."""
        return self._aggregate

    @property
    def state(self) -> RegistrationState:
        with self._lock:
            return self._aggregate.state

    @property
    def progress(self) -> float:
        with self._lock:
            return self._aggregate.progress

    @property
    def comparison_running(self) -> bool:
        with self._lock:
            return self._comparison is not None and not self._comparison.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def missing_requirements(self) -> tuple[Requirement, ...]:
        with self._lock:
            return self._aggregate.missing_requirements()

    def set_person_field(self, name: str, value: str) -> None:
        with self._lock:
            self._ensure_open()
            self._aggregate.set_person_field(name, value)

    def set_emergency_contact(self, slot: ContactSlot, **values: str) -> None:
        with self._lock:
            self._ensure_open()
            self._aggregate.set_emergency_contact(slot, **values)

    def request_phone_code(self) -> CodeHandle:
        """
        Issue a code for the currently recorded phone number.

        Raises:
            InvalidPhoneNumber: If the recorded number is missing or malformed
            MessagingUnavailable: If the code could not be delivered
        """
        with self._lock:
            self._ensure_open()
            return self._verifier.issue_code(self._aggregate.person.phone_number)

    def confirm_phone_code(self, code: str) -> VerifyResult:
        """
        Verify a code for the currently recorded phone number.

        Returns:
            SUCCESS, MISMATCH or LOCKED

        Raises:
            NoActiveCode, CodeSuperseded, CodeExpired, InvalidPhoneNumber
        """
        with self._lock:
            self._ensure_open()
            phone_number = self._aggregate.person.phone_number
            result = self._verifier.verify_code(phone_number, code)
            if result == VerifyResult.SUCCESS:
                self._aggregate.record_phone_verified(self._verifier.normalize(phone_number))
            return result

    def upload_document(self, image: ImagePayload) -> DocumentRecord:
        """
        Capture a new identity document and make it current.

        Any biometric verdict for the previous document is invalidated and
        a running comparison is cancelled.

        Raises:
            InvalidImage: If the payload fails validation (nothing changes)
        """
        with self._lock:
            self._ensure_open()
            record = self._documents.capture_document(image)
            self._cancel_comparison()
            self._aggregate.replace_document(record)
            return record

    async def capture_face(self, face_image: ImagePayload) -> BiometricVerdict:
        """
        Compare a captured face against the current document.

        The verdict is PENDING while the matcher runs and becomes VERIFIED
        or FAILED when it completes. Retrying after FAILED re-runs the
        comparison against the same document.

        Raises:
            DocumentMissing: If no document was uploaded
            InvalidImage: If the face payload fails validation
            MatcherUnavailable: If the matcher cannot be reached; verdict stays PENDING
            ComparisonSuperseded: If the document changed or the comparison
                was cancelled by the workflow before a result was applied
        """
        with self._lock:
            self._ensure_open()
            document = self._aggregate.document
            if document is None:
                raise DocumentMissing(self.registration_id)
            validate_image(face_image, self._documents.max_image_bytes)
            self._cancel_comparison()
            pending = self._aggregate.begin_biometric(self._clock())
            task = asyncio.ensure_future(self._matcher.compare(document, face_image))
            self._comparison = task

        logger.info(
            "Biometric comparison %s started against document %s",
            pending.attempt_id,
            document.document_id,
        )

        try:
            outcome = await task
        except asyncio.CancelledError:
            with self._lock:
                cancelled_by_workflow = self._comparison is not task
                if not cancelled_by_workflow:
                    self._comparison = None
                self._aggregate.abandon_biometric(pending.attempt_id)
            if cancelled_by_workflow:
                logger.info("Biometric comparison %s cancelled", pending.attempt_id)
                raise ComparisonSuperseded(document.document_id) from None
            raise
        except MatcherUnavailable:
            with self._lock:
                if self._comparison is task:
                    self._comparison = None
            logger.warning("Biometric matcher unavailable for comparison %s", pending.attempt_id)
            raise

        with self._lock:
            if self._comparison is task:
                self._comparison = None
            verdict = self._aggregate.resolve_biometric(pending.attempt_id, outcome, self._clock())

        if verdict is None:
            logger.warning(
                "Discarding stale comparison %s for document %s",
                pending.attempt_id,
                document.document_id,
            )
            raise ComparisonSuperseded(document.document_id)

        logger.info(
            "Biometric comparison %s decided: %s (confidence=%s)",
            pending.attempt_id,
            verdict.status.value,
            verdict.confidence,
        )
        return verdict

    def cancel_face_capture(self) -> bool:
        """Cancel a running comparison. Returns True if one was running."""
        with self._lock:
            return self._cancel_comparison()

    def submit(self) -> RegistrationSnapshot:
        """
        Finalize the registration and hand it to persistence.

        Raises:
            RegistrationIncomplete: Listing every unmet requirement (nothing changes)
            AlreadySubmitted: If the registration was already finalized
        """
        with self._lock:
            self._ensure_open()
            missing = self._aggregate.missing_requirements()
            if missing:
                raise RegistrationIncomplete(missing)

            now = self._clock()
            snapshot = self._aggregate.snapshot(now)
            self._repository.save(snapshot)
            self._aggregate.mark_submitted(now)

        logger.info("Registration %s submitted", self.registration_id)
        return snapshot

    def abandon(self) -> None:
        """Discard the registration. Issued codes are left to expire."""
        with self._lock:
            self._cancel_comparison()
            self._closed = True
        logger.info("Registration %s abandoned", self.registration_id)

    def _cancel_comparison(self) -> bool:
        task = self._comparison
        self._comparison = None
        if task is None or task.done():
            return False

        loop = task.get_loop()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            task.cancel()
        else:
            loop.call_soon_threadsafe(task.cancel)
        return True

    def _ensure_open(self) -> None:
        if self._closed:
            raise RegistrationClosed(self.registration_id)
        if self._aggregate.is_submitted:
            raise AlreadySubmitted(self.registration_id)

"""
Static biometric matcher adapter - deterministic BiometricMatcher.

Returns a configured outcome for every comparison, optionally after a
delay, or raises MatcherUnavailable. Used for local development
(MATCHER_BACKEND=static) and as the test double for the workflow.
"""

import asyncio
import logging

from src.domain.exceptions import MatcherUnavailable
from src.domain.models import DocumentRecord, ImagePayload, MatchOutcome

logger = logging.getLogger(__name__)


class StaticBiometricMatcher:
    """Implements BiometricMatcher protocol with a fixed answer."""

    def __init__(
        self,
        verified: bool = True,
        confidence: float | None = 0.99,
        delay: float = 0.0,
        available: bool = True,
    ) -> None:
        self.verified = verified
        self.confidence = confidence
        self.delay = delay
        self.available = available
        self.calls: list[str] = []

    async def compare(self, document: DocumentRecord, face_image: ImagePayload) -> MatchOutcome:
        self.calls.append(document.document_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.available:
            raise MatcherUnavailable("static matcher configured as unavailable")
        logger.debug("Static match for document %s: %s", document.document_id, self.verified)
        return MatchOutcome(verified=self.verified, confidence=self.confidence)

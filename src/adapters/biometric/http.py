"""
HTTP biometric matcher adapter - Implements BiometricMatcher protocol.

Posts the document and face images to a face-comparison service and maps
its answer onto a MatchOutcome. The service contract:

    POST {base_url}/v1/compare
    {"document": {...image}, "face": {...image}}
    -> {"match": bool, "confidence": float}

Images are sent as {"data": <base64>} for raw bytes or {"ref": <string>}
for storage references. Transport errors, timeouts, non-2xx responses and
malformed bodies all raise MatcherUnavailable; only a well-formed answer
produces a verdict.
"""

import base64
import logging

import httpx

from src.domain.exceptions import MatcherUnavailable
from src.domain.models import DocumentRecord, ImagePayload, MatchOutcome

logger = logging.getLogger(__name__)


def _encode_image(image: ImagePayload) -> dict:
    if isinstance(image, str):
        return {"ref": image}
    return {"data": base64.b64encode(image).decode()}


class HttpBiometricMatcher:
    """
    Implements BiometricMatcher protocol via httpx.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        threshold: float = 0.8,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Root URL of the comparison service
            timeout: Seconds before a request is abandoned
            threshold: Confidence needed when the service omits "match"
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._threshold = threshold
        self._transport = transport

    async def compare(self, document: DocumentRecord, face_image: ImagePayload) -> MatchOutcome:
        payload = {
            "document": _encode_image(document.image),
            "face": _encode_image(face_image),
        }
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post("/v1/compare", json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Biometric service request failed: {e!s}")
            raise MatcherUnavailable(str(e)) from e
        except ValueError as e:
            raise MatcherUnavailable("malformed response from biometric service") from e

        return self._to_outcome(body)

    def _to_outcome(self, body: object) -> MatchOutcome:
        if not isinstance(body, dict):
            raise MatcherUnavailable("malformed response from biometric service")

        confidence = body.get("confidence")
        if confidence is not None:
            try:
                confidence = float(confidence)
            except (TypeError, ValueError) as e:
                raise MatcherUnavailable("non-numeric confidence") from e

        match = body.get("match")
        if match is None:
            if confidence is None:
                raise MatcherUnavailable("response carries neither match nor confidence")
            match = confidence >= self._threshold
        elif not isinstance(match, bool):
            raise MatcherUnavailable("non-boolean match flag")

        return MatchOutcome(verified=match, confidence=confidence)

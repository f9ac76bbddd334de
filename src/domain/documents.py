"""
Document store - accepts captured identity-document images.

The store performs no image decoding. It only rejects empty payloads
and payloads above the configured ceiling, assigns an identifier and
keeps every record it produced for audit. Only the latest capture keeps
its payload; earlier records retain the id, size and digest.
"""

import hashlib
import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime

from .exceptions import InvalidImage
from .models import DocumentRecord, ImagePayload
from .verification import utcnow

logger = logging.getLogger(__name__)


def image_size(image: ImagePayload) -> int:
    if isinstance(image, str):
        return len(image.strip().encode())
    return len(image)


def validate_image(image: ImagePayload, max_bytes: int) -> int:
    """
    Check an opaque image payload.

    Returns:
        Payload size in bytes

    Raises:
        InvalidImage: If empty, of an unsupported type or above max_bytes
    """
    if not isinstance(image, (bytes, bytearray, str)):
        raise InvalidImage(f"unsupported payload type {type(image).__name__}")
    size = image_size(image)
    if size == 0:
        raise InvalidImage("image payload is empty")
    if size > max_bytes:
        raise InvalidImage(f"image payload is {size} bytes, limit is {max_bytes}")
    return size


class DocumentStore:
    """Holds the identity-document captures of one registration."""

    def __init__(
        self, max_image_bytes: int, clock: Callable[[], datetime] = utcnow
    ) -> None:
        self._max_image_bytes = max_image_bytes
        self._clock = clock
        self._records: dict[str, DocumentRecord] = {}
        self._lock = threading.Lock()

    @property
    def max_image_bytes(self) -> int:
        return self._max_image_bytes

    def capture_document(self, image: ImagePayload) -> DocumentRecord:
        """
        Store a captured document image and return its new record.

        Raises:
            InvalidImage: If the payload fails validation
        """
        size = validate_image(image, self._max_image_bytes)
        payload = bytes(image) if isinstance(image, bytearray) else image
        raw = payload.encode() if isinstance(payload, str) else payload
        record = DocumentRecord(
            document_id=uuid.uuid4().hex,
            image=payload,
            size_bytes=size,
            digest=hashlib.sha256(raw).hexdigest(),
            captured_at=self._clock(),
        )
        with self._lock:
            for document_id, previous in list(self._records.items()):
                if previous.image is not None:
                    self._records[document_id] = previous.without_image()
            self._records[record.document_id] = record

        logger.info("Document %s captured (%d bytes)", record.document_id, size)
        return record

    def get(self, document_id: str) -> DocumentRecord | None:
        with self._lock:
            return self._records.get(document_id)

    def history(self) -> tuple[DocumentRecord, ...]:
        """Every record captured, oldest first. Only the newest carries its image."""
        with self._lock:
            return tuple(self._records.values())

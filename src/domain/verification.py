"""
Contact verification - one-time code lifecycle for phone numbers.

Code State Machine (Forward-Only Transitions)
=============================================

    ISSUED -> CONSUMED    (correct value before expiry, single use)
    ISSUED -> EXPIRED     (any submission after expiry, even a matching one)
    ISSUED -> SUPERSEDED  (a newer code was issued for the same number)
    ISSUED -> LOCKED      (max_attempts mismatches against this code)

At most one ISSUED code exists per phone number. Code stores enforce
this atomically; adjudication of a single attempt is the pure function
adjudicate() below so that every store applies identical rules.

Expiry is evaluated at call time against the injected clock. No
background sweep is needed for correctness.
"""

import logging
import re
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

import bcrypt

from .exceptions import (
    CodeExpired,
    CodeSuperseded,
    InvalidCode,
    InvalidPhoneNumber,
    NoActiveCode,
)
from .models import CodeHandle, VerificationCode
from .ports import CodeState, CodeStore, MessagingGateway, VerifyResult

logger = logging.getLogger(__name__)

_PHONE_SEPARATORS = re.compile(r"[\s\-.()]")
_PHONE_PATTERN = re.compile(r"^\+?\d+$")
_CODE_DIGITS = re.compile(r"[0-9]+")
MAX_PHONE_DIGITS = 15


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def strip_phone_separators(phone_number: str) -> str:
    return _PHONE_SEPARATORS.sub("", phone_number or "")


def normalize_phone_number(phone_number: str, min_digits: int = 10) -> str:
    """
    Normalize a phone number for consistent storage and lookup.

    Strips spaces, dashes, dots and parentheses; keeps a leading '+'.

    Raises:
        InvalidPhoneNumber: If the result is not a plausible number
    """
    normalized = strip_phone_separators(phone_number)
    if not _PHONE_PATTERN.match(normalized):
        raise InvalidPhoneNumber(phone_number)
    digits = len(normalized.lstrip("+"))
    if digits < min_digits or digits > MAX_PHONE_DIGITS:
        raise InvalidPhoneNumber(phone_number)
    return normalized


def code_matches(code: VerificationCode, submitted: str) -> bool:
    """Constant-time comparison of a submitted value with a stored hash."""
    try:
        return bcrypt.checkpw(submitted.encode(), code.code_hash.encode())
    except ValueError:
        return False


def adjudicate(
    code: VerificationCode, submitted: str, now: datetime, max_attempts: int
) -> tuple[VerifyResult, VerificationCode]:
    """
    Decide one verification attempt against an ISSUED code.

    Expiry is checked first, so a correct value after expiry still
    yields EXPIRED.

    Returns:
        The result and the code as it must be persisted afterwards
    """
    if now >= code.expires_at:
        return VerifyResult.EXPIRED, replace(code, state=CodeState.EXPIRED)

    if code_matches(code, submitted):
        return VerifyResult.SUCCESS, replace(code, state=CodeState.CONSUMED)

    attempts = code.attempts + 1
    if attempts >= max_attempts:
        return VerifyResult.LOCKED, replace(code, state=CodeState.LOCKED, attempts=attempts)
    return VerifyResult.MISMATCH, replace(code, attempts=attempts)


@dataclass
class ContactVerifier:
    """
    Issues, expires and consumes one-time codes for phone numbers.

    The literal code value only ever leaves through the messaging
    gateway; callers receive a CodeHandle.
    """

    store: CodeStore
    gateway: MessagingGateway
    code_length: int = 6
    ttl_seconds: int = 300
    max_attempts: int = 3
    min_phone_digits: int = 10
    hash_rounds: int = 10
    clock: Callable[[], datetime] = field(default=utcnow)

    def normalize(self, phone_number: str) -> str:
        return normalize_phone_number(phone_number, self.min_phone_digits)

    def issue_code(self, phone_number: str) -> CodeHandle:
        """
        Issue a new code, superseding any pending one for the number.

        Raises:
            InvalidPhoneNumber: If the number fails format checks
            MessagingUnavailable: If delivery fails; the new code stays active
        """
        normalized = self.normalize(phone_number)
        value = self._generate_code()
        issued_at = self.clock()
        code = VerificationCode(
            code_id=uuid.uuid4().hex,
            phone_number=normalized,
            code_hash=self._hash_code(value),
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=self.ttl_seconds),
        )

        self.store.issue(code)
        logger.info("Verification code %s issued for %s", code.code_id, normalized)

        self.gateway.send_verification_code(normalized, value)
        return CodeHandle(
            code_id=code.code_id,
            phone_number=normalized,
            issued_at=code.issued_at,
            expires_at=code.expires_at,
        )

    def verify_code(self, phone_number: str, submitted: str) -> VerifyResult:
        """
        Verify a submitted value for a phone number.

        Returns:
            SUCCESS (code consumed), MISMATCH (code still pending) or
            LOCKED (attempt cap reached, a new code must be requested)

        Raises:
            InvalidPhoneNumber: If the number fails format checks
            InvalidCode: If the value is not code_length digits (no attempt counted)
            NoActiveCode: If nothing is pending (including after consumption)
            CodeSuperseded: If the value belongs to a replaced code
            CodeExpired: If the pending code is past its expiry
        """
        normalized = self.normalize(phone_number)
        submitted = (submitted or "").strip()
        if len(submitted) != self.code_length or not _CODE_DIGITS.fullmatch(submitted):
            raise InvalidCode(normalized)
        result = self.store.consume(normalized, submitted, self.clock(), self.max_attempts)

        if result == VerifyResult.NOT_FOUND:
            raise NoActiveCode(normalized)
        if result == VerifyResult.SUPERSEDED:
            raise CodeSuperseded(normalized)
        if result == VerifyResult.EXPIRED:
            logger.info("Verification code for %s expired", normalized)
            raise CodeExpired(normalized)
        if result == VerifyResult.LOCKED:
            logger.warning("Verification code for %s locked after %d mismatches",
                           normalized, self.max_attempts)
        elif result == VerifyResult.SUCCESS:
            logger.info("Phone number %s verified", normalized)
        return result

    def purge_expired(self, grace_seconds: int = 0) -> int:
        """Storage hygiene: drop codes whose expiry passed before now - grace."""
        return self.store.purge(self.clock() - timedelta(seconds=grace_seconds))

    def _generate_code(self) -> str:
        """
        Generate a cryptographically secure numeric code.

        Returns string to preserve leading zeros.
        """
        return "".join(secrets.choice("0123456789") for _ in range(self.code_length))

    def _hash_code(self, value: str) -> str:
        return bcrypt.hashpw(value.encode(), bcrypt.gensalt(rounds=self.hash_rounds)).decode()

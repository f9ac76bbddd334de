"""
In-memory repository adapters - Implement CodeStore and RegistrationRepository.

Used for development (STORAGE_BACKEND=memory) and tests. State lives in
process memory and is lost on restart.

Linearizability:
----------------
Each phone number gets its own lock, so issuing, superseding and
consuming codes for one number are serialized while different numbers
proceed independently. purge() drops the lock of a number with no codes
left; a caller that was waiting on a dropped lock retries with the new one.
"""

import logging
import threading
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

from src.domain.exceptions import RegistrationAlreadyPersisted
from src.domain.models import RegistrationSnapshot, VerificationCode
from src.domain.ports import CodeState, VerifyResult
from src.domain.verification import adjudicate, code_matches

logger = logging.getLogger(__name__)


class InMemoryCodeStore:
    """
    Implements CodeStore protocol with per-phone locking.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._codes: dict[str, list[VerificationCode]] = defaultdict(list)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, phone_number: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(phone_number)
            if lock is None:
                lock = self._locks[phone_number] = threading.Lock()
            return lock

    @contextmanager
    def _locked(self, phone_number: str) -> Iterator[None]:
        while True:
            lock = self._lock_for(phone_number)
            with lock:
                with self._locks_guard:
                    current = self._locks.get(phone_number) is lock
                if current:
                    yield
                    return

    def issue(self, code: VerificationCode) -> None:
        with self._locked(code.phone_number):
            history = self._codes[code.phone_number]
            for index, existing in enumerate(history):
                if existing.state == CodeState.ISSUED:
                    history[index] = replace(existing, state=CodeState.SUPERSEDED)
            history.append(code)

    def consume(
        self, phone_number: str, submitted: str, now: datetime, max_attempts: int
    ) -> VerifyResult:
        if phone_number not in self._codes:
            return VerifyResult.NOT_FOUND
        with self._locked(phone_number):
            history = self._codes.get(phone_number, [])
            for index, code in enumerate(history):
                if code.state == CodeState.ISSUED:
                    result, updated = adjudicate(code, submitted, now, max_attempts)
                    if result == VerifyResult.MISMATCH and self._replaced_code_matches(
                        history, index, submitted, now
                    ):
                        # A stale code is not a guess; leave the attempt count alone.
                        return VerifyResult.SUPERSEDED
                    history[index] = updated
                    return result
            return VerifyResult.NOT_FOUND

    def _replaced_code_matches(
        self, history: list[VerificationCode], index: int, submitted: str, now: datetime
    ) -> bool:
        """Only the code directly replaced by the active one is checked."""
        if index == 0:
            return False
        previous = history[index - 1]
        return (
            previous.state == CodeState.SUPERSEDED
            and previous.expires_at > now
            and code_matches(previous, submitted)
        )

    def get(self, code_id: str) -> VerificationCode | None:
        for history in list(self._codes.values()):
            for code in history:
                if code.code_id == code_id:
                    return code
        return None

    def tracked_numbers(self) -> int:
        """Phone numbers that currently hold codes or a lock."""
        with self._locks_guard:
            return len(set(self._codes) | set(self._locks))

    def purge(self, before: datetime) -> int:
        removed = 0
        for phone_number in list(self._codes):
            with self._locked(phone_number):
                history = self._codes.get(phone_number, [])
                kept = [code for code in history if code.expires_at >= before]
                removed += len(history) - len(kept)
                if kept:
                    self._codes[phone_number] = kept
                else:
                    self._codes.pop(phone_number, None)
                    with self._locks_guard:
                        self._locks.pop(phone_number, None)
        if removed:
            logger.info("Purged %d stale verification code(s)", removed)
        return removed


class InMemoryRegistrationRepository:
    """Implements RegistrationRepository protocol with a dict."""

    def __init__(self) -> None:
        self._registrations: dict[str, RegistrationSnapshot] = {}
        self._lock = threading.Lock()

    def save(self, snapshot: RegistrationSnapshot) -> None:
        with self._lock:
            if snapshot.registration_id in self._registrations:
                raise RegistrationAlreadyPersisted(snapshot.registration_id)
            self._registrations[snapshot.registration_id] = snapshot
        logger.info("Registration %s persisted", snapshot.registration_id)

    def get(self, registration_id: str) -> RegistrationSnapshot | None:
        with self._lock:
            return self._registrations.get(registration_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._registrations)

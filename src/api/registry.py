"""
In-process registry of live registration workflows.

Each registration is one RegistrationWorkflow owned by the registry and
addressed by its id. A workflow leaves the registry when it is abandoned,
when its submission has been persisted, or when it has not been touched
for longer than the idle TTL (it is abandoned then).
"""

import logging
import threading
import time
from collections.abc import Callable

from src.domain.registration import RegistrationWorkflow

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """Thread-safe map of registration id to workflow."""

    def __init__(
        self,
        factory: Callable[[], RegistrationWorkflow],
        idle_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._idle_ttl_seconds = idle_ttl_seconds
        self._clock = clock
        self._workflows: dict[str, RegistrationWorkflow] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def create(self) -> RegistrationWorkflow:
        self.evict_idle()
        workflow = self._factory()
        with self._lock:
            self._workflows[workflow.registration_id] = workflow
            self._last_seen[workflow.registration_id] = self._clock()
        logger.info("Registration %s started", workflow.registration_id)
        return workflow

    def get(self, registration_id: str) -> RegistrationWorkflow | None:
        with self._lock:
            workflow = self._workflows.get(registration_id)
            if workflow is not None:
                self._last_seen[registration_id] = self._clock()
            return workflow

    def release(self, registration_id: str) -> bool:
        """Forget a registration without abandoning it (after submission)."""
        with self._lock:
            self._last_seen.pop(registration_id, None)
            return self._workflows.pop(registration_id, None) is not None

    def discard(self, registration_id: str) -> bool:
        """Abandon and forget a registration. Returns False if unknown."""
        with self._lock:
            self._last_seen.pop(registration_id, None)
            workflow = self._workflows.pop(registration_id, None)
        if workflow is None:
            return False
        workflow.abandon()
        return True

    def evict_idle(self) -> int:
        """Abandon registrations idle for longer than the TTL. Returns how many."""
        if self._idle_ttl_seconds is None:
            return 0
        cutoff = self._clock() - self._idle_ttl_seconds
        with self._lock:
            idle = [rid for rid, seen in self._last_seen.items() if seen < cutoff]
            evicted = [self._workflows.pop(rid) for rid in idle]
            for rid in idle:
                del self._last_seen[rid]
        for workflow in evicted:
            workflow.abandon()
        if evicted:
            logger.info("Evicted %d idle registration(s)", len(evicted))
        return len(evicted)

    def close_all(self) -> None:
        with self._lock:
            workflows = list(self._workflows.values())
            self._workflows.clear()
            self._last_seen.clear()
        for workflow in workflows:
            if not workflow.closed:
                workflow.abandon()

    def __len__(self) -> int:
        with self._lock:
            return len(self._workflows)

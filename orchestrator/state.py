# ============================================================================
# STATE TABLE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - ServiceState ownership and snapshots
# PURPOSE: Single table of service states with point-in-time snapshots
# CREATED: 16 OCT 2026
# ============================================================================
"""
State Table

Owns the ServiceState of every service for one orchestrator.

Concurrency contract:
- Each service's transitions are driven by exactly one task at a time
- Every write swaps in a new immutable ServiceState under the lock
- snapshot() copies the whole table under one lock acquisition
- The lock is never held across an await

The lock is a threading.Lock so that readers on other threads (the HTTP
API under a threaded server, signal handlers) see consistent snapshots.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, Optional

from core.contracts import ServicePhase
from core.models import ServiceState, StateSnapshot

logger = logging.getLogger(__name__)


class StateTable:
    """Lock-guarded map of service_id -> ServiceState."""

    def __init__(
        self,
        service_ids: Iterable[str],
        stack_id: Optional[str] = None,
        environment: Optional[str] = None,
        restored: Optional[StateSnapshot] = None,
        on_change: Optional[Callable[["StateTable"], None]] = None,
    ):
        """
        Initialize the table.

        Args:
            service_ids: Every declared service
            stack_id: Stack the table belongs to
            environment: Overlay the stack was loaded with, recorded in
                every snapshot
            restored: Previous snapshot; states for declared services are
                carried over, undeclared ones are dropped
            on_change: Called (outside the lock) after every write, e.g. to
                persist the table
        """
        self.stack_id = stack_id
        self.environment = environment
        self._on_change = on_change
        self.run_id: Optional[str] = None
        self._lock = threading.Lock()
        self._states: Dict[str, ServiceState] = {
            service_id: ServiceState(service_id=service_id)
            for service_id in service_ids
        }

        if restored is not None:
            self.run_id = restored.run_id
            for state in restored.services:
                if state.service_id in self._states:
                    self._states[state.service_id] = state

    def __contains__(self, service_id: str) -> bool:
        return service_id in self._states

    def get(self, service_id: str) -> ServiceState:
        """Current state of one service."""
        with self._lock:
            return self._states[service_id]

    def phase(self, service_id: str) -> ServicePhase:
        return self.get(service_id).phase

    def transition(
        self,
        service_id: str,
        new_phase: ServicePhase,
        error: Optional[str] = None,
        **updates,
    ) -> ServiceState:
        """
        Move a service to `new_phase`.

        Raises:
            ValueError: if the lifecycle does not allow the transition
        """
        with self._lock:
            current = self._states[service_id]
            updated = current.transition(new_phase, error=error, **updates)
            self._states[service_id] = updated

        logger.debug(
            f"{service_id}: {current.phase.value} -> {new_phase.value}"
            + (f" ({error})" if error else "")
        )
        self._notify()
        return updated

    def update(self, service_id: str, **updates) -> ServiceState:
        """Change fields without a phase transition."""
        with self._lock:
            updated = self._states[service_id].model_copy(update=updates)
            self._states[service_id] = updated
        self._notify()
        return updated

    def begin_run(self, run_id: str, service_ids: Iterable[str]) -> None:
        """
        Start a fresh run for `service_ids`.

        READY services keep their state (start is idempotent); everything
        else is recreated as PENDING with cleared counters.
        """
        with self._lock:
            self.run_id = run_id
            for service_id in service_ids:
                if self._states[service_id].phase != ServicePhase.READY:
                    self._states[service_id] = ServiceState(service_id=service_id)
        self._notify()

    def reset(self) -> None:
        """Forget all runtime state (explicit reset)."""
        with self._lock:
            self.run_id = None
            self._states = {
                service_id: ServiceState(service_id=service_id)
                for service_id in self._states
            }
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def snapshot(self) -> StateSnapshot:
        """
        Immutable point-in-time copy of every state.

        States are immutable values, so copying the references under the
        lock is enough for a consistent view.
        """
        with self._lock:
            states = tuple(self._states[k] for k in sorted(self._states))
            run_id = self.run_id
        return StateSnapshot(
            stack_id=self.stack_id,
            environment=self.environment,
            run_id=run_id,
            services=states,
        )


__all__ = ["StateTable"]

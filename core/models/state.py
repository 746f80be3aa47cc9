# ============================================================================
# SERVICE STATE MODEL
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core model - Service runtime state
# PURPOSE: Track the phase of each service within an orchestration run
# LAST_REVIEWED: 16 OCT 2026
# EXPORTS: ServiceState, StateSnapshot
# DEPENDENCIES: pydantic
# ============================================================================
"""
Service State Model

ServiceState tracks the runtime state of a single service.

Key concept:
- ServiceSpec = TEMPLATE (what to run)
- ServiceState = INSTANCE (where it is in its lifecycle right now)

States are immutable values. The orchestrator replaces a service's state
with a new value on every transition, so a snapshot holding references
to old values can never observe a half-applied transition.
"""

from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field, computed_field

from core.contracts import ServicePhase


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ServiceState(BaseModel):
    """
    Runtime state of a service.

    Lifecycle:
        1. Created with phase=PENDING when orchestration begins
        2. STARTING while the start command runs
        3. HEALTH_CHECKING while the readiness probe polls
        4. READY once the probe succeeds
        5. FAILED / RETRYING / ABORTED on failures
        6. STOPPING -> STOPPED on teardown
    """
    service_id: str = Field(..., max_length=64)
    phase: ServicePhase = Field(default=ServicePhase.PENDING)
    last_transition_at: datetime = Field(default_factory=utc_now)

    # Retry tracking
    consecutive_failures: int = Field(default=0, ge=0)
    attempts: int = Field(default=0, ge=0, description="Start attempts in this run")

    last_error: Optional[str] = Field(default=None, max_length=2000)

    model_config = {"frozen": True}

    @computed_field
    @property
    def is_ready(self) -> bool:
        return self.phase == ServicePhase.READY

    def transition(
        self,
        new_phase: ServicePhase,
        error: Optional[str] = None,
        **updates,
    ) -> "ServiceState":
        """
        Return a copy moved to `new_phase`.

        Raises:
            ValueError: if the lifecycle does not allow the transition
        """
        if not self.phase.can_transition_to(new_phase):
            raise ValueError(
                f"Service '{self.service_id}': cannot transition from "
                f"{self.phase.value} to {new_phase.value}"
            )
        fields = {"phase": new_phase, "last_transition_at": utc_now(), **updates}
        if error is not None:
            fields["last_error"] = error[:2000]
        return self.model_copy(update=fields)


class StateSnapshot(BaseModel):
    """Point-in-time copy of every ServiceState in a table."""
    taken_at: datetime = Field(default_factory=utc_now)
    stack_id: Optional[str] = None
    environment: Optional[str] = None
    run_id: Optional[str] = None
    services: Tuple[ServiceState, ...] = ()

    model_config = {"frozen": True}

    def get(self, service_id: str) -> Optional[ServiceState]:
        for state in self.services:
            if state.service_id == service_id:
                return state
        return None

    def phases(self) -> Dict[str, ServicePhase]:
        return {s.service_id: s.phase for s in self.services}

    @computed_field
    @property
    def all_ready(self) -> bool:
        return bool(self.services) and all(s.is_ready for s in self.services)


__all__ = ["ServiceState", "StateSnapshot", "utc_now"]

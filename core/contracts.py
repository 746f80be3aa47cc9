# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Foundation - Core enums shared across components
# PURPOSE: Service phases, probe types, run outcomes and CLI exit codes
# LAST_REVIEWED: 16 OCT 2026
# EXPORTS: ServicePhase, HealthCheckType, RunOutcome, ExitCode
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the stack supervisor.

These values cross every boundary:
- YAML (stack files)
- JSON (state file, HTTP API)
- Python (control loop, CLI)
"""

from enum import Enum, IntEnum
from typing import Dict, FrozenSet


# ============================================================================
# SERVICE PHASES
# ============================================================================

class ServicePhase(str, Enum):
    """
    Service lifecycle phases within an orchestration run.

    State transitions:
        PENDING -> STARTING -> HEALTH_CHECKING -> READY
        STARTING/HEALTH_CHECKING -> FAILED -> RETRYING -> STARTING
                                          -> ABORTED
        READY -> STOPPING -> STOPPED
    """
    PENDING = "pending"                  # Declared, not yet started this run
    STARTING = "starting"                # Start command in flight
    HEALTH_CHECKING = "health_checking"  # Start succeeded, waiting for probe
    READY = "ready"                      # Probe confirmed readiness
    FAILED = "failed"                    # Last attempt failed
    RETRYING = "retrying"                # Waiting out backoff before next attempt
    ABORTED = "aborted"                  # Retries exhausted (terminal failure)
    STOPPING = "stopping"                # Stop command in flight
    STOPPED = "stopped"                  # Stop command succeeded

    def is_terminal(self) -> bool:
        """Check if the start sequence has finished (either way)."""
        return self in (ServicePhase.READY, ServicePhase.ABORTED)

    def needs_teardown(self) -> bool:
        """Check if a runtime unit may exist for this service."""
        return self not in (ServicePhase.PENDING, ServicePhase.STOPPED)

    def can_transition_to(self, new_phase: "ServicePhase") -> bool:
        """Validate a phase transition against the lifecycle graph."""
        return new_phase in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: Dict[ServicePhase, FrozenSet[ServicePhase]] = {
    ServicePhase.PENDING: frozenset({ServicePhase.STARTING}),
    ServicePhase.STARTING: frozenset({
        ServicePhase.HEALTH_CHECKING, ServicePhase.FAILED,
        ServicePhase.ABORTED, ServicePhase.STOPPING,
    }),
    ServicePhase.HEALTH_CHECKING: frozenset({
        ServicePhase.READY, ServicePhase.FAILED,
        ServicePhase.ABORTED, ServicePhase.STOPPING,
    }),
    ServicePhase.READY: frozenset({ServicePhase.STOPPING}),
    ServicePhase.FAILED: frozenset({
        ServicePhase.RETRYING, ServicePhase.ABORTED, ServicePhase.STOPPING,
    }),
    ServicePhase.RETRYING: frozenset({
        ServicePhase.STARTING, ServicePhase.ABORTED, ServicePhase.STOPPING,
    }),
    ServicePhase.ABORTED: frozenset({ServicePhase.STOPPING}),
    ServicePhase.STOPPING: frozenset({ServicePhase.STOPPED, ServicePhase.FAILED}),
    ServicePhase.STOPPED: frozenset({ServicePhase.STARTING}),
}


# ============================================================================
# HEALTH CHECK TYPES
# ============================================================================

class HealthCheckType(str, Enum):
    """How readiness is confirmed for a service."""
    HTTP = "http"          # GET target URL, expect 2xx
    TCP = "tcp"            # connect to host:port and close
    COMMAND = "command"    # run a command, expect exit code 0


# ============================================================================
# RUN OUTCOMES
# ============================================================================

class RunOutcome(str, Enum):
    """Aggregate result of an `up` run."""
    COMPLETED = "completed"    # Every stage reached READY
    ABORTED = "aborted"        # A service exhausted its retries
    CANCELLED = "cancelled"    # Operator cancelled the run


class ExitCode(IntEnum):
    """Process exit codes for the operator CLI."""
    SUCCESS = 0
    VALIDATION_ERROR = 1
    ABORTED = 2
    TEARDOWN_TIMEOUT = 3

# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Foundation - Exception hierarchy
# PURPOSE: Typed errors for pre-flight, retryable, and terminal failures
# CREATED: 16 OCT 2026
# ============================================================================
"""
Error classes for the stack supervisor.

Three families:
- Pre-flight (fatal, raised before any side effect):
    ConfigError, DuplicateIdError, UnknownDependencyError, CyclicDependencyError
- Retryable (contained by the control loop's retry/backoff):
    CommandTimeoutError, HealthTimeoutError
- Terminal / operator:
    ServiceAbortedError, Cancelled, TeardownTimeoutError
"""

from typing import List, Optional, Sequence


class StackMasterError(Exception):
    """Base exception for the stack supervisor."""
    pass


# ============================================================================
# PRE-FLIGHT
# ============================================================================

class ConfigError(StackMasterError):
    """Raised when a stack file cannot be read or does not validate."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class GraphValidationError(StackMasterError):
    """Base for dependency graph violations."""
    pass


class DuplicateIdError(GraphValidationError):
    """Raised when a service id is registered twice."""

    def __init__(self, service_id: str):
        self.service_id = service_id
        super().__init__(f"Service already declared: {service_id}")


class UnknownDependencyError(GraphValidationError):
    """Raised when a service depends on an undeclared service."""

    def __init__(self, service_id: str, missing: Sequence[str]):
        self.service_id = service_id
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Service '{service_id}' depends on unknown service(s): "
            f"{', '.join(self.missing)}"
        )


class CyclicDependencyError(GraphValidationError):
    """
    Raised when the dependency relation contains a cycle.

    `cycle` lists the ids in traversal order with the first id
    repeated at the end, e.g. ["a", "b", "c", "a"].
    """

    def __init__(self, cycle: Sequence[str]):
        self.cycle: List[str] = list(cycle)
        super().__init__(f"Dependency cycle: {' -> '.join(self.cycle)}")


# ============================================================================
# RETRYABLE
# ============================================================================

class CommandTimeoutError(StackMasterError):
    """Raised when an external command exceeds its timeout (process is killed)."""

    def __init__(self, argv: Sequence[str], timeout: float):
        self.argv = list(argv)
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s: {' '.join(self.argv)}")


class HealthTimeoutError(StackMasterError):
    """Raised when a readiness probe does not succeed before its deadline."""

    def __init__(self, service_id: str, attempts: int, last_message: Optional[str] = None):
        self.service_id = service_id
        self.attempts = attempts
        self.last_message = last_message
        detail = f" (last: {last_message})" if last_message else ""
        super().__init__(
            f"Service '{service_id}' not ready after {attempts} probe attempt(s){detail}"
        )


# ============================================================================
# TERMINAL / OPERATOR
# ============================================================================

class ServiceAbortedError(StackMasterError):
    """Raised when a service exhausts its retries."""

    def __init__(self, service_id: str, attempts: int, last_error: Optional[str] = None):
        self.service_id = service_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Service '{service_id}' aborted after {attempts} attempt(s): {last_error}"
        )


class Cancelled(StackMasterError):
    """Raised when an operator-initiated cancellation interrupts work."""
    pass


class TeardownTimeoutError(StackMasterError):
    """Raised when in-flight work does not drain after cancellation in time."""

    def __init__(self, pending: Sequence[str], grace_seconds: float):
        self.pending = list(pending)
        self.grace_seconds = grace_seconds
        super().__init__(
            f"Timed out after {grace_seconds}s waiting for: {', '.join(self.pending)}"
        )


__all__ = [
    "StackMasterError",
    "ConfigError",
    "GraphValidationError",
    "DuplicateIdError",
    "UnknownDependencyError",
    "CyclicDependencyError",
    "CommandTimeoutError",
    "HealthTimeoutError",
    "ServiceAbortedError",
    "Cancelled",
    "TeardownTimeoutError",
]

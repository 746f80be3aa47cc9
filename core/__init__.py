# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors and models
# LAST_REVIEWED: 16 OCT 2026
# ============================================================================

from core.contracts import ServicePhase, HealthCheckType, RunOutcome, ExitCode
from core.errors import StackMasterError
from core.models import (
    CommandSpec,
    HealthCheckSpec,
    RestartPolicy,
    ServiceSpec,
    StackDefinition,
    ServiceState,
    StateSnapshot,
    OrchestrationPlan,
)

__all__ = [
    # Enums
    "ServicePhase",
    "HealthCheckType",
    "RunOutcome",
    "ExitCode",
    # Errors
    "StackMasterError",
    # Models
    "CommandSpec",
    "HealthCheckSpec",
    "RestartPolicy",
    "ServiceSpec",
    "StackDefinition",
    "ServiceState",
    "StateSnapshot",
    "OrchestrationPlan",
]

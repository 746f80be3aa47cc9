# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 16 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the stack supervisor.
"""

from core.models.service import (
    CommandSpec,
    HealthCheckSpec,
    RestartPolicy,
    ServiceSpec,
    StackDefinition,
)
from core.models.state import ServiceState, StateSnapshot
from core.models.plan import OrchestrationPlan

__all__ = [
    # Definitions
    "CommandSpec",
    "HealthCheckSpec",
    "RestartPolicy",
    "ServiceSpec",
    "StackDefinition",
    # Runtime
    "ServiceState",
    "StateSnapshot",
    "OrchestrationPlan",
]

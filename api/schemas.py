# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Response schemas
# PURPOSE: Pydantic models for the supervisor API
# CREATED: 16 OCT 2026
# ============================================================================
"""
API Schemas

Response models for the supervisor API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from core.contracts import ServicePhase


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class ServiceStateResponse(BaseModel):
    """Service state response."""
    service_id: str
    phase: ServicePhase
    last_transition_at: datetime
    consecutive_failures: int = 0
    attempts: int = 0
    last_error: Optional[str] = None

    model_config = {"from_attributes": True}


class StackStatusResponse(BaseModel):
    """Snapshot of every service plus orchestrator statistics."""
    stack_id: Optional[str] = None
    environment: Optional[str] = None
    run_id: Optional[str] = None
    taken_at: datetime
    all_ready: bool
    orchestrator: Dict[str, Any] = {}
    services: List[ServiceStateResponse]


class PlanResponse(BaseModel):
    """Topological start order."""
    stack_id: str
    stages: List[List[str]]
    teardown_order: List[List[str]]


class ServiceDetailResponse(BaseModel):
    """One service: declaration summary plus current state."""
    service_id: str
    description: Optional[str] = None
    stage: int
    depends_on: List[str] = []
    dependents: List[str] = []
    has_health_check: bool
    max_retries: int
    state: ServiceStateResponse


class CancelResponse(BaseModel):
    """Result of a cancel request."""
    cancelled: bool
    message: str


__all__ = [
    "ServiceStateResponse",
    "StackStatusResponse",
    "PlanResponse",
    "ServiceDetailResponse",
    "CancelResponse",
]

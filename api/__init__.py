# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for stack status
# CREATED: 16 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the stack supervisor.
"""

from .routes import router, set_orchestrator
from .schemas import (
    CancelResponse,
    PlanResponse,
    ServiceDetailResponse,
    ServiceStateResponse,
    StackStatusResponse,
)

__all__ = [
    "router",
    "set_orchestrator",
    "CancelResponse",
    "PlanResponse",
    "ServiceDetailResponse",
    "ServiceStateResponse",
    "StackStatusResponse",
]

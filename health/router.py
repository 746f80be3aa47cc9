# ============================================================================
# HEALTH CHECK ROUTER
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Infrastructure - FastAPI health check endpoints
# PURPOSE: Liveness and readiness endpoints for the supervisor process
# CREATED: 16 OCT 2026
# ============================================================================
"""
Health Check Router

Endpoints:
    GET /livez   - Liveness probe (is the supervisor process alive?)
                   Always 200 while the process is responsive.

    GET /readyz  - Readiness probe (is the supervised stack ready?)
                   200 when every service is READY, 503 otherwise.

Readiness is read from the orchestrator's snapshot; no probes are run
from these endpoints.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from __version__ import __version__, BUILD_DATE

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["Health"])

# Set by the main app at startup
_orchestrator = None


def set_state_source(orchestrator) -> None:
    """Set the orchestrator whose snapshot backs /readyz."""
    global _orchestrator
    _orchestrator = orchestrator


# ============================================================================
# LIVENESS PROBE
# ============================================================================

@health_router.get("/livez")
async def liveness_probe():
    """
    Liveness probe.

    Returns 200 if the process is alive. No external checks.
    """
    return {"status": "alive", "version": __version__, "build_date": BUILD_DATE}


# ============================================================================
# READINESS PROBE
# ============================================================================

@health_router.get("/readyz")
async def readiness_probe():
    """
    Readiness probe.

    Returns 200 once every service of the stack is READY. While the
    stack is coming up (or after an abort) returns 503 with the phase
    of every service that is not ready yet.
    """
    if _orchestrator is None:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "message": "Orchestrator not initialized"},
        )

    snapshot = _orchestrator.snapshot()
    if snapshot.all_ready:
        return {"status": "ready", "services": len(snapshot.services)}

    return JSONResponse(
        status_code=503,
        content={
            "status": "not_ready",
            "services": {
                state.service_id: state.phase.value
                for state in snapshot.services
                if not state.is_ready
            },
        },
    )


__all__ = ["health_router", "set_state_source"]

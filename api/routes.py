# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - FastAPI route definitions
# PURPOSE: HTTP endpoints for stack status and plan inspection
# CREATED: 16 OCT 2026
# ============================================================================
"""
API Routes

Read-only views of the supervised stack, plus cancellation of an
in-progress bring-up. Every read goes through Orchestrator.snapshot(),
so responses are consistent point-in-time views.
"""

import logging

from fastapi import APIRouter, HTTPException

from .schemas import (
    CancelResponse,
    PlanResponse,
    ServiceDetailResponse,
    ServiceStateResponse,
    StackStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# Set by the main app at startup

_orchestrator = None


def set_orchestrator(orchestrator) -> None:
    """Set the orchestrator instance for dependency injection."""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator():
    if _orchestrator is None:
        raise HTTPException(500, "Orchestrator not initialized")
    return _orchestrator


# ============================================================================
# STATUS
# ============================================================================

@router.get("/status", response_model=StackStatusResponse, tags=["Stack"])
async def get_status():
    """
    Get the state of every service.

    Includes orchestrator statistics (running, current operation,
    last outcome).
    """
    orchestrator = get_orchestrator()
    snapshot = orchestrator.snapshot()

    return StackStatusResponse(
        stack_id=snapshot.stack_id,
        environment=snapshot.environment,
        run_id=snapshot.run_id,
        taken_at=snapshot.taken_at,
        all_ready=snapshot.all_ready,
        orchestrator=orchestrator.stats,
        services=[ServiceStateResponse.model_validate(s) for s in snapshot.services],
    )


@router.get("/plan", response_model=PlanResponse, tags=["Stack"])
async def get_plan():
    """Get the computed start stages and the teardown order."""
    plan = get_orchestrator().plan
    return PlanResponse(
        stack_id=plan.stack_id,
        stages=[list(stage) for stage in plan.stages],
        teardown_order=[list(stage) for stage in plan.teardown_order()],
    )


@router.get(
    "/services/{service_id}",
    response_model=ServiceDetailResponse,
    tags=["Stack"],
)
async def get_service(service_id: str):
    """Get one service's declaration summary and current state."""
    orchestrator = get_orchestrator()

    if service_id not in orchestrator.graph:
        raise HTTPException(404, f"Service not found: {service_id}")

    spec = orchestrator.graph.get(service_id)
    state = orchestrator.snapshot().get(service_id)

    return ServiceDetailResponse(
        service_id=service_id,
        description=spec.description,
        stage=orchestrator.plan.stage_index()[service_id],
        depends_on=list(spec.depends_on),
        dependents=orchestrator.graph.dependents_of(service_id),
        has_health_check=spec.health is not None,
        max_retries=spec.restart.max_retries,
        state=ServiceStateResponse.model_validate(state),
    )


# ============================================================================
# CONTROL
# ============================================================================

@router.post("/cancel", response_model=CancelResponse, tags=["Control"])
async def cancel_run():
    """Cancel an in-progress bring-up. Ready services are left running."""
    orchestrator = get_orchestrator()

    if not orchestrator.is_running:
        return CancelResponse(cancelled=False, message="No operation in progress")

    orchestrator.cancel()
    logger.info("Cancellation requested via API")
    return CancelResponse(cancelled=True, message="Cancellation requested")

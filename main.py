# ============================================================================
# STACK SUPERVISOR - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - FastAPI application entry point
# PURPOSE: Supervisor process that brings a stack up and serves its status
# CREATED: 16 OCT 2026
# ============================================================================
"""
Stack Supervisor Main Application

FastAPI application that:
1. Loads the stack file (STACK_FILE, optional STACK_ENV overlay)
2. Brings the stack up in the background
3. Serves /livez, /readyz and the /api/v1 status endpoints
4. On shutdown, cancels an in-progress bring-up and tears the stack down
   (unless STACK_TEARDOWN_ON_SHUTDOWN=false)

Usage:
    STACK_FILE=stack.yaml uvicorn main:app --host 0.0.0.0 --port 8000
"""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, EPOCH
from api.routes import router, set_orchestrator
from core.config import get_defaults
from core.errors import ServiceAbortedError, TeardownTimeoutError
from health.router import health_router, set_state_source
from orchestrator import Orchestrator, create_orchestrator
from services.stack_service import StackService

# Configure logging using our structured logging system
from core.logging import configure_logging, get_logger

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)

# Global instances
_orchestrator: Optional[Orchestrator] = None
_up_task: Optional[asyncio.Task] = None


def _log_up_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Bring-up failed: {error}")
        return
    try:
        task.result().raise_for_outcome()
    except ServiceAbortedError as e:
        logger.error(f"Stack not ready: {e}")


async def stop_bring_up(orchestrator: Orchestrator, task: asyncio.Task) -> None:
    """
    Stop a background up() task and wait for it.

    A task that has not run yet never reached the orchestrator, so it is
    cancelled outright; a running one is cancelled through the
    orchestrator so in-flight commands are killed and state is recorded.
    """
    if not task.done():
        if orchestrator.is_running:
            orchestrator.cancel()
        else:
            task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Bring-up cancelled before it started")
    except TeardownTimeoutError as e:
        logger.error(f"Cancelled bring-up did not drain: {e}")
    except Exception:
        pass  # already logged by _log_up_result


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Pre-flight errors (bad stack file, cycles, unknown dependencies) are
    raised here, so the server refuses to start.
    """
    global _orchestrator, _up_task

    logger.info(f"Starting Stack Supervisor v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

    paths = get_defaults().paths
    environment = os.environ.get("STACK_ENV")
    stack = StackService(paths.stack_file, environment).load()
    _orchestrator = create_orchestrator(
        stack, state_file=paths.state_file, environment=environment
    )
    logger.info(f"Plan: {_orchestrator.plan.to_dict()['stages']}")

    set_orchestrator(_orchestrator)
    set_state_source(_orchestrator)

    _up_task = asyncio.create_task(_orchestrator.up(), name="stack-up")
    _up_task.add_done_callback(_log_up_result)
    logger.info("Bring-up started")

    yield

    # Shutdown
    logger.info("Shutting down Stack Supervisor...")

    await stop_bring_up(_orchestrator, _up_task)

    if os.environ.get("STACK_TEARDOWN_ON_SHUTDOWN", "true").lower() == "true":
        await _orchestrator.down()

    logger.info("Stack Supervisor stopped")


# Create FastAPI app
app = FastAPI(
    title="Stack Supervisor",
    description=f"Epoch {EPOCH} dependency-ordered stack supervision",
    version=__version__,
    lifespan=lifespan,
)

# Include health check routes (no prefix - /livez, /readyz)
app.include_router(health_router)

# Include API routes
app.include_router(router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Stack Supervisor",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )

# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Main orchestration loop
# PURPOSE: Bring a stack up stage by stage and tear it down in reverse
# CREATED: 16 OCT 2026
# ============================================================================
"""
Orchestrator Module

The control loop that drives a stack to READY.

Usage:
    from orchestrator import Orchestrator

    orchestrator = Orchestrator(graph)
    result = await orchestrator.up()
    teardown = await orchestrator.down()
"""

from .loop import Orchestrator, RunResult, TeardownResult
from .state import StateTable
from .factory import create_orchestrator

__all__ = ["Orchestrator", "RunResult", "TeardownResult", "StateTable", "create_orchestrator"]

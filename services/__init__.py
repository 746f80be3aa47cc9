# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Stack definition layer
# PURPOSE: Stack file loading and dependency graph
# CREATED: 16 OCT 2026
# ============================================================================
"""
Services Module

Turns a stack file into something the orchestrator can run.

Usage:
    from services import StackService, ServiceGraph

    stack = StackService("stack.yaml", environment="dev").load()
    plan = ServiceGraph.from_stack(stack).compute_plan()
"""

from .graph import ServiceGraph
from .stack_service import StackService, deep_merge, merge_stack_documents

__all__ = [
    "ServiceGraph",
    "StackService",
    "deep_merge",
    "merge_stack_documents",
]

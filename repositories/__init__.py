# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Persistence layer
# PURPOSE: Load and save the last-known state of a stack
# CREATED: 16 OCT 2026
# ============================================================================
"""
Repositories Module

Persistence for supervisor state. The state file is a JSON document
holding one StateSnapshot, so `status` works from a fresh process.

Usage:
    from repositories import StateRepository

    repo = StateRepository(".stackmaster/state.json")
    snapshot = repo.load(stack_id="smart-parking")
"""

from .state_repo import StateRepository

__all__ = [
    "StateRepository",
]

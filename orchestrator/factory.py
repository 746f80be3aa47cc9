# ============================================================================
# ORCHESTRATOR FACTORY
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Wiring
# PURPOSE: Build an Orchestrator for a stack file with persisted state
# CREATED: 16 OCT 2026
# ============================================================================
"""
Orchestrator Factory

Shared wiring for the CLI and the supervisor API:

    stack file -> StackDefinition -> ServiceGraph
    state file -> last StateSnapshot -> StateTable (saved on every change)
"""

import logging
from pathlib import Path
from typing import Optional, Union

from core.errors import ConfigError
from core.models import StackDefinition, StateSnapshot
from orchestrator.loop import Orchestrator
from orchestrator.state import StateTable
from repositories.state_repo import StateRepository
from runtime.executor import CommandExecutor
from services.graph import ServiceGraph

logger = logging.getLogger(__name__)


def _check_orphans(restored: StateSnapshot, declared, environment, path) -> None:
    """Refuse a state file whose running services the stack no longer declares."""
    orphans = sorted(
        s.service_id for s in restored.services
        if s.service_id not in declared and s.phase.needs_teardown()
    )
    if orphans:
        hint = f"pass --env {restored.environment}" if restored.environment else "load it without --env"
        raise ConfigError(
            f"state has running service(s) not declared by this stack: {', '.join(orphans)}. "
            f"It was written for environment '{restored.environment or 'base'}'; {hint}",
            path=str(path),
        )
    if restored.environment != environment:
        logger.info(
            f"State was written for environment '{restored.environment or 'base'}', "
            f"loading as '{environment or 'base'}'"
        )


def create_orchestrator(
    stack: StackDefinition,
    state_file: Optional[Union[str, Path]] = None,
    environment: Optional[str] = None,
    executor: Optional[CommandExecutor] = None,
    **kwargs,
) -> Orchestrator:
    """
    Create an orchestrator for a loaded stack.

    Args:
        stack: Loaded stack definition
        state_file: Where the last-known state is kept (None = in memory only)
        environment: Overlay the stack was loaded with
        executor: Command executor (a default one if None)
        **kwargs: Passed through to Orchestrator

    Raises:
        DuplicateIdError: a service id is declared twice
        ConfigError: the saved state has services still up that this stack
            does not declare (e.g. it was written with another --env)
    """
    graph = ServiceGraph.from_stack(stack)
    service_ids = [s.service_id for s in graph.services()]

    if state_file is None:
        table = StateTable(service_ids, stack_id=stack.stack_id, environment=environment)
    else:
        repo = StateRepository(state_file)
        restored = repo.load(stack_id=stack.stack_id)
        if restored is not None:
            _check_orphans(restored, set(service_ids), environment, repo.path)
            logger.info(f"Restored state of {len(restored.services)} service(s) from {repo.path}")
        table = StateTable(
            service_ids,
            stack_id=stack.stack_id,
            environment=environment,
            restored=restored,
            on_change=lambda t: repo.save(t.snapshot()),
        )

    return Orchestrator(graph, executor=executor, state=table, **kwargs)


__all__ = ["create_orchestrator"]

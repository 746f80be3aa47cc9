# ============================================================================
# ORCHESTRATION PLAN MODEL
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core model - Topological start order
# PURPOSE: Immutable ordered stages computed from the service graph
# LAST_REVIEWED: 16 OCT 2026
# EXPORTS: OrchestrationPlan
# DEPENDENCIES: pydantic
# ============================================================================
"""
Orchestration Plan

An ordered sequence of stages. Every dependency of a service in stage N
lives in a stage < N. Services within a stage are in lexical order.

Start walks the stages forward; teardown walks them backward.
"""

from typing import Dict, List, Tuple

from pydantic import BaseModel


class OrchestrationPlan(BaseModel):
    """Topological levels of a stack, computed once per run."""
    stack_id: str
    stages: Tuple[Tuple[str, ...], ...]

    model_config = {"frozen": True}

    def __len__(self) -> int:
        return len(self.stages)

    def service_ids(self) -> List[str]:
        """All services in start order."""
        return [service_id for stage in self.stages for service_id in stage]

    def stage_index(self) -> Dict[str, int]:
        """Map service_id -> stage number."""
        return {
            service_id: index
            for index, stage in enumerate(self.stages)
            for service_id in stage
        }

    def teardown_order(self) -> Tuple[Tuple[str, ...], ...]:
        """Stages in reverse, dependents before their dependencies."""
        return tuple(reversed(self.stages))

    def to_dict(self) -> Dict:
        return {
            "stack_id": self.stack_id,
            "stages": [list(stage) for stage in self.stages],
        }


__all__ = ["OrchestrationPlan"]

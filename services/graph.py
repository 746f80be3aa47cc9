# ============================================================================
# SERVICE GRAPH
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Dependency graph and plan computation
# PURPOSE: Hold declared services, validate edges, compute start stages
# CREATED: 16 OCT 2026
# ============================================================================
"""
Service Graph

Holds the declared services of a stack and their dependency edges.

Validation (pre-flight, no side effects):
1. Every dependency references a declared service
2. The dependency relation is acyclic (three-colour DFS)

Plan computation (Kahn's algorithm):
- Repeatedly take every service whose dependencies are all placed
- Each batch is one stage (minimum number of stages)
- Services within a stage are sorted lexically for determinism
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from core.errors import CyclicDependencyError, DuplicateIdError, UnknownDependencyError
from core.models import OrchestrationPlan, ServiceSpec, StackDefinition

logger = logging.getLogger(__name__)


class _Mark(Enum):
    UNVISITED = 0
    IN_PROGRESS = 1
    DONE = 2


class ServiceGraph:
    """Declared services plus dependency edges for one stack."""

    def __init__(self, stack_id: str = "stack"):
        self.stack_id = stack_id
        self._services: Dict[str, ServiceSpec] = {}

    @classmethod
    def from_stack(cls, stack: StackDefinition) -> "ServiceGraph":
        """Build a graph from a loaded stack definition."""
        graph = cls(stack.stack_id)
        for service in stack.services:
            graph.add_service(service)
        return graph

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, service_id: str) -> bool:
        return service_id in self._services

    def add_service(self, spec: ServiceSpec) -> None:
        """
        Register a service.

        Raises:
            DuplicateIdError: if the id is already registered
        """
        if spec.service_id in self._services:
            raise DuplicateIdError(spec.service_id)
        self._services[spec.service_id] = spec

    def get(self, service_id: str) -> ServiceSpec:
        """Get a registered service, raising KeyError if unknown."""
        if service_id not in self._services:
            raise KeyError(f"Service not found: {service_id}")
        return self._services[service_id]

    def services(self) -> List[ServiceSpec]:
        return [self._services[k] for k in sorted(self._services)]

    def dependents_of(self, service_id: str) -> List[str]:
        """Services that declare a direct dependency on `service_id`."""
        return sorted(
            spec.service_id
            for spec in self._services.values()
            if service_id in spec.depends_on
        )

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self) -> None:
        """
        Validate the graph.

        Raises:
            UnknownDependencyError: a dependency names an undeclared service
            CyclicDependencyError: the dependency relation has a cycle
        """
        for service_id in sorted(self._services):
            spec = self._services[service_id]
            missing = [d for d in spec.depends_on if d not in self._services]
            if missing:
                raise UnknownDependencyError(service_id, missing)

        cycle = self._find_cycle()
        if cycle:
            raise CyclicDependencyError(cycle)

    def _find_cycle(self) -> Optional[List[str]]:
        """
        Three-colour depth-first search.

        An edge into an IN_PROGRESS node closes a cycle; the cycle is the
        path suffix starting at that node. Iterative so deep stacks do
        not hit the recursion limit.
        """
        marks = {service_id: _Mark.UNVISITED for service_id in self._services}

        for root in sorted(self._services):
            if marks[root] is not _Mark.UNVISITED:
                continue

            path: List[str] = [root]
            iterators = [iter(sorted(self._services[root].depends_on))]
            marks[root] = _Mark.IN_PROGRESS

            while iterators:
                next_id = next(iterators[-1], None)
                if next_id is None:
                    marks[path.pop()] = _Mark.DONE
                    iterators.pop()
                    continue

                mark = marks[next_id]
                if mark is _Mark.IN_PROGRESS:
                    start = path.index(next_id)
                    return path[start:] + [next_id]
                if mark is _Mark.UNVISITED:
                    marks[next_id] = _Mark.IN_PROGRESS
                    path.append(next_id)
                    iterators.append(iter(sorted(self._services[next_id].depends_on)))

        return None

    # =========================================================================
    # PLAN
    # =========================================================================

    def compute_plan(self) -> OrchestrationPlan:
        """
        Compute topological stages (Kahn's algorithm).

        Validates first, so an invalid graph never yields a plan.
        """
        self.validate()

        remaining: Dict[str, Set[str]] = {
            service_id: set(spec.depends_on)
            for service_id, spec in self._services.items()
        }
        placed: Set[str] = set()
        stages = []

        while remaining:
            stage = sorted(
                service_id for service_id, deps in remaining.items()
                if deps <= placed
            )
            # validate() guarantees progress
            assert stage, f"No schedulable services among {sorted(remaining)}"

            for service_id in stage:
                del remaining[service_id]
            placed.update(stage)
            stages.append(tuple(stage))

        plan = OrchestrationPlan(stack_id=self.stack_id, stages=tuple(stages))
        logger.debug(f"Computed plan for {self.stack_id}: {plan.to_dict()['stages']}")
        return plan

    def subgraph(self, service_ids: Iterable[str]) -> "ServiceGraph":
        """
        Graph restricted to `service_ids` plus their transitive dependencies.

        Used to bring up a single service together with everything it needs.
        """
        wanted: Set[str] = set()
        pending = list(service_ids)
        while pending:
            service_id = pending.pop()
            if service_id in wanted:
                continue
            spec = self.get(service_id)
            wanted.add(service_id)
            pending.extend(d for d in spec.depends_on if d in self._services)

        sub = ServiceGraph(self.stack_id)
        for service_id in sorted(wanted):
            sub.add_service(self._services[service_id])
        return sub


__all__ = ["ServiceGraph"]

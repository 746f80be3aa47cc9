# ============================================================================
# HEALTH PROBE REGISTRY
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Probe plugin registration
# PURPOSE: Map health check types to probe implementations
# CREATED: 16 OCT 2026
# ============================================================================
"""
Health Probe Registry

Maps each HealthCheckType to the probe class that implements it.

Usage:
    # Decorator registration
    @register_probe
    class TcpProbe(HealthProbe):
        check_type = HealthCheckType.TCP
        ...

    # Lookup
    probe_cls = get_registry().get(HealthCheckType.TCP)
"""

import logging
from typing import Dict, List, Optional, Type

from core.contracts import HealthCheckType
from health.core import HealthProbe

logger = logging.getLogger(__name__)


class ProbeRegistry:
    """Registry of probe classes keyed by check type."""

    def __init__(self):
        self._probes: Dict[HealthCheckType, Type[HealthProbe]] = {}

    def register(self, probe_cls: Type[HealthProbe]) -> None:
        """
        Register a probe class for its check type.

        Raises:
            ValueError: If the class does not declare a check_type
        """
        check_type = getattr(probe_cls, "check_type", None)
        if check_type is None:
            raise ValueError(f"{probe_cls.__name__} does not declare check_type")

        if check_type in self._probes:
            logger.warning(
                f"Overwriting probe for {check_type.value}: "
                f"{self._probes[check_type].__name__} -> {probe_cls.__name__}"
            )

        self._probes[check_type] = probe_cls
        logger.debug(f"Registered probe: {check_type.value} -> {probe_cls.__name__}")

    def get(self, check_type: HealthCheckType) -> Optional[Type[HealthProbe]]:
        """Get probe class by check type."""
        return self._probes.get(check_type)

    def get_or_raise(self, check_type: HealthCheckType) -> Type[HealthProbe]:
        probe_cls = self.get(check_type)
        if probe_cls is None:
            raise KeyError(f"No probe registered for check type: {check_type.value}")
        return probe_cls

    def types(self) -> List[HealthCheckType]:
        return sorted(self._probes, key=lambda t: t.value)

    def __len__(self) -> int:
        return len(self._probes)

    def __contains__(self, check_type: HealthCheckType) -> bool:
        return check_type in self._probes


# ============================================================================
# GLOBAL REGISTRY & DECORATOR
# ============================================================================

_registry: Optional[ProbeRegistry] = None


def get_registry() -> ProbeRegistry:
    """Get the global probe registry."""
    global _registry
    if _registry is None:
        _registry = ProbeRegistry()
    return _registry


def register_probe(cls: Type[HealthProbe]) -> Type[HealthProbe]:
    """Class decorator registering a probe in the global registry."""
    get_registry().register(cls)
    return cls


__all__ = ["ProbeRegistry", "get_registry", "register_probe"]

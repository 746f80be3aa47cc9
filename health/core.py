# ============================================================================
# HEALTH PROBE CORE TYPES
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Base classes for readiness probes
# PURPOSE: Probe plugin interface and result types
# CREATED: 16 OCT 2026
# ============================================================================
"""
Health Probe Core Types

Defines the plugin interface and result types for readiness probes.

A probe answers one question for one attempt: is the service healthy
right now? Polling, thresholds and deadlines live in the prober.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Optional

from core.contracts import HealthCheckType
from core.models import HealthCheckSpec

if TYPE_CHECKING:
    from runtime.executor import CommandExecutor


@dataclass
class ProbeResult:
    """Result from a single probe attempt."""
    healthy: bool
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def ok(cls, message: str = None, **details) -> "ProbeResult":
        """Create healthy result."""
        return cls(healthy=True, message=message, details=details)

    @classmethod
    def failed(cls, message: str, **details) -> "ProbeResult":
        """Create unhealthy result."""
        return cls(healthy=False, message=message, details=details)

    @classmethod
    def from_exception(cls, e: Exception) -> "ProbeResult":
        """Create unhealthy result from exception."""
        return cls(
            healthy=False,
            message=str(e) or type(e).__name__,
            details={"exception_type": type(e).__name__},
        )


@dataclass(frozen=True)
class ReadyResult:
    """Returned by the prober once a service is confirmed ready."""
    attempts: int
    duration: float


class HealthProbe(ABC):
    """
    Base class for probe plugins.

    Subclass, set `check_type`, implement check(), and register with
    @register_probe.

    Example:
        @register_probe
        class TcpProbe(HealthProbe):
            check_type = HealthCheckType.TCP

            async def check(self, spec, timeout) -> ProbeResult:
                ...
    """

    check_type: ClassVar[HealthCheckType]

    def __init__(self, executor: Optional["CommandExecutor"] = None):
        self.executor = executor

    @abstractmethod
    async def check(self, spec: HealthCheckSpec, timeout: float) -> ProbeResult:
        """
        Execute one probe attempt.

        Args:
            spec: Health check declaration
            timeout: Budget for this attempt in seconds

        Returns:
            ProbeResult (expected failures are results, not exceptions)
        """
        pass


__all__ = ["ProbeResult", "ReadyResult", "HealthProbe"]

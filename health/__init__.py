# ============================================================================
# HEALTH CHECK MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Infrastructure - Readiness probe plugin system
# PURPOSE: Confirm services are ready, not just started
# CREATED: 16 OCT 2026
# ============================================================================
"""
Health Check Module

Plugin-based readiness probes for supervised services:
- http: GET returns 2xx
- tcp: connection accepted
- command: exits 0

Architecture:
- HealthProbe: Base class for probe plugins
- ProbeRegistry: Plugin discovery and registration
- HealthProber: Polls a probe until threshold, deadline, or cancellation

The supervisor's own /livez and /readyz endpoints live in health.router
and are imported separately (they need FastAPI).

Usage:
    from health import HealthProber, register_probe

    @register_probe
    class MyProbe(HealthProbe):
        check_type = HealthCheckType.HTTP

        async def check(self, spec, timeout) -> ProbeResult:
            return ProbeResult.ok("fine")
"""

from health.core import HealthProbe, ProbeResult, ReadyResult
from health.registry import ProbeRegistry, get_registry, register_probe
from health.prober import HealthProber

__all__ = [
    # Core types
    "HealthProbe",
    "ProbeResult",
    "ReadyResult",
    # Registry
    "ProbeRegistry",
    "register_probe",
    "get_registry",
    # Prober
    "HealthProber",
]

# ============================================================================
# READINESS PROBES
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - HTTP, TCP and command probe implementations
# PURPOSE: One probe attempt per call, failures reported as results
# CREATED: 16 OCT 2026
# ============================================================================
"""
Readiness Probes

- HttpProbe:    GET the target URL, healthy on 2xx
- TcpProbe:     open a TCP connection to host:port and close it
- CommandProbe: run a command, healthy on exit code 0

Importing this module registers all three probes.
"""

import asyncio
import logging

import httpx

from core.contracts import HealthCheckType
from core.errors import CommandTimeoutError
from core.models import HealthCheckSpec
from core.models.service import split_host_port
from health.core import HealthProbe, ProbeResult
from health.registry import register_probe

logger = logging.getLogger(__name__)


@register_probe
class HttpProbe(HealthProbe):
    """HTTP GET readiness probe."""

    check_type = HealthCheckType.HTTP

    async def check(self, spec: HealthCheckSpec, timeout: float) -> ProbeResult:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.get(spec.target)
        except httpx.ConnectError as e:
            return ProbeResult.failed(f"Connection failed: {e}", url=spec.target)
        except httpx.TimeoutException:
            return ProbeResult.failed(f"Timeout after {timeout}s", url=spec.target)
        except httpx.HTTPError as e:
            return ProbeResult.failed(f"HTTP error: {e}", url=spec.target)

        if 200 <= resp.status_code < 300:
            return ProbeResult.ok(f"HTTP {resp.status_code}", url=spec.target)
        return ProbeResult.failed(
            f"HTTP {resp.status_code}",
            url=spec.target,
            status_code=resp.status_code,
        )


@register_probe
class TcpProbe(HealthProbe):
    """TCP connect-and-close readiness probe."""

    check_type = HealthCheckType.TCP

    async def check(self, spec: HealthCheckSpec, timeout: float) -> ProbeResult:
        host, port = split_host_port(spec.target)
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return ProbeResult.failed(f"Connect timeout after {timeout}s", host=host, port=port)
        except OSError as e:
            return ProbeResult.failed(f"Connect failed: {e}", host=host, port=port)

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass  # peer reset on close still proves the port accepted us
        return ProbeResult.ok("Connected", host=host, port=port)


@register_probe
class CommandProbe(HealthProbe):
    """Exit-code readiness probe (e.g. `pg_isready`, `redis-cli ping`)."""

    check_type = HealthCheckType.COMMAND

    async def check(self, spec: HealthCheckSpec, timeout: float) -> ProbeResult:
        if self.executor is None:
            raise RuntimeError("CommandProbe requires a CommandExecutor")

        try:
            result = await self.executor.run(spec.command, timeout=timeout)
        except CommandTimeoutError:
            return ProbeResult.failed(f"Probe command timed out after {timeout}s")

        if result.succeeded:
            return ProbeResult.ok("Exit code 0")
        return ProbeResult.failed(result.error_summary(limit=200), exit_code=result.exit_code)


__all__ = ["HttpProbe", "TcpProbe", "CommandProbe"]

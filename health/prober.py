# ============================================================================
# HEALTH PROBER
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Readiness polling
# PURPOSE: Poll a probe until threshold, deadline, or cancellation
# CREATED: 16 OCT 2026
# ============================================================================
"""
Health Prober

wait_ready() polls a service's probe at `interval_seconds` until:
- `success_threshold` consecutive attempts succeed   -> ReadyResult
- the deadline passes                                -> HealthTimeoutError
- the cancel event is set                            -> Cancelled

Each attempt gets min(timeout_seconds, time left before the deadline), so
a hung probe can never hold the caller past the deadline. A failed attempt
resets the consecutive-success counter.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from core.contracts import HealthCheckType
from core.errors import Cancelled, HealthTimeoutError
from core.models import HealthCheckSpec
from health.core import HealthProbe, ProbeResult, ReadyResult
from health.registry import ProbeRegistry, get_registry
from runtime.executor import CommandExecutor
from runtime.timing import sleep_unless_cancelled

# Register built-in probes
import health.probes  # noqa: F401

logger = logging.getLogger(__name__)


class HealthProber:
    """
    Polls readiness probes.

    Stateless between calls; one prober serves every service of a run.
    """

    def __init__(
        self,
        executor: Optional[CommandExecutor] = None,
        registry: Optional[ProbeRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize prober.

        Args:
            executor: Executor for command probes
            registry: Probe registry (uses global if None)
            clock: Monotonic clock; deadlines are expressed on it
        """
        self.executor = executor or CommandExecutor()
        self.registry = registry or get_registry()
        self.clock = clock
        self._probes: Dict[HealthCheckType, HealthProbe] = {}

    def _probe_for(self, check_type: HealthCheckType) -> HealthProbe:
        if check_type not in self._probes:
            probe_cls = self.registry.get_or_raise(check_type)
            self._probes[check_type] = probe_cls(executor=self.executor)
        return self._probes[check_type]

    def deadline_for(self, spec: HealthCheckSpec) -> float:
        """Absolute deadline for a wait starting now."""
        return self.clock() + spec.deadline_seconds

    async def probe_once(
        self,
        spec: HealthCheckSpec,
        timeout: float,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProbeResult:
        """
        Run a single bounded probe attempt.

        Raises:
            Cancelled: cancel_event fired during the attempt
        """
        probe = self._probe_for(spec.type)
        start_time = self.clock()

        attempt = asyncio.ensure_future(probe.check(spec, timeout))
        cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event else None
        waiters = {attempt} | ({cancel_waiter} if cancel_waiter else set())

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            attempt.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if attempt not in done:
            attempt.cancel()
            try:
                await attempt
            except (asyncio.CancelledError, Exception):
                pass  # the attempt is abandoned either way
            if cancel_waiter is not None and cancel_waiter in done:
                raise Cancelled("Probe cancelled")
            result = ProbeResult.failed(f"Timeout after {timeout:.2f}s")
        else:
            try:
                result = attempt.result()
            except Exception as e:
                logger.debug(f"Probe {spec.type.value} raised: {e}")
                result = ProbeResult.from_exception(e)

        result.duration_ms = (self.clock() - start_time) * 1000
        return result

    async def wait_ready(
        self,
        spec: HealthCheckSpec,
        deadline: float,
        cancel_event: Optional[asyncio.Event] = None,
        service_id: str = "service",
    ) -> ReadyResult:
        """
        Poll until ready, deadline, or cancellation.

        Args:
            spec: Health check declaration
            deadline: Absolute time on `self.clock` after which to give up
            cancel_event: Set to stop polling
            service_id: Used in logs and errors

        Returns:
            ReadyResult with the number of attempts made

        Raises:
            HealthTimeoutError: deadline passed before the threshold was met
            Cancelled: cancel_event was set
        """
        started = self.clock()
        attempts = 0
        consecutive = 0
        last_message: Optional[str] = None

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise Cancelled(f"Readiness wait cancelled for {service_id}")

            remaining = deadline - self.clock()
            if remaining <= 0:
                raise HealthTimeoutError(service_id, attempts, last_message)

            attempts += 1
            result = await self.probe_once(
                spec, min(spec.timeout_seconds, remaining), cancel_event
            )

            if result.healthy:
                consecutive += 1
                logger.debug(
                    f"Probe {service_id}: healthy ({consecutive}/{spec.success_threshold}, "
                    f"{result.duration_ms:.1f}ms)"
                )
                if consecutive >= spec.success_threshold:
                    return ReadyResult(attempts=attempts, duration=self.clock() - started)
            else:
                consecutive = 0
                last_message = result.message
                logger.debug(f"Probe {service_id}: unhealthy ({result.message})")

            remaining = deadline - self.clock()
            if remaining <= 0:
                raise HealthTimeoutError(service_id, attempts, last_message)

            if await sleep_unless_cancelled(min(spec.interval_seconds, remaining), cancel_event):
                raise Cancelled(f"Readiness wait cancelled for {service_id}")


__all__ = ["HealthProber"]

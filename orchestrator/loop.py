# ============================================================================
# ORCHESTRATION LOOP
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Stage-by-stage bring-up and teardown
# PURPOSE: Drive a stack to READY, retrying with backoff; tear it down in reverse
# CREATED: 16 OCT 2026
# ============================================================================
"""
Orchestration Loop

up() walks the plan one stage at a time:
1. Skip services that are already READY
2. Run start -> probe for every other service of the stage concurrently
3. Wait for all of them (a stage is a barrier)
4. A failed attempt goes FAILED -> RETRYING -> (backoff) -> STARTING
5. A service out of retries goes ABORTED; its stage siblings are told
   to stop and no later stage starts

down() walks the plan backward and stops every service that may hold
resources. It is best-effort: a failed stop is recorded and teardown
continues with the remaining services.

cancel() may be called from any thread. In-flight commands are killed,
probes and backoff sleeps end early, and no further stage starts. If the
in-flight work does not drain within the cancel grace period,
TeardownTimeoutError is raised.
"""

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from core.config import TimeoutDefaults, get_defaults
from core.contracts import ExitCode, RunOutcome, ServicePhase
from core.errors import (
    Cancelled,
    CommandTimeoutError,
    HealthTimeoutError,
    ServiceAbortedError,
    TeardownTimeoutError,
)
from core.logging import log_checkpoint, log_context
from core.models import OrchestrationPlan, ServiceSpec, StateSnapshot
from health.prober import HealthProber
from orchestrator.state import StateTable
from runtime.executor import CommandExecutor
from runtime.timing import sleep_unless_cancelled
from services.graph import ServiceGraph

logger = logging.getLogger(__name__)

SleepFn = Callable[[float, Optional[asyncio.Event]], Awaitable[bool]]

CANCELLED_BY_OPERATOR = "cancelled by operator"


class _StartOutcome(Enum):
    READY = "ready"
    ABORTED = "aborted"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class RunResult:
    """Result of an up() run."""
    outcome: RunOutcome
    plan: OrchestrationPlan
    snapshot: StateSnapshot
    run_id: Optional[str]
    aborted_service: Optional[str] = None

    @property
    def exit_code(self) -> ExitCode:
        if self.outcome == RunOutcome.ABORTED:
            return ExitCode.ABORTED
        return ExitCode.SUCCESS

    def raise_for_outcome(self) -> None:
        """
        Raise if the run aborted.

        Raises:
            ServiceAbortedError: a service exhausted its retries
        """
        if self.outcome != RunOutcome.ABORTED:
            return
        state = self.snapshot.get(self.aborted_service)
        raise ServiceAbortedError(
            self.aborted_service,
            state.attempts if state else 0,
            state.last_error if state else None,
        )


@dataclass(frozen=True)
class TeardownResult:
    """Result of a down() pass."""
    stopped: Tuple[str, ...] = ()
    failed: Tuple[str, ...] = ()
    timed_out: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()
    snapshot: Optional[StateSnapshot] = field(default=None, compare=False)

    @property
    def clean(self) -> bool:
        return not self.failed and not self.timed_out

    @property
    def exit_code(self) -> ExitCode:
        return ExitCode.SUCCESS if self.clean else ExitCode.TEARDOWN_TIMEOUT


class Orchestrator:
    """
    Control loop for one stack.

    Owns the StateTable; every other component only reads snapshots.
    """

    def __init__(
        self,
        graph: ServiceGraph,
        executor: Optional[CommandExecutor] = None,
        prober: Optional[HealthProber] = None,
        state: Optional[StateTable] = None,
        timeouts: Optional[TimeoutDefaults] = None,
        sleep: SleepFn = sleep_unless_cancelled,
    ):
        """
        Initialize orchestrator.

        Args:
            graph: Declared services
            executor: Runs start/stop commands
            prober: Waits for readiness
            state: State table (a fresh one if None)
            timeouts: Command and cancel-grace timeouts (defaults if None)
            sleep: Backoff sleep; returns True if interrupted
        """
        self.graph = graph
        self.executor = executor or CommandExecutor()
        self.prober = prober or HealthProber(executor=self.executor)
        self.state = state or StateTable(
            [s.service_id for s in graph.services()], stack_id=graph.stack_id
        )
        self.timeouts = timeouts or get_defaults().timeouts
        self._sleep = sleep

        self._plan: Optional[OrchestrationPlan] = None
        self._running = False
        self._operation: Optional[str] = None
        self._started_at: Optional[datetime] = None
        self._last_outcome: Optional[RunOutcome] = None

        # Cancellation (cancel() may come from another thread)
        self._cancel_lock = threading.Lock()
        self._cancel_requested = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._cancel_event: Optional[asyncio.Event] = None
        self._stage_stop: Optional[asyncio.Event] = None
        self._abort_reason: Optional[str] = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def plan(self) -> OrchestrationPlan:
        """
        Plan for the full graph, computed once.

        Raises:
            GraphValidationError: invalid graph (nothing has been started)
        """
        if self._plan is None:
            self._plan = self.graph.compute_plan()
        return self._plan

    def snapshot(self) -> StateSnapshot:
        return self.state.snapshot()

    async def up(self, service_ids: Optional[Iterable[str]] = None) -> RunResult:
        """
        Bring the stack (or `service_ids` plus their dependencies) to READY.

        Raises:
            GraphValidationError: pre-flight failure, before any side effect
            TeardownTimeoutError: cancelled work did not drain in time
        """
        plan = self._plan_for(service_ids)
        self._begin("up")
        try:
            return await self._up(plan)
        finally:
            self._end()

    async def down(self) -> TeardownResult:
        """
        Stop every service that may hold resources, dependents first.

        Never raises for a failed stop; failures are reported in the result.
        """
        self._begin("down")
        try:
            return await self._down()
        finally:
            self._end()

    async def restart(
        self, service_ids: Optional[Iterable[str]] = None
    ) -> Tuple[TeardownResult, RunResult]:
        """
        Tear the stack down, then bring it back up.

        One operation for cancellation: a cancel during the teardown means
        nothing is started afterwards.
        """
        plan = self._plan_for(service_ids)
        self._begin("restart")
        try:
            teardown = await self._down()
            if self._cancel_requested:
                logger.warning("Restart cancelled after teardown; not starting")
                self._last_outcome = RunOutcome.CANCELLED
                snapshot = self.snapshot()
                return teardown, RunResult(
                    outcome=RunOutcome.CANCELLED,
                    plan=plan,
                    snapshot=snapshot,
                    run_id=snapshot.run_id,
                )
            if not teardown.clean:
                logger.warning("Teardown was incomplete; starting anyway")
            return teardown, await self._up(plan)
        finally:
            self._end()

    def cancel(self) -> None:
        """
        Request cancellation of the current up() or restart().

        Safe to call from any thread, including signal handlers.
        """
        with self._cancel_lock:
            self._cancel_requested = True
            loop = self._loop
        logger.warning("Cancellation requested")
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._signal_cancel()
        else:
            loop.call_soon_threadsafe(self._signal_cancel)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> Dict[str, Any]:
        """Get orchestrator statistics."""
        snapshot = self.snapshot()
        return {
            "stack_id": self.graph.stack_id,
            "running": self._running,
            "operation": self._operation,
            "run_id": snapshot.run_id,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "last_outcome": self._last_outcome.value if self._last_outcome else None,
            "cancel_requested": self._cancel_requested,
            "services": len(snapshot.services),
            "ready": sum(1 for s in snapshot.services if s.is_ready),
        }

    # =========================================================================
    # RUN BOOKKEEPING
    # =========================================================================

    def _begin(self, operation: str) -> None:
        with self._cancel_lock:
            self._loop = asyncio.get_running_loop()
            self._cancel_requested = False
            self._cancel_event = asyncio.Event()
        self._running = True
        self._operation = operation
        self._started_at = datetime.now(timezone.utc)

    def _end(self) -> None:
        with self._cancel_lock:
            self._loop = None
            self._cancel_event = None
            self._stage_stop = None
        self._running = False
        self._operation = None

    def _signal_cancel(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()
        if self._stage_stop is not None:
            self._stage_stop.set()

    # =========================================================================
    # BRING-UP
    # =========================================================================

    def _plan_for(self, service_ids: Optional[Iterable[str]]) -> OrchestrationPlan:
        if service_ids:
            return self.graph.subgraph(service_ids).compute_plan()
        return self.plan

    async def _up(self, plan: OrchestrationPlan) -> RunResult:
        run_id = uuid.uuid4().hex[:12]
        self.state.begin_run(run_id, plan.service_ids())

        with log_context(run_id=run_id, stack_id=self.graph.stack_id, operation="up"):
            log_checkpoint("run_started", {"stages": plan.to_dict()["stages"]}, logger)
            outcome, aborted_service = await self._run_stages(plan)
            log_checkpoint(f"run_{outcome.value}", {"aborted_service": aborted_service}, logger)

        self._last_outcome = outcome
        result = RunResult(
            outcome=outcome,
            plan=plan,
            snapshot=self.snapshot(),
            run_id=run_id,
            aborted_service=aborted_service,
        )
        if outcome == RunOutcome.COMPLETED:
            logger.info(f"Stack {self.graph.stack_id} is up ({len(plan.service_ids())} services)")
        elif outcome == RunOutcome.ABORTED:
            logger.error(f"Stack {self.graph.stack_id} aborted: {aborted_service} did not become ready")
        else:
            logger.warning(f"Stack {self.graph.stack_id} bring-up cancelled")
        return result

    async def _run_stages(self, plan: OrchestrationPlan) -> Tuple[RunOutcome, Optional[str]]:
        for index, stage in enumerate(plan.stages):
            if self._cancel_requested:
                return RunOutcome.CANCELLED, None

            pending = [s for s in stage if self.state.phase(s) != ServicePhase.READY]
            if not pending:
                logger.info(f"Stage {index}: all {len(stage)} service(s) already ready")
                continue

            with log_context(stage=index):
                logger.info(f"Stage {index}: starting {', '.join(pending)}")
                aborted_service = await self._run_stage(pending)

                if aborted_service is not None:
                    log_checkpoint("stage_aborted", {"service_id": aborted_service}, logger)
                    return RunOutcome.ABORTED, aborted_service
                if self._cancel_requested:
                    return RunOutcome.CANCELLED, None
                log_checkpoint("stage_completed", {"services": list(stage)}, logger)

        return RunOutcome.COMPLETED, None

    async def _run_stage(self, service_ids: List[str]) -> Optional[str]:
        """
        Run one stage to its barrier.

        Returns:
            The first service that aborted, or None

        Raises:
            TeardownTimeoutError: cancelled tasks did not finish within grace
        """
        stop = asyncio.Event()
        self._stage_stop = stop
        self._abort_reason = None
        if self._cancel_requested:
            stop.set()

        tasks: Dict[asyncio.Task, str] = {
            asyncio.create_task(self._bring_up(service_id, stop), name=f"up:{service_id}"): service_id
            for service_id in service_ids
        }
        cancel_waiter = asyncio.ensure_future(self._cancel_event.wait())
        remaining = set(tasks)
        aborted_service: Optional[str] = None

        try:
            while remaining and not cancel_waiter.done():
                done, _ = await asyncio.wait(
                    remaining | {cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    if task is cancel_waiter:
                        continue
                    remaining.discard(task)
                    if task.result() is _StartOutcome.ABORTED and aborted_service is None:
                        aborted_service = tasks[task]
                        self._abort_reason = f"stage aborted: {aborted_service} failed"
                        stop.set()

            if remaining:
                grace = self.timeouts.cancel_grace_seconds
                done, still_running = await asyncio.wait(remaining, timeout=grace)
                remaining = still_running
                if still_running:
                    pending_ids = sorted(tasks[t] for t in still_running)
                    logger.error(f"In-flight work did not drain within {grace}s: {pending_ids}")
                    raise TeardownTimeoutError(pending_ids, grace)
        finally:
            cancel_waiter.cancel()
            for task in remaining:
                task.cancel()
            self._stage_stop = None

        return aborted_service

    async def _bring_up(self, service_id: str, stop: asyncio.Event) -> _StartOutcome:
        """Start -> probe -> retry loop for one service."""
        spec = self.graph.get(service_id)
        policy = spec.restart

        with log_context(service_id=service_id):
            while True:
                if stop.is_set():
                    return self._interrupted(service_id)

                state = self.state.get(service_id)
                attempt = state.attempts + 1
                self.state.transition(service_id, ServicePhase.STARTING, attempts=attempt)
                logger.info(
                    f"Starting {service_id} (attempt {attempt}/{policy.max_retries + 1})"
                )

                try:
                    error = await self._attempt_start(spec, stop)
                except Cancelled:
                    return self._interrupted(service_id)

                if error is None:
                    self.state.transition(
                        service_id, ServicePhase.READY, consecutive_failures=0, last_error=None
                    )
                    logger.info(f"{service_id} is ready")
                    return _StartOutcome.READY

                failures = self.state.get(service_id).consecutive_failures + 1
                self.state.transition(
                    service_id, ServicePhase.FAILED, error=error, consecutive_failures=failures
                )

                if failures > policy.max_retries:
                    self.state.transition(service_id, ServicePhase.ABORTED)
                    logger.error(
                        f"{service_id} aborted after {attempt} attempt(s): {error}"
                    )
                    return _StartOutcome.ABORTED

                delay = policy.delay_for(failures - 1)
                self.state.transition(service_id, ServicePhase.RETRYING)
                logger.warning(
                    f"{service_id} failed ({error}); retry {failures}/{policy.max_retries} "
                    f"in {delay:.1f}s"
                )
                if await self._sleep(delay, stop):
                    return self._interrupted(service_id)

    async def _attempt_start(self, spec: ServiceSpec, stop: asyncio.Event) -> Optional[str]:
        """
        One start attempt.

        Returns:
            None when the service is ready, otherwise a failure description

        Raises:
            Cancelled: stop was signalled mid-attempt
        """
        timeout = spec.start.effective_timeout(self.timeouts.start_timeout_seconds)
        try:
            result = await self.executor.run(spec.start, timeout=timeout, cancel_event=stop)
        except CommandTimeoutError as e:
            return str(e)

        if not result.succeeded:
            return f"start command failed: {result.error_summary()}"

        self.state.transition(spec.service_id, ServicePhase.HEALTH_CHECKING)
        if spec.health is None:
            return None

        try:
            ready = await self.prober.wait_ready(
                spec.health,
                self.prober.deadline_for(spec.health),
                cancel_event=stop,
                service_id=spec.service_id,
            )
        except HealthTimeoutError as e:
            return str(e)

        logger.debug(f"{spec.service_id} healthy after {ready.attempts} probe(s)")
        return None

    def _interrupted(self, service_id: str) -> _StartOutcome:
        """Record why a service stopped mid-sequence."""
        if self._cancel_requested:
            self.state.update(service_id, last_error=CANCELLED_BY_OPERATOR)
        elif self.state.phase(service_id) == ServicePhase.PENDING:
            self.state.update(service_id, last_error=self._abort_reason)
        else:
            reason = self._abort_reason or "stage aborted"
            self.state.transition(service_id, ServicePhase.ABORTED, error=reason)
            logger.warning(f"{service_id} stopped: {reason}")
        return _StartOutcome.INTERRUPTED

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    async def _down(self) -> TeardownResult:
        plan = self.plan
        stopped: List[str] = []
        failed: List[str] = []
        timed_out: List[str] = []
        skipped: List[str] = []

        with log_context(stack_id=self.graph.stack_id, operation="down"):
            log_checkpoint("teardown_started", None, logger)
            for stage in plan.teardown_order():
                targets = []
                for service_id in stage:
                    if self.state.phase(service_id).needs_teardown():
                        targets.append(service_id)
                    else:
                        skipped.append(service_id)
                if not targets:
                    continue

                outcomes = await asyncio.gather(*(self._stop_service(s) for s in targets))
                for service_id, outcome in zip(targets, outcomes):
                    if outcome == "stopped":
                        stopped.append(service_id)
                    elif outcome == "timed_out":
                        timed_out.append(service_id)
                    else:
                        failed.append(service_id)

            log_checkpoint(
                "teardown_completed",
                {"stopped": stopped, "failed": failed, "timed_out": timed_out},
                logger,
            )

        result = TeardownResult(
            stopped=tuple(stopped),
            failed=tuple(failed),
            timed_out=tuple(timed_out),
            skipped=tuple(skipped),
            snapshot=self.snapshot(),
        )
        if result.clean:
            logger.info(f"Stack {self.graph.stack_id} is down ({len(stopped)} stopped)")
        else:
            logger.error(
                f"Teardown of {self.graph.stack_id} incomplete: "
                f"failed={list(failed)} timed_out={list(timed_out)}"
            )
        return result

    async def _stop_service(self, service_id: str) -> str:
        """Run one stop command; returns "stopped", "failed" or "timed_out"."""
        spec = self.graph.get(service_id)
        with log_context(service_id=service_id):
            # STOPPING is possible when restored from an interrupted down
            if self.state.phase(service_id) != ServicePhase.STOPPING:
                self.state.transition(service_id, ServicePhase.STOPPING)
            logger.info(f"Stopping {service_id}")

            timeout = spec.stop.effective_timeout(self.timeouts.stop_timeout_seconds)
            try:
                result = await self.executor.run(spec.stop, timeout=timeout)
            except CommandTimeoutError as e:
                self.state.transition(service_id, ServicePhase.FAILED, error=f"stop: {e}")
                logger.error(f"Stop of {service_id} timed out after {timeout}s")
                return "timed_out"

            if not result.succeeded:
                error = f"stop command failed: {result.error_summary()}"
                self.state.transition(service_id, ServicePhase.FAILED, error=error)
                logger.error(f"{service_id}: {error}")
                return "failed"

            self.state.transition(
                service_id, ServicePhase.STOPPED, consecutive_failures=0, last_error=None
            )
            return "stopped"


__all__ = ["Orchestrator", "RunResult", "TeardownResult", "CANCELLED_BY_OPERATOR"]

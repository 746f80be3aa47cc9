# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Tests - Fakes and factories
# PURPOSE: Scripted executor/prober and service factories for the test suite
# CREATED: 16 OCT 2026
# ============================================================================
"""
Shared fixtures.

The fakes stand in for the container runtime and the health boundary:

- FakeExecutor: commands are keyed by their argv; each key has a script
  of outcomes (exit code, "timeout" or "hang"). The last outcome repeats.
- FakeProber: per-service script of "ready", "timeout", "hang" or
  "stuck" (ignores cancellation).
- RecordingSleep: records backoff delays instead of sleeping.
"""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from core.config import reset_defaults
from core.errors import Cancelled, CommandTimeoutError, HealthTimeoutError
from core.models import ServiceSpec
from health.core import ReadyResult
from runtime.executor import CommandResult
from services.graph import ServiceGraph


class FakeExecutor:
    """Scripted stand-in for CommandExecutor."""

    def __init__(self):
        self.calls: List[Tuple[str, ...]] = []
        self.scripts: Dict[Tuple[str, ...], List] = {}

    def script(self, argv: Sequence[str], *outcomes) -> None:
        self.scripts[tuple(argv)] = list(outcomes)

    def _next_outcome(self, key: Tuple[str, ...]):
        outcomes = self.scripts.get(key)
        if not outcomes:
            return 0
        if len(outcomes) > 1:
            return outcomes.pop(0)
        return outcomes[0]

    def calls_for(self, verb: str) -> List[str]:
        """Service ids of every call whose argv starts with `verb`."""
        return [argv[1] for argv in self.calls if argv[0] == verb]

    async def run(self, command, timeout=None, cancel_event: Optional[asyncio.Event] = None):
        key = tuple(command.argv)
        self.calls.append(key)
        outcome = self._next_outcome(key)

        if outcome == "timeout":
            raise CommandTimeoutError(command.argv, timeout or 0)
        if outcome == "hang":
            if cancel_event is None:
                await asyncio.Event().wait()
            await cancel_event.wait()
            raise Cancelled(f"Command cancelled: {command.display()}")

        await asyncio.sleep(0)
        return CommandResult(
            exit_code=outcome,
            stdout="",
            stderr="" if outcome == 0 else f"{key[0]} failed",
            duration=0.0,
        )

    async def stream(self, command) -> int:
        self.calls.append(tuple(command.argv))
        return 0


class FakeProber:
    """Scripted stand-in for HealthProber."""

    def __init__(self):
        self.calls: List[str] = []
        self.scripts: Dict[str, List[str]] = {}
        self.waiting: Dict[str, asyncio.Event] = {}

    def script(self, service_id: str, *outcomes: str) -> None:
        self.scripts[service_id] = list(outcomes)

    def deadline_for(self, spec) -> float:
        return 0.0

    async def wait_ready(self, spec, deadline, cancel_event=None, service_id="service"):
        self.calls.append(service_id)
        outcomes = self.scripts.get(service_id) or ["ready"]
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]

        if outcome == "timeout":
            raise HealthTimeoutError(service_id, 3, "connection refused")
        if outcome in ("hang", "stuck"):
            started = self.waiting.setdefault(service_id, asyncio.Event())
            started.set()
            if outcome == "stuck":
                await asyncio.Event().wait()
            await cancel_event.wait()
            raise Cancelled(f"Readiness wait cancelled for {service_id}")

        await asyncio.sleep(0)
        return ReadyResult(attempts=1, duration=0.0)


class RecordingSleep:
    """Backoff sleep that records delays and returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float, cancel_event=None) -> bool:
        self.delays.append(delay)
        await asyncio.sleep(0)
        return cancel_event is not None and cancel_event.is_set()


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def fresh_defaults(monkeypatch):
    """Isolate tests from STACK_* variables in the caller's environment."""
    for name in (
        "STACK_FILE",
        "STACK_STATE_FILE",
        "STACK_MAX_RETRIES",
        "STACK_CANCEL_GRACE_SEC",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_defaults()
    yield
    reset_defaults()


@pytest.fixture
def make_service():
    """Factory for ServiceSpec instances with fake start/stop commands."""
    def _make(
        service_id: str,
        depends_on: Sequence[str] = (),
        health: bool = True,
        max_retries: int = 2,
        backoff_base: float = 1.0,
        backoff_multiplier: float = 2.0,
        backoff_cap: float = 30.0,
        **extra,
    ) -> ServiceSpec:
        data = {
            "id": service_id,
            "depends_on": list(depends_on),
            "start": ["start", service_id],
            "stop": ["stop", service_id],
            "restart": {
                "max_retries": max_retries,
                "backoff_base_seconds": backoff_base,
                "backoff_multiplier": backoff_multiplier,
                "backoff_cap_seconds": backoff_cap,
            },
            **extra,
        }
        if health:
            data["health"] = {"type": "command", "command": ["probe", service_id]}
        return ServiceSpec.model_validate(data)
    return _make


@pytest.fixture
def make_graph():
    """Factory for a ServiceGraph from ServiceSpecs."""
    def _make(*services: ServiceSpec, stack_id: str = "test-stack") -> ServiceGraph:
        graph = ServiceGraph(stack_id)
        for spec in services:
            graph.add_service(spec)
        return graph
    return _make


@pytest.fixture
def parking_graph(make_service, make_graph):
    """db <- auth <- gateway, the canonical three-service chain."""
    return make_graph(
        make_service("db"),
        make_service("auth", depends_on=["db"]),
        make_service("gateway", depends_on=["auth"]),
    )


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def fake_prober():
    return FakeProber()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()

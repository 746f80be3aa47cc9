# ============================================================================
# APPLICATION SHUTDOWN TESTS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Tests - Supervisor shutdown
# PURPOSE: Verify a background bring-up is stopped at every point in its life
# CREATED: 16 OCT 2026
# ============================================================================
"""
Application Shutdown Tests

Run with:
    pytest tests/test_main.py -v
"""

import asyncio

from core.contracts import RunOutcome
from main import stop_bring_up
from orchestrator import Orchestrator


class TestStopBringUp:

    def test_bring_up_that_has_not_started_never_starts(
        self, parking_graph, fake_executor, fake_prober, recording_sleep
    ):
        orch = Orchestrator(
            parking_graph, executor=fake_executor, prober=fake_prober, sleep=recording_sleep
        )

        async def scenario():
            task = asyncio.create_task(orch.up())
            await stop_bring_up(orch, task)
            return task

        task = asyncio.run(scenario())

        assert task.cancelled()
        assert fake_executor.calls == []
        assert not orch.is_running

    def test_bring_up_in_flight_is_cancelled(
        self, parking_graph, fake_executor, fake_prober, recording_sleep
    ):
        fake_prober.script("auth", "hang")
        orch = Orchestrator(
            parking_graph, executor=fake_executor, prober=fake_prober, sleep=recording_sleep
        )

        async def scenario():
            task = asyncio.create_task(orch.up())
            while "auth" not in fake_prober.waiting:
                await asyncio.sleep(0.01)
            await stop_bring_up(orch, task)
            return task.result()

        result = asyncio.run(scenario())

        assert result.outcome == RunOutcome.CANCELLED
        assert "gateway" not in fake_executor.calls_for("start")

    def test_finished_bring_up_is_left_alone(
        self, parking_graph, fake_executor, fake_prober, recording_sleep
    ):
        orch = Orchestrator(
            parking_graph, executor=fake_executor, prober=fake_prober, sleep=recording_sleep
        )

        async def scenario():
            task = asyncio.create_task(orch.up())
            await task
            await stop_bring_up(orch, task)
            return task.result()

        result = asyncio.run(scenario())

        assert result.outcome == RunOutcome.COMPLETED
        assert orch.stats["last_outcome"] == "completed"

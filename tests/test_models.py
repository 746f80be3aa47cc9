# ============================================================================
# MODEL TESTS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Tests - Pydantic models and lifecycle contracts
# PURPOSE: Verify declaration validation, backoff, and phase transitions
# CREATED: 16 OCT 2026
# ============================================================================
"""
Model Tests

Run with:
    pytest tests/test_models.py -v
"""

import pytest
from pydantic import ValidationError

from core.contracts import HealthCheckType, ServicePhase
from core.models import (
    CommandSpec,
    HealthCheckSpec,
    OrchestrationPlan,
    RestartPolicy,
    ServiceSpec,
    ServiceState,
    StackDefinition,
    StateSnapshot,
)


# ============================================================================
# COMMANDS
# ============================================================================

class TestCommandSpec:

    def test_string_is_split_shell_style(self):
        cmd = CommandSpec.model_validate("docker compose up -d 'my db'")

        assert cmd.argv == ["docker", "compose", "up", "-d", "my db"]
        assert cmd.display() == "docker compose up -d 'my db'"

    def test_list_form(self):
        cmd = CommandSpec.model_validate(["true"])
        assert cmd.argv == ["true"]

    def test_mapping_form_with_timeout(self):
        cmd = CommandSpec.model_validate(
            {"argv": "docker compose stop db", "timeout_seconds": 5, "env": {"A": "1"}}
        )

        assert cmd.argv[-1] == "db"
        assert cmd.effective_timeout(30.0) == 5
        assert cmd.env == {"A": "1"}

    def test_effective_timeout_falls_back(self):
        assert CommandSpec.model_validate("true").effective_timeout(30.0) == 30.0

    def test_empty_command_rejected(self):
        with pytest.raises(ValidationError):
            CommandSpec.model_validate("")


# ============================================================================
# HEALTH CHECKS
# ============================================================================

class TestHealthCheckSpec:

    def test_http_requires_url(self):
        with pytest.raises(ValidationError):
            HealthCheckSpec(type="http", target="localhost:8000")

        spec = HealthCheckSpec(type="http", target="http://localhost:8000/health")
        assert spec.type == HealthCheckType.HTTP

    def test_tcp_requires_host_and_port(self):
        with pytest.raises(ValidationError):
            HealthCheckSpec(type="tcp", target="localhost")

        spec = HealthCheckSpec(type="tcp", target="localhost:5432")
        assert spec.target == "localhost:5432"

    def test_command_requires_command(self):
        with pytest.raises(ValidationError):
            HealthCheckSpec(type="command")

        spec = HealthCheckSpec(type="command", command="pg_isready")
        assert spec.command.argv == ["pg_isready"]

    def test_defaults_come_from_configuration(self, monkeypatch):
        from core.config import reset_defaults

        monkeypatch.setenv("STACK_PROBE_DEADLINE_SEC", "12")
        reset_defaults()

        spec = HealthCheckSpec(type="tcp", target="db:5432")

        assert spec.deadline_seconds == 12.0
        assert spec.success_threshold == 1

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            HealthCheckSpec(type="tcp", target="db:5432", timeout_seconds=0)


# ============================================================================
# RESTART POLICY
# ============================================================================

class TestRestartPolicy:

    def test_exponential_then_capped(self):
        policy = RestartPolicy(
            max_retries=5,
            backoff_base_seconds=1.0,
            backoff_multiplier=2.0,
            backoff_cap_seconds=10.0,
        )

        assert [policy.delay_for(i) for i in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_non_decreasing_for_any_valid_multiplier(self):
        policy = RestartPolicy(
            backoff_base_seconds=0.5, backoff_multiplier=1.0, backoff_cap_seconds=3.0
        )
        delays = [policy.delay_for(i) for i in range(20)]

        assert delays == sorted(delays)
        assert all(d <= 3.0 for d in delays)

    def test_huge_attempt_does_not_overflow(self):
        policy = RestartPolicy(backoff_multiplier=10.0, backoff_cap_seconds=30.0)
        assert policy.delay_for(10_000) == 30.0

    def test_multiplier_below_one_rejected(self):
        with pytest.raises(ValidationError):
            RestartPolicy(backoff_multiplier=0.5)

    def test_negative_attempt_rejected(self):
        with pytest.raises(ValueError):
            RestartPolicy().delay_for(-1)


# ============================================================================
# SERVICE / STACK
# ============================================================================

class TestServiceSpec:

    def test_id_alias_and_string_dependency(self):
        spec = ServiceSpec.model_validate(
            {"id": "auth", "depends_on": "db", "start": "up auth", "stop": "stop auth"}
        )

        assert spec.service_id == "auth"
        assert spec.depends_on == ["db"]
        assert spec.health is None
        assert spec.restart.max_retries == 2

    def test_duplicate_dependency_rejected(self):
        with pytest.raises(ValidationError):
            ServiceSpec.model_validate(
                {"id": "auth", "depends_on": ["db", "db"], "start": "a", "stop": "b"}
            )

    def test_invalid_id_rejected(self):
        with pytest.raises(ValidationError):
            ServiceSpec.model_validate({"id": "has space", "start": "a", "stop": "b"})

    def test_stack_lookup(self):
        stack = StackDefinition.model_validate({
            "stack_id": "demo",
            "services": [
                {"id": "db", "start": "a", "stop": "b"},
                {"id": "api", "depends_on": ["db"], "start": "a", "stop": "b"},
            ],
        })

        assert stack.service_ids() == ["db", "api"]
        assert stack.get_service("api").depends_on == ["db"]
        with pytest.raises(KeyError):
            stack.get_service("nope")

    def test_stack_needs_services(self):
        with pytest.raises(ValidationError):
            StackDefinition.model_validate({"stack_id": "demo", "services": []})


# ============================================================================
# LIFECYCLE
# ============================================================================

class TestServicePhase:

    @pytest.mark.parametrize("source,target", [
        (ServicePhase.PENDING, ServicePhase.STARTING),
        (ServicePhase.STARTING, ServicePhase.HEALTH_CHECKING),
        (ServicePhase.HEALTH_CHECKING, ServicePhase.READY),
        (ServicePhase.HEALTH_CHECKING, ServicePhase.FAILED),
        (ServicePhase.FAILED, ServicePhase.RETRYING),
        (ServicePhase.RETRYING, ServicePhase.STARTING),
        (ServicePhase.FAILED, ServicePhase.ABORTED),
        (ServicePhase.READY, ServicePhase.STOPPING),
        (ServicePhase.STOPPING, ServicePhase.STOPPED),
        (ServicePhase.STOPPING, ServicePhase.FAILED),
    ])
    def test_allowed(self, source, target):
        assert source.can_transition_to(target)

    @pytest.mark.parametrize("source,target", [
        (ServicePhase.PENDING, ServicePhase.READY),
        (ServicePhase.STARTING, ServicePhase.READY),
        (ServicePhase.READY, ServicePhase.STARTING),
        (ServicePhase.ABORTED, ServicePhase.STARTING),
        (ServicePhase.STOPPED, ServicePhase.STOPPING),
    ])
    def test_rejected(self, source, target):
        assert not source.can_transition_to(target)

    def test_teardown_phases(self):
        assert not ServicePhase.PENDING.needs_teardown()
        assert not ServicePhase.STOPPED.needs_teardown()
        assert ServicePhase.READY.needs_teardown()
        assert ServicePhase.ABORTED.needs_teardown()
        assert ServicePhase.STARTING.needs_teardown()


class TestServiceState:

    def test_transition_returns_new_value(self):
        state = ServiceState(service_id="db")

        started = state.transition(ServicePhase.STARTING, attempts=1)

        assert state.phase == ServicePhase.PENDING
        assert started.phase == ServicePhase.STARTING
        assert started.attempts == 1
        assert started.last_transition_at >= state.last_transition_at

    def test_invalid_transition_raises(self):
        with pytest.raises(ValueError, match="cannot transition"):
            ServiceState(service_id="db").transition(ServicePhase.READY)

    def test_error_is_kept_until_cleared(self):
        state = (
            ServiceState(service_id="db")
            .transition(ServicePhase.STARTING)
            .transition(ServicePhase.FAILED, error="exit code 1")
            .transition(ServicePhase.ABORTED)
        )

        assert state.last_error == "exit code 1"

    def test_states_are_immutable(self):
        state = ServiceState(service_id="db")
        with pytest.raises(ValidationError):
            state.phase = ServicePhase.READY


class TestSnapshotAndPlan:

    def test_all_ready(self):
        ready = ServiceState(service_id="a", phase=ServicePhase.READY)
        pending = ServiceState(service_id="b")

        assert StateSnapshot(services=(ready,)).all_ready
        assert not StateSnapshot(services=(ready, pending)).all_ready
        assert not StateSnapshot().all_ready

    def test_snapshot_lookup(self):
        snapshot = StateSnapshot(services=(ServiceState(service_id="a"),))

        assert snapshot.get("a").phase == ServicePhase.PENDING
        assert snapshot.get("zz") is None
        assert snapshot.phases() == {"a": ServicePhase.PENDING}

    def test_plan_helpers(self):
        plan = OrchestrationPlan(stack_id="s", stages=(("a", "b"), ("c",)))

        assert len(plan) == 2
        assert plan.service_ids() == ["a", "b", "c"]
        assert plan.stage_index() == {"a": 0, "b": 0, "c": 1}
        assert plan.teardown_order() == (("c",), ("a", "b"))

# ============================================================================
# CLI TESTS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Tests - Operator command line
# PURPOSE: Verify subcommands and exit codes end to end
# CREATED: 16 OCT 2026
# ============================================================================
"""
CLI Tests

Every service command is the current interpreter running a one-liner, so
the commands really execute without a container runtime.

Run with:
    pytest tests/test_cli.py -v
"""

import json
import sys

import pytest
import yaml

from cli import main

OK = [sys.executable, "-c", "pass"]
FAIL = [sys.executable, "-c", "import sys; sys.stderr.write('no image'); sys.exit(1)"]


def _service(service_id, depends_on=(), start=OK, **extra):
    service = {"id": service_id, "depends_on": list(depends_on), "start": start, "stop": OK}
    service.update(extra)
    return service


@pytest.fixture
def stack_file(tmp_path):
    """Write a stack file and return its path."""
    def _write(services, **extra):
        path = tmp_path / "stack.yaml"
        path.write_text(yaml.safe_dump({"stack_id": "cli-test", "services": services, **extra}))
        return str(path)
    return _write


@pytest.fixture
def parking(stack_file):
    return stack_file([
        _service("db"),
        _service("auth", ["db"]),
        _service("gateway", ["auth"]),
    ])


@pytest.fixture
def state_file(tmp_path):
    return str(tmp_path / "state.json")


def run(command, stack, state_file, *extra):
    return main([command, "--file", stack, "--state-file", state_file, *extra])


def read_state(state_file):
    with open(state_file) as f:
        data = json.load(f)
    return {s["service_id"]: s["phase"] for s in data["services"]}


# ============================================================================
# PLAN
# ============================================================================

class TestPlan:

    def test_prints_stages(self, parking, state_file, capsys):
        assert run("plan", parking, state_file) == 0

        out = capsys.readouterr().out
        assert "stage 0: db" in out
        assert "stage 2: gateway" in out

    def test_cycle_is_a_validation_error(self, stack_file, state_file, capsys):
        stack = stack_file([_service("a", ["b"]), _service("b", ["a"])])

        assert run("plan", stack, state_file) == 1
        assert "cycle" in capsys.readouterr().err.lower()

    def test_unknown_dependency(self, stack_file, state_file):
        stack = stack_file([_service("a", ["ghost"])])
        assert run("plan", stack, state_file) == 1

    def test_missing_stack_file(self, tmp_path, state_file):
        assert run("plan", str(tmp_path / "missing.yaml"), state_file) == 1


# ============================================================================
# UP / DOWN / STATUS
# ============================================================================

class TestLifecycle:

    def test_up_writes_state(self, parking, state_file):
        assert run("up", parking, state_file) == 0

        assert read_state(state_file) == {"auth": "ready", "db": "ready", "gateway": "ready"}

    def test_up_single_service_brings_dependencies(self, parking, state_file):
        assert run("up", parking, state_file, "auth") == 0

        phases = read_state(state_file)
        assert phases["db"] == "ready"
        assert phases["auth"] == "ready"
        assert phases["gateway"] == "pending"

    def test_exhausted_retries_exit_2(self, stack_file, state_file, capsys):
        stack = stack_file([
            _service("db", start=FAIL, restart={"max_retries": 0}),
            _service("api", ["db"]),
        ])

        assert run("up", stack, state_file) == 2

        assert read_state(state_file) == {"api": "pending", "db": "aborted"}
        assert "Aborted: db" in capsys.readouterr().err

    def test_status_json(self, parking, state_file, capsys):
        run("up", parking, state_file)
        capsys.readouterr()

        assert run("status", parking, state_file, "--json") == 0

        snapshot = json.loads(capsys.readouterr().out)
        assert snapshot["stack_id"] == "cli-test"
        assert {s["phase"] for s in snapshot["services"]} == {"ready"}

    def test_status_table(self, parking, state_file, capsys):
        assert run("status", parking, state_file) == 0

        out = capsys.readouterr().out
        assert "SERVICE" in out
        assert "pending" in out

    def test_down_stops_everything(self, parking, state_file, capsys):
        run("up", parking, state_file)

        assert run("down", parking, state_file) == 0

        assert set(read_state(state_file).values()) == {"stopped"}
        assert "Stopped: gateway, auth, db" in capsys.readouterr().out

    def test_failing_stop_exit_3(self, stack_file, state_file):
        stack = stack_file([{"id": "db", "start": OK, "stop": FAIL}])
        run("up", stack, state_file)

        assert run("down", stack, state_file) == 3
        assert read_state(state_file) == {"db": "failed"}

    def test_restart(self, parking, state_file):
        run("up", parking, state_file)

        assert run("restart", parking, state_file) == 0
        assert set(read_state(state_file).values()) == {"ready"}

    def test_down_without_env_refuses_to_forget_dev_services(
        self, stack_file, state_file, tmp_path, capsys
    ):
        stack = stack_file([_service("db")])
        (tmp_path / "stack.dev.yaml").write_text(yaml.safe_dump({"services": [_service("portainer")]}))
        assert run("up", stack, state_file, "--env", "dev") == 0

        assert run("down", stack, state_file) == 1
        assert "portainer" in capsys.readouterr().err
        assert read_state(state_file) == {"db": "ready", "portainer": "ready"}

        assert run("down", stack, state_file, "--env", "dev") == 0
        assert read_state(state_file) == {"db": "stopped", "portainer": "stopped"}


# ============================================================================
# LOGS / PULL / RESET
# ============================================================================

class TestAuxiliaryCommands:

    def test_logs_unknown_service(self, parking, state_file, capsys):
        assert run("logs", parking, state_file, "nope") == 1
        assert "nope" in capsys.readouterr().err

    def test_logs_not_declared(self, parking, state_file):
        assert run("logs", parking, state_file, "db") == 1

    def test_logs_pass_through(self, stack_file, state_file):
        stack = stack_file([_service("db", logs=OK)])
        assert run("logs", stack, state_file, "db") == 0

    def test_pull_failure_exit_2(self, stack_file, state_file, capsys):
        stack = stack_file([_service("db", pull=OK), _service("api", pull=FAIL)])

        assert run("pull", stack, state_file) == 2
        assert "api" in capsys.readouterr().err

    def test_reset_clears_state(self, stack_file, state_file, tmp_path):
        marker = tmp_path / "reset-ran"
        stack = stack_file(
            [_service("db")],
            reset_commands=[[sys.executable, "-c", f"open({str(marker)!r}, 'w').close()"]],
        )
        run("up", stack, state_file)

        assert run("reset", stack, state_file, "--yes") == 0

        assert marker.exists()
        assert not (tmp_path / "state.json").exists()

    def test_reset_declined(self, parking, state_file, tmp_path, monkeypatch):
        run("up", parking, state_file)
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert run("reset", parking, state_file) == 0
        assert set(read_state(state_file).values()) == {"ready"}

    def test_failed_reset_command_keeps_state(self, stack_file, state_file, tmp_path):
        stack = stack_file([_service("db")], reset_commands=[FAIL])
        run("up", stack, state_file)

        assert run("reset", stack, state_file, "-y") == 2
        assert (tmp_path / "state.json").exists()

    def test_reset_command_timeout(self, stack_file, state_file, tmp_path, capsys):
        slow = {"argv": [sys.executable, "-c", "import time; time.sleep(5)"], "timeout_seconds": 0.3}
        stack = stack_file([_service("db")], reset_commands=[slow])
        run("up", stack, state_file)

        assert run("reset", stack, state_file, "--yes") == 2

        assert "Reset command failed" in capsys.readouterr().err
        assert read_state(state_file) == {"db": "stopped"}

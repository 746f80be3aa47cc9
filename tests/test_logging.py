# ============================================================================
# LOGGING TESTS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Tests - Structured logging
# PURPOSE: Verify context stacking and both output formats
# CREATED: 16 OCT 2026
# ============================================================================
"""
Logging Tests

Run with:
    pytest tests/test_logging.py -v
"""

import asyncio
import io
import json
import logging

import pytest

from core.logging import (
    HumanFormatter,
    StructuredFormatter,
    configure_logging,
    get_current_context,
    get_logger,
    log_checkpoint,
    log_context,
)


def _record(message="hello", extra=None):
    record = logging.LogRecord("orchestrator.loop", logging.INFO, __file__, 10, message, None, None)
    if extra is not None:
        record.extra = extra
    return record


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogContext:

    def test_nested_contexts_inherit(self):
        with log_context(run_id="r1", stack_id="demo"):
            with log_context(service_id="db", stage=0):
                ctx = get_current_context()
                assert ctx.to_dict() == {
                    "run_id": "r1",
                    "stack_id": "demo",
                    "service_id": "db",
                    "stage": 0,
                }
            assert get_current_context().service_id is None

        assert get_current_context().to_dict() == {}

    def test_tasks_do_not_see_each_others_context(self):
        seen = {}

        async def worker(service_id):
            with log_context(service_id=service_id):
                await asyncio.sleep(0.01)
                seen[service_id] = get_current_context().service_id

        async def scenario():
            with log_context(run_id="r1"):
                await asyncio.gather(worker("db"), worker("cache"))

        asyncio.run(scenario())

        assert seen == {"db": "db", "cache": "cache"}


class TestFormatters:

    def test_human_format_includes_context(self):
        with log_context(run_id="r1", stage=2, service_id="auth"):
            line = HumanFormatter().format(_record())

        assert "[run=r1, stage=2, service=auth]" in line
        assert line.endswith("orchestrator.loop [run=r1, stage=2, service=auth]: hello")

    def test_json_format(self):
        with log_context(run_id="r1"):
            payload = json.loads(StructuredFormatter().format(_record(extra={"attempt": 2})))

        assert payload["level"] == "INFO"
        assert payload["message"] == "hello"
        assert payload["context"] == {"run_id": "r1"}
        assert payload["data"] == {"attempt": 2}
        assert payload["source"]["line"] == 10


class TestConfigureLogging:

    def test_json_output_and_checkpoint(self, restore_root_logging):
        stream = io.StringIO()
        configure_logging(level="INFO", json_output=True, stream=stream)

        with log_context(run_id="r9", stack_id="demo"):
            log_checkpoint("run_started", {"stages": 3})

        payload = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert payload["message"] == "CHECKPOINT: run_started"
        assert payload["data"]["checkpoint"] == "run_started"
        assert payload["data"]["data"] == {"stages": 3}
        assert payload["data"]["run_id"] == "r9"

    def test_context_logger_attaches_fields(self, restore_root_logging):
        stream = io.StringIO()
        configure_logging(level="DEBUG", json_output=True, stream=stream)

        with log_context(service_id="db"):
            get_logger("tests").debug("probing")

        payload = json.loads(stream.getvalue().strip())
        assert payload["data"] == {"service_id": "db"}

    def test_level_filters(self, restore_root_logging):
        stream = io.StringIO()
        configure_logging(level="WARNING", stream=stream)

        logging.getLogger("tests").info("quiet")
        logging.getLogger("tests").warning("loud")

        assert "quiet" not in stream.getvalue()
        assert "loud" in stream.getvalue()

#!/usr/bin/env python3
# ============================================================================
# STACK SUPERVISOR CLI
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Tool - Operator command line
# PURPOSE: plan / up / down / restart / status / logs / pull / reset
# CREATED: 16 OCT 2026
# ============================================================================
"""
Operator CLI for a declared stack.

Usage:
    stackmaster plan
    stackmaster up --env dev
    stackmaster up api-gateway          # api-gateway plus its dependencies
    stackmaster status --json
    stackmaster logs user-auth-service
    stackmaster down
    stackmaster reset --yes

Exit codes:
    0  success (including an operator-cancelled bring-up)
    1  validation or configuration error, unknown service
    2  orchestration aborted (a service exhausted its retries, or a
       pull / reset command failed)
    3  timed out waiting for cancelled work, or teardown left services
       running
"""

import argparse
import asyncio
import signal
import sys
from typing import Callable, Dict, List, Optional

from core.config import get_defaults
from core.contracts import ExitCode, RunOutcome
from core.errors import (
    CommandTimeoutError,
    ConfigError,
    GraphValidationError,
    TeardownTimeoutError,
)
from core.logging import configure_logging, get_logger
from core.models import OrchestrationPlan, StackDefinition, StateSnapshot
from orchestrator import Orchestrator, TeardownResult, create_orchestrator
from repositories.state_repo import StateRepository
from runtime.executor import CommandExecutor
from services.stack_service import StackService

logger = get_logger(__name__)


# ============================================================================
# OUTPUT
# ============================================================================

def print_plan(plan: OrchestrationPlan) -> None:
    print(f"Plan for {plan.stack_id} ({len(plan)} stages):")
    for index, stage in enumerate(plan.stages):
        print(f"  stage {index}: {', '.join(stage)}")


def print_snapshot(snapshot: StateSnapshot, order: Optional[List[str]] = None) -> None:
    states = {s.service_id: s for s in snapshot.services}
    ids = order or sorted(states)

    print(f"Stack: {snapshot.stack_id}   run: {snapshot.run_id or '-'}")
    print(f"{'SERVICE':<24} {'PHASE':<16} {'ATTEMPTS':>8} {'FAILURES':>8}  {'SINCE':<20} LAST ERROR")
    for service_id in ids:
        state = states[service_id]
        since = state.last_transition_at.strftime("%Y-%m-%d %H:%M:%S")
        error = (state.last_error or "").splitlines()[0][:60] if state.last_error else ""
        print(
            f"{service_id:<24} {state.phase.value:<16} {state.attempts:>8} "
            f"{state.consecutive_failures:>8}  {since:<20} {error}"
        )


def print_teardown(result: TeardownResult) -> None:
    print(f"Stopped: {', '.join(result.stopped) or '-'}")
    if result.failed:
        print(f"Failed to stop: {', '.join(result.failed)}")
    if result.timed_out:
        print(f"Timed out stopping: {', '.join(result.timed_out)}")


# ============================================================================
# HELPERS
# ============================================================================

def load_stack(args: argparse.Namespace) -> StackDefinition:
    return StackService(args.file, args.env).load()


def build_orchestrator(args: argparse.Namespace, stack: StackDefinition) -> Orchestrator:
    return create_orchestrator(stack, state_file=args.state_file, environment=args.env)


async def run_interruptible(orchestrator: Orchestrator, coro):
    """Await `coro` with SIGINT/SIGTERM mapped to orchestrator.cancel()."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.cancel)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            pass  # not supported on this platform / thread
    try:
        return await coro
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


# ============================================================================
# COMMANDS
# ============================================================================

def cmd_plan(args: argparse.Namespace) -> int:
    """Print the start stages without running anything."""
    orchestrator = build_orchestrator(args, load_stack(args))
    print_plan(orchestrator.plan)
    return ExitCode.SUCCESS


def cmd_up(args: argparse.Namespace) -> int:
    """Bring the stack (or the named services) up."""
    orchestrator = build_orchestrator(args, load_stack(args))
    print_plan(orchestrator.plan)

    result = asyncio.run(run_interruptible(orchestrator, orchestrator.up(args.services)))

    print_snapshot(result.snapshot, result.plan.service_ids())
    if result.outcome == RunOutcome.ABORTED:
        print(f"Aborted: {result.aborted_service} did not become ready", file=sys.stderr)
    elif result.outcome == RunOutcome.CANCELLED:
        print("Cancelled by operator", file=sys.stderr)
    return result.exit_code


def cmd_down(args: argparse.Namespace) -> int:
    """Stop every service, dependents first."""
    orchestrator = build_orchestrator(args, load_stack(args))
    result = asyncio.run(orchestrator.down())
    print_teardown(result)
    return result.exit_code


def cmd_restart(args: argparse.Namespace) -> int:
    """Tear down, then bring up again."""
    orchestrator = build_orchestrator(args, load_stack(args))
    teardown, result = asyncio.run(
        run_interruptible(orchestrator, orchestrator.restart(args.services))
    )
    print_teardown(teardown)
    print_snapshot(result.snapshot, result.plan.service_ids())

    if result.outcome == RunOutcome.ABORTED:
        return ExitCode.ABORTED
    return teardown.exit_code


def cmd_status(args: argparse.Namespace) -> int:
    """Show the last-known state of every service."""
    orchestrator = build_orchestrator(args, load_stack(args))
    snapshot = orchestrator.snapshot()

    if args.json:
        print(snapshot.model_dump_json(indent=2))
    else:
        print_snapshot(snapshot, orchestrator.plan.service_ids())
    return ExitCode.SUCCESS


def cmd_logs(args: argparse.Namespace) -> int:
    """Pass through to a service's logs command."""
    stack = load_stack(args)
    spec = stack.get_service(args.service)
    if spec.logs is None:
        print(f"Service '{args.service}' declares no logs command", file=sys.stderr)
        return ExitCode.VALIDATION_ERROR

    try:
        exit_code = asyncio.run(CommandExecutor().stream(spec.logs))
    except KeyboardInterrupt:
        return ExitCode.SUCCESS
    return ExitCode.SUCCESS if exit_code == 0 else ExitCode.VALIDATION_ERROR


def cmd_pull(args: argparse.Namespace) -> int:
    """Run every service's pull command."""
    stack = load_stack(args)
    executor = CommandExecutor()

    async def pull_all() -> List[str]:
        failed = []
        for spec in stack.services:
            if spec.pull is None:
                continue
            print(f"Pulling {spec.service_id}: {spec.pull.display()}")
            try:
                result = await executor.run(spec.pull)
            except CommandTimeoutError as e:
                logger.error(f"Pull of {spec.service_id} failed: {e}")
                failed.append(spec.service_id)
                continue
            if not result.succeeded:
                logger.error(f"Pull of {spec.service_id} failed: {result.error_summary()}")
                failed.append(spec.service_id)
        return failed

    failed = asyncio.run(pull_all())
    if failed:
        print(f"Pull failed for: {', '.join(failed)}", file=sys.stderr)
        return ExitCode.ABORTED
    return ExitCode.SUCCESS


def cmd_reset(args: argparse.Namespace) -> int:
    """Tear down, run the stack's reset commands and forget saved state."""
    stack = load_stack(args)

    if not args.yes:
        answer = input(
            f"This stops every service of '{stack.stack_id}' and runs "
            f"{len(stack.reset_commands)} reset command(s). Continue? [y/N] "
        )
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted")
            return ExitCode.SUCCESS

    orchestrator = build_orchestrator(args, stack)

    async def reset() -> int:
        teardown = await orchestrator.down()
        print_teardown(teardown)
        if not teardown.clean:
            return teardown.exit_code

        for command in stack.reset_commands:
            print(f"Running {command.display()}")
            try:
                result = await orchestrator.executor.run(command)
            except CommandTimeoutError as e:
                logger.error(f"Reset command failed: {e}")
                return ExitCode.ABORTED
            if not result.succeeded:
                logger.error(f"Reset command failed: {result.error_summary()}")
                return ExitCode.ABORTED
        return ExitCode.SUCCESS

    exit_code = asyncio.run(reset())
    if exit_code == ExitCode.SUCCESS:
        StateRepository(args.state_file).clear()
        print(f"Stack {stack.stack_id} reset")
    return exit_code


COMMANDS: Dict[str, Callable[[argparse.Namespace], int]] = {
    "plan": cmd_plan,
    "up": cmd_up,
    "down": cmd_down,
    "restart": cmd_restart,
    "status": cmd_status,
    "logs": cmd_logs,
    "pull": cmd_pull,
    "reset": cmd_reset,
}


# ============================================================================
# ENTRY POINT
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    paths = get_defaults().paths

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--file", "-f",
        default=paths.stack_file,
        help=f"Stack file (default: {paths.stack_file}, or STACK_FILE)",
    )
    common.add_argument(
        "--state-file",
        default=paths.state_file,
        help=f"Where last-known state is kept (default: {paths.state_file})",
    )
    common.add_argument(
        "--env", "-e",
        default=None,
        help="Environment overlay to apply (prod, dev, ...)",
    )

    parser = argparse.ArgumentParser(
        prog="stackmaster",
        description="Bring a declared stack up in dependency order and keep track of it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s plan
  %(prog)s up --env dev
  %(prog)s up api-gateway
  %(prog)s status --json
  %(prog)s down
        """,
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument(
        "--log-format",
        choices=["human", "json"],
        default="human",
        help="Log output format (default: human)",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    sub.add_parser("plan", parents=[common], help="Print the start stages")

    up = sub.add_parser("up", parents=[common], help="Bring the stack up")
    up.add_argument("services", nargs="*", help="Only these services (plus dependencies)")

    sub.add_parser("down", parents=[common], help="Stop the stack in reverse order")

    restart = sub.add_parser("restart", parents=[common], help="down, then up")
    restart.add_argument("services", nargs="*", help="Only bring these back up (plus dependencies)")

    status = sub.add_parser("status", parents=[common], help="Show last-known state")
    status.add_argument("--json", action="store_true", help="Print the snapshot as JSON")

    logs = sub.add_parser("logs", parents=[common], help="Show a service's logs")
    logs.add_argument("service", help="Service id")

    sub.add_parser("pull", parents=[common], help="Run every service's pull command")

    reset = sub.add_parser("reset", parents=[common], help="down, reset commands, forget state")
    reset.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_output=args.log_format == "json")

    handler = COMMANDS[args.command]
    try:
        return int(handler(args))
    except (ConfigError, GraphValidationError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return int(ExitCode.VALIDATION_ERROR)
    except KeyError as e:
        message = e.args[0] if e.args else str(e)
        print(f"Error: {message}", file=sys.stderr)
        return int(ExitCode.VALIDATION_ERROR)
    except TeardownTimeoutError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return int(ExitCode.TEARDOWN_TIMEOUT)


if __name__ == "__main__":
    sys.exit(main())

# ============================================================================
# COMMAND EXECUTOR
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Container runtime boundary
# PURPOSE: Run external commands with bounded timeouts and cancellation
# CREATED: 16 OCT 2026
# ============================================================================
"""
Command Executor

Runs the opaque commands a stack file declares (`docker compose up -d db`,
`docker compose down`, ...) and reports what happened:

- Exit code, stdout, stderr and duration are captured
- A timeout kills the process group and raises CommandTimeoutError
- A cancel event (or task cancellation) kills the process group too
- Nothing is retried here; retry policy belongs to the control loop

A missing executable is reported as exit code 127, the same as a shell,
so it flows through the normal non-zero-exit retry path.
"""

import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass
from typing import Dict, Optional

from core.config import get_defaults
from core.errors import Cancelled, CommandTimeoutError
from core.models import CommandSpec

logger = logging.getLogger(__name__)

EXIT_COMMAND_NOT_FOUND = 127

# How long to wait for a killed process to release its pipes
KILL_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a completed command."""
    exit_code: int
    stdout: str
    stderr: str
    duration: float

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def error_summary(self, limit: int = 500) -> str:
        """Short description for logs and ServiceState.last_error."""
        output = (self.stderr or self.stdout).strip()
        if len(output) > limit:
            output = "..." + output[-limit:]
        return f"exit code {self.exit_code}" + (f": {output}" if output else "")


class CommandExecutor:
    """
    Executes external commands.

    One executor can be shared by any number of concurrent tasks; it
    keeps no per-call state.
    """

    def __init__(
        self,
        default_timeout: Optional[float] = None,
        base_env: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize executor.

        Args:
            default_timeout: Timeout for commands that do not set one
            base_env: Environment for child processes (defaults to os.environ)
        """
        self.default_timeout = (
            default_timeout
            if default_timeout is not None
            else get_defaults().timeouts.command_timeout_seconds
        )
        self._base_env = base_env

    def _build_env(self, command: CommandSpec) -> Optional[Dict[str, str]]:
        if not command.env and self._base_env is None:
            return None  # inherit
        env = dict(self._base_env if self._base_env is not None else os.environ)
        env.update(command.env)
        return env

    async def run(
        self,
        command: CommandSpec,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CommandResult:
        """
        Run a command to completion.

        Args:
            command: Command to run
            timeout: Seconds before the process is killed (defaults to the
                command's own timeout, then the executor default)
            cancel_event: Set to kill the process early

        Returns:
            CommandResult (non-zero exit codes are results, not errors)

        Raises:
            CommandTimeoutError: process did not finish within `timeout`
            Cancelled: cancel_event was set before the process finished
        """
        if timeout is None:
            timeout = command.effective_timeout(self.default_timeout)

        start_time = time.monotonic()
        logger.debug(f"Running command (timeout={timeout}s): {command.display()}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *command.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=command.cwd,
                env=self._build_env(command),
                start_new_session=(os.name == "posix"),
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            duration = time.monotonic() - start_time
            logger.warning(f"Cannot execute {command.argv[0]!r}: {e}")
            return CommandResult(
                exit_code=EXIT_COMMAND_NOT_FOUND,
                stdout="",
                stderr=str(e),
                duration=duration,
            )

        communicate = asyncio.ensure_future(proc.communicate())
        cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event else None
        waiters = {communicate} | ({cancel_waiter} if cancel_waiter else set())

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await self._kill(proc, communicate)
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        duration = time.monotonic() - start_time

        if communicate in done:
            stdout, stderr = communicate.result()
            result = CommandResult(
                exit_code=proc.returncode,
                stdout=stdout.decode(errors="replace"),
                stderr=stderr.decode(errors="replace"),
                duration=duration,
            )
            logger.debug(
                f"Command finished: exit={result.exit_code} "
                f"duration={duration:.2f}s argv={command.display()}"
            )
            return result

        await self._kill(proc, communicate)

        if cancel_waiter is not None and cancel_waiter in done:
            logger.info(f"Command cancelled after {duration:.2f}s: {command.display()}")
            raise Cancelled(f"Command cancelled: {command.display()}")

        logger.warning(f"Command timed out after {timeout}s: {command.display()}")
        raise CommandTimeoutError(command.argv, timeout)

    async def stream(self, command: CommandSpec) -> int:
        """
        Run a command attached to this process's stdio.

        Used for pass-through commands such as `logs -f`. No timeout:
        the operator ends it (Ctrl-C cancels the awaiting task, which
        kills the child).

        Returns:
            Exit code of the command
        """
        logger.debug(f"Streaming command: {command.display()}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *command.argv,
                cwd=command.cwd,
                env=self._build_env(command),
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            logger.error(f"Cannot execute {command.argv[0]!r}: {e}")
            return EXIT_COMMAND_NOT_FOUND

        try:
            return await proc.wait()
        except asyncio.CancelledError:
            await self._kill(proc, None, group=False)
            raise

    async def _kill(
        self,
        proc: asyncio.subprocess.Process,
        pending: Optional[asyncio.Future],
        group: bool = True,
    ) -> None:
        """Kill the process (or its whole session on POSIX) and reap it."""
        if proc.returncode is None:
            try:
                if group and os.name == "posix":
                    os.killpg(proc.pid, signal.SIGKILL)
                else:
                    proc.kill()
            except ProcessLookupError:
                pass
            except PermissionError:
                proc.kill()

        waiter = pending if pending is not None else asyncio.ensure_future(proc.wait())
        try:
            await asyncio.wait_for(asyncio.shield(waiter), timeout=KILL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.warning(f"Process {proc.pid} did not release its pipes after kill")
            waiter.cancel()
        except asyncio.CancelledError:
            waiter.cancel()
            raise


__all__ = ["CommandExecutor", "CommandResult", "EXIT_COMMAND_NOT_FOUND"]

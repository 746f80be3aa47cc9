# ============================================================================
# RUNTIME MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Container runtime boundary
# PURPOSE: External command execution and interruptible waits
# CREATED: 16 OCT 2026
# ============================================================================

from runtime.executor import CommandExecutor, CommandResult, EXIT_COMMAND_NOT_FOUND
from runtime.timing import sleep_unless_cancelled

__all__ = [
    "CommandExecutor",
    "CommandResult",
    "EXIT_COMMAND_NOT_FOUND",
    "sleep_unless_cancelled",
]

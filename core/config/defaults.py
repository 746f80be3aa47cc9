# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for timeouts, restart policy, probes, paths
# CREATED: 16 OCT 2026
# ============================================================================
"""
Configuration Defaults

Fallback values used when a stack file leaves a field out.
None of these are fixed requirements: every value can be overridden per
service in the stack file, or globally via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides (STACK_* prefix)
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


@dataclass(frozen=True)
class TimeoutDefaults:
    """
    Defaults for external command timeouts.

    Start commands usually pull layers and create networks, so they get
    more headroom than stop commands.
    """
    start_timeout_seconds: float = 120.0
    stop_timeout_seconds: float = 60.0
    command_timeout_seconds: float = 30.0   # pull/reset/probe commands
    cancel_grace_seconds: float = 10.0      # drain time after cancellation

    @classmethod
    def from_env(cls) -> "TimeoutDefaults":
        """Create from environment variables."""
        return cls(
            start_timeout_seconds=_env_float("STACK_START_TIMEOUT_SEC", 120.0),
            stop_timeout_seconds=_env_float("STACK_STOP_TIMEOUT_SEC", 60.0),
            command_timeout_seconds=_env_float("STACK_COMMAND_TIMEOUT_SEC", 30.0),
            cancel_grace_seconds=_env_float("STACK_CANCEL_GRACE_SEC", 10.0),
        )


@dataclass(frozen=True)
class RestartDefaults:
    """
    Defaults for the retry/backoff policy.

    delay(attempt) = min(base * multiplier ** attempt, cap)
    """
    max_retries: int = 2
    backoff_base_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    backoff_cap_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "RestartDefaults":
        """Create from environment variables."""
        return cls(
            max_retries=_env_int("STACK_MAX_RETRIES", 2),
            backoff_base_seconds=_env_float("STACK_BACKOFF_BASE_SEC", 1.0),
            backoff_multiplier=_env_float("STACK_BACKOFF_MULTIPLIER", 2.0),
            backoff_cap_seconds=_env_float("STACK_BACKOFF_CAP_SEC", 30.0),
        )


@dataclass(frozen=True)
class ProbeDefaults:
    """
    Defaults for readiness probes.

    timeout_seconds bounds a single attempt; deadline_seconds bounds the
    whole wait for readiness.
    """
    timeout_seconds: float = 2.0
    interval_seconds: float = 1.0
    success_threshold: int = 1
    deadline_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "ProbeDefaults":
        """Create from environment variables."""
        return cls(
            timeout_seconds=_env_float("STACK_PROBE_TIMEOUT_SEC", 2.0),
            interval_seconds=_env_float("STACK_PROBE_INTERVAL_SEC", 1.0),
            success_threshold=_env_int("STACK_PROBE_SUCCESS_THRESHOLD", 1),
            deadline_seconds=_env_float("STACK_PROBE_DEADLINE_SEC", 60.0),
        )


@dataclass(frozen=True)
class PathDefaults:
    """Default file locations, relative to the working directory."""
    stack_file: str = "stack.yaml"
    state_file: str = ".stackmaster/state.json"

    @classmethod
    def from_env(cls) -> "PathDefaults":
        """Create from environment variables."""
        return cls(
            stack_file=os.getenv("STACK_FILE", "stack.yaml"),
            state_file=os.getenv("STACK_STATE_FILE", ".stackmaster/state.json"),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    timeouts: TimeoutDefaults = field(default_factory=TimeoutDefaults)
    restart: RestartDefaults = field(default_factory=RestartDefaults)
    probes: ProbeDefaults = field(default_factory=ProbeDefaults)
    paths: PathDefaults = field(default_factory=PathDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            timeouts=TimeoutDefaults.from_env(),
            restart=RestartDefaults.from_env(),
            probes=ProbeDefaults.from_env(),
            paths=PathDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TimeoutDefaults",
    "RestartDefaults",
    "ProbeDefaults",
    "PathDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]

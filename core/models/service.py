# ============================================================================
# SERVICE DEFINITION MODELS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core model - Declared services loaded from YAML
# PURPOSE: Commands, health checks, restart policy and stack definition
# LAST_REVIEWED: 16 OCT 2026
# EXPORTS: CommandSpec, HealthCheckSpec, RestartPolicy, ServiceSpec, StackDefinition
# DEPENDENCIES: pydantic
# ============================================================================
"""
Service Definition Models

A StackDefinition is the declared topology of a deployment:
- What services exist
- How each is started, stopped, pulled and inspected (commands)
- How readiness is confirmed (health check)
- How failures are retried (restart policy)
- Dependencies between services

ServiceSpec = TEMPLATE (what to run).
ServiceState (in state.py) = INSTANCE (runtime phase for one run).
"""

import shlex
from typing import Dict, List, Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from core.config import get_defaults
from core.contracts import HealthCheckType


SERVICE_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"


class CommandSpec(BaseModel):
    """
    An opaque command for the container runtime.

    Accepts either an argv list or a single string, which is split
    shell-style (no shell is involved at execution time).
    """
    argv: List[str] = Field(..., min_length=1)
    cwd: Optional[str] = None
    env: Dict[str, str] = Field(default_factory=dict)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def handle_string_input(cls, data):
        """Allow `start: docker compose up -d db` as shorthand."""
        if isinstance(data, str):
            return {"argv": shlex.split(data)}
        if isinstance(data, list):
            return {"argv": data}
        if isinstance(data, dict) and isinstance(data.get("argv"), str):
            return {**data, "argv": shlex.split(data["argv"])}
        return data

    def effective_timeout(self, default: float) -> float:
        """Timeout to use, falling back to the caller's default."""
        return self.timeout_seconds if self.timeout_seconds is not None else default

    def display(self) -> str:
        """Shell-quoted rendering for logs."""
        return shlex.join(self.argv)


class HealthCheckSpec(BaseModel):
    """
    Readiness probe for a service.

    timeout_seconds bounds one attempt; deadline_seconds bounds the wait
    for `success_threshold` consecutive successes.
    """
    type: HealthCheckType
    target: Optional[str] = Field(
        default=None,
        description="URL for http, host:port for tcp",
    )
    command: Optional[CommandSpec] = Field(
        default=None,
        description="Command for command probes (exit code 0 = healthy)",
    )
    timeout_seconds: float = Field(
        default_factory=lambda: get_defaults().probes.timeout_seconds, gt=0
    )
    interval_seconds: float = Field(
        default_factory=lambda: get_defaults().probes.interval_seconds, gt=0
    )
    success_threshold: int = Field(
        default_factory=lambda: get_defaults().probes.success_threshold, ge=1
    )
    deadline_seconds: float = Field(
        default_factory=lambda: get_defaults().probes.deadline_seconds, gt=0
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_target(self) -> "HealthCheckSpec":
        """Each probe type needs its own kind of target."""
        if self.type == HealthCheckType.HTTP:
            parsed = urlparse(self.target or "")
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"http health check needs an http(s) URL target, got {self.target!r}")
        elif self.type == HealthCheckType.TCP:
            host, port = split_host_port(self.target or "")
            if not host or port is None:
                raise ValueError(f"tcp health check needs a host:port target, got {self.target!r}")
        elif self.type == HealthCheckType.COMMAND and self.command is None:
            raise ValueError("command health check needs a command")
        return self


def split_host_port(target: str):
    """Split "host:port" into (host, port); port is None when invalid."""
    host, _, port = target.rpartition(":")
    host = host.strip("[]")
    if not port.isdigit():
        return host, None
    return host, int(port)


class RestartPolicy(BaseModel):
    """
    Retry configuration for a service's start sequence.

    A service is attempted at most max_retries + 1 times.
    """
    max_retries: int = Field(
        default_factory=lambda: get_defaults().restart.max_retries, ge=0, le=100
    )
    backoff_base_seconds: float = Field(
        default_factory=lambda: get_defaults().restart.backoff_base_seconds, ge=0
    )
    backoff_multiplier: float = Field(
        default_factory=lambda: get_defaults().restart.backoff_multiplier, ge=1
    )
    backoff_cap_seconds: float = Field(
        default_factory=lambda: get_defaults().restart.backoff_cap_seconds, ge=0
    )

    model_config = {"frozen": True}

    def delay_for(self, attempt: int) -> float:
        """
        Backoff before retry number `attempt` (0-based).

        Non-decreasing in `attempt` because multiplier >= 1, and never
        above the cap.
        """
        if attempt < 0:
            raise ValueError(f"attempt must be >= 0, got {attempt}")
        try:
            delay = self.backoff_base_seconds * (self.backoff_multiplier ** attempt)
        except OverflowError:
            return self.backoff_cap_seconds
        return min(delay, self.backoff_cap_seconds)


class ServiceSpec(BaseModel):
    """
    Definition of a single service in a stack.

    Without a health check, a service is ready as soon as its start
    command exits 0.
    """
    service_id: str = Field(
        ...,
        max_length=64,
        pattern=SERVICE_ID_PATTERN,
        validation_alias=AliasChoices("service_id", "id"),
    )
    description: Optional[str] = None
    depends_on: List[str] = Field(default_factory=list)

    start: CommandSpec
    stop: CommandSpec
    pull: Optional[CommandSpec] = None
    logs: Optional[CommandSpec] = None

    health: Optional[HealthCheckSpec] = None
    restart: RestartPolicy = Field(default_factory=RestartPolicy)

    model_config = {"frozen": True}

    @field_validator("depends_on", mode="before")
    @classmethod
    def handle_string_input(cls, v):
        """Allow single string as shorthand for single-item list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @model_validator(mode="after")
    def check_duplicate_dependencies(self) -> "ServiceSpec":
        if len(set(self.depends_on)) != len(self.depends_on):
            raise ValueError(f"Service '{self.service_id}' lists a dependency twice")
        return self


class StackDefinition(BaseModel):
    """
    Complete stack definition loaded from YAML.

    Immutable once loaded; a run never sees a half-edited file.
    """
    stack_id: str = Field(..., max_length=64, pattern=SERVICE_ID_PATTERN)
    name: Optional[str] = None
    description: Optional[str] = None
    services: List[ServiceSpec] = Field(..., min_length=1)
    reset_commands: List[CommandSpec] = Field(
        default_factory=list,
        description="Commands run by `reset` after teardown (e.g. volume removal)",
    )

    model_config = {"frozen": True}

    def get_service(self, service_id: str) -> ServiceSpec:
        """Get a service definition by ID."""
        for service in self.services:
            if service.service_id == service_id:
                return service
        raise KeyError(f"Service '{service_id}' not found in stack '{self.stack_id}'")

    def service_ids(self) -> List[str]:
        return [s.service_id for s in self.services]


__all__ = [
    "CommandSpec",
    "HealthCheckSpec",
    "RestartPolicy",
    "ServiceSpec",
    "StackDefinition",
    "split_host_port",
]

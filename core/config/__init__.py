# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 16 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the stack supervisor.
"""

from core.config.defaults import (
    TimeoutDefaults,
    RestartDefaults,
    ProbeDefaults,
    PathDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "TimeoutDefaults",
    "RestartDefaults",
    "ProbeDefaults",
    "PathDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]

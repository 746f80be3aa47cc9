# ============================================================================
# VERSION - STACK MASTER
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# ============================================================================
"""
Version information for Stack Master.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch.build
# Criteria for 0.2 - smart parking stack comes up end to end
__version__ = "0.2.0.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-16"

EPOCH = 1
CODENAME = "Stack Master"

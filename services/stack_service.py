# ============================================================================
# STACK SERVICE
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Stack definition loading
# PURPOSE: Load stack YAML files with per-environment overlays
# CREATED: 16 OCT 2026
# ============================================================================
"""
Stack Service

Loads stack definitions from YAML files.

An environment overlay sits next to the base file and is named after it:

    stack.yaml        base definition
    stack.dev.yaml    merged on top for `--env dev`

Overlay services are matched by id. Mapping keys are merged recursively,
everything else (lists, scalars) replaces the base value. Services that
only exist in the overlay are appended.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from core.errors import ConfigError
from core.models import StackDefinition

logger = logging.getLogger(__name__)

# Environment names accepted on the command line, mapped to overlay suffixes.
# "prod" is the base file on its own.
ENVIRONMENT_ALIASES = {
    "prod": None,
    "production": None,
    "dev": "dev",
    "development": "dev",
}


def deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `overlay` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _service_key(entry: Dict[str, Any]) -> Optional[str]:
    return entry.get("id", entry.get("service_id"))


def merge_stack_documents(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Merge an overlay document into a base stack document."""
    overlay = dict(overlay)
    overlay_services = overlay.pop("services", None) or []
    merged = deep_merge(base, overlay)

    services: List[Dict[str, Any]] = [copy.deepcopy(s) for s in base.get("services") or []]
    index = {_service_key(s): i for i, s in enumerate(services)}

    for entry in overlay_services:
        key = _service_key(entry)
        if key in index:
            services[index[key]] = deep_merge(services[index[key]], entry)
        else:
            index[key] = len(services)
            services.append(copy.deepcopy(entry))

    merged["services"] = services
    return merged


class StackService:
    """Loads and caches the stack definition for one stack file."""

    def __init__(self, stack_file: Union[str, Path], environment: Optional[str] = None):
        """
        Initialize stack service.

        Args:
            stack_file: Path to the base YAML file
            environment: Optional environment name (prod, dev, ...)
        """
        self.stack_file = Path(stack_file)
        self.environment = environment
        self._stack: Optional[StackDefinition] = None

    def overlay_path(self) -> Optional[Path]:
        """Path of the overlay file for the selected environment, if any."""
        if not self.environment:
            return None
        suffix = ENVIRONMENT_ALIASES.get(self.environment, self.environment)
        if suffix is None:
            return None
        return self.stack_file.with_name(
            f"{self.stack_file.stem}.{suffix}{self.stack_file.suffix}"
        )

    def load(self) -> StackDefinition:
        """
        Load (or return the cached) stack definition.

        Raises:
            ConfigError: missing file, invalid YAML, or schema violation
        """
        if self._stack is not None:
            return self._stack

        data = self._read_yaml(self.stack_file)

        overlay = self.overlay_path()
        if overlay is not None:
            if overlay.exists():
                data = merge_stack_documents(data, self._read_yaml(overlay))
                logger.info(f"Applied {self.environment} overlay: {overlay}")
            else:
                logger.warning(
                    f"No overlay for environment '{self.environment}' "
                    f"({overlay} not found), using base definition"
                )

        try:
            stack = StackDefinition.model_validate(data)
        except ValidationError as e:
            raise ConfigError(_format_validation_error(e), path=str(self.stack_file)) from e

        logger.info(
            f"Loaded stack: {stack.stack_id} ({len(stack.services)} services) "
            f"from {self.stack_file}"
        )
        self._stack = stack
        return stack

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise ConfigError("stack file not found", path=str(path))
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML: {e}", path=str(path)) from e
        except OSError as e:
            raise ConfigError(f"cannot read file: {e}", path=str(path)) from e

        if not isinstance(data, dict):
            raise ConfigError("top level must be a mapping", path=str(path))
        return data


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"])
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


__all__ = ["StackService", "deep_merge", "merge_stack_documents", "ENVIRONMENT_ALIASES"]

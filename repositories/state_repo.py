# ============================================================================
# STATE REPOSITORY
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Last-known state persistence
# PURPOSE: Save and restore StateSnapshots between CLI invocations
# CREATED: 16 OCT 2026
# ============================================================================
"""
State Repository

Persists the last StateSnapshot of a stack as JSON so that `status` and
`down` in a later invocation see what `up` left behind.

Writes go to a temporary file in the same directory and are renamed into
place, so a reader never sees a half-written file.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from core.errors import ConfigError
from core.models import StateSnapshot

logger = logging.getLogger(__name__)


class StateRepository:
    """Repository for the persisted StateSnapshot of one stack."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self, stack_id: Optional[str] = None) -> Optional[StateSnapshot]:
        """
        Load the saved snapshot.

        Args:
            stack_id: If given, a snapshot saved for another stack is ignored

        Returns:
            StateSnapshot, or None if nothing usable is saved

        Raises:
            ConfigError: file exists but cannot be read
        """
        if not self.path.exists():
            return None

        try:
            raw = self.path.read_text()
        except OSError as e:
            raise ConfigError(f"cannot read state file: {e}", path=str(self.path)) from e

        try:
            snapshot = StateSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable state file {self.path}: {e.error_count()} error(s)")
            return None

        if stack_id is not None and snapshot.stack_id not in (None, stack_id):
            logger.warning(
                f"State file {self.path} belongs to stack '{snapshot.stack_id}', "
                f"not '{stack_id}'; ignoring it"
            )
            return None

        logger.debug(f"Loaded state for {len(snapshot.services)} service(s) from {self.path}")
        return snapshot

    def save(self, snapshot: StateSnapshot) -> None:
        """Atomically write `snapshot`."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(snapshot.model_dump_json(indent=2))
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def clear(self) -> bool:
        """
        Delete the saved snapshot.

        Returns:
            True if a file was removed
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Cleared state file {self.path}")
        return True


__all__ = ["StateRepository"]

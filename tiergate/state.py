"""Persistence of the activation state file.

The state is a small JSON document next to the installed license::

    {
      "activeTier": 90,
      "tierActivationDate": "2026-01-01T00:00:00Z",
      "activatedPlugins": ["com.chahuadev.professional-plugin"]
    }

An unreadable or malformed file is never fatal: it is logged and treated as
an empty state, and the next successful verification rewrites it.  Writes
are plain in-place rewrites; callers serialise read-modify-write cycles
through :meth:`ActivationStateStore.locked`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from filelock import FileLock
from pydantic import ValidationError

from .models import ActivationState

logger = logging.getLogger(__name__)

STATE_FILENAME = "chahua_license_state.json"
LOCK_SUFFIX = ".lock"


class ActivationStateStore:
    """Read/write access to one activation state file."""

    def __init__(self, path: Union[str, Path], lock_timeout: float = 10.0):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + LOCK_SUFFIX)
        self._lock = FileLock(str(self.lock_path), timeout=lock_timeout)

    @contextmanager
    def locked(self) -> Iterator["ActivationStateStore"]:
        """Hold an exclusive lock across a load/save cycle."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            yield self

    def load(self) -> ActivationState:
        if not self.path.is_file():
            return ActivationState()
        try:
            return ActivationState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning("Activation state %s is unreadable, starting fresh: %s", self.path, exc)
            return ActivationState()

    def save(self, state: ActivationState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(state.model_dump_json(by_alias=True, indent=2), encoding="utf-8")


__all__ = ["ActivationStateStore", "STATE_FILENAME"]

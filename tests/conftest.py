"""Pytest configuration file ensuring local package import works regardless of CWD."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    # Prepend so it has priority over any globally installed package version
    sys.path.insert(0, str(PROJECT_ROOT))

from tiergate.models import MachineFingerprint  # noqa: E402

HOST_FULL = "a" * 64
OTHER_FULL = "b" * 64


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def host_fingerprint() -> MachineFingerprint:
    return MachineFingerprint(short=HOST_FULL[:16], full=HOST_FULL)


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "tools" / "chahua_license_state.json"

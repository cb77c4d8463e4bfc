"""Configuration loading and merging utilities for tiergate.

Settings can come from a ``.tiergate.yaml`` file whose top-level mapping
holds the same keys as :class:`Settings`::

    license_path: tools/license.key
    state_path: tools/chahua_license_state.json
    cache_ttl_minutes: 30
    app_plugin_id: com.chahua.dbmanager
    upgrade_tiers: [90, 120]

Relative paths are resolved against the directory holding the file.
Explicit keyword overrides always take precedence over values coming from
the configuration file.  A directory may be passed instead of a file, in
which case ``.tiergate.yaml`` inside it is used.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .envelope import DEFAULT_SECRET, KDF_ITERATIONS
from .state import STATE_FILENAME
from .tiers import DEFAULT_UPGRADE_TIERS

CONFIG_FILENAME = ".tiergate.yaml"
LICENSE_FILENAME = "license.key"

_PATH_KEYS = ("license_path", "state_path")


class Settings(BaseModel):
    license_path: Path = Path("tools") / LICENSE_FILENAME
    state_path: Path = Path("tools") / STATE_FILENAME
    secret: str = DEFAULT_SECRET
    cache_ttl_minutes: float = Field(default=30, gt=0)
    app_plugin_id: Optional[str] = None
    upgrade_tiers: List[int] = Field(default_factory=lambda: sorted(DEFAULT_UPGRADE_TIERS))
    kdf_iterations: int = Field(default=KDF_ITERATIONS, ge=KDF_ITERATIONS)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(minutes=self.cache_ttl_minutes)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

def load_config(config_file: Path) -> Dict[str, Any]:
    """Load settings values from *config_file*.

    When *config_file* is a directory, `.tiergate.yaml` inside it is read.

    If the file does not exist or cannot be parsed, an empty ``dict`` is
    returned.  A broken config file must never stop license checks.
    """
    if config_file.is_dir():
        config_file = config_file / CONFIG_FILENAME
    if not config_file.is_file():
        return {}

    try:
        with config_file.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
    except (yaml.YAMLError, OSError):
        return {}
    if not isinstance(data, dict):
        # Malformed content – we expect a mapping at top level
        return {}

    base_dir = config_file.resolve().parent
    for key in _PATH_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value:
            path = Path(value).expanduser()
            data[key] = path if path.is_absolute() else base_dir / path
    return data


def merge_options(config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge *overrides* over *config*; ``None`` and ``""`` count as unset."""
    merged: Dict[str, Any] = dict(config)
    for key, value in overrides.items():
        if value not in (None, ""):
            merged[key] = value
    return merged


def load_settings(config_file: Optional[Path] = None, **overrides: Any) -> Settings:
    """Build :class:`Settings` from *config_file* (optional) and *overrides*.

    Unknown keys are ignored; invalid values raise
    :class:`pydantic.ValidationError`.
    """
    config = load_config(Path(config_file)) if config_file is not None else {}
    return Settings.model_validate(merge_options(config, overrides))


__all__ = [
    "CONFIG_FILENAME",
    "LICENSE_FILENAME",
    "Settings",
    "load_config",
    "merge_options",
    "load_settings",
]

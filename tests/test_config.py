"""Tests for *tiergate.config*."""

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from tiergate.config import CONFIG_FILENAME, Settings, load_config, load_settings, merge_options
from tiergate.envelope import DEFAULT_SECRET


def test_defaults():
    settings = Settings()
    assert settings.cache_ttl == timedelta(minutes=30)
    assert settings.upgrade_tiers == [90, 120]
    assert settings.secret == DEFAULT_SECRET
    assert settings.license_path.name == "license.key"


def test_missing_or_broken_file_yields_empty_config(tmp_path: Path):
    assert load_config(tmp_path / ".tiergate.yaml") == {}

    broken = tmp_path / "broken.yaml"
    broken.write_text("key: [unclosed")
    assert load_config(broken) == {}

    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just a string")
    assert load_config(scalar) == {}


def test_relative_paths_resolve_against_config_dir(tmp_path: Path):
    config_file = tmp_path / ".tiergate.yaml"
    config_file.write_text(
        "license_path: keys/license.key\n"
        "state_path: /var/lib/app/state.json\n"
        "cache_ttl_minutes: 5\n"
        "upgrade_tiers: [120]\n"
        "unknown_key: ignored\n"
    )

    settings = load_settings(config_file)

    assert settings.license_path == tmp_path.resolve() / "keys" / "license.key"
    assert settings.state_path == Path("/var/lib/app/state.json")
    assert settings.cache_ttl == timedelta(minutes=5)
    assert settings.upgrade_tiers == [120]


def test_overrides_win_over_file(tmp_path: Path):
    config_file = tmp_path / ".tiergate.yaml"
    config_file.write_text("cache_ttl_minutes: 5\napp_plugin_id: from-file\n")

    settings = load_settings(config_file, cache_ttl_minutes=1, app_plugin_id=None)

    assert settings.cache_ttl_minutes == 1
    assert settings.app_plugin_id == "from-file"


def test_merge_options_ignores_empty_values():
    merged = merge_options({"a": 1, "b": 2}, {"a": None, "b": "", "c": 3})
    assert merged == {"a": 1, "b": 2, "c": 3}


def test_weak_kdf_settings_are_rejected():
    with pytest.raises(ValidationError):
        load_settings(kdf_iterations=1000)


def test_directory_resolves_to_default_config_name(tmp_path: Path):
    (tmp_path / CONFIG_FILENAME).write_text("app_plugin_id: com.chahua.dbmanager\n")

    assert load_config(tmp_path) == {"app_plugin_id": "com.chahua.dbmanager"}
    assert load_settings(tmp_path).app_plugin_id == "com.chahua.dbmanager"


def test_directory_without_config_uses_defaults(tmp_path: Path):
    assert load_config(tmp_path) == {}
    assert load_settings(tmp_path) == Settings()

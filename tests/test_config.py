"""Tests for config loading and validation."""

import json

import pytest

from code_sweep.config import CONFIG_FILENAME, SweepConfig, load_config
from code_sweep.errors import ConfigError


def test_defaults_when_absent(tmp_path):
    config = load_config(tmp_path)
    assert config == SweepConfig()
    assert config.safety.create_backup
    assert not config.safety.validate_build
    assert config.safety.max_files_threshold == 50
    assert config.preserve_test_utilities


def test_camel_case_keys(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text(json.dumps({
        "publicDir": "/static/",
        "aliases": {"#/": "src/"},
        "safety": {"maxFilesThreshold": 10, "buildCommand": "make", "createBackup": False},
    }))
    config = load_config(tmp_path)
    assert config.public_dir == "static"
    assert config.aliases == {"#/": "src/"}
    assert config.safety.max_files_threshold == 10
    assert config.safety.build_command == "make"
    assert not config.safety.create_backup


@pytest.mark.parametrize("content", [
    "{not json",
    "[1, 2]",
    json.dumps({"unknownKey": True}),
    json.dumps({"safety": {"maxFilesThreshold": 0}}),
])
def test_invalid_config(tmp_path, content):
    (tmp_path / CONFIG_FILENAME).write_text(content)
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_explicit_missing_path(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path, tmp_path / "elsewhere.json")


def test_with_safety_ignores_none():
    config = SweepConfig()
    assert config.with_safety(create_backup=None) is config
    changed = config.with_safety(create_backup=False, validate_build=True)
    assert not changed.safety.create_backup
    assert changed.safety.validate_build
    assert config.safety.create_backup


def test_with_excludes():
    config = SweepConfig().with_excludes("legacy/**")
    assert config.exclude_patterns[-1] == "legacy/**"

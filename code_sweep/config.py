"""Configuration surface, validated with pydantic and loaded once per run."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from code_sweep.errors import ConfigError
from code_sweep.scanner.patterns import (
    DEFAULT_CONFIG_PATTERNS,
    DEFAULT_ENTRY_PATTERNS,
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_IGNORE_DIRS,
    DEFAULT_TEST_PATTERNS,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".code-sweep.json"


class _Frozen(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )


class SafetyConfig(_Frozen):
    create_backup: bool = True
    backup_location: str = ".code-sweep/backups"
    validate_build: bool = False
    build_command: str = "npm run build"
    build_timeout: float | None = None
    max_files_threshold: int = Field(default=50, ge=1)
    include_public_assets: bool = True
    remove_orphaned_cycles: bool = True
    remove_empty_dirs: bool = True


class SweepConfig(_Frozen):
    exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    entry_patterns: tuple[str, ...] = DEFAULT_ENTRY_PATTERNS
    config_patterns: tuple[str, ...] = DEFAULT_CONFIG_PATTERNS
    test_patterns: tuple[str, ...] = DEFAULT_TEST_PATTERNS
    ignore_dirs: tuple[str, ...] = DEFAULT_IGNORE_DIRS
    public_dir: str = "public"
    source_roots: tuple[str, ...] = ("", "src")
    aliases: dict[str, str] = Field(default_factory=dict)
    preserve_test_utilities: bool = True
    workers: int = Field(default=8, ge=1)
    batch_size: int = Field(default=64, ge=1)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)

    @field_validator("public_dir")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        return value.strip("/")

    @field_validator("source_roots")
    @classmethod
    def _normalize_roots(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(r.strip("/").removeprefix("./").strip(".") for r in value)

    def with_safety(self, **changes) -> SweepConfig:
        """Copy with some safety toggles overridden (``None`` values are ignored)."""
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            return self
        return self.model_copy(update={"safety": self.safety.model_copy(update=changes)})

    def with_excludes(self, *patterns: str) -> SweepConfig:
        return self.model_copy(update={"exclude_patterns": self.exclude_patterns + patterns})


def load_config(root: Path, path: Path | None = None) -> SweepConfig:
    """Load ``.code-sweep.json`` from the project root, or defaults when absent."""
    config_path = path or (root / CONFIG_FILENAME)
    if not config_path.exists():
        if path is not None:
            raise ConfigError(str(config_path), "config file not found")
        logger.debug("No config at %s, using defaults", config_path)
        return SweepConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(str(config_path), f"unreadable config: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(str(config_path), "config must be a JSON object")

    try:
        config = SweepConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(str(config_path), problems) from e

    logger.info("Loaded config from %s", config_path)
    return config

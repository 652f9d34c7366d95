"""Walk a project root and classify every file as source, config, or asset."""

from __future__ import annotations

import logging
from pathlib import Path

from code_sweep.config import SweepConfig
from code_sweep.fs import FileSystem
from code_sweep.models import EntryCategory, InventoryEntry
from code_sweep.scanner.patterns import ASSET_EXTENSIONS, SOURCE_EXTENSIONS, first_match

logger = logging.getLogger(__name__)


def classify(rel_path: str, config: SweepConfig) -> EntryCategory | None:
    """Config names win over extensions; unknown extensions are not tracked."""
    if first_match(rel_path, config.config_patterns):
        return EntryCategory.CONFIG
    lower = rel_path.lower()
    if lower.endswith(SOURCE_EXTENSIONS):
        return EntryCategory.SOURCE
    if lower.endswith(ASSET_EXTENSIONS):
        return EntryCategory.ASSET
    return None


def build_inventory(root: Path, config: SweepConfig, fs: FileSystem) -> list[InventoryEntry]:
    """Return the sorted inventory of tracked files under ``root``."""
    backup_dir = config.safety.backup_location.strip("/").removeprefix("./")
    entries: list[InventoryEntry] = []
    skipped = 0

    for path in fs.iter_files(root, config.ignore_dirs):
        rel = path.relative_to(root).as_posix()
        if backup_dir and (rel == backup_dir or rel.startswith(backup_dir + "/")):
            continue
        category = classify(rel, config)
        if category is None:
            skipped += 1
            continue
        try:
            st = fs.stat(path)
        except OSError as e:
            logger.warning("Cannot stat %s: %s", rel, e)
            continue
        entries.append(InventoryEntry(
            path=rel,
            category=category,
            size=st.size,
            last_modified=st.mtime,
        ))

    entries.sort(key=lambda e: e.path)
    logger.debug("Inventory of %s: %d tracked, %d untracked", root, len(entries), skipped)
    return entries

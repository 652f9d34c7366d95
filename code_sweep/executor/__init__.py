"""Cleanup execution: backups, removal, build check, rollback."""

from __future__ import annotations

from code_sweep.executor.backup import BackupStore
from code_sweep.executor.build_check import BuildRunner
from code_sweep.executor.cleanup import TRANSITIONS, CleanupExecutor
from code_sweep.executor.locks import exclusive_root, is_locked

__all__ = [
    "BackupStore",
    "BuildRunner",
    "CleanupExecutor",
    "TRANSITIONS",
    "exclusive_root",
    "is_locked",
]

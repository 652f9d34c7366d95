"""Exception hierarchy for code-sweep.

Parsing and graph-level problems are collected as ``Diagnostic`` records on the
graph. The exceptions here abort a specific operation.
"""

from __future__ import annotations

from code_sweep.models import BuildValidationResult


class SweepError(Exception):
    """Base class for all code-sweep errors."""


class ConfigError(SweepError):
    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class ParseError(SweepError):
    """A file could not be parsed. Recorded per file, never fatal to a scan."""

    def __init__(self, path: str, message: str, line: int | None = None):
        self.path = path
        self.line = line
        location = f"{path}:{line}" if line else path
        super().__init__(f"{location}: {message}")


class ScanCancelledError(SweepError):
    def __init__(self, root: str, parsed: int, total: int):
        self.root = root
        self.parsed = parsed
        self.total = total
        super().__init__(f"Scan of {root} cancelled after {parsed}/{total} files")


class UnsafeRemovalError(SweepError):
    """Removal of one file was refused."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Refusing to remove {path}: {reason}")


class BackupFailureError(SweepError):
    """Backup could not be made durable; nothing was deleted."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Backup failed at {path}: {reason}")


class BackupNotFoundError(SweepError):
    def __init__(self, rollback_id: str):
        self.rollback_id = rollback_id
        super().__init__(f"No backup with rollback id {rollback_id!r}")


class RemovalError(SweepError):
    """Deletion failed mid-way; already removed files were put back."""

    def __init__(self, path: str, reason: str, restored: list[str]):
        self.path = path
        self.reason = reason
        self.restored = restored
        super().__init__(
            f"Removing {path} failed ({reason}); restored {len(restored)} file(s)"
        )


class ExecutionInProgressError(SweepError):
    def __init__(self, root: str):
        self.root = root
        super().__init__(f"Another cleanup is already running for {root}")


class InvalidTransitionError(SweepError):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move from {current!r} to {requested!r}")


class BuildValidationFailure(SweepError):
    """Post-cleanup build check failed. The removal itself stands."""

    def __init__(self, result: BuildValidationResult):
        self.result = result
        super().__init__(
            f"Build check {result.command!r} failed with exit code {result.returncode}"
        )

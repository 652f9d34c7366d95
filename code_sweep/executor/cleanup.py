"""Cleanup executor: dry run, backed-up all-or-nothing removal, and rollback."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from code_sweep.analysis.graph_builder import DependencyGraphBuilder, ProgressCallback
from code_sweep.analysis.validator import SafetyValidator
from code_sweep.config import SweepConfig
from code_sweep.errors import (
    BackupFailureError,
    InvalidTransitionError,
    RemovalError,
    UnsafeRemovalError,
)
from code_sweep.executor.backup import BackupStore
from code_sweep.executor.build_check import BuildRunner
from code_sweep.executor.locks import exclusive_root
from code_sweep.fs import FileSystem, LocalFileSystem
from code_sweep.models import (
    CleanupResult,
    DependencyGraph,
    ExecutionState,
    RollbackResult,
    ValidationResult,
)

logger = logging.getLogger(__name__)

S = ExecutionState
_RESTARTABLE = {S.ANALYZING, S.ROLLED_BACK}
TRANSITIONS: dict[ExecutionState, set[ExecutionState]] = {
    S.IDLE: _RESTARTABLE,
    S.ANALYZING: {S.VALIDATED, S.FAILED},
    S.VALIDATED: {S.DRY_RUN_COMPLETE, S.BACKING_UP, S.EXECUTING, S.FAILED},
    S.BACKING_UP: {S.EXECUTING, S.FAILED},
    S.EXECUTING: {S.COMPLETED, S.FAILED},
    S.DRY_RUN_COMPLETE: _RESTARTABLE,
    S.COMPLETED: _RESTARTABLE,
    S.FAILED: _RESTARTABLE,
    S.ROLLED_BACK: _RESTARTABLE,
}


class CleanupExecutor:
    """Drive one project root through analyze → validate → dry run / execute → rollback."""

    def __init__(
        self,
        root: Path,
        config: SweepConfig | None = None,
        fs: FileSystem | None = None,
        build_runner: BuildRunner | None = None,
    ):
        self.root = Path(root).resolve()
        self.config = config or SweepConfig()
        self.fs = fs or LocalFileSystem()
        safety = self.config.safety
        self.build_runner = build_runner or BuildRunner(safety.build_command, safety.build_timeout)
        self.backups = BackupStore(self.root, safety.backup_location, self.fs)
        self.state = ExecutionState.IDLE
        self.graph: DependencyGraph | None = None
        self._state_lock = threading.Lock()

    # ── state machine ───────────────────────────────────────

    def _transition(self, new: ExecutionState) -> None:
        with self._state_lock:
            if new not in TRANSITIONS[self.state]:
                raise InvalidTransitionError(self.state.value, new.value)
            logger.info("Cleanup %s: %s -> %s", self.root, self.state.value, new.value)
            self.state = new

    def analyze(
        self,
        graph: DependencyGraph | None = None,
        cancel: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> DependencyGraph:
        """Build (or adopt) the graph and move to ``validated``."""
        self._transition(S.ANALYZING)
        try:
            if graph is None:
                builder = DependencyGraphBuilder(self.config, self.fs)
                graph = builder.build(self.root, cancel=cancel, progress=progress)
        except Exception:
            self._transition(S.FAILED)
            raise
        self.graph = graph
        self._transition(S.VALIDATED)
        return graph

    def _validate(self, candidates: list[str] | None) -> ValidationResult:
        validator = SafetyValidator(self.graph, self.config)
        if candidates is None:
            candidates = validator.removal_candidates()
        return validator.validate_files(candidates)

    # ── dry run ─────────────────────────────────────────────

    def dry_run(
        self,
        candidates: list[str] | None = None,
        graph: DependencyGraph | None = None,
        backup: bool | None = None,
        validate_build: bool | None = None,
    ) -> CleanupResult:
        """Report the exact action set without touching the file system."""
        self.analyze(graph=graph)
        validation = self._validate(candidates)
        backup = self.config.safety.create_backup if backup is None else backup
        validate_build = self.config.safety.validate_build if validate_build is None else validate_build

        result = CleanupResult(dry_run=True, state=self.state, blocked=validation.unsafe_files)
        if backup and validation.safe_files:
            result.actions.append(
                f"backup {len(validation.safe_files)} file(s) to {self.backups.location}"
            )
        result.actions.extend(f"remove {path}" for path in validation.safe_files)
        if validate_build:
            result.actions.append(f"run build check: {self.build_runner.command}")
        for unsafe in validation.unsafe_files:
            result.warnings.append(f"skip {unsafe.path}: {unsafe.reason}")

        self._transition(S.DRY_RUN_COMPLETE)
        result.state = self.state
        return result

    # ── execute ─────────────────────────────────────────────

    def execute(
        self,
        candidates: list[str] | None = None,
        backup: bool | None = None,
        validate_build: bool | None = None,
    ) -> CleanupResult:
        """Remove every safe candidate, or none of them.

        Always re-analyzes from disk. Unsafe candidates are blocked and
        reported; a backup failure aborts before anything is deleted.
        """
        backup = self.config.safety.create_backup if backup is None else backup
        validate_build = self.config.safety.validate_build if validate_build is None else validate_build

        with exclusive_root(self.root):
            self.analyze()
            validation = self._validate(candidates)
            result = CleanupResult(dry_run=False, state=self.state, blocked=validation.unsafe_files)
            for unsafe in validation.unsafe_files:
                error = UnsafeRemovalError(unsafe.path, unsafe.reason)
                logger.warning("%s", error)
                result.errors.append(str(error))

            safe = validation.safe_files
            snapshot: dict[str, bytes] = {}
            if backup and safe:
                self._transition(S.BACKING_UP)
                try:
                    record = self.backups.create(safe)
                except BackupFailureError:
                    self._transition(S.FAILED)
                    raise
                result.rollback_id = record.rollback_id
                result.actions.append(f"backup {len(safe)} file(s) as {record.rollback_id}")
            elif safe:
                # no backup: keep the bytes in memory so a failed run can be undone
                try:
                    snapshot = {p: self.fs.read_bytes(self.root / p) for p in safe}
                except OSError as e:
                    self._transition(S.FAILED)
                    raise BackupFailureError(str(self.root), f"cannot snapshot files: {e}") from e

            self._transition(S.EXECUTING)
            self._remove_all(safe, result, snapshot)
            self._transition(S.COMPLETED)
            result.state = self.state

        if validate_build and safe:
            result.build_validation = self.build_runner.run(self.root)
            result.actions.append(f"run build check: {self.build_runner.command}")
            if not result.build_validation.passed:
                hint = f"; undo with rollback {result.rollback_id}" if result.rollback_id else ""
                result.warnings.append(f"Build check failed after cleanup{hint}")
        return result

    def _remove_all(self, paths: list[str], result: CleanupResult, snapshot: dict[str, bytes]) -> None:
        removed: list[str] = []
        for path in paths:
            try:
                self.fs.delete(self.root / path)
            except OSError as e:
                logger.error("Removing %s failed: %s; restoring %d file(s)", path, e, len(removed))
                restored = self._compensate(removed, result.rollback_id, snapshot)
                self._transition(S.FAILED)
                raise RemovalError(path, str(e), restored) from e
            removed.append(path)
            result.actions.append(f"remove {path}")

        result.removed = removed
        if self.config.safety.remove_empty_dirs:
            for path in removed:
                for directory in self.fs.remove_empty_dirs((self.root / path).parent, self.root):
                    result.actions.append(f"remove empty directory {directory.relative_to(self.root).as_posix()}")
        logger.info("Removed %d file(s) from %s", len(removed), self.root)

    def _compensate(self, removed: list[str], rollback_id: str | None, snapshot: dict[str, bytes]) -> list[str]:
        if rollback_id is not None:
            outcome = self.backups.restore(rollback_id, paths=removed)
            return outcome.restored
        restored: list[str] = []
        for path in removed:
            try:
                self.fs.write_bytes(self.root / path, snapshot[path], durable=True)
            except OSError as e:
                logger.error("Could not restore %s: %s", path, e)
                continue
            restored.append(path)
        return restored

    # ── rollback ────────────────────────────────────────────

    def rollback(self, rollback_id: str) -> RollbackResult:
        """Restore a backup. Reports every path that could not be restored."""
        with exclusive_root(self.root):
            result = self.backups.restore(rollback_id)
            if result.success:
                self._transition(S.ROLLED_BACK)
            return result

"""Pipeline orchestrator: analyze -> validate -> preview -> cleanup -> rollback."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable

from code_sweep.analysis.assets import asset_usage_report
from code_sweep.analysis.graph_builder import DependencyGraphBuilder
from code_sweep.analysis.orphan_tests import analyze_test_files
from code_sweep.analysis.validator import SafetyValidator
from code_sweep.config import SweepConfig, load_config
from code_sweep.executor.backup import BackupStore
from code_sweep.executor.cleanup import CleanupExecutor
from code_sweep.fs import FileSystem
from code_sweep.models import (
    BackupRecord,
    CleanupPreview,
    CleanupResult,
    DependencyGraph,
    DiagnosticCode,
    RollbackResult,
    SafetyReport,
    ValidationResult,
    to_jsonable,
)

ProgressCallback = Callable[[str, int, int], None]


def _config(root: Path, config: SweepConfig | None) -> SweepConfig:
    return config if config is not None else load_config(root)


def run_analysis(
    root: Path,
    config: SweepConfig | None = None,
    fs: FileSystem | None = None,
    cancel: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> DependencyGraph:
    """Stage 1: scan, parse and assemble the dependency graph."""
    config = _config(root, config)
    return DependencyGraphBuilder(config, fs).build(root, cancel=cancel, progress=progress)


def run_validation(
    root: Path,
    files: list[str] | None = None,
    config: SweepConfig | None = None,
    graph: DependencyGraph | None = None,
) -> ValidationResult:
    """Classify ``files`` (default: every orphan) as safe or unsafe to remove."""
    config = _config(root, config)
    graph = graph or run_analysis(root, config)
    validator = SafetyValidator(graph, config)
    return validator.validate_files(files if files else validator.removal_candidates())


def run_safety_check(
    root: Path,
    config: SweepConfig | None = None,
    graph: DependencyGraph | None = None,
) -> SafetyReport:
    config = _config(root, config)
    graph = graph or run_analysis(root, config)
    return SafetyValidator(graph, config).validate_cleanup_safety()


def run_preview(
    root: Path,
    config: SweepConfig | None = None,
    graph: DependencyGraph | None = None,
    candidates: list[str] | None = None,
) -> CleanupPreview:
    config = _config(root, config)
    graph = graph or run_analysis(root, config)
    return SafetyValidator(graph, config).generate_cleanup_preview(candidates)


def run_cleanup(
    root: Path,
    config: SweepConfig | None = None,
    dry_run: bool = True,
    backup: bool | None = None,
    validate_build: bool | None = None,
    candidates: list[str] | None = None,
    graph: DependencyGraph | None = None,
) -> CleanupResult:
    """Dry run (default) or real execution. Real runs always re-analyze from disk."""
    executor = CleanupExecutor(root, _config(root, config))
    if dry_run:
        return executor.dry_run(
            candidates=candidates, graph=graph, backup=backup, validate_build=validate_build,
        )
    return executor.execute(candidates=candidates, backup=backup, validate_build=validate_build)


def run_rollback(root: Path, rollback_id: str, config: SweepConfig | None = None) -> RollbackResult:
    return CleanupExecutor(root, _config(root, config)).rollback(rollback_id)


def list_backups(root: Path, config: SweepConfig | None = None) -> list[BackupRecord]:
    config = _config(root, config)
    return BackupStore(root, config.safety.backup_location).list_backups()


def graph_report(graph: DependencyGraph, config: SweepConfig | None = None) -> dict[str, Any]:
    """JSON-ready summary of an analysis, shared by the CLI and the web API."""
    config = config or SweepConfig()
    tests = analyze_test_files(graph, preserve_utilities=config.preserve_test_utilities)
    assets = asset_usage_report(graph)
    return {
        "root": graph.root,
        "stats": {
            "files": len(graph.files),
            "assets": len(graph.assets),
            "entry_points": len(graph.entry_points),
            "reachable": len(graph.reachable),
            "orphaned_files": len(graph.orphaned_files),
            "orphaned_assets": len(graph.orphaned_assets),
            "circular_groups": len(graph.circular_groups),
            "parse_errors": len(graph.diagnostics_with(DiagnosticCode.PARSE_ERROR)),
            "warnings": len(graph.diagnostics),
        },
        "entry_points": list(graph.entry_points),
        "orphaned_files": list(graph.orphaned_files),
        "orphaned_assets": list(graph.orphaned_assets),
        "circular_groups": [list(g) for g in graph.circular_groups],
        "tests": to_jsonable(tests),
        "assets": to_jsonable(assets),
        "external_references": to_jsonable(graph.external_references),
        "diagnostics": to_jsonable(graph.diagnostics),
    }

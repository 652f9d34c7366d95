"""Safety and risk validation of removal candidates against an analyzed graph."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable

from code_sweep.config import SweepConfig
from code_sweep.models import (
    CleanupPreview,
    DependencyGraph,
    DiagnosticCode,
    FileKind,
    PreviewSummary,
    RemovalUnit,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    SafetyReport,
    UnsafeFile,
    ValidationResult,
)
from code_sweep.scanner.patterns import first_match, in_test_directory

logger = logging.getLogger(__name__)

NOT_PRESENT = "Not present in the analyzed project"
ENTRY_POINT = "Entry point"
CONFIG_FILE = "Configuration file"
TEST_UTILITY = "Preserved test utility"
CIRCULAR_MEMBER = "Member of unresolved circular group"
PUBLIC_ASSET = "Publicly served asset"
REACHABLE = "Reachable from an entry point"

# Three or more medium factors add up to high risk
_MEDIUM_FACTORS_FOR_HIGH = 3


def _referenced_by(referrers: list[str]) -> str:
    first = referrers[0]
    if len(referrers) == 1:
        return f"Referenced by {first}"
    return f"Referenced by {first} and {len(referrers) - 1} more"


class SafetyValidator:
    """Classify removal candidates. A pure function of the graph and the config."""

    def __init__(self, graph: DependencyGraph, config: SweepConfig | None = None):
        self.graph = graph
        self.config = config or SweepConfig()
        self._groups = {m: group for group in graph.circular_groups for m in group}

    def removal_candidates(self) -> list[str]:
        """Every orphaned file and asset."""
        return sorted(set(self.graph.orphaned_files) | set(self.graph.orphaned_assets))

    # ── classification ──────────────────────────────────────

    def validate_files(self, candidates: Iterable[str]) -> ValidationResult:
        graph = self.graph
        paths = sorted(set(candidates))
        reasons: dict[str, str] = {}

        for path in paths:
            reason = self._standalone_reason(path)
            if reason:
                reasons[path] = reason

        # Removing a file must not leave a dangling reference in a file that
        # stays, so blocking one candidate can block the ones it references.
        removable = {p for p in paths if p not in reasons}
        queue = deque(sorted(removable))
        while queue:
            path = queue.popleft()
            if path not in removable:
                continue
            reason = self._dependent_reason(path, removable)
            if reason is None:
                continue
            reasons[path] = reason
            removable.discard(path)
            affected = set(graph.edges.get(path, ())) | set(self._groups.get(path, ()))
            queue.extend(p for p in sorted(affected) if p in removable)

        result = ValidationResult()
        for path in paths:
            if path in reasons:
                result.unsafe_files.append(UnsafeFile(path=path, reason=reasons[path]))
            else:
                result.safe_files.append(path)
        logger.debug("Validated %d candidates: %d safe, %d unsafe",
                     len(paths), len(result.safe_files), len(result.unsafe_files))
        return result

    def _dependent_reason(self, path: str, removable: set[str]) -> str | None:
        """Reasons that depend on which other candidates are removed with ``path``."""
        group = self._groups.get(path)
        if group is not None:
            if not self.config.safety.remove_orphaned_cycles:
                return f"{CIRCULAR_MEMBER} ({', '.join(group)})"
            missing = [m for m in group if m not in removable]
            if missing:
                return f"{CIRCULAR_MEMBER}; {', '.join(missing)} must be removed with it"
        staying = sorted(r for r in self.graph.referrers(path) if r not in removable)
        if staying:
            return _referenced_by(staying)
        return None

    def _standalone_reason(self, path: str) -> str | None:
        """Reasons that hold regardless of which other candidates are removed."""
        graph = self.graph
        node = graph.files.get(path)
        asset = graph.assets.get(path)
        if node is None and asset is None:
            return NOT_PRESENT

        pattern = first_match(path, self.config.exclude_patterns)
        if pattern:
            return f"Matches protected pattern {pattern}"
        if node is not None and node.is_entry_point:
            return ENTRY_POINT
        if node is not None and node.is_config_file:
            return CONFIG_FILE
        if (self.config.preserve_test_utilities and node is not None
                and node.kind != FileKind.TEST and in_test_directory(path)):
            return TEST_UTILITY

        live = sorted(r for r in graph.referrers(path) if r in graph.reachable)
        if live:
            return _referenced_by(live)
        if path in graph.reachable:
            return REACHABLE
        if asset is not None and asset.is_public and not self.config.safety.include_public_assets:
            return PUBLIC_ASSET
        return None

    # ── reports ─────────────────────────────────────────────

    def validate_cleanup_safety(self) -> SafetyReport:
        """Check the whole orphan set: blocked candidates are errors, uncertainty is warned."""
        graph = self.graph
        result = self.validate_files(self.removal_candidates())
        warnings: list[str] = []

        if graph.circular_groups:
            warnings.append(
                f"Found {len(graph.circular_groups)} circular dependency group(s)"
            )
            for group in graph.circular_groups:
                state = "unreachable" if group[0] not in graph.reachable else "reachable"
                warnings.append(f"{group[0]}: circular group ({', '.join(group)}) is {state}")
        for d in graph.diagnostics_with(DiagnosticCode.PARSE_ERROR):
            warnings.append(f"{d.path}: could not be parsed, its references are unknown")
        for d in graph.diagnostics_with(DiagnosticCode.UNCERTAIN_DYNAMIC):
            warnings.append(f"{d.path}: {d.message}")
        for d in graph.diagnostics_with(DiagnosticCode.UNRESOLVED_REFERENCE):
            warnings.append(f"{d.path}: {d.message}")

        errors = [f"{u.path}: {u.reason}" for u in result.unsafe_files]
        return SafetyReport(is_safe=not errors, warnings=warnings, errors=errors)

    def generate_cleanup_preview(self, candidates: Iterable[str] | None = None) -> CleanupPreview:
        graph = self.graph
        if candidates is None:
            candidates = self.removal_candidates()
        validation = self.validate_files(candidates)
        safe = validation.safe_files
        safe_set = set(safe)

        by_category: dict[str, list[str]] = {"module": [], "test": [], "asset": [], "config": []}
        summary = PreviewSummary(blocked=len(validation.unsafe_files))
        for path in safe:
            if path in graph.assets:
                by_category["asset"].append(path)
                summary.total_assets_to_remove += 1
                summary.total_bytes += graph.assets[path].size
                continue
            node = graph.files[path]
            category = node.kind.value if node.kind in (FileKind.TEST, FileKind.CONFIG) else "module"
            by_category[category].append(path)
            summary.total_files_to_remove += 1
            summary.total_bytes += node.size

        units = self._removal_units(safe, safe_set)
        risks = self._assess_risk(safe, units)
        return CleanupPreview(
            summary=summary,
            files_by_category=by_category,
            units=units,
            risks=risks,
            recommendations=self._recommendations(summary, risks, units),
            unsafe_files=validation.unsafe_files,
        )

    def _removal_units(self, safe: list[str], safe_set: set[str]) -> list[RemovalUnit]:
        graph = self.graph
        units: list[RemovalUnit] = []
        grouped: set[str] = set()
        for group in graph.circular_groups:
            if len(group) > 1 and set(group) <= safe_set:
                grouped.update(group)
                units.append(RemovalUnit(
                    paths=list(group),
                    justification=(
                        f"Circular group of {len(group)} files unreachable from every "
                        "entry point and configuration file"
                    ),
                ))
        for path in safe:
            if path in grouped:
                continue
            referrers = sorted(graph.referrers(path))
            if referrers:
                justification = f"Only referenced by files removed in this cleanup: {', '.join(referrers)}"
            elif path in graph.assets:
                justification = "Asset not referenced by any file"
            else:
                justification = "Not referenced by any entry point, configuration file or module"
            units.append(RemovalUnit(paths=[path], justification=justification))
        units.sort(key=lambda u: u.paths[0])
        return units

    def _assess_risk(self, safe: list[str], units: list[RemovalUnit]) -> RiskAssessment:
        graph = self.graph
        safety = self.config.safety
        factors: list[RiskFactor] = []

        if len(safe) > safety.max_files_threshold:
            factors.append(RiskFactor(
                RiskLevel.HIGH,
                f"Removing {len(safe)} files exceeds the threshold of {safety.max_files_threshold}",
            ))
        cycles = [u for u in units if u.is_group]
        if cycles:
            factors.append(RiskFactor(
                RiskLevel.MEDIUM,
                f"{len(cycles)} circular group(s) would be removed as a unit",
            ))
        uncertain = graph.diagnostics_with(DiagnosticCode.UNCERTAIN_DYNAMIC)
        if uncertain and safe:
            factors.append(RiskFactor(
                RiskLevel.MEDIUM,
                f"{len(uncertain)} dynamic reference(s) could not be fully resolved",
            ))
        parse_errors = graph.diagnostics_with(DiagnosticCode.PARSE_ERROR)
        if parse_errors and safe:
            factors.append(RiskFactor(
                RiskLevel.MEDIUM,
                f"{len(parse_errors)} file(s) could not be parsed; their references are unknown",
            ))
        public = [p for p in safe if p in graph.assets and graph.assets[p].is_public]
        if public:
            factors.append(RiskFactor(
                RiskLevel.MEDIUM,
                f"{len(public)} publicly served asset(s) may still be requested by URL",
            ))
        dynamic_neighbours = [
            p for p in safe
            if any(graph.files[r].is_dynamic for r in graph.referrers(p) if r in graph.files)
        ]
        if dynamic_neighbours:
            factors.append(RiskFactor(
                RiskLevel.LOW,
                f"{len(dynamic_neighbours)} candidate(s) are referenced by files with dynamic imports",
            ))

        mediums = sum(1 for f in factors if f.level == RiskLevel.MEDIUM)
        if any(f.level == RiskLevel.HIGH for f in factors) or mediums >= _MEDIUM_FACTORS_FOR_HIGH:
            level = RiskLevel.HIGH
        elif mediums:
            level = RiskLevel.MEDIUM
        else:
            level = RiskLevel.LOW
        return RiskAssessment(level=level, factors=factors)

    def _recommendations(
        self, summary: PreviewSummary, risks: RiskAssessment, units: list[RemovalUnit],
    ) -> list[str]:
        graph = self.graph
        safety = self.config.safety
        recommendations: list[str] = []

        if summary.total == 0:
            recommendations.append("Nothing to remove: no orphaned files or assets can be safely deleted")
        if risks.level == RiskLevel.HIGH:
            recommendations.append("Review the removal list carefully and consider cleaning up in smaller batches")
        if graph.diagnostics_with(DiagnosticCode.UNCERTAIN_DYNAMIC):
            recommendations.append(
                "Check the dynamic imports listed in the warnings before removing files they might load"
            )
        if graph.diagnostics_with(DiagnosticCode.PARSE_ERROR):
            recommendations.append("Fix the files that failed to parse and re-run the analysis")
        if any(u.is_group for u in units):
            recommendations.append(
                "Circular groups are removed together; make sure none is loaded by a side channel"
            )
        if summary.blocked:
            recommendations.append(f"{summary.blocked} candidate(s) were blocked; see the reasons listed")
        if summary.total:
            if safety.create_backup:
                recommendations.append("A backup will be created; keep the rollback id until the change is verified")
            else:
                recommendations.append("Enable safety.createBackup so the cleanup can be rolled back")
            if not safety.validate_build:
                recommendations.append("Run with --validate-build to confirm the project still builds")
        return recommendations

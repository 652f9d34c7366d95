"""Data models for the code-sweep analyzer."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any


class FileKind(enum.Enum):
    MODULE = "module"
    TEST = "test"
    CONFIG = "config"
    UNKNOWN = "unknown"


class ReferenceKind(enum.Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"
    STRING_LITERAL = "string-literal"
    GLOB = "glob"
    STYLESHEET_URL = "stylesheet-url"


class UsageType(enum.Enum):
    STATIC_IMPORT = "static-import"
    STRING_LITERAL = "string-literal"
    STYLESHEET_URL = "stylesheet-url"


class EntryCategory(enum.Enum):
    SOURCE = "source"
    CONFIG = "config"
    ASSET = "asset"


class DiagnosticCode(enum.Enum):
    PARSE_ERROR = "parse-error"
    UNRESOLVED_REFERENCE = "unresolved-reference"
    CIRCULAR_REFERENCE = "circular-reference"
    UNCERTAIN_DYNAMIC = "uncertain-dynamic"


class RiskLevel(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExecutionState(enum.Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    VALIDATED = "validated"
    DRY_RUN_COMPLETE = "dry_run_complete"
    BACKING_UP = "backing_up"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


# ── Scanner stage ────────────────────────────────────────────


@dataclass(frozen=True)
class Reference:
    """One outgoing reference found in a file's text."""
    specifier: str
    kind: ReferenceKind
    line: int = 0
    template: bool = False  # specifier contains ${...} slots
    opaque: bool = False  # target is a runtime expression
    optional: bool = False  # no warning when it does not resolve
    root_relative: bool = False  # dotted module path, resolved from source roots
    fills: tuple[str, ...] = ()  # literals that may fill template slots
    pattern_filter: str | None = None  # regex applied to glob matches
    excludes: tuple[str, ...] = ()  # negated glob patterns

    @property
    def is_dynamic(self) -> bool:
        return self.kind in (ReferenceKind.DYNAMIC, ReferenceKind.GLOB)


@dataclass
class ParseResult:
    """Result from parsing a single file."""
    path: str
    references: list[Reference] = field(default_factory=list)
    exported_symbols: set[str] = field(default_factory=set)
    error: str | None = None


@dataclass(frozen=True)
class InventoryEntry:
    path: str
    category: EntryCategory
    size: int = 0
    last_modified: float = 0.0

    @property
    def extension(self) -> str:
        name = self.path.rsplit("/", 1)[-1]
        if "." not in name.lstrip("."):
            return ""
        return "." + name.rsplit(".", 1)[-1].lower()


# ── Graph ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Diagnostic:
    code: DiagnosticCode
    path: str
    message: str
    target: str | None = None


@dataclass(frozen=True)
class FileNode:
    path: str
    references: frozenset[str] = frozenset()
    referenced_by: frozenset[str] = frozenset()
    exported_symbols: frozenset[str] = frozenset()
    is_entry_point: bool = False
    is_config_file: bool = False
    is_dynamic: bool = False
    kind: FileKind = FileKind.MODULE
    size: int = 0
    last_modified: float = 0.0


@dataclass(frozen=True)
class AssetNode:
    path: str
    referenced_in: frozenset[str] = frozenset()
    usage_type: UsageType | None = None  # None while nothing references it
    is_public: bool = False
    size: int = 0
    extension: str = ""


@dataclass(frozen=True)
class DependencyGraph:
    """Immutable result of one analysis run."""
    root: str
    files: Mapping[str, FileNode] = field(default_factory=lambda: MappingProxyType({}))
    assets: Mapping[str, AssetNode] = field(default_factory=lambda: MappingProxyType({}))
    entry_points: tuple[str, ...] = ()
    orphaned_files: tuple[str, ...] = ()
    orphaned_assets: tuple[str, ...] = ()
    circular_groups: tuple[tuple[str, ...], ...] = ()
    reachable: frozenset[str] = frozenset()
    edges: Mapping[str, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))
    inbound: Mapping[str, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))
    external_references: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    protected: frozenset[str] = frozenset()
    diagnostics: tuple[Diagnostic, ...] = ()

    def is_orphaned(self, path: str) -> bool:
        return path in self.orphaned_files or path in self.orphaned_assets

    def asset_is_unused(self, path: str) -> bool:
        """Derived usage flag for an asset; never stored on the node."""
        if path not in self.assets:
            raise KeyError(path)
        return path not in self.reachable

    def referrers(self, path: str) -> frozenset[str]:
        """Every node (file or asset) with an edge into ``path``."""
        return self.inbound.get(path, frozenset())

    def group_of(self, path: str) -> tuple[str, ...] | None:
        for group in self.circular_groups:
            if path in group:
                return group
        return None

    def diagnostics_for(self, path: str) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.path == path]

    def diagnostics_with(self, code: DiagnosticCode) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.code == code]


# ── Validation ───────────────────────────────────────────────


@dataclass(frozen=True)
class UnsafeFile:
    path: str
    reason: str


@dataclass
class ValidationResult:
    safe_files: list[str] = field(default_factory=list)
    unsafe_files: list[UnsafeFile] = field(default_factory=list)

    @property
    def is_safe(self) -> bool:
        return not self.unsafe_files

    def reason_for(self, path: str) -> str | None:
        for entry in self.unsafe_files:
            if entry.path == path:
                return entry.reason
        return None


@dataclass
class SafetyReport:
    is_safe: bool
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RiskFactor:
    level: RiskLevel
    description: str


@dataclass
class RiskAssessment:
    level: RiskLevel = RiskLevel.LOW
    factors: list[RiskFactor] = field(default_factory=list)


@dataclass
class RemovalUnit:
    """A single path, or a whole circular group removed together."""
    paths: list[str]
    justification: str

    @property
    def is_group(self) -> bool:
        return len(self.paths) > 1


@dataclass
class PreviewSummary:
    total_files_to_remove: int = 0
    total_assets_to_remove: int = 0
    total_bytes: int = 0
    blocked: int = 0

    @property
    def total(self) -> int:
        return self.total_files_to_remove + self.total_assets_to_remove


@dataclass
class CleanupPreview:
    summary: PreviewSummary
    files_by_category: dict[str, list[str]]
    units: list[RemovalUnit]
    risks: RiskAssessment
    recommendations: list[str]
    unsafe_files: list[UnsafeFile] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return sorted(p for unit in self.units for p in unit.paths)


# ── Execution ────────────────────────────────────────────────


@dataclass(frozen=True)
class BackupEntry:
    path: str
    sha256: str
    size: int
    mode: int = 0o644
    mtime: float = 0.0


@dataclass
class BackupRecord:
    rollback_id: str
    root: str
    created: str
    entries: list[BackupEntry] = field(default_factory=list)
    restored: list[str] = field(default_factory=list)  # timestamps of restores


@dataclass
class BuildValidationResult:
    passed: bool
    command: str
    returncode: int | None = None
    output: str = ""
    duration: float = 0.0


@dataclass
class CleanupResult:
    dry_run: bool
    state: ExecutionState
    actions: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    blocked: list[UnsafeFile] = field(default_factory=list)
    rollback_id: str | None = None
    build_validation: BuildValidationResult | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def backup_created(self) -> bool:
        return self.rollback_id is not None


@dataclass
class RollbackResult:
    rollback_id: str
    restored: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    # paths that existed with different bytes and were replaced
    overwritten: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


def to_jsonable(obj: Any) -> Any:
    """Convert models (dataclasses, enums, sets, paths) into JSON-safe values."""
    if is_dataclass(obj) and not isinstance(obj, type):
        data = {f.name: to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
        for name in ("is_safe", "backup_created", "success", "total"):
            if hasattr(type(obj), name):
                data[name] = getattr(obj, name)
        return data
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (set, frozenset)):
        return sorted(to_jsonable(v) for v in obj)
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, Path):
        return obj.as_posix()
    return obj

"""Dependency graph builder: parallel parse, single-threaded assembly, reachability and cycles."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from types import MappingProxyType

from code_sweep.analysis.assets import build_asset_nodes
from code_sweep.analysis.reachability import find_circular_groups, reachable_from
from code_sweep.analysis.resolver import PathResolver
from code_sweep.config import SweepConfig
from code_sweep.errors import ParseError, ScanCancelledError
from code_sweep.fs import FileSystem, LocalFileSystem
from code_sweep.models import (
    DependencyGraph,
    Diagnostic,
    DiagnosticCode,
    EntryCategory,
    FileKind,
    FileNode,
    InventoryEntry,
    ParseResult,
    ReferenceKind,
)
from code_sweep.scanner import get_parser
from code_sweep.scanner.inventory import build_inventory
from code_sweep.scanner.metadata import declared_entries, tsconfig_aliases
from code_sweep.scanner.patterns import first_match, in_test_directory, is_test_path

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


class DependencyGraphBuilder:
    """Build an immutable ``DependencyGraph`` for one project root."""

    def __init__(self, config: SweepConfig | None = None, fs: FileSystem | None = None):
        self.config = config or SweepConfig()
        self.fs = fs or LocalFileSystem()

    def build(
        self,
        root: Path,
        cancel: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> DependencyGraph:
        root = Path(root).resolve()
        if progress:
            progress("Inventory", 0, 1)
        inventory = build_inventory(root, self.config, self.fs)
        if progress:
            progress("Inventory", 1, 1)

        results = self._parse_all(root, inventory, cancel, progress)

        if progress:
            progress("Assembling", 0, 1)
        graph = self._assemble(root, inventory, results)
        if progress:
            progress("Assembling", 1, 1)
        logger.info(
            "Analyzed %s: %d files, %d assets, %d orphaned files, %d orphaned assets, %d cycles",
            root, len(graph.files), len(graph.assets), len(graph.orphaned_files),
            len(graph.orphaned_assets), len(graph.circular_groups),
        )
        return graph

    # ── parse phase ─────────────────────────────────────────

    def _parse_all(
        self,
        root: Path,
        inventory: list[InventoryEntry],
        cancel: threading.Event | None,
        progress: ProgressCallback | None,
    ) -> dict[str, ParseResult]:
        targets = [e.path for e in inventory if get_parser(e.path) is not None]
        total = len(targets)
        results: dict[str, ParseResult] = {}
        batch_size = self.config.batch_size

        with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
            for start in range(0, total, batch_size):
                if cancel is not None and cancel.is_set():
                    raise ScanCancelledError(str(root), len(results), total)
                batch = targets[start:start + batch_size]
                futures = {pool.submit(self.parse_file, root, path): path for path in batch}
                for future in as_completed(futures):
                    result = future.result()
                    results[result.path] = result
                    if progress:
                        progress("Parsing", len(results), total)

        if cancel is not None and cancel.is_set():
            raise ScanCancelledError(str(root), len(results), total)
        return results

    def parse_file(self, root: Path, rel_path: str) -> ParseResult:
        """Parse one file; failures are recorded on the result, never raised."""
        parser = get_parser(rel_path)
        if parser is None:
            return ParseResult(path=rel_path)
        try:
            text = self.fs.read_text(root / rel_path)
            return parser.parse(text, rel_path)
        except ParseError as e:
            logger.warning("Parse error: %s", e)
            return ParseResult(path=rel_path, error=str(e))
        except Exception as e:
            logger.warning("Could not parse %s: %s", rel_path, e)
            return ParseResult(path=rel_path, error=f"{rel_path}: {e}")

    # ── assembly phase (single-threaded) ────────────────────

    def _assemble(
        self,
        root: Path,
        inventory: list[InventoryEntry],
        results: dict[str, ParseResult],
    ) -> DependencyGraph:
        config = self.config
        file_entries = [e for e in inventory if e.category != EntryCategory.ASSET]
        asset_entries = [e for e in inventory if e.category == EntryCategory.ASSET]
        file_paths = {e.path for e in file_entries}
        all_paths = [e.path for e in inventory]

        resolver = PathResolver(all_paths, config, aliases=tsconfig_aliases(root, self.fs))
        diagnostics: list[Diagnostic] = []
        edges: dict[str, set[str]] = {p: set() for p in all_paths}
        edge_kinds: dict[tuple[str, str], set[ReferenceKind]] = {}
        unresolved: dict[str, set[str]] = {}
        externals: dict[str, set[str]] = {}
        dynamic: set[str] = set()

        for path in sorted(results):
            result = results[path]
            if result.error:
                diagnostics.append(Diagnostic(DiagnosticCode.PARSE_ERROR, path, result.error))
                continue
            for ref in result.references:
                if ref.is_dynamic:
                    dynamic.add(path)
                resolution = resolver.resolve(ref, path)
                for target in resolution.targets:
                    # "from . import x" inside a package's own __init__.py
                    if target == path and ref.optional:
                        continue
                    edges[path].add(target)
                    edge_kinds.setdefault((path, target), set()).add(ref.kind)
                if resolution.uncertain:
                    diagnostics.append(Diagnostic(
                        DiagnosticCode.UNCERTAIN_DYNAMIC, path,
                        f"Dynamic reference {ref.specifier!r} on line {ref.line} cannot be "
                        f"fully resolved ({len(resolution.targets)} candidate match(es))",
                        target=ref.specifier,
                    ))
                if resolution.external:
                    externals.setdefault(path, set()).add(ref.specifier)
                elif resolution.unresolved and not ref.optional and not ref.opaque:
                    unresolved.setdefault(path, set()).add(ref.specifier)
                    diagnostics.append(Diagnostic(
                        DiagnosticCode.UNRESOLVED_REFERENCE, path,
                        f"Unresolved reference {ref.specifier!r} on line {ref.line}",
                        target=ref.specifier,
                    ))

        inbound: dict[str, set[str]] = {p: set() for p in all_paths}
        for source, targets in edges.items():
            for target in targets:
                inbound[target].add(source)

        # ── roots ──
        declared: set[str] = set()
        for ref in declared_entries(root, self.fs):
            declared.update(resolver.resolve(ref, "").targets)

        entries = {
            p for p in all_paths
            if first_match(p, config.entry_patterns) and not is_test_path(p, config.test_patterns)
        } | declared
        config_files = {e.path for e in file_entries if e.category == EntryCategory.CONFIG}
        protected = {p for p in all_paths if first_match(p, config.exclude_patterns)}
        tests = {p for p in file_paths if is_test_path(p, config.test_patterns)}
        utilities = set()
        if config.preserve_test_utilities:
            utilities = {
                p for p in file_paths
                if in_test_directory(p) and p not in tests and p not in config_files
            }

        roots = entries | config_files | protected | utilities
        reachable = reachable_from(roots, edges)

        # a test covering live code runs under the test runner, so it is an entry
        promoted = {
            t for t in tests
            if t not in reachable and any(target in reachable for target in edges[t])
        }
        if promoted:
            entries |= promoted
            reachable = reachable_from(roots | promoted, edges)

        groups = find_circular_groups(all_paths, edges)
        for group in groups:
            loop = " -> ".join(group + (group[0],))
            diagnostics.append(Diagnostic(
                DiagnosticCode.CIRCULAR_REFERENCE, group[0],
                f"Circular reference: {loop}",
            ))

        # ── nodes ──
        files: dict[str, FileNode] = {}
        for entry in file_entries:
            path = entry.path
            result = results.get(path)
            failed = result is not None and result.error is not None
            if failed:
                kind = FileKind.UNKNOWN
            elif path in config_files:
                kind = FileKind.CONFIG
            elif path in tests:
                kind = FileKind.TEST
            else:
                kind = FileKind.MODULE
            files[path] = FileNode(
                path=path,
                references=frozenset(edges[path] | unresolved.get(path, set())),
                referenced_by=frozenset(s for s in inbound[path] if s in file_paths),
                exported_symbols=frozenset(result.exported_symbols if result else ()),
                is_entry_point=path in entries,
                is_config_file=path in config_files,
                is_dynamic=path in dynamic,
                kind=kind,
                size=entry.size,
                last_modified=entry.last_modified,
            )

        assets = build_asset_nodes(asset_entries, inbound, edge_kinds, config.public_dir)

        diagnostics.sort(key=lambda d: (d.path, d.code.value, d.message))
        return DependencyGraph(
            root=str(root),
            files=MappingProxyType(files),
            assets=MappingProxyType(assets),
            entry_points=tuple(sorted(p for p in entries if p in file_paths)),
            orphaned_files=tuple(sorted(file_paths - reachable)),
            orphaned_assets=tuple(sorted(set(assets) - reachable)),
            circular_groups=tuple(groups),
            reachable=frozenset(reachable),
            edges=MappingProxyType({k: frozenset(v) for k, v in edges.items()}),
            inbound=MappingProxyType({k: frozenset(v) for k, v in inbound.items()}),
            external_references=MappingProxyType(
                {k: frozenset(v) for k, v in sorted(externals.items())}
            ),
            protected=frozenset(protected),
            diagnostics=tuple(diagnostics),
        )


def build_graph(
    root: Path,
    config: SweepConfig | None = None,
    fs: FileSystem | None = None,
    cancel: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> DependencyGraph:
    """Convenience wrapper around ``DependencyGraphBuilder``."""
    return DependencyGraphBuilder(config, fs).build(root, cancel=cancel, progress=progress)

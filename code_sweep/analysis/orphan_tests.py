"""Orphaned test analysis: tests exercising only dead code, and test support files to keep."""

from __future__ import annotations

from dataclasses import dataclass, field

from code_sweep.models import DependencyGraph, FileKind
from code_sweep.scanner.patterns import in_test_directory


@dataclass
class TestFileAnalysis:
    __test__ = False  # not a pytest class

    test_files: list[str] = field(default_factory=list)
    live_tests: list[str] = field(default_factory=list)
    orphaned_tests: list[str] = field(default_factory=list)
    # tested module -> orphaned tests that only exist for it
    dead_subjects: dict[str, list[str]] = field(default_factory=dict)
    preserved_utilities: list[str] = field(default_factory=list)


def analyze_test_files(graph: DependencyGraph, preserve_utilities: bool = True) -> TestFileAnalysis:
    """Split the graph's test files into live and orphaned ones.

    A test is live when it was promoted to an entry point, i.e. it references
    code reachable from the production roots. Support files living in test
    directories (``tests/helpers.ts``, ``tests/conftest.py``) are reported as
    preserved when ``preserve_utilities`` is set.
    """
    analysis = TestFileAnalysis()
    for path in sorted(graph.files):
        node = graph.files[path]
        if node.kind == FileKind.TEST:
            analysis.test_files.append(path)
            if path in graph.reachable:
                analysis.live_tests.append(path)
            else:
                analysis.orphaned_tests.append(path)
                for target in sorted(graph.edges.get(path, ())):
                    if target in graph.files and graph.files[target].kind != FileKind.TEST \
                            and not in_test_directory(target):
                        analysis.dead_subjects.setdefault(target, []).append(path)
        elif preserve_utilities and in_test_directory(path):
            analysis.preserved_utilities.append(path)
    return analysis

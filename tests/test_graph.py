"""Tests for graph building, reachability and cycle detection."""

import threading

import pytest

from code_sweep.analysis.graph_builder import DependencyGraphBuilder, build_graph
from code_sweep.analysis.reachability import (
    find_circular_groups,
    reachable_from,
    strongly_connected_components,
)
from code_sweep.config import SweepConfig
from code_sweep.errors import ScanCancelledError
from code_sweep.models import DiagnosticCode, FileKind, UsageType

from conftest import WEB_APP


# --- Reachability primitives ---

def test_reachable_from():
    adjacency = {"a": ["b"], "b": ["c"], "c": [], "d": ["a"]}
    assert reachable_from(["a"], adjacency) == {"a", "b", "c"}
    assert reachable_from([], adjacency) == set()


def test_strongly_connected_components():
    adjacency = {"a": ["b"], "b": ["c"], "c": ["a"], "d": ["a"], "e": ["e"]}
    components = strongly_connected_components(adjacency, adjacency)
    assert ["a", "b", "c"] in components
    assert ["d"] in components
    assert find_circular_groups(adjacency, adjacency) == [("a", "b", "c"), ("e",)]


def test_scc_handles_deep_chains():
    n = 20000
    adjacency = {f"m{i}": [f"m{i + 1}"] for i in range(n)}
    adjacency[f"m{n}"] = ["m0"]
    groups = find_circular_groups(adjacency, adjacency)
    assert len(groups) == 1
    assert len(groups[0]) == n + 1


# --- Example scenarios ---

class TestScenarios:
    def test_unused_file_is_orphaned(self, make_project):
        root = make_project({
            "index.ts": "import { helper } from './helper';\n",
            "helper.ts": "export const helper = 1;\n",
            "unused.ts": "export const x = 1;\n",
        })
        graph = build_graph(root)
        assert graph.orphaned_files == ("unused.ts",)
        assert graph.entry_points == ("index.ts",)
        assert graph.files["helper.ts"].referenced_by == frozenset({"index.ts"})

    def test_template_dynamic_import_keeps_target(self, make_project):
        root = make_project({
            "index.ts": (
                "const name = 'dynamicModule';\n"
                "export const load = () => import(`./modules/${name}`);\n"
            ),
            "modules/dynamicModule.ts": "export default 1;\n",
            "orphanFile.ts": "export default 2;\n",
        })
        graph = build_graph(root)
        assert graph.orphaned_files == ("orphanFile.ts",)
        assert graph.files["index.ts"].is_dynamic

    def test_stylesheet_url_asset(self, make_project):
        root = make_project({
            "index.ts": "import './styles.css';\n",
            "styles.css": ".logo { background: url(./logo.png); }\n",
            "logo.png": b"png",
            "unused.png": b"png",
        })
        graph = build_graph(root)
        assert graph.orphaned_assets == ("unused.png",)
        assert graph.assets["logo.png"].usage_type == UsageType.STYLESHEET_URL
        assert graph.assets["logo.png"].referenced_in == frozenset({"styles.css"})
        assert graph.asset_is_unused("unused.png")
        assert not graph.asset_is_unused("logo.png")

    def test_live_cycle_is_kept(self, make_project):
        root = make_project({
            "index.ts": "import './a';\n",
            "a.ts": "import './b';\n",
            "b.ts": "import './c';\n",
            "c.ts": "import './a';\n",
        })
        graph = build_graph(root)
        assert graph.circular_groups == (("a.ts", "b.ts", "c.ts"),)
        assert graph.orphaned_files == ()
        messages = [d.message for d in graph.diagnostics_with(DiagnosticCode.CIRCULAR_REFERENCE)]
        assert messages == ["Circular reference: a.ts -> b.ts -> c.ts -> a.ts"]

    def test_orphaned_cycle_is_orphaned_as_a_unit(self, make_project):
        root = make_project({
            "index.ts": "export {};\n",
            "x.ts": "import './y';\n",
            "y.ts": "import './x';\n",
        })
        graph = build_graph(root)
        assert graph.circular_groups == (("x.ts", "y.ts"),)
        assert graph.orphaned_files == ("x.ts", "y.ts")


# --- Classification ---

class TestClassification:
    def test_web_app(self, make_project):
        graph = build_graph(make_project(WEB_APP))
        assert graph.orphaned_files == ("src/utils/unused.ts",)
        assert graph.orphaned_assets == ("assets/unused.png",)
        assert graph.files["package.json"].kind == FileKind.CONFIG
        assert graph.assets["public/logo.png"].usage_type == UsageType.STRING_LITERAL
        assert graph.assets["public/logo.png"].is_public
        assert "react" in graph.external_references["src/index.tsx"]

    def test_package_json_declared_entry(self, make_project):
        root = make_project({
            "package.json": '{"main": "lib/start.js", "scripts": {"seed": "node scripts/seed.js"}}',
            "lib/start.js": "module.exports = {};\n",
            "scripts/seed.js": "console.log('seed');\n",
            "lib/old.js": "module.exports = {};\n",
        })
        graph = build_graph(root)
        assert graph.files["lib/start.js"].is_entry_point
        assert graph.files["scripts/seed.js"].is_entry_point
        assert graph.orphaned_files == ("lib/old.js",)

    def test_config_file_references_are_live(self, make_project):
        root = make_project({
            "index.ts": "export {};\n",
            "vite.config.ts": "import plugin from './tools/plugin';\nexport default { plugins: [plugin] };\n",
            "tools/plugin.ts": "export default {};\n",
        })
        graph = build_graph(root)
        assert graph.files["vite.config.ts"].is_config_file
        assert "tools/plugin.ts" in graph.reachable
        assert graph.orphaned_files == ()

    def test_pages_are_routes(self, make_project):
        root = make_project({
            "pages/index.tsx": "import Nav from '../components/Nav';\n",
            "pages/unused.tsx": "export default function Unused() { return null; }\n",
            "pages/blog/[slug].tsx": "export default function Post() { return null; }\n",
            "components/Nav.tsx": "export default function Nav() { return null; }\n",
            "components/Unused.tsx": "export default function Unused() { return null; }\n",
        })
        graph = build_graph(root)
        assert "pages/unused.tsx" in graph.entry_points
        assert "pages/blog/[slug].tsx" in graph.entry_points
        assert graph.orphaned_files == ("components/Unused.tsx",)

    def test_pages_under_src_are_routes(self, make_project):
        root = make_project({
            "src/pages/index.tsx": "import Nav from '../components/Nav';\n",
            "src/pages/about.tsx": "export default function About() { return null; }\n",
            "src/components/Nav.tsx": "export default function Nav() { return null; }\n",
            "src/components/Old.tsx": "export default function Old() { return null; }\n",
        })
        graph = build_graph(root)
        assert {"src/pages/index.tsx", "src/pages/about.tsx"} <= set(graph.entry_points)
        assert graph.orphaned_files == ("src/components/Old.tsx",)

    def test_test_heavy_project(self, make_project):
        root = make_project({
            "src/index.ts": "import { feature } from './feature';\n",
            "src/feature.ts": "export const feature = 1;\n",
            "src/feature.test.ts": "import { feature } from './feature';\n",
            "src/unused-feature.ts": "export const gone = 1;\n",
            "src/unused-feature.test.ts": "import { gone } from './unused-feature';\n",
            "tests/helpers.ts": "export const render = () => null;\n",
            "tests/setup.ts": "export {};\n",
        })
        graph = build_graph(root)
        assert graph.orphaned_files == ("src/unused-feature.test.ts", "src/unused-feature.ts")
        assert graph.files["src/feature.test.ts"].kind == FileKind.TEST
        assert graph.files["src/feature.test.ts"].is_entry_point

    def test_test_utilities_not_preserved_when_disabled(self, make_project):
        root = make_project({
            "index.ts": "export {};\n",
            "tests/helpers.ts": "export const render = () => null;\n",
        })
        graph = build_graph(root, SweepConfig(preserve_test_utilities=False))
        assert graph.orphaned_files == ("tests/helpers.ts",)

    def test_css_modules(self, make_project):
        root = make_project({
            "src/index.tsx": "import { Component } from './Component';\n",
            "src/Component.tsx": "import styles from './Component.module.css';\nexport const Component = 1;\n",
            "src/Component.module.css": ".root { color: red; }\n",
            "src/unused.module.css": ".gone { color: blue; }\n",
        })
        graph = build_graph(root)
        assert graph.orphaned_assets == ("src/unused.module.css",)

    def test_python_project(self, make_project):
        root = make_project({
            "main.py": "from app import models\n",
            "app/__init__.py": "from . import models\n",
            "app/models.py": "class User: pass\n",
            "app/legacy.py": "class Old: pass\n",
        })
        graph = build_graph(root)
        assert graph.orphaned_files == ("app/legacy.py",)
        assert graph.circular_groups == ()

    def test_protected_and_ignored(self, make_project):
        root = make_project({
            "index.ts": "export {};\n",
            "public/favicon.ico": b"ico",
            "public/robots.txt": "User-agent: *\n",
            "types/global.d.ts": "declare const x: number;\n",
            "node_modules/lib/index.js": "module.exports = 1;\n",
        })
        graph = build_graph(root)
        assert graph.orphaned_files == ()
        assert graph.orphaned_assets == ()
        assert not any(p.startswith("node_modules/") for p in graph.files)


# --- Failure policy ---

class TestDiagnostics:
    def test_parse_error_does_not_abort(self, make_project):
        root = make_project({
            "index.ts": "import './broken';\nimport './ok';\n",
            "broken.ts": "import React from;\n",
            "ok.ts": "export {};\n",
        })
        graph = build_graph(root)
        assert graph.files["broken.ts"].kind == FileKind.UNKNOWN
        assert graph.files["broken.ts"].references == frozenset()
        assert [d.path for d in graph.diagnostics_with(DiagnosticCode.PARSE_ERROR)] == ["broken.ts"]
        assert "ok.ts" in graph.reachable

    def test_regex_literals_keep_imports_live(self, make_project):
        root = make_project({
            "src/index.ts": (
                "import { api } from './api';\n"
                "export const base = (u) => u.replace(/\\/*$/, '');\n"
                "const re = /https?:\\/\\//; import('./lazy');\n"
            ),
            "src/api.ts": "export const api = 1;\n",
            "src/lazy.ts": "export default 1;\n",
        })
        graph = build_graph(root)
        assert graph.orphaned_files == ()
        assert graph.diagnostics_with(DiagnosticCode.PARSE_ERROR) == []

    def test_unresolved_reference_is_a_warning(self, make_project):
        root = make_project({"index.ts": "import './nope';\n"})
        graph = build_graph(root)
        warnings = graph.diagnostics_with(DiagnosticCode.UNRESOLVED_REFERENCE)
        assert [(d.path, d.target) for d in warnings] == [("index.ts", "./nope")]
        assert "./nope" in graph.files["index.ts"].references
        assert "./nope" not in graph.files

    def test_opaque_import_is_uncertain(self, make_project):
        root = make_project({"index.ts": "export const load = (n) => import(pick(n));\n"})
        graph = build_graph(root)
        assert graph.diagnostics_with(DiagnosticCode.UNCERTAIN_DYNAMIC)
        assert graph.files["index.ts"].is_dynamic


# --- Properties ---

class TestProperties:
    def test_inbound_edges_are_consistent(self, make_project):
        graph = build_graph(make_project(WEB_APP))
        for path, node in graph.files.items():
            for referrer in node.referenced_by:
                assert path in graph.files[referrer].references

    def test_soundness_and_completeness(self, make_project):
        graph = build_graph(make_project(WEB_APP))
        for path in graph.reachable:
            assert path not in graph.orphaned_files
        for path, node in graph.files.items():
            if not node.referenced_by and not node.is_entry_point and not node.is_config_file:
                assert path in graph.orphaned_files

    def test_cycle_atomicity(self, make_project):
        root = make_project({
            "index.ts": "import './a';\n",
            "a.ts": "import './b';\n",
            "b.ts": "import './a';\n",
            "x.ts": "import './y';\n",
            "y.ts": "import './x';\n",
        })
        graph = build_graph(root)
        for group in graph.circular_groups:
            flags = {m in graph.orphaned_files for m in group}
            assert len(flags) == 1

    def test_deterministic(self, make_project):
        root = make_project(WEB_APP)
        first = build_graph(root, SweepConfig(workers=1, batch_size=1))
        second = build_graph(root, SweepConfig(workers=8, batch_size=3))
        assert first.orphaned_files == second.orphaned_files
        assert first.circular_groups == second.circular_groups
        assert first.diagnostics == second.diagnostics


class TestBuilder:
    def test_cancellation(self, make_project):
        root = make_project(WEB_APP)
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ScanCancelledError):
            DependencyGraphBuilder().build(root, cancel=cancel)

    def test_progress_callback(self, make_project):
        root = make_project(WEB_APP)
        calls = []
        DependencyGraphBuilder().build(root, progress=lambda *a: calls.append(a))
        stages = {c[0] for c in calls}
        assert {"Inventory", "Parsing", "Assembling"} <= stages

    def test_backup_directory_is_not_scanned(self, make_project):
        root = make_project({
            "index.ts": "export {};\n",
            ".code-sweep/backups/x/files/old.ts": "export {};\n",
        })
        graph = build_graph(root)
        assert graph.orphaned_files == ()

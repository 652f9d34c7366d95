"""Tests for the safety and risk validator."""

import time
from types import MappingProxyType

from code_sweep.analysis.graph_builder import build_graph
from code_sweep.analysis.validator import (
    CONFIG_FILE,
    ENTRY_POINT,
    NOT_PRESENT,
    PUBLIC_ASSET,
    SafetyValidator,
    TEST_UTILITY,
)
from code_sweep.config import SafetyConfig, SweepConfig
from code_sweep.models import DependencyGraph, FileNode, RiskLevel

from conftest import WEB_APP

CYCLES = {
    "index.ts": "import './a';\n",
    "a.ts": "import './b';\n",
    "b.ts": "import './a';\n",
    "x.ts": "import './y';\n",
    "y.ts": "import './x';\n",
    "lonely.ts": "export {};\n",
}


def _validator(root, config=None):
    config = config or SweepConfig()
    return SafetyValidator(build_graph(root, config), config)


class TestValidateFiles:
    def test_used_and_unused(self, make_project):
        root = make_project({
            "index.ts": "import './used';\n",
            "used.ts": "export {};\n",
            "unused.ts": "export {};\n",
        })
        result = _validator(root).validate_files(["used.ts", "unused.ts"])
        assert result.safe_files == ["unused.ts"]
        assert len(result.unsafe_files) == 1
        assert result.unsafe_files[0].path == "used.ts"
        assert result.unsafe_files[0].reason.startswith("Referenced by index.ts")
        assert not result.is_safe

    def test_standalone_reasons(self, make_project):
        root = make_project({
            **WEB_APP,
            "tests/helpers.ts": "export {};\n",
            "public/favicon.ico": b"ico",
        })
        result = _validator(root).validate_files([
            "src/index.tsx", "package.json", "tests/helpers.ts",
            "public/favicon.ico", "nowhere.ts",
        ])
        assert result.safe_files == []
        assert result.reason_for("src/index.tsx") == ENTRY_POINT
        assert result.reason_for("package.json") == CONFIG_FILE
        assert result.reason_for("tests/helpers.ts") == TEST_UTILITY
        assert result.reason_for("public/favicon.ico").startswith("Matches protected pattern")
        assert result.reason_for("nowhere.ts") == NOT_PRESENT

    def test_referrer_staying_behind_blocks_removal(self, make_project):
        root = make_project({
            "index.ts": "export {};\n",
            "dead.ts": "import './leaf';\n",
            "leaf.ts": "export {};\n",
        })
        validator = _validator(root)
        # leaf alone would leave dead.ts with a dangling import
        result = validator.validate_files(["leaf.ts"])
        assert result.reason_for("leaf.ts") == "Referenced by dead.ts"
        # removing both together is fine
        assert validator.validate_files(["dead.ts", "leaf.ts"]).safe_files == ["dead.ts", "leaf.ts"]

    def test_cycle_removed_whole_or_not_at_all(self, make_project):
        validator = _validator(make_project(CYCLES))
        partial = validator.validate_files(["x.ts"])
        assert "circular group" in partial.reason_for("x.ts")
        whole = validator.validate_files(["x.ts", "y.ts"])
        assert whole.safe_files == ["x.ts", "y.ts"]

    def test_live_cycle_blocked(self, make_project):
        result = _validator(make_project(CYCLES)).validate_files(["a.ts", "b.ts"])
        assert result.safe_files == []

    def test_orphaned_cycles_kept_when_disabled(self, make_project):
        config = SweepConfig(safety=SafetyConfig(remove_orphaned_cycles=False))
        result = _validator(make_project(CYCLES), config).validate_files(["x.ts", "y.ts", "lonely.ts"])
        assert result.safe_files == ["lonely.ts"]
        assert result.reason_for("x.ts").startswith("Member of unresolved circular group")

    def test_public_assets_excluded_by_config(self, make_project):
        root = make_project({"index.ts": "export {};\n", "public/old.png": b"png"})
        config = SweepConfig(safety=SafetyConfig(include_public_assets=False))
        result = _validator(root, config).validate_files(["public/old.png"])
        assert result.reason_for("public/old.png") == PUBLIC_ASSET

    def test_output_is_sorted_and_deterministic(self, make_project):
        validator = _validator(make_project(CYCLES))
        a = validator.validate_files(["y.ts", "lonely.ts", "x.ts"])
        b = validator.validate_files(["x.ts", "x.ts", "lonely.ts", "y.ts"])
        assert a == b
        assert a.safe_files == ["lonely.ts", "x.ts", "y.ts"]

    def test_long_blocked_chain_is_linear(self):
        # keep.ts stays and imports the head of a long dead chain
        n = 5000
        chain = [f"old/m{i:05d}.ts" for i in range(n)]
        edges = {"keep.ts": frozenset({chain[0]})}
        edges.update({chain[i]: frozenset({chain[i + 1]}) for i in range(n - 1)})
        inbound = {chain[0]: frozenset({"keep.ts"})}
        inbound.update({chain[i + 1]: frozenset({chain[i]}) for i in range(n - 1)})
        files = {p: FileNode(path=p) for p in ["index.ts", "keep.ts", *chain]}
        files["index.ts"] = FileNode(path="index.ts", is_entry_point=True)
        graph = DependencyGraph(
            root="/project",
            files=MappingProxyType(files),
            entry_points=("index.ts",),
            orphaned_files=tuple(sorted(["keep.ts", *chain])),
            reachable=frozenset({"index.ts"}),
            edges=MappingProxyType(edges),
            inbound=MappingProxyType(inbound),
        )

        start = time.perf_counter()
        result = SafetyValidator(graph).validate_files(reversed(chain))
        assert time.perf_counter() - start < 5
        assert result.safe_files == []
        assert result.reason_for(chain[0]) == "Referenced by keep.ts"
        assert result.reason_for(chain[-1]) == f"Referenced by {chain[-2]}"


class TestSafetyReport:
    def test_circular_warning(self, make_project):
        report = _validator(make_project(CYCLES)).validate_cleanup_safety()
        assert report.is_safe
        assert any("circular" in w for w in report.warnings)

    def test_unsafe_orphans_are_errors(self, make_project):
        config = SweepConfig(safety=SafetyConfig(remove_orphaned_cycles=False))
        report = _validator(make_project(CYCLES), config).validate_cleanup_safety()
        assert not report.is_safe
        assert any(e.startswith("x.ts:") for e in report.errors)


class TestPreview:
    def test_preview_of_web_app(self, make_project):
        preview = _validator(make_project(WEB_APP)).generate_cleanup_preview()
        assert preview.files_by_category["module"] == ["src/utils/unused.ts"]
        assert preview.files_by_category["asset"] == ["assets/unused.png"]
        assert preview.summary.total_files_to_remove == 1
        assert preview.summary.total_assets_to_remove == 1
        assert preview.summary.total_bytes > 0
        assert preview.risks.level == RiskLevel.LOW
        assert preview.recommendations
        assert preview.paths == ["assets/unused.png", "src/utils/unused.ts"]

    def test_cycle_is_one_unit_with_medium_risk(self, make_project):
        preview = _validator(make_project(CYCLES)).generate_cleanup_preview()
        groups = [u for u in preview.units if u.is_group]
        assert [u.paths for u in groups] == [["x.ts", "y.ts"]]
        assert preview.risks.level == RiskLevel.MEDIUM
        assert preview.risks.factors

    def test_volume_above_threshold_is_high_risk(self, make_project):
        files = {"index.ts": "export {};\n"}
        files.update({f"old/m{i}.ts": "export {};\n" for i in range(4)})
        config = SweepConfig(safety=SafetyConfig(max_files_threshold=3))
        preview = _validator(make_project(files), config).generate_cleanup_preview()
        assert preview.summary.total_files_to_remove == 4
        assert preview.risks.level == RiskLevel.HIGH

    def test_nothing_to_remove(self, make_project):
        preview = _validator(make_project({"index.ts": "export {};\n"})).generate_cleanup_preview()
        assert preview.summary.total == 0
        assert preview.recommendations[0].startswith("Nothing to remove")

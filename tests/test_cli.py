"""Tests for the click CLI."""

import json
import sys

from click.testing import CliRunner

from code_sweep.cli import EXIT_BACKUP, EXIT_BUILD, EXIT_UNSAFE, EXIT_USAGE, cli
from code_sweep.config import CONFIG_FILENAME

from conftest import WEB_APP, snapshot


def _run(*args):
    return CliRunner().invoke(cli, [str(a) for a in args])


def test_version():
    result = _run("--version")
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_analyze_json(make_project):
    root = make_project(WEB_APP)
    result = _run("analyze", root, "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["orphaned_files"] == ["src/utils/unused.ts"]
    assert data["orphaned_assets"] == ["assets/unused.png"]


def test_analyze_text(make_project):
    result = _run("analyze", make_project(WEB_APP))
    assert result.exit_code == 0
    assert "Orphaned files (1):" in result.output
    assert "src/utils/unused.ts" in result.output


def test_bad_config_is_usage_error(make_project):
    root = make_project({**WEB_APP, CONFIG_FILENAME: '{"noSuchOption": 1}'})
    result = _run("analyze", root)
    assert result.exit_code == EXIT_USAGE


def test_validate(make_project):
    root = make_project(WEB_APP)
    assert _run("validate", root, "src/utils/unused.ts").exit_code == 0
    result = _run("validate", root, "src/utils/helper.ts")
    assert result.exit_code == EXIT_UNSAFE
    assert "Referenced by src/App.tsx" in result.output


def test_validate_all_orphans(make_project):
    result = _run("validate", make_project(WEB_APP))
    assert result.exit_code == 0
    assert "Cleanup is safe." in result.output


def test_preview(make_project):
    result = _run("preview", make_project(WEB_APP))
    assert result.exit_code == 0
    assert "Risk: LOW" in result.output


def test_cleanup_dry_run_is_default(make_project):
    root = make_project(WEB_APP)
    before = snapshot(root)
    result = _run("cleanup", root)
    assert result.exit_code == 0
    assert "remove src/utils/unused.ts" in result.output
    assert snapshot(root) == before


def test_cleanup_execute_and_rollback(make_project):
    root = make_project(WEB_APP)
    before = snapshot(root)
    result = _run("cleanup", root, "--execute", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["removed"] == ["assets/unused.png", "src/utils/unused.ts"]
    assert data["backup_created"]

    listing = _run("backups", root)
    assert data["rollback_id"] in listing.output

    restored = _run("rollback", root, data["rollback_id"])
    assert restored.exit_code == 0
    assert "Restored 2 file(s)" in restored.output
    assert snapshot(root) == before


def test_cleanup_blocked_explicit_file(make_project):
    root = make_project(WEB_APP)
    result = _run("cleanup", root, "src/utils/helper.ts", "--execute")
    assert result.exit_code == EXIT_UNSAFE
    assert (root / "src/utils/helper.ts").exists()


def test_cleanup_backup_failure(make_project):
    root = make_project(WEB_APP)
    (root / ".code-sweep").write_text("not a directory")
    before = snapshot(root)
    result = _run("cleanup", root, "--execute")
    assert result.exit_code == EXIT_BACKUP
    assert "Nothing was removed." in result.output
    assert snapshot(root) == before


def test_cleanup_build_failure(make_project):
    failing = f'"{sys.executable}" -c "import sys; sys.exit(2)"'
    root = make_project({
        **WEB_APP,
        CONFIG_FILENAME: json.dumps({"safety": {"buildCommand": failing}}),
    })
    result = _run("cleanup", root, "--execute", "--validate-build")
    assert result.exit_code == EXIT_BUILD
    assert "Build check" in result.output
    assert not (root / "src/utils/unused.ts").exists()


def test_rollback_unknown_id(make_project):
    result = _run("rollback", make_project(WEB_APP), "missing-id")
    assert result.exit_code == EXIT_UNSAFE
    assert "No backup" in result.output


def test_no_backups(make_project):
    result = _run("backups", make_project(WEB_APP))
    assert result.exit_code == 0
    assert "No backups." in result.output

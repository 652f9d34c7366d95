"""Click CLI with analyze, preview, validate, cleanup, rollback, backups, and serve subcommands."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from code_sweep.config import SweepConfig, load_config
from code_sweep.errors import (
    BackupFailureError,
    BackupNotFoundError,
    BuildValidationFailure,
    ConfigError,
    ExecutionInProgressError,
    RemovalError,
)
from code_sweep.models import RiskLevel, to_jsonable
from code_sweep.pipeline import (
    graph_report,
    list_backups,
    run_analysis,
    run_cleanup,
    run_preview,
    run_rollback,
    run_safety_check,
    run_validation,
)

EXIT_UNSAFE = 1
EXIT_USAGE = 2
EXIT_BACKUP = 3
EXIT_BUILD = 4

_RISK_COLORS = {RiskLevel.LOW: "green", RiskLevel.MEDIUM: "yellow", RiskLevel.HIGH: "red"}

_root_argument = click.argument(
    "root", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".",
)


class SweepCommandError(click.ClickException):
    def __init__(self, message: str, exit_code: int = EXIT_UNSAFE):
        super().__init__(message)
        self.exit_code = exit_code


def _load(ctx: click.Context, root: Path) -> SweepConfig:
    try:
        return load_config(root.resolve(), ctx.obj.get("config_path"))
    except ConfigError as e:
        raise SweepCommandError(str(e), EXIT_USAGE)


def _echo_json(data) -> None:
    click.echo(json.dumps(to_jsonable(data), indent=2))


def _progress(stage: str, current: int, total: int):
    if total > 0:
        click.echo(f"  {stage}: {current}/{total}", nl=(current == total), err=True)
    else:
        click.echo(f"  {stage}...", err=True)


@click.group()
@click.version_option(version="0.1.0")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Config file (default: <root>/.code-sweep.json)")
@click.option("--verbose", "-v", is_flag=True, help="Log analysis detail to stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool):
    """code-sweep: find unreachable files and assets, and remove them safely."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@_root_argument
@click.option("--json", "as_json", is_flag=True, help="Print the full report as JSON")
@click.pass_context
def analyze(ctx: click.Context, root: Path, as_json: bool):
    """Build the dependency graph and report orphaned files and assets."""
    config = _load(ctx, root)
    graph = run_analysis(root, config, progress=None if as_json else _progress)
    report = graph_report(graph, config)
    if as_json:
        _echo_json(report)
        return

    stats = report["stats"]
    click.echo(
        f"\n{stats['files']} file(s), {stats['assets']} asset(s), "
        f"{stats['entry_points']} entry point(s)\n"
    )
    if graph.orphaned_files:
        click.echo(click.style(f"Orphaned files ({len(graph.orphaned_files)}):", fg="yellow"))
        for path in graph.orphaned_files:
            click.echo(f"  {path}")
    else:
        click.echo(click.style("No orphaned files.", fg="green"))
    if graph.orphaned_assets:
        click.echo(click.style(f"\nOrphaned assets ({len(graph.orphaned_assets)}):", fg="yellow"))
        for path in graph.orphaned_assets:
            click.echo(f"  {path}")
    if graph.circular_groups:
        click.echo(click.style(f"\nCircular groups ({len(graph.circular_groups)}):", fg="cyan"))
        for group in graph.circular_groups:
            state = "live" if group[0] in graph.reachable else "orphaned"
            click.echo(f"  {' -> '.join(group)}  {click.style(state, dim=True)}")
    if graph.diagnostics:
        click.echo(f"\n{len(graph.diagnostics)} warning(s):")
        for d in graph.diagnostics:
            click.echo(f"  {click.style(d.code.value, fg='magenta')}  {d.path}: {d.message}")


@cli.command()
@_root_argument
@click.option("--json", "as_json", is_flag=True, help="Print the preview as JSON")
@click.pass_context
def preview(ctx: click.Context, root: Path, as_json: bool):
    """Show what a cleanup would remove and how risky it is."""
    config = _load(ctx, root)
    result = run_preview(root, config)
    if as_json:
        _echo_json(result)
        return

    summary = result.summary
    level = result.risks.level
    click.echo(
        f"\nWould remove {summary.total_files_to_remove} file(s) and "
        f"{summary.total_assets_to_remove} asset(s), {summary.total_bytes} bytes"
    )
    click.echo(f"Risk: {click.style(level.value.upper(), fg=_RISK_COLORS[level], bold=True)}")
    for factor in result.risks.factors:
        click.echo(f"  [{factor.level.value}] {factor.description}")

    for category, paths in result.files_by_category.items():
        if paths:
            click.echo(click.style(f"\n{category} ({len(paths)}):", fg="cyan"))
            for path in paths:
                click.echo(f"  {path}")
    group_units = [u for u in result.units if u.is_group]
    for unit in group_units:
        click.echo(f"\n  group: {', '.join(unit.paths)}\n    {unit.justification}")
    if result.unsafe_files:
        click.echo(click.style(f"\nBlocked ({len(result.unsafe_files)}):", fg="red"))
        for unsafe in result.unsafe_files:
            click.echo(f"  {unsafe.path}: {unsafe.reason}")

    click.echo("\nRecommendations:")
    for line in result.recommendations:
        click.echo(f"  - {line}")


@cli.command()
@_root_argument
@click.argument("files", nargs=-1)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def validate(ctx: click.Context, root: Path, files: tuple[str, ...], as_json: bool):
    """Check whether FILES (default: every orphan) can be removed safely."""
    config = _load(ctx, root)
    graph = run_analysis(root, config)
    if files:
        result = run_validation(root, list(files), config, graph=graph)
        if as_json:
            _echo_json(result)
        else:
            for path in result.safe_files:
                click.echo(f"  {click.style('safe', fg='green')}    {path}")
            for unsafe in result.unsafe_files:
                click.echo(f"  {click.style('unsafe', fg='red')}  {unsafe.path}: {unsafe.reason}")
        if not result.is_safe:
            raise SweepCommandError(f"{len(result.unsafe_files)} file(s) cannot be removed safely")
        return

    report = run_safety_check(root, config, graph=graph)
    if as_json:
        _echo_json(report)
    else:
        for warning in report.warnings:
            click.echo(f"  {click.style('warning', fg='yellow')}  {warning}")
        for error in report.errors:
            click.echo(f"  {click.style('error', fg='red')}    {error}")
        if report.is_safe:
            click.echo(click.style("Cleanup is safe.", fg="green"))
    if not report.is_safe:
        raise SweepCommandError(f"{len(report.errors)} orphan(s) cannot be removed safely")


@cli.command()
@_root_argument
@click.argument("files", nargs=-1)
@click.option("--dry-run/--execute", "dry_run", default=True, help="Only report (default) or really remove files")
@click.option("--backup/--no-backup", default=None, help="Override safety.createBackup")
@click.option("--validate-build/--no-validate-build", default=None, help="Override safety.validateBuild")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def cleanup(
    ctx: click.Context,
    root: Path,
    files: tuple[str, ...],
    dry_run: bool,
    backup: bool | None,
    validate_build: bool | None,
    as_json: bool,
):
    """Remove orphaned files and assets (or FILES), with backup and build check."""
    config = _load(ctx, root)
    try:
        result = run_cleanup(
            root,
            config,
            dry_run=dry_run,
            backup=backup,
            validate_build=validate_build,
            candidates=list(files) or None,
        )
    except BackupFailureError as e:
        raise SweepCommandError(f"{e}. Nothing was removed.", EXIT_BACKUP)
    except (RemovalError, ExecutionInProgressError) as e:
        raise SweepCommandError(str(e))

    if as_json:
        _echo_json(result)
    else:
        title = "Dry run" if result.dry_run else "Cleanup"
        click.echo(f"\n{title}: {result.state.value}")
        for action in result.actions:
            click.echo(f"  {action}")
        for warning in result.warnings:
            click.echo(click.style(f"  {warning}", fg="yellow"))
        for error in result.errors:
            click.echo(click.style(f"  {error}", fg="red"), err=True)
        if result.rollback_id:
            click.echo(f"\nRollback id: {click.style(result.rollback_id, bold=True)}")

    if result.build_validation is not None and not result.build_validation.passed:
        failure = BuildValidationFailure(result.build_validation)
        raise SweepCommandError(str(failure), EXIT_BUILD)
    if files and result.blocked:
        raise SweepCommandError(f"{len(result.blocked)} requested file(s) were not removed")


@cli.command()
@_root_argument
@click.argument("rollback_id")
@click.pass_context
def rollback(ctx: click.Context, root: Path, rollback_id: str):
    """Restore the files removed by the cleanup ROLLBACK_ID."""
    config = _load(ctx, root)
    try:
        result = run_rollback(root, rollback_id, config)
    except (BackupNotFoundError, ExecutionInProgressError) as e:
        raise SweepCommandError(str(e))

    click.echo(f"Restored {len(result.restored)} file(s)")
    for path in result.restored:
        click.echo(f"  {path}")
    for path in result.overwritten:
        click.echo(click.style(f"  replaced newer content of {path}", fg="yellow"))
    if not result.success:
        for path, reason in sorted(result.failed.items()):
            click.echo(click.style(f"  failed {path}: {reason}", fg="red"), err=True)
        raise SweepCommandError(f"{len(result.failed)} file(s) could not be restored")


@cli.command()
@_root_argument
@click.pass_context
def backups(ctx: click.Context, root: Path):
    """List the backups available for rollback."""
    config = _load(ctx, root)
    records = list_backups(root, config)
    if not records:
        click.echo("No backups.")
        return
    for record in records:
        restored = f"  restored {record.restored[-1]}" if record.restored else ""
        click.echo(
            f"{click.style(record.rollback_id, fg='cyan')}  {record.created}  "
            f"{len(record.entries)} file(s){restored}"
        )


@cli.command()
@click.option("--port", "-p", default=8421, help="Port number")
@click.option("--host", default="127.0.0.1", help="Host address")
@click.option("--allowed-root", type=click.Path(exists=True, file_okay=False, path_type=Path),
              help="Only analyze projects under this directory (default: home directory)")
def serve(port: int, host: str, allowed_root: Path | None):
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError:
        raise click.ClickException(
            "uvicorn is required for the HTTP API. "
            "Install with: pip install 'code-sweep[web]'"
        )

    from code_sweep.web import create_app

    click.echo(f"Starting code-sweep API at http://{host}:{port}")
    uvicorn.run(create_app(allowed_root=allowed_root), host=host, port=port, log_level="info")


if __name__ == "__main__":
    cli()

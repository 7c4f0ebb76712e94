"""binsync CLI."""

import logging
import threading
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from binsync.config import BinsyncConfig, get_config_template, load_config, parse_destination
from binsync.errors import ConfigError, RemoteError, UnsafeSyncError
from binsync.pipeline import ReleasePipeline, ReleaseReport
from binsync.targets import TargetRegistry
from binsync.types import ExitCode, SyncPlan

app = typer.Typer(help="binsync - cross-compile release binaries and sync them to object storage")
console = Console()

CONFIG_FILE = "binsync.yaml"


def setup_logging(verbose: bool = False):
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    for name in ("boto3", "botocore", "urllib3", "s3transfer"):
        logging.getLogger(name).setLevel(logging.WARNING)


def load_settings(
    config_path: Path,
    output: Path | None = None,
    dest: str | None = None,
    delete_stale: bool | None = None,
    concurrency: int | None = None,
    fail_fast: bool | None = None,
    allow_mass_delete: bool | None = None,
) -> BinsyncConfig:
    """Load the config file and apply command-line overrides."""
    config = load_config(config_path)

    project = config.project
    if output is not None:
        project = project.model_copy(update={"output_root": str(output)})

    remote = config.remote
    if dest is not None:
        parsed = parse_destination(dest)
        remote = remote.model_copy(
            update={"type": parsed.type, "bucket": parsed.bucket, "prefix": parsed.prefix}
        )

    overrides = {
        "delete_stale": delete_stale,
        "concurrency": concurrency,
        "fail_fast": fail_fast,
        "allow_mass_delete": allow_mass_delete,
    }
    sync = config.sync.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    if sync.concurrency < 1:
        raise ConfigError("--concurrency must be at least 1")

    return config.model_copy(update={"project": project, "remote": remote, "sync": sync})


def fail(message: str, code: ExitCode = ExitCode.FATAL):
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(int(code))


def print_plan(sync_plan: SyncPlan, limit: int = 50) -> None:
    """Print the uploads and deletes in a plan."""
    console.print(
        f"[bold]Plan:[/bold] {len(sync_plan.uploads)} upload(s), "
        f"{len(sync_plan.deletes)} delete(s), {len(sync_plan.skips)} unchanged"
    )
    rows = [("upload", p) for p in sorted(sync_plan.uploads)]
    rows += [("delete", p) for p in sorted(sync_plan.deletes)]
    if not rows:
        return

    table = Table()
    table.add_column("Action")
    table.add_column("Path")
    for action, path in rows[:limit]:
        color = "green" if action == "upload" else "red"
        table.add_row(f"[{color}]{action}[/{color}]", path)
    console.print(table)
    if len(rows) > limit:
        console.print(f"... and {len(rows) - limit} more")


def print_report(report: ReleaseReport) -> None:
    """Print the final summary of a run."""
    if report.builds:
        table = Table(title="Builds")
        table.add_column("Target")
        table.add_column("Status")
        table.add_column("Detail")
        for outcome in report.builds:
            if outcome.failed:
                table.add_row(outcome.target_id, "[red]failed[/red]", outcome.error)
            else:
                table.add_row(
                    outcome.target_id, "[green]ok[/green]", f"{len(outcome.artifacts)} artifact(s)"
                )
        console.print(table)

    if report.result is not None:
        result = report.result
        console.print(
            f"[bold]Sync:[/bold] {len(result.succeeded)} succeeded, "
            f"{len(result.failed)} failed, {len(result.cancelled)} cancelled"
        )
        if result.failed:
            table = Table(title="Failed transfers")
            table.add_column("Path")
            table.add_column("Error")
            for path, kind in sorted(result.failed.items()):
                table.add_row(path, kind)
            console.print(table)

    code = report.exit_code()
    color = "green" if code == ExitCode.OK else "red"
    console.print(f"[{color}]Finished:[/{color}] {code.name.lower().replace('_', ' ')}")


def run_pipeline(
    config: BinsyncConfig,
    targets: str,
    build: bool,
    dry_run: bool,
) -> ReleaseReport:
    """Run the pipeline, mapping run-fatal errors to exit code 1."""
    cancel = threading.Event()
    try:
        registry = TargetRegistry.from_config(config.targets)
        selected = registry.select(targets)
        pipeline = ReleasePipeline(config)
        return pipeline.run(selected, build=build, dry_run=dry_run, cancel=cancel)
    except ConfigError as e:
        fail(f"Configuration: {e}")
    except RemoteError as e:
        fail(f"Remote: {e}")
    except UnsafeSyncError as e:
        fail(str(e))
    except KeyboardInterrupt:
        cancel.set()
        fail("Interrupted.", ExitCode.CANCELLED)


@app.command()
def init():
    """Write a configuration template to the current directory."""
    config_file = Path(CONFIG_FILE)

    if config_file.exists():
        console.print(f"[yellow]Warning:[/yellow] {CONFIG_FILE} already exists.")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit(0)

    config_file.write_text(get_config_template())
    console.print(f"[green]Wrote {CONFIG_FILE}.[/green]")
    console.print("Edit it to configure targets and the destination bucket.")


@app.command()
def targets(
    config_path: Path = typer.Option(Path(CONFIG_FILE), "--config", "-c", help="Config file"),
):
    """List the configured targets."""
    try:
        registry = TargetRegistry.from_config(load_config(config_path).targets)
    except ConfigError as e:
        fail(f"Configuration: {e}")

    table = Table()
    table.add_column("Target")
    table.add_column("Output")
    table.add_column("Command")
    for target in registry.list_targets():
        table.add_row(target.id, target.output_subdir, " ".join(target.build_args))
    console.print(table)


@app.command()
def build(
    targets: str = typer.Option("all", "--targets", "-t", help="Comma-separated target ids, or 'all'"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Local output root"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-j", help="Parallel builds"),
    fail_fast: bool | None = typer.Option(None, "--fail-fast/--keep-going", help="Stop after first failure"),
    config_path: Path = typer.Option(Path(CONFIG_FILE), "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Build targets into the local output tree without syncing."""
    setup_logging(verbose)
    try:
        config = load_settings(config_path, output=output, concurrency=concurrency, fail_fast=fail_fast)
        selected = TargetRegistry.from_config(config.targets).select(targets)
    except ConfigError as e:
        fail(f"Configuration: {e}")

    cancel = threading.Event()
    pipeline = ReleasePipeline(config)
    report = ReleaseReport(builds=pipeline.build(selected, cancel=cancel), cancelled=cancel.is_set())
    print_report(report)
    raise typer.Exit(int(report.exit_code()))


@app.command()
def plan(
    dest: str | None = typer.Option(None, "--dest", "-d", help="s3://bucket/prefix or file:///dir"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Local output root"),
    delete_stale: bool | None = typer.Option(None, "--delete-stale/--keep-stale", help="Delete remote-only files"),
    config_path: Path = typer.Option(Path(CONFIG_FILE), "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Show what a sync would upload and delete, without changing anything."""
    setup_logging(verbose)
    try:
        config = load_settings(config_path, output=output, dest=dest, delete_stale=delete_stale)
    except ConfigError as e:
        fail(f"Configuration: {e}")

    report = run_pipeline(config, "all", build=False, dry_run=True)
    print_plan(report.plan)


@app.command()
def sync(
    dest: str | None = typer.Option(None, "--dest", "-d", help="s3://bucket/prefix or file:///dir"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Local output root"),
    delete_stale: bool | None = typer.Option(None, "--delete-stale/--keep-stale", help="Delete remote-only files"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-j", help="Parallel transfers"),
    allow_mass_delete: bool = typer.Option(False, "--allow-mass-delete", help="Allow deleting everything when nothing is local"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Print the plan and stop"),
    config_path: Path = typer.Option(Path(CONFIG_FILE), "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Sync the local output tree to the remote bucket without building."""
    setup_logging(verbose)
    try:
        config = load_settings(
            config_path,
            output=output,
            dest=dest,
            delete_stale=delete_stale,
            concurrency=concurrency,
            allow_mass_delete=allow_mass_delete or None,
        )
    except ConfigError as e:
        fail(f"Configuration: {e}")

    report = run_pipeline(config, "all", build=False, dry_run=dry_run)
    print_plan(report.plan)
    if not dry_run:
        print_report(report)
        raise typer.Exit(int(report.exit_code()))


@app.command()
def release(
    targets: str = typer.Option("all", "--targets", "-t", help="Comma-separated target ids, or 'all'"),
    dest: str | None = typer.Option(None, "--dest", "-d", help="s3://bucket/prefix or file:///dir"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Local output root"),
    delete_stale: bool | None = typer.Option(None, "--delete-stale/--keep-stale", help="Delete remote-only files"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-j", help="Parallel builds and transfers"),
    fail_fast: bool | None = typer.Option(None, "--fail-fast/--keep-going", help="Stop after first build failure"),
    allow_mass_delete: bool = typer.Option(False, "--allow-mass-delete", help="Allow deleting everything when nothing is local"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Build, print the plan and stop"),
    config_path: Path = typer.Option(Path(CONFIG_FILE), "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Build targets and publish the results to the remote bucket.

    Exit codes: 0 ok, 1 fatal, 3 build failures, 4 sync failures, 5 both, 130 cancelled.
    """
    setup_logging(verbose)
    try:
        config = load_settings(
            config_path,
            output=output,
            dest=dest,
            delete_stale=delete_stale,
            concurrency=concurrency,
            fail_fast=fail_fast,
            allow_mass_delete=allow_mass_delete or None,
        )
    except ConfigError as e:
        fail(f"Configuration: {e}")

    report = run_pipeline(config, targets, build=True, dry_run=dry_run)
    if report.plan is not None:
        print_plan(report.plan)
    print_report(report)
    raise typer.Exit(int(report.exit_code()))


if __name__ == "__main__":
    app()

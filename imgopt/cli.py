"""Command line interface for running imgopt batches."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from imgopt import ImgoptConfig, get_checkpoint_store, load_config
from imgopt.codec import get_codec
from imgopt.contracts import BatchReport, FileStatus, RunStatus
from imgopt.errorlog import ErrorLogger
from imgopt.errors import CheckpointError, ConfigError
from imgopt.orchestrator import BatchOrchestrator
from imgopt.persistence import IncompatibleState, UsableState

app = typer.Typer(help="Resumable batch image optimization")

state_app = typer.Typer(help="Inspect or reset the saved run state")
app.add_typer(state_app, name="state")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2


@app.callback()
def main() -> None:
    """imgopt CLI entry point."""
    pass


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def format_summary(report: BatchReport) -> str:
    """Human-readable end-of-run summary."""
    lines = [
        "=" * 50,
        f"Run {report.status.value}",
        f"   Processed: {report.processed}/{report.total} images ({report.success_rate} succeeded)",
        f"   Skipped: {report.skipped} images (already up to date)",
    ]
    if report.lfs_pointers:
        lines.append(f"   Git LFS pointers: {report.lfs_pointers} files (use --pull-lfs)")
    if report.failed:
        lines.append(f"   Failed: {report.failed} images")
        if report.error_log_path:
            lines.append(f"   Error log: {report.error_log_path}")
    if report.status in (RunStatus.PARTIAL, RunStatus.ABORTED):
        lines.append("   Run again with --resume to retry failed and pending files")
    lines.append("=" * 50)
    return "\n".join(lines)


def exit_code(report: BatchReport, fail_on_partial: bool = False) -> int:
    """Map a run outcome to the process exit code."""
    if report.status is RunStatus.COMPLETE:
        return EXIT_OK
    if report.status is RunStatus.PARTIAL:
        return EXIT_PARTIAL if fail_on_partial else EXIT_OK
    return EXIT_FAILED


def _load(config_path: Optional[Path], overrides: dict) -> ImgoptConfig:
    try:
        return load_config(str(config_path) if config_path else None, overrides=overrides)
    except ConfigError as exc:
        typer.secho(f"Invalid configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FAILED)


@app.command("run")
def run(
    input_dir: Optional[Path] = typer.Argument(None, help="Directory of source images"),
    output_dir: Optional[Path] = typer.Option(None, help="Directory for optimized images"),
    config: Optional[Path] = typer.Option(None, help="YAML or JSON config file"),
    force: bool = typer.Option(False, "--force", help="Reprocess even up-to-date images"),
    continue_on_error: bool = typer.Option(
        False, "--continue-on-error", help="Keep going after a file fails"
    ),
    resume: bool = typer.Option(False, "--resume", help="Resume from the saved state"),
    max_retries: Optional[int] = typer.Option(None, "--max-retries", min=1),
    retry_delay: Optional[int] = typer.Option(None, "--retry-delay", min=0, help="Milliseconds"),
    error_log: Optional[Path] = typer.Option(None, "--error-log"),
    state_file: Optional[str] = typer.Option(None, "--state-file"),
    checkpoint_interval: Optional[int] = typer.Option(None, "--checkpoint-interval", min=1),
    recursive: bool = typer.Option(False, "--recursive", help="Descend into subdirectories"),
    pull_lfs: bool = typer.Option(False, "--pull-lfs", help="Fetch Git LFS pointer files"),
    fail_on_partial: bool = typer.Option(
        False, "--fail-on-partial", help="Exit non-zero when some files failed"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    quiet: bool = typer.Option(False, "--quiet", "-q"),
) -> None:
    """
    Optimize every image in INPUT_DIR.

    Up-to-date outputs are skipped unless --force is given. Progress is
    checkpointed so an interrupted or partially failed run can be continued
    with --resume.

    Example:
        imgopt run original --output-dir optimized --continue-on-error
        imgopt run --resume --max-retries 5 --retry-delay 500
    """
    _configure_logging(verbose, quiet)
    recovery = {
        "continue_on_error": continue_on_error or None,
        "max_retries": max_retries,
        "retry_delay": retry_delay,
    }
    overrides = {
        "input_dir": str(input_dir) if input_dir else None,
        "output_dir": str(output_dir) if output_dir else None,
        "error_log": str(error_log) if error_log else None,
        "state_file": state_file,
        "checkpoint_interval": checkpoint_interval,
        "recursive": recursive or None,
        "error_recovery": {k: v for k, v in recovery.items() if v is not None},
    }
    cfg = _load(config, overrides)

    if not Path(cfg.input_dir).is_dir():
        typer.secho(f"Input directory not found: {cfg.input_dir}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FAILED)

    Path(cfg.output_dir).mkdir(parents=True, exist_ok=True)
    orchestrator = BatchOrchestrator(
        cfg,
        get_codec(cfg.preserve_metadata),
        get_checkpoint_store(config=cfg),
        ErrorLogger(cfg.error_log),
        force=force,
        resume=resume,
        pull_lfs=pull_lfs,
    )
    if force:
        typer.echo("Force reprocessing enabled - all images will be regenerated")

    try:
        report = asyncio.run(orchestrator.run())
    except CheckpointError as exc:
        typer.secho(f"Fatal: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FAILED)

    typer.echo(format_summary(report))
    raise typer.Exit(code=exit_code(report, fail_on_partial))


@state_app.command("show")
def state_show(
    config: Optional[Path] = typer.Option(None, help="YAML or JSON config file"),
    state_file: Optional[str] = typer.Option(None, "--state-file"),
) -> None:
    """Show progress and failed files recorded in the saved state."""
    cfg = _load(config, {"state_file": state_file})
    store = get_checkpoint_store(config=cfg)
    loaded = asyncio.run(store.load())
    if isinstance(loaded, IncompatibleState):
        typer.echo(f"Saved state is not usable: {loaded.reason}")
        raise typer.Exit(code=EXIT_FAILED)
    if not isinstance(loaded, UsableState):
        typer.echo("No saved state")
        return

    state = loaded.state
    progress = state.progress
    typer.echo(f"Run started {state.started_at.isoformat()}, updated {state.last_updated_at.isoformat()}")
    typer.echo(
        f"Total: {progress.total}  Processed: {progress.processed}  "
        f"Succeeded: {progress.succeeded}  Failed: {progress.failed}  "
        f"Remaining: {progress.remaining}"
    )
    for record in state.files.processed:
        if record.status is FileStatus.FAILED:
            detail = record.error.message if record.error else "unknown error"
            typer.echo(f"- {record.path}: failed ({detail})")
    if state.files.pending:
        typer.echo(f"Pending: {len(state.files.pending)} files")


@state_app.command("clear")
def state_clear(
    config: Optional[Path] = typer.Option(None, help="YAML or JSON config file"),
    state_file: Optional[str] = typer.Option(None, "--state-file"),
) -> None:
    """Delete the saved state so the next run starts fresh."""
    cfg = _load(config, {"state_file": state_file})
    asyncio.run(get_checkpoint_store(config=cfg).clear())
    typer.echo("Saved state cleared")

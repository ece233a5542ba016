"""CLI commands for stamping builds with git metadata."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from .config import (
    DEFAULT_CONFIG_NAME,
    ConfigurationError,
    TaskConfig,
    build_task_config,
    copy_config_template,
    load_config,
    write_config,
)
from .tasks import TASK_SEQUENCE, ExecutionResult, ExecutionStatus, Severity, TaskName, build_task, execute_task
from .tools.properties import format_properties, write_properties_file
from .tools.version import current_version

APP_HELP = "Inject git metadata into builds as properties or generated files."

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help=APP_HELP)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
) -> None:
    """Configure logging for the selected command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


def _task_names(values: List[str]) -> List[TaskName]:
    names: List[TaskName] = []
    for value in values:
        try:
            names.append(TaskName(value))
        except ValueError:
            known = ", ".join(name.value for name in TASK_SEQUENCE)
            raise typer.BadParameter(f"Unknown task {value!r}. Known tasks: {known}.", param_hint="TASKS")
    return names


def _load_file_settings(config: Optional[str]) -> tuple[Dict[str, Any], Optional[Path]]:
    """Load the explicit config file, or the default one when it exists."""
    config_path = Path(config) if config else Path(DEFAULT_CONFIG_NAME)
    try:
        data = load_config(config_path, required=config is not None)
    except ConfigurationError as error:
        typer.echo(f"Configuration error: {error}", err=True)
        raise typer.Exit(code=1) from error
    if not data:
        return {}, None
    return data, config_path.resolve().parent


def _report(result: ExecutionResult) -> None:
    if result.status == ExecutionStatus.SKIPPED:
        typer.echo(f"Skipped {result.task}: {result.message}", err=True)
    elif result.status == ExecutionStatus.FAILED:
        label = "Error" if result.severity == Severity.HARD else "Warning"
        typer.echo(f"{label}: {result.task} failed: {result.message}", err=True)


@app.command()
def run(
    tasks: List[str] = typer.Argument(..., help="Tasks to run, in order (see `buildstamp tasks`)."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the configuration file (defaults to {DEFAULT_CONFIG_NAME} when present).",
    ),
    base_dir: Optional[Path] = typer.Option(None, "--base-dir", help="Working tree used to discover the repository."),
    git_dir: Optional[Path] = typer.Option(None, "--git-dir", help="Explicit GIT_DIR of the repository."),
    head: Optional[str] = typer.Option(None, "--head", help="Commit or ref to use as starting point."),
    dirty_flag: Optional[str] = typer.Option(
        None,
        "--dirty-flag",
        help="Suffix appended to refs when the tree is dirty ('false' or 'null' disables it).",
    ),
    dirty_ignore_untracked: Optional[bool] = typer.Option(
        None,
        "--dirty-ignore-untracked/--no-dirty-ignore-untracked",
        help="Whether untracked files are ignored when computing the dirty state.",
    ),
    fail_gracefully: Optional[bool] = typer.Option(
        None,
        "--fail-gracefully/--no-fail-gracefully",
        help="Report task failures as warnings instead of stopping the build.",
    ),
    skip: Optional[bool] = typer.Option(None, "--skip", help="Skip execution entirely."),
    skip_no_git: Optional[bool] = typer.Option(
        None,
        "--skip-no-git",
        help="Skip execution instead of failing when no repository is found.",
    ),
    prefix: List[str] = typer.Option(
        None,
        "--prefix",
        help="Property key prefix (repeatable).",
    ),
    encoding: Optional[str] = typer.Option(None, "--encoding", help="Encoding of generated files."),
    footer: Optional[str] = typer.Option(None, "--footer", help="Footer template for generated output."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="File receiving generated output."),
    date_format: Optional[str] = typer.Option(None, "--date-format", help="strftime pattern for dates."),
    properties_file: Optional[Path] = typer.Option(
        None,
        "--properties-file",
        help="Write published properties to this file instead of stdout.",
    ),
) -> None:
    """Run metadata tasks and publish their properties."""
    names = _task_names(tasks)
    if output is not None:
        writers = [name.value for name in names if build_task(name).produces_output]
        if len(writers) > 1:
            raise typer.BadParameter(
                f"--output would be overwritten by each of {', '.join(writers)}; "
                "run them separately or set output_file per task in the config.",
                param_hint="--output",
            )
    data, config_root = _load_file_settings(config)

    overrides: Dict[str, Any] = {
        "base_dir": base_dir,
        "git_dir": git_dir,
        "head": head,
        "dirty_flag": dirty_flag,
        "dirty_ignore_untracked": dirty_ignore_untracked,
        "fail_gracefully": fail_gracefully,
        "skip": skip,
        "skip_no_git": skip_no_git,
        "property_prefixes": list(prefix) if prefix else None,
        "encoding": encoding,
        "footer": footer,
        "output_file": output,
        "date_format": date_format,
    }

    configs: List[TaskConfig] = []
    for name in names:
        try:
            configs.append(build_task_config(data, name.value, config_root=config_root, overrides=overrides))
        except ConfigurationError as error:
            typer.echo(f"Configuration error: {error}", err=True)
            raise typer.Exit(code=1) from error

    properties: Dict[str, str] = {}
    for name, task_config in zip(names, configs):
        result = execute_task(build_task(name), task_config, properties=properties, stdout=sys.stdout)
        _report(result)
        if result.halts_build:
            raise typer.Exit(code=1)

    if properties_file is not None:
        target = write_properties_file(properties, properties_file)
        LOGGER.debug("Wrote %d properties to %s", len(properties), target)
    elif properties:
        typer.echo(format_properties(properties), nl=False)


@app.command("tasks")
def list_tasks() -> None:
    """List the available tasks."""
    for name in TASK_SEQUENCE:
        kind = "output" if build_task(name).produces_output else "properties"
        typer.echo(f"{name.value} ({kind})")


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path of the configuration file to create.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing configuration file.",
    ),
) -> None:
    """Write a default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.", err=True)
        raise typer.Exit(code=1)
    write_config(config_path, copy_config_template())
    typer.echo(f"Created configuration at {config_path}.")


@app.command()
def version() -> None:
    """Print the buildstamp version recorded at build time."""
    typer.echo(current_version() or "unknown")


if __name__ == "__main__":
    app()

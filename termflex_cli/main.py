import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from termflex import Application, Settings, configure_logging, default_catalog
from termflex.core import run_terminal
from termflex.dsl import AppConfig, load_file, validate_config
from termflex.exceptions import ConfigError, TermflexError, ValidationError, ValidationIssue
from termflex.log import resolve_level
from termflex.state import prepare_initial_state

# Create the main Typer application object
app = typer.Typer(
    name="termflex",
    help="Run and inspect declarative terminal applications.",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def _parse_data(pairs: List[str], data_file: Optional[Path]) -> Dict[str, Any]:
    """
    Collect external data: ``--data-file`` first, then each ``--data k=v``.
    Values are read as YAML scalars, so ``3`` is a number and ``true`` a bool.
    """
    data: Dict[str, Any] = {}
    if data_file is not None:
        try:
            loaded = yaml.safe_load(data_file.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot load data file: {e}", str(data_file)) from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError("data file must contain a map", str(data_file))
        data.update(loaded or {})
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--data")
        try:
            data[key] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            data[key] = raw
    return data


def _fail(e: TermflexError) -> None:
    err_console.print(f"[bold red]Error:[/] {e}")
    raise typer.Exit(code=1)


def _print_issues(issues: List[ValidationIssue], out: Console) -> None:
    for issue in issues:
        colour = "red" if issue.level == "error" else "yellow"
        out.print(f"[{colour}]{issue.level}[/] {issue.path}: {issue.message}")


def _report(e: ValidationError) -> None:
    _print_issues(e.errors, err_console)
    raise typer.Exit(code=1)


def _configure_run_logging(config: AppConfig, settings: Settings, log_file: Optional[Path]) -> logging.Logger:
    """
    Logging for the full-screen loop: records go to the log file when one
    is given and are dropped otherwise, since the live screen owns stderr.
    """
    level = settings.get("log_level") if config.log_level == "warn" else config.log_level
    try:
        resolve_level(level)
    except ValueError as e:
        err_console.print(f"[yellow]warning[/] {e}; using warn")
        level = "warn"
    return configure_logging(level, log_file=log_file or settings.get("log_file"), full_screen=True)


# --- CLI Commands ---


@app.command()
def validate(
    file_path: Path = typer.Argument(..., help="Application file (.tui.yaml, .tui.json, .tui.jsonc)."),
):
    """
    Check an application file and report errors and warnings.
    """
    try:
        config = load_file(file_path)
    except ValidationError as e:
        issues = e.issues
    except ConfigError as e:
        _fail(e)
    else:
        issues = validate_config(config, default_catalog())
    errors = [issue for issue in issues if issue.level == "error"]
    _print_issues(issues, console)
    if errors:
        console.print(f"[bold red]{len(errors)} error(s)[/] in {file_path}")
        raise typer.Exit(code=1)
    console.print(f"[green]OK[/] {file_path}")


@app.command()
def inspect(
    file_path: Path = typer.Argument(..., help="Application file."),
    width: int = typer.Option(80, "--width", "-w", help="Window width in cells."),
    height: int = typer.Option(24, "--height", "-h", help="Window height in cells."),
):
    """
    Lay out an application at a fixed size and print the computed boxes.
    """
    try:
        application = Application.from_file(
            file_path, settings=Settings(overrides={"default_width": width, "default_height": height}),
        )
        application.initialize()
    except TermflexError as e:
        _fail(e)

    result = application.layout.layout()
    table = Table(title=f"{application.config.name} ({width}x{height})")
    for column in ("id", "type", "x", "y", "w", "h", "z"):
        table.add_column(column, justify="right" if len(column) == 1 else "left")
    for box in sorted(result.boxes, key=lambda b: b.order):
        node = application.layout.root.find(box.node_id)
        kind = node.component_type if node.is_component else node.node_type.value
        table.add_row(box.node_id, kind, str(box.x), str(box.y), str(box.w), str(box.h), str(box.z_index))
    console.print(table)
    console.print(f"focus order: {', '.join(application.focus.focusable_ids) or '(none)'}")


@app.command()
def dump(
    file_path: Path = typer.Argument(..., help="Application file."),
    data: List[str] = typer.Option([], "--data", "-d", help="External data as key=value; repeatable."),
    data_file: Optional[Path] = typer.Option(None, "--data-file", help="YAML or JSON file with external data."),
):
    """
    Print the initial state an application would start with, as JSON.
    """
    try:
        config = load_file(file_path)
        external = _parse_data(data, data_file)
    except ConfigError as e:
        _fail(e)
    state = prepare_initial_state(config.data, external, Settings().get("defaults") or {})
    typer.echo(json.dumps(state, indent=2, sort_keys=True, default=str))


@app.command()
def run(
    file_path: Path = typer.Argument(..., help="Application file."),
    data: List[str] = typer.Option([], "--data", "-d", help="External data as key=value; repeatable."),
    data_file: Optional[Path] = typer.Option(None, "--data-file", help="YAML or JSON file with external data."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Write logs here while the app runs."),
    settings_file: Optional[Path] = typer.Option(None, "--settings", help="Runtime settings YAML."),
):
    """
    Run an application full-screen until it quits.
    """
    try:
        settings = Settings(settings_file)
        config = load_file(file_path)
        external = _parse_data(data, data_file)
    except ValidationError as e:
        _report(e)
    except ConfigError as e:
        _fail(e)

    _configure_run_logging(config, settings, log_file)

    application = Application(config, settings=settings, external_data=external)
    try:
        application.initialize()
    except ValidationError as e:
        _report(e)
    except TermflexError as e:
        _fail(e)

    asyncio.run(run_terminal(application))


if __name__ == "__main__":
    app()

"""Command line interface for pilestore libraries."""

from __future__ import annotations

import difflib
import time
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from pilestore.config import ConfigError, ConfigManager, PileConfig, resolve_with_precedence
from pilestore.library import Library
from pilestore.logs import configure_logging
from pilestore.storage.copy import copy_library
from pilestore.storage.paths import KIND_ORDER, Kind, decode_path
from pilestore.watch import WatchAction, WatchEvent

console = Console()

_ACTION_STYLES = {
    WatchAction.ADDED: "green",
    WatchAction.CHANGED: "cyan",
    WatchAction.REMOVED: "red",
}


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output.
        click.ClickException: For non-JSON flows.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _emit_message(message: Any, *, quiet: bool, error: bool = False) -> None:
    """Print ``message`` unless quiet mode suppresses it."""
    if quiet and not error:
        return
    console.print(message)


def _load_config(*, json_output: bool = False) -> PileConfig:
    """Load the effective configuration and set up logging from it."""
    try:
        manager = ConfigManager()
        manager.ensure_exists()
        config = manager.load()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    configure_logging(config.logging)
    return config


def _resolve_root(path: str | None, config: PileConfig) -> Path:
    """Return the library root from PATH or the configured ``library.path``."""
    if path:
        return Path(path).expanduser().resolve()
    if config.library.path:
        return Path(config.library.path).expanduser().resolve()
    raise click.ClickException(
        "No library path given. Pass PATH or run `pilestore config set library.path --value DIR`."
    )


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign ``value`` at the dotted ``path`` inside ``target``.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """
    node = target
    for segment in path[:-1]:
        existing = node.setdefault(segment, {})
        if not isinstance(existing, dict):
            raise ConfigError(f"Cannot assign into '{segment}'; it is not a mapping in the file.")
        node = existing
    node[path[-1]] = value


def _format_event(event: WatchEvent, root: Path) -> str:
    ref = decode_path(event.path, root)
    label = f"{ref.kind.dirname}/{ref.uid}" if ref else str(event.path)
    style = _ACTION_STYLES[event.action]
    return f"[{style}]{event.action.value:>7}[/{style}] {label}"


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="pilestore")
def cli() -> None:
    """pilestore keeps racks, folders, and notes in sync with their JSON files."""


@cli.command()
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=str))
@click.option("--json", "json_output", is_flag=True, help="Emit counts as JSON.")
def status(path: str | None, json_output: bool) -> None:
    """Load the library at PATH and report how many entities it holds.

    Args:
        path: Library root; defaults to the configured ``library.path``.
        json_output: When True, emit JSON instead of a table.
    """
    config = _load_config(json_output=json_output)
    root = _resolve_root(path, config)

    with Library.bootstrap(root, config) as library:
        counts = {kind.dirname: library.store.count(kind) for kind in KIND_ORDER}
        unparented = sum(
            1
            for folder in library.store.folders()
            if folder.rack_uid is None or library.find(Kind.RACKS, folder.rack_uid) is None
        )

    if json_output:
        console.print_json(data={"root": root.as_posix(), "counts": counts})
        return

    table = Table(title=f"Library {root}")
    table.add_column("Kind")
    table.add_column("Count", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)
    if unparented:
        console.print(f"[yellow]{unparented} folder(s) are not in any rack.[/yellow]")


@cli.command()
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=str))
@click.option("--quiet", is_flag=True, help="Suppress per-event output.")
@click.pass_context
def watch(ctx: click.Context, path: str | None, quiet: bool) -> None:
    """Load the library at PATH and apply external file changes until interrupted.

    Args:
        ctx: Click context for parameter source inspection.
        path: Library root; defaults to the configured ``library.path``.
        quiet: When True, only errors are printed.
    """
    config = _load_config()
    root = _resolve_root(path, config)
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default

    library = Library.bootstrap(root, config)
    try:
        library.attach_watcher(
            on_event=lambda event: _emit_message(_format_event(event, root), quiet=quiet_enabled)
        )
    except (OSError, RuntimeError) as exc:
        library.close()
        _handle_cli_error(str(exc), code="watch_runtime_error", json_output=False, original=exc)

    _emit_message(
        f"[cyan]Watching {root} ({len(library.store)} entities). Press Ctrl+C to stop.[/cyan]",
        quiet=quiet_enabled,
    )
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        _emit_message("[yellow]Watch stopped by user request.[/yellow]", quiet=quiet_enabled)
    finally:
        library.close()


@cli.command()
@click.argument("source", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.argument("destination", type=click.Path(file_okay=False, path_type=str))
def copy(source: str, destination: str) -> None:
    """Copy the racks, folders, and notes of SOURCE into DESTINATION."""
    _load_config()
    copied = copy_library(Path(source), Path(destination))
    console.print(f"[green]Copied {copied} file(s) to {destination}.[/green]")


@cli.command()
@click.argument("destination", type=click.Path(file_okay=False, path_type=str))
@click.option(
    "--copy/--no-copy",
    "copy_data",
    default=True,
    show_default=True,
    help="Copy the current library into DESTINATION before switching.",
)
def relocate(destination: str, copy_data: bool) -> None:
    """Make DESTINATION the configured library, optionally copying the current one.

    Args:
        destination: New library root.
        copy_data: Whether to copy the current library's files first.
    """
    config = _load_config()
    target = Path(destination).expanduser().resolve()

    if copy_data:
        if not config.library.path:
            raise click.ClickException("No current library to copy; use --no-copy.")
        current = Path(config.library.path).expanduser().resolve()
        if current == target:
            raise click.ClickException("DESTINATION is already the current library.")
        copied = copy_library(current, target)
        console.print(f"[green]Copied {copied} file(s) from {current}.[/green]")

    target.mkdir(parents=True, exist_ok=True)
    ConfigManager().set_library_path(target)
    console.print(f"[green]Library path set to {target}.[/green]")


@cli.group()
def config() -> None:
    """Inspect or change ~/.pilestore/config.yaml (library path, storage, watch, logging)."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Leave out PILESTORE__* environment overrides.")
def config_view(no_env: bool) -> None:
    """Print the settings pilestore will run with, file and environment merged."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML value, e.g. ~/Notes, true, or 0.5.")
def config_set(key: str, value: str) -> None:
    """Write one setting, such as ``library.path`` or ``watch.use_polling``, to the file.

    The whole file is validated before saving and the change is shown as a diff.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'library.path'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=PileConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    # The first two lines differ only by the header timestamp.
    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if "Last updated:" not in line
    ]
    edits = [line for line in diff if line[:1] in "+-" and line[:3] not in ("+++", "---")]
    if not edits:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Edit config.yaml in $EDITOR; the result is validated before it is saved."""
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return
    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=PileConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()

"""stylus config command - Configuration management."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from stylus_bridge.cli.error_handler import handle_errors
from stylus_bridge.exit_codes import ExitCode

app = typer.Typer(help="Manage stylus-bridge configuration.")
console = Console()


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return ", ".join(str(v) for v in value) or "None"
    return str(value)


@app.command("show")
@handle_errors
def show_config(
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, yaml, json).",
    ),
) -> None:
    """Show current configuration.

    Example:
        stylus config show
        stylus config show --format yaml
    """
    from stylus_bridge.config import _config_to_dict, export_config_json, export_config_yaml, get_config

    config = get_config()

    if format == "yaml":
        console.print(Syntax(export_config_yaml(config), "yaml", theme="monokai"))
        return
    elif format == "json":
        console.print(Syntax(export_config_json(config), "json", theme="monokai"))
        return
    elif format != "table":
        console.print(f"[red]Unknown format: {format}[/red]")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    for section, values in _config_to_dict(config).items():
        table = Table(title=section.capitalize())
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        for key, value in values.items():
            table.add_row(key, _cell(value))

        console.print(table)
        console.print()


@app.command("validate")
@handle_errors
def validate(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file to validate (default: the active configuration).",
    ),
) -> None:
    """Check the configuration for problems.

    Exits with code 2 if any error-level problem is found.
    """
    from stylus_bridge.config import get_config, load_config, validate_config

    config = load_config(config_file) if config_file else get_config()
    problems = validate_config(config)

    if not problems:
        console.print("[green]✓[/green] Configuration is valid")
        return

    for problem in problems:
        color = "red" if problem.severity == "error" else "yellow"
        console.print(f"[{color}]{escape(str(problem))}[/{color}]")

    if any(p.severity == "error" for p in problems):
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)


@app.command("init")
@handle_errors
def init_config(
    path: Optional[Path] = typer.Option(
        None,
        "--path",
        "-p",
        help="Where to write the file (default: ~/.config/stylus-bridge/config.toml).",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration.",
    ),
) -> None:
    """Write a configuration file with the current settings."""
    from stylus_bridge.config import DEFAULT_CONFIG_DIR, DEFAULT_CONFIG_FILE, get_config, save_config

    path = path or DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE
    if path.exists() and not force:
        console.print(f"[yellow]Configuration already exists:[/yellow] {path}")
        console.print("Use --force to overwrite.")
        raise typer.Exit(code=1)

    save_config(get_config(), path)
    console.print(f"[green]✓[/green] Configuration written to {path}")

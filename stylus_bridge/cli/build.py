"""Compile, convert and version commands."""

import sys
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console

from stylus_bridge.cli.error_handler import handle_errors
from stylus_bridge.exceptions import InvalidSourceError
from stylus_bridge.exit_codes import ExitCode

console = Console()


def _open_source(path: Path) -> Any:
    """Source for a command-line argument; ``-`` means stdin."""
    if str(path) == "-":
        return sys.stdin
    if not path.is_file():
        raise InvalidSourceError(f"No such file: {path}", exit_code=ExitCode.NOT_FOUND)
    return path


def _write_output(text: str, output: Optional[Path]) -> None:
    if output is None:
        sys.stdout.write(text)
        sys.stdout.flush()
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    console.print(f"[green]✓[/green] Wrote {output}", highlight=False)


@handle_errors
def compile_command(
    source: Path = typer.Argument(
        ...,
        help="Stylus file to compile, or '-' for stdin.",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write CSS here instead of stdout.",
    ),
    compress: Optional[bool] = typer.Option(
        None,
        "--compress/--no-compress",
        help="Minify the generated CSS (default: from configuration).",
    ),
    line_numbers: bool = typer.Option(
        False,
        "--line-numbers",
        "-l",
        help="Emit line-number comments pointing back to the source.",
    ),
    include: List[Path] = typer.Option(
        [],
        "--include",
        "-I",
        help="Additional import path (repeatable).",
    ),
    use: List[str] = typer.Option(
        [],
        "--use",
        "-u",
        help="Load a Stylus plugin (repeatable).",
    ),
) -> None:
    """Compile a Stylus file to CSS.

    Example:
        stylus compile app.styl -o app.css
        stylus compile app.styl --compress -I vendor/styles -u nib
    """
    from stylus_bridge.compiler import compile as compile_source
    from stylus_bridge.config import get_config

    config = get_config()
    if line_numbers:
        config.debug = True
    if use:
        config.use(*use)

    options: dict[str, Any] = {}
    if compress is not None:
        options["compress"] = compress
    if include:
        options["paths"] = [str(p.resolve()) for p in include]

    css = compile_source(_open_source(source), options, config=config)
    _write_output(css, output)


@handle_errors
def convert_command(
    source: Path = typer.Argument(
        ...,
        help="CSS file to convert, or '-' for stdin.",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write Stylus here instead of stdout.",
    ),
) -> None:
    """Convert plain CSS to Stylus syntax.

    Example:
        stylus convert legacy.css -o legacy.styl
    """
    from stylus_bridge.compiler import convert

    _write_output(convert(_open_source(source)), output)


@handle_errors
def version_command() -> None:
    """Show the bridge version and the engine's Stylus version."""
    from stylus_bridge.compiler import version

    console.print(version(), highlight=False)

"""Main CLI entry point for stylus-bridge."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from stylus_bridge import __app_name__, __version__
from stylus_bridge.cli import build, config, runtime
from stylus_bridge.cli.error_handler import handle_errors
from stylus_bridge.config import LoggingConfig, get_config
from stylus_bridge.exit_codes import ExitCode


app = typer.Typer(
    name=__app_name__,
    help="Compile Stylus to CSS through a Node.js engine.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register commands
app.command("compile")(build.compile_command)
app.command("convert")(build.convert_command)
app.command("version")(build.version_command)
app.add_typer(config.app, name="config")
app.add_typer(runtime.app, name="runtime")


def version_callback(value: bool) -> None:
    """Eager --version handler."""
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit(code=ExitCode.SUCCESS)


def _console_level(verbose: bool, debug: bool, quiet: bool, configured: str) -> int:
    """Pick the console level: flags win over the configured level."""
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    if quiet:
        return logging.ERROR
    level = logging.getLevelName(configured.upper())
    return level if isinstance(level, int) else logging.WARNING


def _setup_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[Path] = None,
    settings: Optional[LoggingConfig] = None,
) -> None:
    """Configure the root logger for one CLI invocation.

    Console output goes to stderr so compiled CSS on stdout stays clean.
    A log file, from ``--log-file`` or ``[logging] file``, always records
    DEBUG.
    """
    settings = settings or LoggingConfig()
    level = _console_level(verbose, debug, quiet, settings.level)
    log_file = log_file or settings.file

    fmt = settings.format
    if debug:
        fmt = fmt.replace("%(message)s", "[%(filename)s:%(lineno)d] %(message)s")

    handlers: list[logging.Handler] = []
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    handlers.append(stderr_handler)

    logging.basicConfig(
        level=logging.DEBUG if log_file else level,
        format=fmt,
        handlers=handlers,
        force=True,
    )
    logging.getLogger(__name__).debug(
        f"Logging to stderr at {logging.getLevelName(level)}"
        + (f" and to {log_file}" if log_file else "")
    )


@app.callback()
@handle_errors
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Print the bridge version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Log progress at INFO level.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging, including engine stderr.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write a DEBUG-level log to this file.",
    ),
) -> None:
    """stylus - compile Stylus to CSS through a Node.js engine.

    [bold]Commands:[/bold]

    • [cyan]compile[/cyan] - Compile a .styl file to CSS
    • [cyan]convert[/cyan] - Convert CSS back to Stylus
    • [cyan]version[/cyan] - Show bridge and engine versions
    • [cyan]config[/cyan] - Manage configuration
    • [cyan]runtime[/cyan] - Inspect the Node.js runtime

    [bold]Examples:[/bold]

        stylus compile app.styl -o app.css
        stylus compile app.styl --compress -u nib
        stylus convert legacy.css
    """
    if quiet and (verbose or debug):
        console.print("[red]Error:[/red] --quiet cannot be combined with --verbose or --debug")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    _setup_logging(
        verbose=verbose,
        debug=debug,
        quiet=quiet,
        log_file=log_file,
        settings=get_config().logging,
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"stylus-bridge v{__version__} starting")


__all__ = ["app", "console"]


if __name__ == "__main__":
    app()

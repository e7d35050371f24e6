"""Turns exceptions raised by CLI commands into messages and exit codes."""

import logging
from functools import wraps
from typing import Any, Callable, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from stylus_bridge.exceptions import CompilationError, StylusError
from stylus_bridge.exit_codes import ExitCode

console = Console(stderr=True)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _report(error: StylusError) -> None:
    """Print ``error`` with its location and details, one per line."""
    console.print(f"[red]Error:[/red] {escape(error.message)}")

    extra = dict(error.details)
    if isinstance(error, CompilationError) and error.location:
        extra = {"at": error.location, **extra}
    for key, value in extra.items():
        console.print(f"  [dim]{key}:[/dim] {escape(str(value))}")


def handle_errors(func: F) -> F:
    """Decorate a command so failures exit with the right code.

    A ``StylusError`` exits with its own ``exit_code``, Ctrl+C with 130,
    and anything unexpected with 1 after logging the traceback.
    ``typer.Exit`` raised by the command is left alone.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except StylusError as e:
            logger.error(f"{type(e).__name__} (exit {ExitCode.get_name(e.exit_code)}): {e.message}")
            _report(e)
            raise typer.Exit(code=e.exit_code)
        except KeyboardInterrupt:
            logger.info("Interrupted")
            console.print("\n[yellow]Interrupted.[/yellow]")
            raise typer.Exit(code=ExitCode.CANCELLED)
        except Exception as e:
            logger.exception(f"Unhandled error in {func.__name__}")
            console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
            console.print("[dim]Re-run with --debug for the full traceback[/dim]")
            raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore[return-value]

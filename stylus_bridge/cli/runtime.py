"""stylus runtime command - Inspect the Node.js engine."""

import typer
from rich.console import Console
from rich.table import Table

from stylus_bridge.cli.error_handler import handle_errors

app = typer.Typer(help="Inspect the Node.js runtime hosting Stylus.")
console = Console()


@app.command("list")
def list_runtimes() -> None:
    """List candidate Node.js executables found on this system."""
    from stylus_bridge.config import get_config
    from stylus_bridge.js_runtime.discovery import discover_runtimes

    settings = get_config().runtime
    candidates = [settings.executable] if settings.executable else settings.candidates
    runtimes = discover_runtimes(candidates, with_version=True)

    if not runtimes:
        console.print(f"[yellow]No runtime found[/yellow] (tried: {', '.join(candidates)})")
        raise typer.Exit(code=1)

    table = Table(title="Node.js runtimes")
    table.add_column("Candidate", style="cyan")
    table.add_column("Executable", style="green")
    table.add_column("Version")
    for index, info in enumerate(runtimes):
        name = f"{info.name} (preferred)" if index == 0 else info.name
        table.add_row(name, info.executable, info.version or "unknown")
    console.print(table)


@app.command("status")
@handle_errors
def status() -> None:
    """Start the engine and report its state."""
    from stylus_bridge.js_runtime.manager import RuntimeManager

    manager = RuntimeManager.get_instance()
    manager.acquire()
    alive = manager.ping()

    table = Table(title="Stylus engine")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in manager.get_status().items():
        table.add_row(key, "" if value is None else str(value))
    table.add_row("responsive", "Yes" if alive else "No")
    console.print(table)

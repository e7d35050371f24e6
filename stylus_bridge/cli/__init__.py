"""CLI command modules for stylus-bridge."""

from stylus_bridge.cli import build, config, runtime
from stylus_bridge.cli.error_handler import handle_errors

__all__ = [
    "build",
    "config",
    "runtime",
    "handle_errors",
]

"""Python bridge to the Stylus CSS preprocessor.

Stylus runs on Node.js; this package keeps one Node.js process alive and
forwards compile requests to it.

Usage::

    import stylus_bridge

    stylus_bridge.compile(open("application.styl"))
    stylus_bridge.compile("body\\n  color red\\n", {"compress": True})

    config = stylus_bridge.get_config()
    config.paths.append("app/assets/stylesheets")
    stylus_bridge.use("nib")
"""

from stylus_bridge._version import __version__

__app_name__ = "stylus"

from stylus_bridge.compiler import compile, convert, merge_options, version
from stylus_bridge.config import (
    StylusConfig,
    clear_config_cache,
    get_config,
    load_config,
    plugin,
    set_config,
    use,
)
from stylus_bridge.exceptions import (
    BridgeError,
    CompilationError,
    ConfigurationError,
    InvalidSourceError,
    RuntimeUnavailable,
    StylusError,
)
from stylus_bridge.source import NamedFile, Readable, SourceInput, Text

__all__ = [
    "__version__",
    "__app_name__",
    # Operations
    "compile",
    "convert",
    "version",
    "merge_options",
    # Configuration
    "StylusConfig",
    "get_config",
    "set_config",
    "clear_config_cache",
    "load_config",
    "use",
    "plugin",
    # Sources
    "SourceInput",
    "Text",
    "NamedFile",
    "Readable",
    # Errors
    "StylusError",
    "ConfigurationError",
    "RuntimeUnavailable",
    "CompilationError",
    "BridgeError",
    "InvalidSourceError",
]

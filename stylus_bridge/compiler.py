"""Compile, convert and version operations.

These are the calls host integrations use. Each takes an optional
``config`` (defaults to the global configuration) and ``manager``
(defaults to the process-wide runtime manager).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from stylus_bridge.config import StylusConfig, get_config
from stylus_bridge.exceptions import BridgeError, ConfigurationError
from stylus_bridge.js_runtime.manager import RuntimeManager
from stylus_bridge.js_runtime.protocol import Operation
from stylus_bridge.source import resolve_source
from stylus_bridge._version import __version__

logger = logging.getLogger(__name__)


def merge_options(
    options: Mapping[str, Any],
    config: Optional[StylusConfig] = None,
) -> dict[str, Any]:
    """Merge per-call ``options`` with the configuration defaults.

    Caller options override the defaults, except ``paths``: those are
    appended to the global load path (which stays appended for later
    calls). When a ``filename`` is present the debug options are added.
    ``options`` itself is not modified.
    """
    config = config or get_config()
    options = dict(options)
    filename = options.get("filename")

    with config.lock:
        extra_paths = options.pop("paths", None)
        merged = config.defaults()
        merged.update(options)
        merged["paths"] = list(config.append_paths(extra_paths))
        if filename:
            merged.update(config.debug_options())
    return merged


def compile(
    source: Any,
    options: Optional[Mapping[str, Any]] = None,
    *,
    config: Optional[StylusConfig] = None,
    manager: Optional[RuntimeManager] = None,
) -> str:
    """Compile Stylus source to CSS.

    Args:
        source: A string of Stylus, a path, or an object with ``read()``.
            Paths and named file handles supply the ``filename`` option.
        options: Engine options merged over the configuration defaults
        config: Configuration to use instead of the global one. Without
            an explicit ``manager`` the engine is built from it too.
        manager: Runtime manager to use instead of the one bound to
            ``config``; its configuration must be ``config``

    Returns:
        The generated CSS

    Raises:
        InvalidSourceError: If the source cannot be read
        ConfigurationError: If ``manager`` is bound to another configuration
        RuntimeUnavailable: If the engine cannot be started
        CompilationError: If Stylus rejects the source
        BridgeError: On transport failure
    """
    if manager is None:
        manager = RuntimeManager.for_config(config)
    elif config is not None and config is not manager.config:
        raise ConfigurationError(
            "compile() was given a config and a manager bound to a different config"
        )
    config = manager.config
    options = dict(options or {})

    resolved = resolve_source(source)
    if resolved.filename and not options.get("filename"):
        options["filename"] = resolved.filename
    text = resolved.read()

    # Start the engine before touching the global load path
    manager.acquire()

    merged = merge_options(options, config)
    logger.debug(f"Compiling {merged.get('filename') or '<string>'}")
    result = manager.call(Operation.COMPILE, text, merged, config.plugins_snapshot())
    return _expect_str(result, Operation.COMPILE)


def convert(source: Any, *, manager: Optional[RuntimeManager] = None) -> str:
    """Convert plain CSS back to Stylus syntax.

    ``source`` may be a string, a path, or an object with ``read()``.
    """
    manager = manager or RuntimeManager.get_instance()
    text = resolve_source(source).read()
    result = manager.call(Operation.CONVERT, text)
    return _expect_str(result, Operation.CONVERT)


def version(*, manager: Optional[RuntimeManager] = None) -> str:
    """Return the bridge version alongside the engine's Stylus version."""
    manager = manager or RuntimeManager.get_instance()
    engine_version = manager.call(Operation.VERSION)
    return f"Stylus - stylus-bridge {__version__} library {engine_version}"


def _expect_str(result: Any, operation: Operation) -> str:
    if not isinstance(result, str):
        raise BridgeError(
            f"{operation.method}() returned {type(result).__name__}, expected a string",
            reason=BridgeError.PROTOCOL,
        )
    return result

"""Assembles the bootstrap script evaluated inside the engine process.

The script is compiled once, as a CommonJS module, when the runtime
context is first built:

1. the bundled engine module directory is prepended to ``module.paths``
2. each configured plugin directory is prepended the same way, in order
3. the vendored ``compiler.js`` driver follows, defining ``compiler``,
   ``convert`` and ``version`` on the engine's global object

Changing ``plugin_paths`` afterwards has no effect on a context that is
already running; invalidate the runtime to pick up the new directories.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterable, Optional, Union

JS_RUNTIME_DIR = Path(__file__).parent

# Vendored driver defining the engine entry points
DRIVER_PATH = JS_RUNTIME_DIR / "compiler.js"

# Line-delimited JSON-RPC runner that evaluates the bootstrap script
RUNNER_PATH = JS_RUNTIME_DIR / "runner.js"

# Default location of the bundled stylus module
BUNDLED_ENGINE_PATH = JS_RUNTIME_DIR / "node_modules"

# Filename the bootstrap module is compiled under (shows up in stack traces)
SCRIPT_FILENAME = "stylus-bridge-bootstrap.js"


def module_path_statement(directory: Union[str, os.PathLike]) -> str:
    """Statement prepending ``directory`` to the module search path."""
    # JSON string literals are valid JavaScript string literals
    return f"module.paths.unshift({json.dumps(os.fspath(directory))});\n"


def build_script(
    plugin_paths: Iterable[Union[str, os.PathLike]] = (),
    engine_path: Optional[Union[str, os.PathLike]] = None,
    driver_path: Optional[Path] = None,
) -> str:
    """
    Build the bootstrap source handed to the engine.

    Args:
        plugin_paths: Directories searched for plugin modules
        engine_path: Directory holding the stylus module
            (default: the bundled ``node_modules``)
        driver_path: Driver script to append (default: ``compiler.js``)

    Returns:
        JavaScript source text
    """
    engine_path = engine_path if engine_path is not None else BUNDLED_ENGINE_PATH
    driver_path = driver_path or DRIVER_PATH

    parts = [module_path_statement(engine_path)]
    for directory in plugin_paths:
        parts.append(module_path_statement(directory))
    parts.append(driver_path.read_text(encoding="utf-8"))
    return "".join(parts)

"""
Stylus Bridge Configuration Management.

Holds the settings handed to the Stylus engine (compress, debug, import
paths, plugins) and the settings used to launch the Node.js runtime.

Values are resolved from:
- Default values
- Configuration file (TOML)
- Environment variables
- Explicit setters at runtime
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional

# Try to import tomllib (Python 3.11+) or tomli as fallback
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

import tomli_w
import yaml

from stylus_bridge.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# Configuration directory and file constants
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "stylus-bridge"
DEFAULT_CONFIG_FILE = "config.toml"

# Executables probed for the engine, preferred first
DEFAULT_RUNTIME_CANDIDATES = ["nodejs", "node"]

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class RuntimeSettings:
    """Settings for launching the Node.js engine process."""

    # Explicit executable (skips discovery when set)
    executable: Optional[str] = None

    # Candidate command names probed in order
    candidates: list[str] = field(default_factory=lambda: list(DEFAULT_RUNTIME_CANDIDATES))

    # Directory holding the bundled stylus module (node_modules layout)
    engine_path: Optional[Path] = None

    # Extra NODE_PATH entries for the subprocess
    node_path: list[Path] = field(default_factory=list)

    # Timeouts (seconds); request_timeout of None waits forever
    startup_timeout: float = 30.0
    request_timeout: Optional[float] = 60.0

    # Pass --inspect to node
    debug: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


def _coerce_list(value: Any) -> list[str]:
    """Coerce ``None``, a scalar or an iterable into a list of strings."""
    if value is None:
        return []
    if isinstance(value, (str, bytes, os.PathLike)):
        value = [value]
    result = []
    for item in value:
        if isinstance(item, bytes):
            item = item.decode()
        result.append(os.fspath(item))
    return result


class StylusConfig:
    """Engine options shared by every compile call.

    One instance is kept as the process-wide default (see ``get_config``);
    hosts that want isolation can create their own and pass it to the
    pipeline functions. All mutation happens under a single re-entrant
    lock, so concurrent threads appending to ``paths`` do not race.

    ``paths`` and ``plugin_paths`` return the live lists. Integrations
    that extend them in place (``config.paths.extend(...)``) are visible
    to the next compile; use ``append_paths`` when other threads may be
    compiling at the same time.
    """

    def __init__(
        self,
        compress: bool = False,
        debug: bool = False,
        paths: Any = None,
        plugin_paths: Any = None,
        plugins: Optional[dict[str, dict[str, Any]]] = None,
        runtime: Optional[RuntimeSettings] = None,
        logging: Optional[LoggingConfig] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._compress = bool(compress)
        self._debug = bool(debug)
        self._paths = _coerce_list(paths)
        self._plugin_paths = _coerce_list(plugin_paths)
        self._plugins: dict[str, dict[str, Any]] = dict(plugins or {})
        self.runtime = runtime or RuntimeSettings()
        self.logging = logging or LoggingConfig()

    def __repr__(self) -> str:
        return (
            f"StylusConfig(compress={self._compress!r}, debug={self._debug!r}, "
            f"paths={self._paths!r}, plugin_paths={self._plugin_paths!r}, "
            f"plugins={list(self._plugins)!r})"
        )

    @property
    def lock(self) -> threading.RLock:
        """The lock guarding this configuration."""
        return self._lock

    @property
    def compress(self) -> bool:
        """Whether Stylus should minify its output."""
        return self._compress

    @compress.setter
    def compress(self, value: Any) -> None:
        with self._lock:
            self._compress = bool(value)

    @property
    def debug(self) -> bool:
        """Whether ``linenos``/``firebug`` annotations are requested."""
        return self._debug

    @debug.setter
    def debug(self, value: Any) -> None:
        with self._lock:
            self._debug = bool(value)

    @property
    def paths(self) -> list[str]:
        """Global import search path."""
        return self._paths

    @paths.setter
    def paths(self, value: Any) -> None:
        with self._lock:
            self._paths = _coerce_list(value)

    @property
    def plugin_paths(self) -> list[str]:
        """Directories prepended to the engine's module search path."""
        return self._plugin_paths

    @plugin_paths.setter
    def plugin_paths(self, value: Any) -> None:
        with self._lock:
            self._plugin_paths = _coerce_list(value)

    @property
    def plugins(self) -> dict[str, dict[str, Any]]:
        """Registered plugins and the options each is loaded with."""
        return self._plugins

    def append_paths(self, extra: Any) -> list[str]:
        """Append ``extra`` to the global import path and return it."""
        with self._lock:
            self._paths.extend(_coerce_list(extra))
            return self._paths

    def use(self, *names: str, options: Optional[dict[str, Any]] = None) -> None:
        """Register one or more plugins with the same ``options``.

        Each name gets its own copy of ``options``. Registering a name
        again replaces its options.

        Example:
            config.use("nib")
            config.use("axis", "rupture", options={"implicit": False})
        """
        with self._lock:
            for name in names:
                self._plugins[name] = dict(options or {})

    plugin = use

    def plugins_snapshot(self) -> dict[str, dict[str, Any]]:
        """Deep copy of the plugin registry, safe to hand to another thread."""
        with self._lock:
            return copy.deepcopy(self._plugins)

    def defaults(self) -> dict[str, Any]:
        """Default engine options: the compress flag and the global load path."""
        with self._lock:
            return {"compress": self._compress, "paths": self._paths}

    def debug_options(self) -> dict[str, bool]:
        """Options enabling Stylus' line-number and firebug annotations."""
        with self._lock:
            return {"linenos": self._debug, "firebug": self._debug}


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = "STYLUS_",
) -> StylusConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/stylus-bridge/config.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration
    """
    config = StylusConfig()

    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    if config_path.exists():
        config = _load_from_file(config_path, config)

    return _load_from_env(config, env_prefix)


def _load_from_file(path: Path, config: StylusConfig) -> StylusConfig:
    """Load configuration from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return config

    stylus = data.get("stylus", {})
    if "compress" in stylus:
        config.compress = stylus["compress"]
    if "debug" in stylus:
        config.debug = stylus["debug"]
    if "paths" in stylus:
        config.paths = stylus["paths"]
    if "plugin_paths" in stylus:
        config.plugin_paths = stylus["plugin_paths"]
    for name, options in stylus.get("plugins", {}).items():
        config.use(name, options=options if isinstance(options, dict) else {})

    runtime = data.get("runtime", {})
    for key, value in runtime.items():
        if not hasattr(config.runtime, key):
            logger.warning(f"Ignoring unknown runtime setting: {key}")
            continue
        if key == "engine_path":
            value = Path(value) if value else None
        elif key == "node_path":
            value = [Path(p) for p in _coerce_list(value)]
        elif key == "candidates":
            value = _coerce_list(value)
        setattr(config.runtime, key, value)

    for key, value in data.get("logging", {}).items():
        if hasattr(config.logging, key):
            setattr(config.logging, key, Path(value) if key == "file" else value)

    return config


def _env_seconds(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number of seconds", details={"value": value}
        ) from None


def _load_from_env(config: StylusConfig, prefix: str) -> StylusConfig:
    """Load configuration from environment variables."""

    if env_val := os.environ.get(f"{prefix}COMPRESS"):
        config.compress = env_val.lower() in _TRUE_VALUES
    if env_val := os.environ.get(f"{prefix}DEBUG"):
        config.debug = env_val.lower() in _TRUE_VALUES
    if env_val := os.environ.get(f"{prefix}PATHS"):
        config.paths = [p for p in env_val.split(os.pathsep) if p]
    if env_val := os.environ.get(f"{prefix}PLUGIN_PATHS"):
        config.plugin_paths = [p for p in env_val.split(os.pathsep) if p]

    # Runtime settings
    if env_val := os.environ.get(f"{prefix}RUNTIME"):
        config.runtime.executable = env_val
    if env_val := os.environ.get(f"{prefix}ENGINE_PATH"):
        config.runtime.engine_path = Path(env_val)
    if env_val := os.environ.get(f"{prefix}STARTUP_TIMEOUT"):
        config.runtime.startup_timeout = _env_seconds(f"{prefix}STARTUP_TIMEOUT", env_val)
    if env_val := os.environ.get(f"{prefix}REQUEST_TIMEOUT"):
        config.runtime.request_timeout = _env_seconds(f"{prefix}REQUEST_TIMEOUT", env_val)

    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()

    return config


def save_config(config: StylusConfig, path: Optional[Path] = None) -> None:
    """
    Save configuration to a TOML file.

    Args:
        config: Configuration to save
        path: Path to save to (default: ~/.config/stylus-bridge/config.toml)
    """
    if path is None:
        path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    path.parent.mkdir(parents=True, exist_ok=True)

    data = _config_to_dict(config)
    # TOML has no null
    data["runtime"] = {k: v for k, v in data["runtime"].items() if v is not None}
    data["logging"] = {k: v for k, v in data["logging"].items() if v is not None}

    with open(path, "wb") as f:
        tomli_w.dump(data, f)


def validate_config(config: Optional[StylusConfig] = None) -> List[ValidationError]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate (default: the global configuration)

    Returns:
        List of validation errors (empty if valid)
    """
    if config is None:
        config = get_config()

    errors: List[ValidationError] = []

    for index, entry in enumerate(config.paths):
        if not Path(entry).is_dir():
            errors.append(ValidationError(
                field=f"stylus.paths[{index}]",
                message=f"Import path does not exist: {entry}",
                severity="warning",
            ))

    for index, entry in enumerate(config.plugin_paths):
        if not Path(entry).is_dir():
            errors.append(ValidationError(
                field=f"stylus.plugin_paths[{index}]",
                message=f"Plugin path does not exist: {entry}",
                severity="warning",
            ))

    runtime = config.runtime
    if runtime.startup_timeout <= 0:
        errors.append(ValidationError(
            field="runtime.startup_timeout",
            message="Startup timeout must be positive",
            severity="error",
        ))
    if runtime.request_timeout is not None and runtime.request_timeout <= 0:
        errors.append(ValidationError(
            field="runtime.request_timeout",
            message="Request timeout must be positive (omit it to wait forever)",
            severity="error",
        ))
    if not runtime.executable and not runtime.candidates:
        errors.append(ValidationError(
            field="runtime.candidates",
            message="No executable and no candidates configured",
            severity="error",
        ))
    if runtime.engine_path is not None and not runtime.engine_path.is_dir():
        errors.append(ValidationError(
            field="runtime.engine_path",
            message=f"Engine path does not exist: {runtime.engine_path}",
            severity="warning",
        ))

    if not isinstance(logging.getLevelName(config.logging.level.upper()), int):
        errors.append(ValidationError(
            field="logging.level",
            message=f"Unknown log level: {config.logging.level}",
            severity="error",
        ))

    return errors


def _config_to_dict(config: StylusConfig) -> dict[str, Any]:
    """Convert configuration to a plain dictionary."""
    runtime = config.runtime
    with config.lock:
        stylus = {
            "compress": config.compress,
            "debug": config.debug,
            "paths": list(config.paths),
            "plugin_paths": list(config.plugin_paths),
            "plugins": copy.deepcopy(config.plugins),
        }
    return {
        "stylus": stylus,
        "runtime": {
            "executable": runtime.executable,
            "candidates": list(runtime.candidates),
            "engine_path": str(runtime.engine_path) if runtime.engine_path else None,
            "node_path": [str(p) for p in runtime.node_path],
            "startup_timeout": runtime.startup_timeout,
            "request_timeout": runtime.request_timeout,
            "debug": runtime.debug,
        },
        "logging": {
            "level": config.logging.level,
            "format": config.logging.format,
            "file": str(config.logging.file) if config.logging.file else None,
        },
    }


def export_config_yaml(config: StylusConfig) -> str:
    """Export configuration as YAML string."""
    return yaml.dump(_config_to_dict(config), default_flow_style=False, sort_keys=False, allow_unicode=True)


def export_config_json(config: StylusConfig) -> str:
    """Export configuration as JSON string."""
    return json.dumps(_config_to_dict(config), indent=2)


# Global configuration instance (lazy-loaded)
_global_config: Optional[StylusConfig] = None
_global_lock = threading.Lock()


def get_config() -> StylusConfig:
    """Get the global configuration instance."""
    global _global_config
    with _global_lock:
        if _global_config is None:
            _global_config = load_config()
        return _global_config


def set_config(config: StylusConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    with _global_lock:
        _global_config = config


def clear_config_cache() -> None:
    """Clear the global configuration cache."""
    global _global_config
    with _global_lock:
        _global_config = None


def use(*names: str, options: Optional[dict[str, Any]] = None) -> None:
    """Register plugins on the global configuration."""
    get_config().use(*names, options=options)


plugin = use


def iter_node_path(config: StylusConfig) -> Iterable[str]:
    """NODE_PATH entries contributed to the engine process.

    ``./node_modules`` of the working directory comes first so locally
    installed npm packages (stylus itself, plugins) resolve.
    """
    yield str(Path("node_modules").resolve())
    for entry in config.runtime.node_path:
        yield str(entry)

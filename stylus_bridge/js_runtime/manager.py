"""Stylus Runtime Manager.

Owns the single engine subprocess shared by every compile call: builds it
on first use, hands it out, and throws it away when the transport breaks.
"""

from __future__ import annotations

import atexit
import logging
import threading
from typing import Any, Optional

from stylus_bridge.config import StylusConfig, get_config, iter_node_path
from stylus_bridge.exceptions import BridgeError, ConfigurationError, StylusError

from .bridge import RuntimeConfig, RuntimeState, RuntimeStatus, StylusRuntimeBridge
from .protocol import Operation
from .script import build_script

logger = logging.getLogger(__name__)


class RuntimeManager:
    """Manages the engine bridge lifecycle.

    - ``acquire()`` returns the running bridge, building it on first use
    - ``invalidate()`` stops it so the next ``acquire()`` builds a new one
    - ``call()`` acquires, invokes one ``Operation`` and invalidates the
      bridge if the transport failed

    A failed construction is not cached: the error goes to the caller and
    the next ``acquire()`` tries again. Nothing is retried automatically.

    The bootstrap script is assembled when the bridge is built, so plugin
    paths added later only take effect after ``invalidate()``.

    Example:
        manager = RuntimeManager.get_instance()
        css = manager.call(Operation.COMPILE, source, options, plugins)
    """

    _instance: Optional["RuntimeManager"] = None
    _bound: dict[int, "RuntimeManager"] = {}
    _instance_lock = threading.Lock()

    def __init__(
        self,
        config: Optional[StylusConfig] = None,
        runtime_config: Optional[RuntimeConfig] = None,
    ):
        self._config = config
        self._runtime_config = runtime_config
        self._bridge: Optional[StylusRuntimeBridge] = None
        self._bridge_lock = threading.Lock()

        # Metrics and tracking
        self._build_count = 0
        self._call_count = 0
        self._last_error: Optional[Exception] = None

    @classmethod
    def get_instance(cls) -> "RuntimeManager":
        """Get the process-wide manager, bound to the global configuration."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def for_config(cls, config: Optional[StylusConfig] = None) -> "RuntimeManager":
        """Get the manager whose engine is built from ``config``.

        The global configuration (or ``None``) maps to ``get_instance()``.
        Any other configuration gets its own manager, created on first use
        and kept until ``reset_instance()`` or interpreter exit.
        """
        if config is None or config is get_config():
            return cls.get_instance()
        with cls._instance_lock:
            # The manager holds a reference to config, so its id stays unique
            manager = cls._bound.get(id(config))
            if manager is None:
                manager = cls._bound[id(config)] = cls(config)
            return manager

    @classmethod
    def reset_instance(cls) -> None:
        """Shut down and forget every shared manager (mainly for testing)."""
        with cls._instance_lock:
            managers = list(cls._bound.values())
            if cls._instance is not None:
                managers.append(cls._instance)
            cls._instance = None
            cls._bound.clear()
        for manager in managers:
            manager.shutdown()

    @property
    def config(self) -> StylusConfig:
        """Configuration the bootstrap script is assembled from."""
        return self._config if self._config is not None else get_config()

    def configure(
        self,
        config: Optional[StylusConfig] = None,
        runtime_config: Optional[RuntimeConfig] = None,
    ) -> None:
        """Replace the configuration used for the next bridge build.

        Raises:
            ConfigurationError: If a bridge is currently running
        """
        if self._bridge is not None and self._bridge.is_ready:
            raise ConfigurationError(
                "Cannot configure while the engine is running. Call invalidate() first."
            )
        if config is not None:
            self._config = config
        if runtime_config is not None:
            self._runtime_config = runtime_config

    def acquire(self) -> StylusRuntimeBridge:
        """Get the running bridge, building it if needed.

        Raises:
            RuntimeUnavailable: If the engine cannot be started
        """
        with self._bridge_lock:
            if self._bridge is None or not self._bridge.is_ready:
                if self._bridge is not None:
                    logger.info(
                        f"Discarding engine in state {self._bridge.state.name}"
                    )
                    self._bridge.stop()
                    self._bridge = None
                self._bridge = self._create_bridge()
            return self._bridge

    def invalidate(self) -> None:
        """Stop the current bridge; the next call builds a fresh one."""
        with self._bridge_lock:
            if self._bridge is not None:
                self._bridge.stop()
                self._bridge = None

    def call(self, operation: Operation, *args: Any, timeout: Optional[float] = None) -> Any:
        """Invoke ``operation`` in the engine.

        Raises:
            RuntimeUnavailable: If the engine cannot be started
            CompilationError: If the engine reported an error
            BridgeError: On transport failure; the bridge is discarded
        """
        params = operation.build_params(*args)
        bridge = self.acquire()
        self._call_count += 1
        try:
            return bridge.call(operation.method, params, timeout)
        except BridgeError as e:
            logger.warning(f"Engine transport failed during {operation.method}: {e}")
            self._last_error = e
            self._discard(bridge)
            raise

    def shutdown(self) -> None:
        """Stop the bridge. Safe to call more than once."""
        self.invalidate()
        logger.debug("Runtime manager shut down")

    def ping(self) -> bool:
        """Check whether a running bridge answers; never starts one."""
        bridge = self._bridge
        if bridge is None or not bridge.is_ready:
            return False
        return bridge.ping()

    def get_status(self) -> dict[str, Any]:
        """Get the current status of the manager.

        Returns:
            Dictionary with bridge_state, is_ready, executable, pid,
            pending_requests, build_count, call_count and last_error
        """
        bridge = self._bridge
        status = bridge.get_status() if bridge else RuntimeStatus(RuntimeState.NOT_STARTED)
        return {
            "bridge_state": status.state.name,
            "is_ready": status.state == RuntimeState.READY,
            "executable": status.executable,
            "pid": status.pid,
            "pending_requests": status.pending_requests,
            "build_count": self._build_count,
            "call_count": self._call_count,
            "last_error": str(self._last_error) if self._last_error else status.error_message,
        }

    def _create_bridge(self) -> StylusRuntimeBridge:
        """Assemble the bootstrap script and start a new bridge."""
        config = self.config
        runtime_config = self._runtime_config or RuntimeConfig.from_settings(
            config.runtime, node_path=list(iter_node_path(config))
        )
        with config.lock:
            plugin_paths = list(config.plugin_paths)

        script = build_script(plugin_paths, engine_path=config.runtime.engine_path)
        bridge = StylusRuntimeBridge(runtime_config)

        try:
            bridge.start(script)
        except StylusError as e:
            logger.error(f"Failed to start Stylus engine: {e}")
            self._last_error = e
            raise

        self._build_count += 1
        self._last_error = None
        return bridge

    def _discard(self, bridge: StylusRuntimeBridge) -> None:
        """Stop ``bridge`` unless another thread already replaced it."""
        with self._bridge_lock:
            if self._bridge is bridge:
                self._bridge.stop()
                self._bridge = None


atexit.register(RuntimeManager.reset_instance)

"""
Node.js Runtime Bridge.

Manages the Node.js subprocess that hosts the Stylus engine and carries
JSON-RPC requests to it over stdio, one JSON object per line.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections import deque
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any, Optional

from stylus_bridge.exceptions import BridgeError, CompilationError, RuntimeUnavailable
from stylus_bridge.config import DEFAULT_RUNTIME_CANDIDATES, RuntimeSettings

from .discovery import discover_runtimes, get_runtime_args
from .protocol import (
    JSONRPCErrorCode,
    JSONRPCProtocol,
    MalformedMessage,
    Request,
    Response,
    RunnerMethods,
    decode_message,
)
from .script import RUNNER_PATH, SCRIPT_FILENAME

logger = logging.getLogger(__name__)


class RuntimeState(Enum):
    """State of the engine subprocess."""

    NOT_STARTED = auto()
    STARTING = auto()
    READY = auto()
    ERROR = auto()
    SHUTTING_DOWN = auto()
    STOPPED = auto()


@dataclass
class RuntimeConfig:
    """Configuration for the engine subprocess."""

    # Runner script speaking the line protocol
    runner_path: Path = RUNNER_PATH

    # Explicit executable (skips discovery when set)
    runtime_executable: Optional[str] = None

    # Candidate command names, preferred first
    candidates: list[str] = field(default_factory=lambda: list(DEFAULT_RUNTIME_CANDIDATES))

    # Timeout for process start and bootstrap (seconds)
    startup_timeout: float = 30.0

    # Timeout for requests (seconds); None waits forever
    request_timeout: Optional[float] = 60.0

    # Entries prepended to NODE_PATH
    node_path: list[str] = field(default_factory=list)

    # Extra environment variables for the subprocess
    env_vars: dict[str, str] = field(default_factory=dict)

    # Launch node with --inspect
    debug: bool = False

    @classmethod
    def from_settings(
        cls,
        settings: RuntimeSettings,
        node_path: Optional[list[str]] = None,
    ) -> "RuntimeConfig":
        """Build from the ``[runtime]`` section of the bridge configuration."""
        return cls(
            runtime_executable=settings.executable,
            candidates=list(settings.candidates),
            startup_timeout=settings.startup_timeout,
            request_timeout=settings.request_timeout,
            node_path=list(node_path or []),
            debug=settings.debug,
        )


@dataclass
class RuntimeStatus:
    """Status information about the engine subprocess."""

    state: RuntimeState
    executable: Optional[str] = None
    pid: Optional[int] = None
    pending_requests: int = 0
    error_message: Optional[str] = None


class StylusRuntimeBridge:
    """
    Bridge to the Node.js engine subprocess.

    Calls are synchronous: each one writes a request and blocks until the
    matching response arrives, the process dies, or the request times out.
    A lock serializes calls so concurrent threads never interleave on the
    pipe. A process that times out is killed and never reused.

    Example:
        bridge = StylusRuntimeBridge(config)
        bridge.start(build_script())
        css = bridge.call("compiler", ["body\\n  color red", {}, {}])
        bridge.stop()
    """

    def __init__(self, config: Optional[RuntimeConfig] = None):
        self._config = config or RuntimeConfig()
        self._protocol = JSONRPCProtocol()
        self._state = RuntimeState.NOT_STARTED
        self._process: Optional[subprocess.Popen] = None
        self._executable: Optional[str] = None
        self._reader_thread: Optional[threading.Thread] = None
        self._stderr_thread: Optional[threading.Thread] = None
        self._pending_futures: dict[int, Future] = {}
        self._futures_lock = threading.Lock()
        self._lock = threading.Lock()
        self._ready_event = threading.Event()
        self._ready_received = False
        self._stderr_tail: deque[str] = deque(maxlen=20)
        self._error_message: Optional[str] = None

    @property
    def state(self) -> RuntimeState:
        """Get the current runtime state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Check if the runtime is ready to accept requests."""
        return self._state == RuntimeState.READY

    @property
    def executable(self) -> Optional[str]:
        """Executable the running process was started with."""
        return self._executable

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def pending_request_count(self) -> int:
        return self._protocol.pending_count

    def start(self, script: str, filename: str = SCRIPT_FILENAME) -> None:
        """
        Start the engine subprocess and evaluate the bootstrap script.

        Args:
            script: Bootstrap source from ``build_script``
            filename: Name the script is compiled under

        Raises:
            RuntimeUnavailable: If no candidate starts or bootstrap fails
            BridgeError: If the bridge is already running
        """
        with self._lock:
            if self._state not in (RuntimeState.NOT_STARTED, RuntimeState.STOPPED):
                raise BridgeError(
                    f"Cannot start runtime in state: {self._state.name}",
                    reason=BridgeError.NOT_READY,
                )

            self._state = RuntimeState.STARTING
            self._error_message = None

            try:
                self._launch()
                self._bootstrap(script, filename)
            except RuntimeUnavailable as e:
                self._state = RuntimeState.ERROR
                self._error_message = e.message
                self._cleanup()
                raise

            self._state = RuntimeState.READY
            logger.info(f"Stylus engine started (pid {self.pid}, {self._executable})")

    def stop(self) -> None:
        """Stop the engine subprocess."""
        if self._state in (RuntimeState.NOT_STARTED, RuntimeState.STOPPED):
            return

        previous = self._state
        self._state = RuntimeState.SHUTTING_DOWN
        try:
            # A caller blocked on a hung request holds the lock; skip the
            # polite shutdown in that case and terminate below.
            if previous == RuntimeState.READY and self._lock.acquire(timeout=1.0):
                try:
                    self._send(self._protocol.notification(RunnerMethods.SHUTDOWN))
                except BridgeError as e:
                    logger.debug(f"Shutdown notification not delivered: {e}")
                finally:
                    self._lock.release()
            self._cleanup()
        finally:
            self._state = RuntimeState.STOPPED
            logger.info("Stylus engine stopped")

    def call(
        self,
        method: str,
        params: Optional[list[Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Call a function in the engine and wait for its result.

        Args:
            method: Engine function name
            params: Positional arguments
            timeout: Override of ``request_timeout``

        Returns:
            The deserialized result

        Raises:
            CompilationError: If the engine raised while running the function
            BridgeError: On any transport failure
        """
        if not self.is_ready:
            raise BridgeError(
                f"Runtime not ready (state: {self._state.name})",
                reason=BridgeError.NOT_READY,
            )

        if timeout is None:
            timeout = self._config.request_timeout

        with self._lock:
            response = self._request(method, params, timeout)

        if response.error is None:
            return response.result

        error = response.error
        if error.code == JSONRPCErrorCode.COMPILATION_ERROR:
            raise CompilationError.from_payload(error.message, error.data)
        raise BridgeError(
            f"Engine rejected {method}: {error.message}",
            reason=BridgeError.PROTOCOL,
            details={"code": error.code},
        )

    def ping(self, timeout: float = 5.0) -> bool:
        """Check that the engine answers requests."""
        try:
            return self.call(RunnerMethods.PING, timeout=timeout) == "pong"
        except (BridgeError, CompilationError) as e:
            logger.debug(f"Ping failed: {e}")
            return False

    def get_status(self) -> RuntimeStatus:
        """Get the current status of the engine subprocess."""
        return RuntimeStatus(
            state=self._state,
            executable=self._executable,
            pid=self.pid,
            pending_requests=self._protocol.pending_count,
            error_message=self._error_message,
        )

    def __enter__(self) -> "StylusRuntimeBridge":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # Private methods

    def _launch(self) -> None:
        """Start the first candidate executable that signals readiness."""
        if self._config.runtime_executable:
            executables = [self._config.runtime_executable]
        else:
            executables = [
                info.executable for info in discover_runtimes(self._config.candidates)
            ]
        if not executables:
            raise RuntimeUnavailable(
                "No Node.js runtime found. Please install Node.js.",
                details={"candidates": ", ".join(self._config.candidates)},
            )

        failures = []
        for executable in executables:
            try:
                self._spawn_process(executable)
            except OSError as e:
                failures.append(f"{executable}: {e}")
                logger.warning(f"Failed to launch {executable}: {e}")
                continue

            self._ready_event.wait(timeout=self._config.startup_timeout)
            if self._ready_received:
                self._executable = executable
                return

            if self._process is not None and self._process.poll() is not None:
                reason = f"exited with code {self._process.returncode}"
            else:
                reason = f"no ready signal within {self._config.startup_timeout}s"
            failures.append(f"{executable}: {reason}")
            logger.warning(f"Runtime {executable} did not start: {reason}")
            self._cleanup()

        details = {"attempts": "; ".join(failures)}
        if self._stderr_tail:
            details["stderr"] = self._stderr_tail[-1]
        raise RuntimeUnavailable("Failed to start Node.js runtime", details=details)

    def _bootstrap(self, script: str, filename: str) -> None:
        """Evaluate the bootstrap script inside the freshly started process."""
        try:
            response = self._request(
                RunnerMethods.BOOTSTRAP,
                [script, filename],
                self._config.startup_timeout,
            )
        except BridgeError as e:
            raise RuntimeUnavailable(f"Stylus engine failed to bootstrap: {e.message}") from e

        if response.error is not None:
            raise RuntimeUnavailable(
                f"Stylus engine failed to bootstrap: {response.error.message}",
                details={"executable": self._executable or ""},
            )

    def _spawn_process(self, executable: str) -> None:
        """Spawn the engine subprocess."""
        args = get_runtime_args(executable, self._config.runner_path, self._config.debug)

        env = dict(os.environ)
        env.update(self._config.env_vars)
        node_path = list(self._config.node_path)
        if env.get("NODE_PATH"):
            node_path.append(env["NODE_PATH"])
        if node_path:
            env["NODE_PATH"] = os.pathsep.join(node_path)

        logger.debug(f"Starting Stylus engine: {' '.join(args)}")

        self._ready_event.clear()
        self._ready_received = False
        self._stderr_tail.clear()

        self._process = subprocess.Popen(
            args,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
            text=True,
            encoding="utf-8",
            bufsize=1,
        )

        self._reader_thread = threading.Thread(
            target=self._read_loop,
            args=(self._process,),
            name="stylus-engine-reader",
            daemon=True,
        )
        self._stderr_thread = threading.Thread(
            target=self._drain_stderr,
            args=(self._process,),
            name="stylus-engine-stderr",
            daemon=True,
        )
        self._reader_thread.start()
        self._stderr_thread.start()

    def _read_loop(self, process: subprocess.Popen) -> None:
        """Read and dispatch messages from the subprocess until EOF."""
        try:
            for line in process.stdout:
                line = line.strip()
                if line:
                    self._handle_message(line)
        except (OSError, ValueError) as e:
            # ValueError: stdout closed underneath us during cleanup
            logger.debug(f"Read loop stopped: {e}")
        finally:
            self._on_process_exit(process)

    def _drain_stderr(self, process: subprocess.Popen) -> None:
        """Forward engine stderr to the log."""
        try:
            for line in process.stderr:
                line = line.rstrip()
                if line:
                    self._stderr_tail.append(line)
                    logger.debug(f"engine: {line}")
        except (OSError, ValueError) as e:
            logger.debug(f"Stderr drain stopped: {e}")

    def _handle_message(self, line: str) -> None:
        """Handle one line from the subprocess."""
        try:
            message = decode_message(line)
        except MalformedMessage as e:
            self._fail_pending(BridgeError(
                f"Malformed response from engine: {e}",
                reason=BridgeError.PROTOCOL,
                details={"line": line[:200]},
            ))
            return

        if isinstance(message, Response):
            self._handle_response(message)
        elif message.method == RunnerMethods.READY:
            self._ready_received = True
            self._ready_event.set()
        else:
            logger.debug(f"Ignoring engine notification: {message.method}")

    def _handle_response(self, response: Response) -> None:
        """Complete the future waiting on ``response``."""
        if response.id is None:
            # Error about a request the runner could not even parse
            message = response.error.message if response.error else "unknown"
            self._fail_pending(BridgeError(
                f"Engine could not parse request: {message}",
                reason=BridgeError.PROTOCOL,
            ))
            return

        self._protocol.resolve(response)
        with self._futures_lock:
            future = self._pending_futures.pop(response.id, None)
        if future is None:
            logger.warning(f"Dropping response for unknown request {response.id}")
            return
        if not future.done():
            future.set_result(response)

    def _on_process_exit(self, process: subprocess.Popen) -> None:
        """Called by the reader thread once stdout reaches EOF."""
        if process is not self._process:
            return

        try:
            returncode = process.wait(timeout=1.0)
        except subprocess.TimeoutExpired:
            returncode = None

        message = f"Engine process exited (code {returncode})"
        if self._state in (RuntimeState.READY, RuntimeState.STARTING):
            logger.warning(message)
            self._state = RuntimeState.ERROR
            self._error_message = message

        details = {"stderr": self._stderr_tail[-1]} if self._stderr_tail else None
        self._fail_pending(BridgeError(message, reason=BridgeError.EXITED, details=details))
        # Wake a start() waiting for the ready signal
        self._ready_event.set()

    def _request(
        self,
        method: str,
        params: Optional[list[Any]],
        timeout: Optional[float],
    ) -> Response:
        """Send a request and wait for its response. Caller holds ``_lock``."""
        request = self._protocol.request(method, params)
        future: Future = Future()
        with self._futures_lock:
            self._pending_futures[request.id] = future

        try:
            self._send(request)
            try:
                return future.result(timeout=timeout)
            except FutureTimeoutError:
                self._abandon(f"{method} timed out after {timeout}s")
                raise BridgeError.timeout(timeout)
        finally:
            self._protocol.discard(request.id)
            with self._futures_lock:
                self._pending_futures.pop(request.id, None)

    def _send(self, request: Request) -> None:
        """Write one request line to the subprocess."""
        process = self._process
        if process is None or process.stdin is None or process.poll() is not None:
            raise BridgeError("Engine process is not running", reason=BridgeError.EXITED)

        try:
            message = request.encode()
        except (TypeError, ValueError) as e:
            raise BridgeError(
                f"Arguments for {request.method} are not JSON-serializable: {e}",
                reason=BridgeError.PROTOCOL,
            ) from e

        try:
            process.stdin.write(message + "\n")
            process.stdin.flush()
        except (OSError, ValueError) as e:
            raise BridgeError(f"Failed to write to engine: {e}", reason=BridgeError.IO) from e

    def _abandon(self, reason: str) -> None:
        """Kill a process suspected of being wedged; it is never reused."""
        logger.warning(f"Killing Stylus engine: {reason}")
        self._state = RuntimeState.ERROR
        self._error_message = reason
        if self._process is not None and self._process.poll() is None:
            self._process.kill()
        self._cleanup()

    def _fail_pending(self, error: BridgeError) -> None:
        with self._futures_lock:
            futures = list(self._pending_futures.values())
            self._pending_futures.clear()
        for future in futures:
            if not future.done():
                future.set_exception(error)

    def _cleanup(self) -> None:
        """Clean up subprocess resources."""
        process = self._process

        if process is not None:
            if process.poll() is None and process.stdin is not None:
                # Closing stdin lets the runner exit on its own
                try:
                    process.stdin.close()
                except OSError as e:
                    logger.debug(f"Closing engine stdin failed: {e}")
                try:
                    process.wait(timeout=2.0)
                except subprocess.TimeoutExpired:
                    process.terminate()
                    try:
                        process.wait(timeout=5.0)
                    except subprocess.TimeoutExpired:
                        process.kill()
                        process.wait()

        current = threading.current_thread()
        for thread in (self._reader_thread, self._stderr_thread):
            if thread is not None and thread is not current:
                thread.join(timeout=2.0)
        self._reader_thread = None
        self._stderr_thread = None

        if process is not None:
            for stream in (process.stdin, process.stdout, process.stderr):
                if stream is not None:
                    try:
                        stream.close()
                    except OSError as e:
                        logger.debug(f"Closing engine stream failed: {e}")
            self._process = None

        self._fail_pending(BridgeError("Runtime stopped", reason=BridgeError.EXITED))
        self._protocol.clear()

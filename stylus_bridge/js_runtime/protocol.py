"""
Line protocol spoken with ``runner.js``.

Every message is a single JSON-RPC 2.0 object on its own line. The bridge
sends requests (and the ``shutdown`` notification); the runner answers
each request with exactly one response and announces itself with a
``ready`` notification when it starts.

This module also defines the closed set of engine operations the bridge
may invoke.
"""

from __future__ import annotations

import itertools
import json
import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional, Union


class JSONRPCErrorCode(IntEnum):
    """Error codes produced by ``runner.js``."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INTERNAL_ERROR = -32603

    RUNTIME_NOT_READY = -32002
    BOOTSTRAP_ERROR = -32010
    COMPILATION_ERROR = -32011


class JSONRPCError(Exception):
    """Error member of a response."""

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.data = data

    @classmethod
    def from_payload(cls, payload: Any) -> "JSONRPCError":
        """Build from the ``error`` member, tolerating a malformed one."""
        if not isinstance(payload, dict):
            return cls(JSONRPCErrorCode.INTERNAL_ERROR, str(payload))
        code = payload.get("code")
        return cls(
            code if isinstance(code, int) else JSONRPCErrorCode.INTERNAL_ERROR,
            str(payload.get("message", "Unknown error")),
            payload.get("data"),
        )


class MalformedMessage(ValueError):
    """A line from the runner that is not a protocol message."""


@dataclass
class Request:
    """Outgoing request; a notification when ``id`` is None."""

    method: str
    params: list[Any] = field(default_factory=list)
    id: Optional[int] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def encode(self) -> str:
        """Serialize to one line, without the trailing newline.

        Raises:
            TypeError: If a parameter is not JSON-serializable
            ValueError: If a parameter is NaN or infinite
        """
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": self.method}
        if self.params:
            message["params"] = self.params
        if self.id is not None:
            message["id"] = self.id
        # NaN/Infinity are not valid JSON and JSON.parse rejects them
        return json.dumps(message, ensure_ascii=False, allow_nan=False)


@dataclass
class Response:
    """Answer to a request."""

    id: Optional[int]
    result: Any = None
    error: Optional[JSONRPCError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Notification:
    """Message from the runner that needs no answer, such as ``ready``."""

    method: str
    params: Any = None


Message = Union[Response, Notification]


def decode_message(line: str) -> Message:
    """Parse one line received from the runner.

    Raises:
        MalformedMessage: If the line is not JSON or not a JSON-RPC message
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedMessage(f"not JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedMessage(f"expected an object, got {type(data).__name__}")

    if "result" in data or "error" in data:
        error = data.get("error")
        return Response(
            id=data.get("id"),
            result=data.get("result"),
            error=JSONRPCError.from_payload(error) if error is not None else None,
        )
    if isinstance(data.get("method"), str):
        return Notification(data["method"], data.get("params"))
    raise MalformedMessage("neither a response nor a notification")


class JSONRPCProtocol:
    """
    Hands out request ids and remembers which requests are unanswered.

    Ids are consecutive integers, unique for the lifetime of the object.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self._pending: dict[int, str] = {}
        self._lock = threading.Lock()

    def request(self, method: str, params: Optional[list[Any]] = None) -> Request:
        """Create a tracked request for ``method``."""
        with self._lock:
            request = Request(method, list(params or []), next(self._ids))
            self._pending[request.id] = method
        return request

    @staticmethod
    def notification(method: str) -> Request:
        """Create an untracked notification."""
        return Request(method)

    def resolve(self, response: Response) -> Optional[str]:
        """Forget the request ``response`` answers; returns its method name."""
        if response.id is None:
            return None
        with self._lock:
            return self._pending.pop(response.id, None)

    def discard(self, request_id: int) -> None:
        """Stop tracking a request that will not be answered."""
        with self._lock:
            self._pending.pop(request_id, None)

    def clear(self) -> int:
        """Forget every pending request; returns how many there were."""
        with self._lock:
            count = len(self._pending)
            self._pending.clear()
        return count

    @property
    def pending_count(self) -> int:
        return len(self._pending)


class RunnerMethods:
    """Lifecycle methods understood by ``runner.js``."""

    READY = "ready"
    BOOTSTRAP = "bootstrap"
    PING = "ping"
    SHUTDOWN = "shutdown"


class Operation(Enum):
    """Engine functions defined by the driver script.

    Each member maps to the global function name inside the engine and
    knows how many positional arguments it takes.
    """

    COMPILE = "compiler"
    CONVERT = "convert"
    VERSION = "version"

    @property
    def method(self) -> str:
        return self.value

    @property
    def arity(self) -> int:
        return _ARITY[self]

    def build_params(self, *args: Any) -> list[Any]:
        """Build the positional parameter list for this operation.

        Raises:
            TypeError: If the argument count does not match
        """
        if len(args) != self.arity:
            raise TypeError(
                f"{self.method}() takes {self.arity} argument(s), got {len(args)}"
            )
        return list(args)


_ARITY = {
    Operation.COMPILE: 3,  # source, options, plugins
    Operation.CONVERT: 1,  # source
    Operation.VERSION: 0,
}

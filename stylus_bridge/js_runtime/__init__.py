"""Node.js runtime bridge for the Stylus engine.

Runs the Stylus compiler in a Node.js subprocess and talks to it with
JSON-RPC over stdio.
"""

from stylus_bridge.js_runtime.bridge import (
    RuntimeConfig,
    RuntimeState,
    RuntimeStatus,
    StylusRuntimeBridge,
)
from stylus_bridge.js_runtime.discovery import (
    RuntimeInfo,
    discover_runtimes,
)
from stylus_bridge.js_runtime.manager import RuntimeManager
from stylus_bridge.js_runtime.protocol import (
    JSONRPCError,
    JSONRPCProtocol,
    Operation,
    Request,
    Response,
    decode_message,
)
from stylus_bridge.js_runtime.script import build_script

__all__ = [
    # Bridge
    "StylusRuntimeBridge",
    "RuntimeConfig",
    "RuntimeState",
    "RuntimeStatus",
    # Protocol
    "JSONRPCError",
    "JSONRPCProtocol",
    "Operation",
    "Request",
    "Response",
    "decode_message",
    # Discovery
    "RuntimeInfo",
    "discover_runtimes",
    # Script
    "build_script",
    # Manager
    "RuntimeManager",
]

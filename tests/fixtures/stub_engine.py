"""Stand-in for runner.js used by the transport tests.

Speaks the same line-delimited JSON-RPC protocol without needing Node.js.
``compiler`` echoes its arguments back as JSON so tests can inspect what
the bridge sent. A few magic sources trigger failure modes:

- ``@error``: compilation error with location data
- ``@hang``: never answers
- ``@exit``: process exits mid-request
- ``@garbage``: writes a line that is not JSON
- ``@number``: returns a number instead of a string

Environment switches: ``STUB_NO_READY`` (never signal readiness),
``STUB_EXIT_AT_START`` (exit before signalling), ``STUB_FAIL_BOOTSTRAP``
(reject the bootstrap script).
"""

import json
import os
import sys
import time

COMPILATION_ERROR = -32011
BOOTSTRAP_ERROR = -32010
METHOD_NOT_FOUND = -32601

state = {"script": None, "filename": None}


def send(message):
    message["jsonrpc"] = "2.0"
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def fail(request_id, code, message, data=None):
    error = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    send({"id": request_id, "error": error})


def compiler(request_id, source, options, plugins):
    if source == "@error":
        return fail(request_id, COMPILATION_ERROR, "expected indent, got outdent", {
            "name": "ParseError",
            "filename": options.get("filename"),
            "lineno": 2,
            "column": 3,
        })
    if source == "@hang":
        while True:
            time.sleep(1)
    if source == "@exit":
        sys.exit(3)
    if source == "@garbage":
        sys.stdout.write("this is not json\n")
        sys.stdout.flush()
        return None
    if source == "@number":
        return send({"id": request_id, "result": 42})
    echo = {"source": source, "options": options, "plugins": plugins}
    return send({"id": request_id, "result": json.dumps(echo, sort_keys=True)})


def handle(request):
    method = request.get("method")
    request_id = request.get("id")
    params = request.get("params") or []

    if method == "shutdown":
        sys.exit(0)
    if request_id is None:
        return None

    if method == "ping":
        return send({"id": request_id, "result": "pong"})
    if method == "bootstrap":
        if os.environ.get("STUB_FAIL_BOOTSTRAP"):
            return fail(request_id, BOOTSTRAP_ERROR, "Cannot find module 'stylus'")
        state["script"], state["filename"] = params[0], params[1]
        return send({"id": request_id, "result": True})
    if method == "script":
        return send({"id": request_id, "result": [state["script"], state["filename"]]})
    if method == "env":
        return send({"id": request_id, "result": os.environ.get("NODE_PATH")})
    if method == "compiler":
        return compiler(request_id, *params)
    if method == "convert":
        return send({"id": request_id, "result": "converted:" + params[0]})
    if method == "version":
        return send({"id": request_id, "result": "0.0.0-stub"})
    return fail(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")


def main():
    if os.environ.get("STUB_EXIT_AT_START"):
        sys.stderr.write("stub engine refusing to start\n")
        sys.exit(1)
    if not os.environ.get("STUB_NO_READY"):
        send({"method": "ready"})

    for line in sys.stdin:
        line = line.strip()
        if line:
            handle(json.loads(line))


if __name__ == "__main__":
    main()

"""Tests for the line protocol spoken with runner.js."""

import json

import pytest

from stylus_bridge.js_runtime.protocol import (
    JSONRPCError,
    JSONRPCErrorCode,
    JSONRPCProtocol,
    MalformedMessage,
    Notification,
    Operation,
    Request,
    Response,
    RunnerMethods,
    decode_message,
)


class TestRequestEncoding:
    """Test outgoing lines."""

    def test_request(self):
        line = Request("compiler", ["a", {}, {}], id=7).encode()
        assert json.loads(line) == {
            "jsonrpc": "2.0",
            "method": "compiler",
            "params": ["a", {}, {}],
            "id": 7,
        }

    def test_notification_has_no_id_or_params(self):
        request = Request(RunnerMethods.SHUTDOWN)
        assert request.is_notification
        assert json.loads(request.encode()) == {"jsonrpc": "2.0", "method": "shutdown"}

    def test_single_line(self):
        line = Request("compiler", ["body\n  color red\n"], id=1).encode()
        assert "\n" not in line
        assert json.loads(line)["params"] == ["body\n  color red\n"]

    def test_non_ascii_is_kept(self):
        assert "é" in Request("convert", ['content: "é"'], id=1).encode()

    def test_nan_is_rejected(self):
        with pytest.raises(ValueError):
            Request("compiler", [float("nan")], id=1).encode()

    def test_unserializable_is_rejected(self):
        with pytest.raises(TypeError):
            Request("compiler", [object()], id=1).encode()


class TestDecodeMessage:
    """Test incoming lines."""

    def test_result(self):
        message = decode_message('{"jsonrpc": "2.0", "id": 3, "result": "css"}')
        assert message == Response(id=3, result="css")
        assert message.ok

    def test_null_result(self):
        message = decode_message('{"jsonrpc": "2.0", "id": 3, "result": null}')
        assert isinstance(message, Response)
        assert message.ok
        assert message.result is None

    def test_error(self):
        message = decode_message(json.dumps({
            "jsonrpc": "2.0",
            "id": 3,
            "error": {"code": -32011, "message": "boom", "data": {"lineno": 1}},
        }))
        assert not message.ok
        assert message.error.code == JSONRPCErrorCode.COMPILATION_ERROR
        assert message.error.message == "boom"
        assert message.error.data == {"lineno": 1}

    def test_ready_notification(self):
        message = decode_message('{"jsonrpc": "2.0", "method": "ready"}')
        assert message == Notification("ready")

    @pytest.mark.parametrize("line", [
        "not json",
        "[1, 2]",
        '"ready"',
        '{"jsonrpc": "2.0", "id": 1}',
        '{"jsonrpc": "2.0", "method": 5}',
    ])
    def test_malformed(self, line):
        with pytest.raises(MalformedMessage):
            decode_message(line)


class TestJSONRPCError:
    """Test error payload handling."""

    def test_missing_members(self):
        error = JSONRPCError.from_payload({})
        assert error.code == JSONRPCErrorCode.INTERNAL_ERROR
        assert error.message == "Unknown error"
        assert error.data is None

    def test_non_dict_payload(self):
        error = JSONRPCError.from_payload("exploded")
        assert error.code == JSONRPCErrorCode.INTERNAL_ERROR
        assert error.message == "exploded"

    def test_non_integer_code(self):
        assert JSONRPCError.from_payload({"code": "x", "message": "m"}).code == JSONRPCErrorCode.INTERNAL_ERROR


class TestJSONRPCProtocol:
    """Test request tracking."""

    def test_ids_are_sequential(self):
        protocol = JSONRPCProtocol()
        assert [protocol.request("ping").id for _ in range(3)] == [1, 2, 3]

    def test_resolve(self):
        protocol = JSONRPCProtocol()
        request = protocol.request("ping")
        assert protocol.pending_count == 1

        assert protocol.resolve(Response(id=request.id, result="pong")) == "ping"
        assert protocol.pending_count == 0

    def test_resolve_unknown(self):
        protocol = JSONRPCProtocol()
        assert protocol.resolve(Response(id=99)) is None
        assert protocol.resolve(Response(id=None)) is None

    def test_notification_is_not_tracked(self):
        protocol = JSONRPCProtocol()
        request = protocol.notification(RunnerMethods.SHUTDOWN)
        assert request.id is None
        assert protocol.pending_count == 0

    def test_params_are_copied(self):
        params = ["src"]
        request = JSONRPCProtocol().request("convert", params)
        params.append("other")
        assert request.params == ["src"]

    def test_discard_and_clear(self):
        protocol = JSONRPCProtocol()
        first = protocol.request("ping")
        protocol.request("ping")
        protocol.request("ping")

        protocol.discard(first.id)
        protocol.discard(first.id)

        assert protocol.clear() == 2
        assert protocol.pending_count == 0


class TestOperation:
    """Test the closed set of engine operations."""

    def test_method_names(self):
        assert Operation.COMPILE.method == "compiler"
        assert Operation.CONVERT.method == "convert"
        assert Operation.VERSION.method == "version"

    def test_arity(self):
        assert Operation.COMPILE.arity == 3
        assert Operation.CONVERT.arity == 1
        assert Operation.VERSION.arity == 0

    def test_build_params_preserves_order(self):
        params = Operation.COMPILE.build_params("src", {"compress": True}, {"nib": {}})
        assert params == ["src", {"compress": True}, {"nib": {}}]

    def test_version_takes_no_arguments(self):
        assert Operation.VERSION.build_params() == []

    @pytest.mark.parametrize("operation,args", [
        (Operation.COMPILE, ("src",)),
        (Operation.CONVERT, ()),
        (Operation.VERSION, ("extra",)),
    ])
    def test_wrong_arity(self, operation, args):
        with pytest.raises(TypeError):
            operation.build_params(*args)

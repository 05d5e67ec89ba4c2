"""
Test suite for the JSON-RPC message model.
"""

import json

import pytest

from mcpclient.errors import MessageDecodeError, ResultDecodeError
from mcpclient.messages import (
    METHOD_NOT_FOUND,
    Notification,
    Request,
    Response,
    Tool,
    ToolCallResult,
    decode_content,
    decode_response,
    decode_tools,
    is_peer_initiated,
)


class TestRequestEncoding:
    """Tests for outgoing envelopes."""

    def test_request_envelope(self):
        """Test the fixed request envelope."""
        request = Request(3, "tools/call", {"name": "query", "arguments": {"query": "SELECT 1"}})

        assert json.loads(request.encode()) == {
            "jsonrpc": "2.0",
            "id": 3,
            "method": "tools/call",
            "params": {"name": "query", "arguments": {"query": "SELECT 1"}},
        }

    def test_nested_params_are_lossless(self):
        """Test maps, arrays, scalars and null survive encoding."""
        params = {
            "nested": {"list": [1, 2.5, "three", None, True, {"deep": []}]},
            "empty": {},
            "unicode": "naïve ✓",
            "null": None,
        }

        decoded = json.loads(Request(1, "x", params).encode())

        assert decoded["params"] == params

    def test_request_default_params(self):
        """Test that params default to an empty object."""
        assert Request(2, "tools/list").to_dict()["params"] == {}

    def test_notification_has_no_id(self):
        """Test the notification envelope."""
        encoded = json.loads(Notification("notifications/initialized").encode())

        assert encoded == {"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}}


class TestResponseDecoding:
    """Tests for incoming envelopes."""

    def test_result_response(self):
        """Test a successful response."""
        response = decode_response('{"jsonrpc":"2.0","id":2,"result":{"tools":[]}}')

        assert response.id == 2
        assert response.result == {"tools": []}
        assert response.error is None
        assert response.is_error is False

    def test_error_response(self):
        """Test an error response."""
        response = decode_response(
            '{"id":4,"error":{"code":-32601,"message":"method not found"}}'
        )

        assert response.is_error is True
        assert response.error.code == METHOD_NOT_FOUND
        assert response.error.message == "method not found"
        assert response.result is None

    def test_error_takes_precedence(self):
        """Test that error wins over a result in the same envelope."""
        response = Response.from_dict({
            "id": 5,
            "result": {"content": []},
            "error": {"code": -1, "message": "boom", "data": {"why": "test"}},
        })

        assert response.is_error is True
        assert response.error.data == {"why": "test"}

    def test_unknown_result_shape_passes_through(self):
        """Test that result contents are not validated."""
        response = decode_response('{"id":1,"result":{"anything":[1,{"x":null}]}}')

        assert response.result == {"anything": [1, {"x": None}]}

    @pytest.mark.parametrize("payload", [
        '{"jsonrpc":"2.0","result":{}}',
        '{"id":"7","result":{}}',
        '{"id":true,"result":{}}',
        '{"id":1,"error":"bad"}',
        '[1, 2]',
        '{not json',
    ])
    def test_invalid_envelopes(self, payload):
        """Test payloads that are not usable responses."""
        with pytest.raises(MessageDecodeError):
            decode_response(payload)

    def test_is_peer_initiated(self):
        """Test detection of server notifications and server requests."""
        assert is_peer_initiated({"jsonrpc": "2.0", "method": "notifications/message"}) is True
        assert is_peer_initiated({"jsonrpc": "2.0", "id": 2, "method": "ping"}) is True
        assert is_peer_initiated({"jsonrpc": "2.0", "id": 1, "result": {}}) is False


class TestResultRecords:
    """Tests for tool and content records."""

    def test_decode_tools(self):
        """Test a tools/list result."""
        tools = decode_tools({
            "tools": [{"name": "query", "description": "run a query", "inputSchema": {}}],
        })

        assert tools == [Tool(name="query", description="run a query", input_schema={})]

    def test_tool_without_description(self):
        """Test that a missing description becomes empty."""
        tool = Tool.from_dict({"name": "ping", "inputSchema": {"type": "object"}})

        assert tool.description == ""
        assert tool.input_schema == {"type": "object"}

    @pytest.mark.parametrize("result", [
        None,
        {},
        {"tools": {}},
        {"tools": ["query"]},
        {"tools": [{"description": "no name", "inputSchema": {}}]},
        {"tools": [{"name": "query", "inputSchema": "object"}]},
        {"tools": [{"name": "query", "description": 5, "inputSchema": {}}]},
        [],
    ])
    def test_decode_tools_rejects_bad_shapes(self, result):
        """Test missing or mistyped tool fields."""
        with pytest.raises(ResultDecodeError):
            decode_tools(result)

    def test_decode_text_content(self):
        """Test a text content item."""
        content = decode_content({"content": [{"type": "text", "text": "ok"}]})

        assert len(content) == 1
        assert content[0].type == "text"
        assert content[0].text == "ok"
        assert content[0].data is None
        assert content[0].mime_type is None

    def test_decode_binary_content(self):
        """Test an image content item."""
        item = ToolCallResult.from_dict({"type": "image", "data": "aGk=", "mimeType": "image/png"})

        assert item == ToolCallResult(type="image", text=None, data="aGk=", mime_type="image/png")

    @pytest.mark.parametrize("result", [
        {},
        {"content": "ok"},
        {"content": [{"text": "no type"}]},
        {"content": [{"type": "text", "text": 42}]},
        {"content": [{"type": "image", "data": "x", "mimeType": 1}]},
    ])
    def test_decode_content_rejects_bad_shapes(self, result):
        """Test missing or mistyped content fields."""
        with pytest.raises(ResultDecodeError):
            decode_content(result)

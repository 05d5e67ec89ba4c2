"""
JSON-RPC message model for the MCP SSE client.

Requests and notifications are encoded as fixed envelopes; responses are
decoded into `Response` objects carrying either a result map or a
`ResponseError`. Nothing beyond the envelope fields is validated here, the
tool and tool-call records are decoded on demand by the client.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import MessageDecodeError, ResultDecodeError


JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


@dataclass
class Request:
    """A JSON-RPC request awaiting a correlated response."""
    id: int
    method: str
    params: Dict[str, Any] = field(default_factory=dict)
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }

    def encode(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass
class Notification:
    """A JSON-RPC notification (no id, no response)."""
    method: str
    params: Dict[str, Any] = field(default_factory=dict)
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jsonrpc": self.jsonrpc,
            "method": self.method,
            "params": self.params,
        }

    def encode(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass
class ResponseError:
    """Error object of a JSON-RPC response."""
    code: int
    message: str
    data: Any = None


@dataclass
class Response:
    """A JSON-RPC response. `error` takes precedence over `result`."""
    id: int
    result: Optional[Dict[str, Any]] = None
    error: Optional[ResponseError] = None
    jsonrpc: str = JSONRPC_VERSION

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Response":
        """
        Build a response from a decoded JSON object.

        Args:
            data: Decoded response envelope

        Returns:
            Response instance

        Raises:
            MessageDecodeError: If the id is missing or the error object is malformed
        """
        msg_id = data.get("id")
        if isinstance(msg_id, bool) or not isinstance(msg_id, int):
            raise MessageDecodeError(f"Response id must be an integer, got: {msg_id!r}")

        error = None
        raw_error = data.get("error")
        if raw_error is not None:
            if not isinstance(raw_error, dict):
                raise MessageDecodeError(f"Response error must be an object, got: {raw_error!r}")
            error = ResponseError(
                code=raw_error.get("code", INTERNAL_ERROR),
                message=str(raw_error.get("message", "")),
                data=raw_error.get("data"),
            )

        return cls(
            id=msg_id,
            result=data.get("result"),
            error=error,
            jsonrpc=data.get("jsonrpc", JSONRPC_VERSION),
        )


def decode_payload(payload: str) -> Dict[str, Any]:
    """
    Decode the JSON payload of a `message` event.

    Raises:
        MessageDecodeError: If the payload is not a JSON object
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Invalid JSON in message payload: {e}") from e

    if not isinstance(data, dict):
        raise MessageDecodeError("Message payload must be a JSON object")
    return data


def is_peer_initiated(data: Dict[str, Any]) -> bool:
    """
    Check if a payload was initiated by the server rather than answering us.

    Server notifications and server requests (e.g. `ping`) both carry a
    method; only responses lack one. A server request has an id from the
    server's own sequence, so it must never be matched against ours.
    """
    return "method" in data


def decode_response(payload: str) -> Response:
    """Decode a `message` event payload into a Response."""
    return Response.from_dict(decode_payload(payload))


@dataclass
class Tool:
    """A tool advertised by the peer's `tools/list`."""
    name: str
    description: str
    input_schema: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Any) -> "Tool":
        if not isinstance(data, dict):
            raise ResultDecodeError(f"Tool entry must be an object, got: {data!r}")

        name = data.get("name")
        if not isinstance(name, str):
            raise ResultDecodeError(f"Tool name must be a string, got: {name!r}")

        description = data.get("description") or ""
        if not isinstance(description, str):
            raise ResultDecodeError(f"Description of tool '{name}' must be a string")

        input_schema = data.get("inputSchema")
        if not isinstance(input_schema, dict):
            raise ResultDecodeError(f"inputSchema of tool '{name}' must be an object")

        return cls(name=name, description=description, input_schema=input_schema)


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ResultDecodeError(f"Content field '{key}' must be a string, got: {value!r}")
    return value


@dataclass
class ToolCallResult:
    """One content item returned by `tools/call`."""
    type: str
    text: Optional[str] = None
    data: Optional[str] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ToolCallResult":
        if not isinstance(data, dict):
            raise ResultDecodeError(f"Content item must be an object, got: {data!r}")

        content_type = data.get("type")
        if not isinstance(content_type, str):
            raise ResultDecodeError(f"Content type must be a string, got: {content_type!r}")

        return cls(
            type=content_type,
            text=_optional_str(data, "text"),
            data=_optional_str(data, "data"),
            mime_type=_optional_str(data, "mimeType"),
        )


def _result_map(result: Any) -> Dict[str, Any]:
    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ResultDecodeError(f"Result must be an object, got: {result!r}")
    return result


def decode_tools(result: Optional[Dict[str, Any]]) -> List[Tool]:
    """Translate a `tools/list` result into Tool records."""
    tools = _result_map(result).get("tools")
    if not isinstance(tools, list):
        raise ResultDecodeError("tools/list result has no 'tools' array")
    return [Tool.from_dict(entry) for entry in tools]


def decode_content(result: Optional[Dict[str, Any]]) -> List[ToolCallResult]:
    """Translate a `tools/call` result into ToolCallResult records."""
    content = _result_map(result).get("content")
    if not isinstance(content, list):
        raise ResultDecodeError("tools/call result has no 'content' array")
    return [ToolCallResult.from_dict(item) for item in content]


# Export symbols
__all__ = [
    "JSONRPC_VERSION",
    "PROTOCOL_VERSION",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "Request",
    "Notification",
    "Response",
    "ResponseError",
    "Tool",
    "ToolCallResult",
    "decode_payload",
    "decode_response",
    "decode_tools",
    "decode_content",
    "is_peer_initiated",
]

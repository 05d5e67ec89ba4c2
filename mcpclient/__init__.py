"""
MCP SSE Client Package

A client for calling tools on MCP servers that push responses over a
Server-Sent Events stream.
"""

from .client import MCPClient
from .config import Config
from .errors import (
    ClientError,
    ConfigError,
    ConnectionLostError,
    FramingError,
    MessageDecodeError,
    ProtocolError,
    RequestTimeoutError,
    ResultDecodeError,
    TransportError,
)
from .messages import (
    Notification,
    Request,
    Response,
    ResponseError,
    Tool,
    ToolCallResult,
)
from .sse import SSETransport, Transport, TransportConfig, TransportState

__version__ = "1.0.0"
__all__ = [
    "ClientError",
    "Config",
    "ConfigError",
    "ConnectionLostError",
    "FramingError",
    "MCPClient",
    "MessageDecodeError",
    "Notification",
    "ProtocolError",
    "Request",
    "RequestTimeoutError",
    "Response",
    "ResponseError",
    "ResultDecodeError",
    "SSETransport",
    "Tool",
    "ToolCallResult",
    "Transport",
    "TransportConfig",
    "TransportError",
    "TransportState",
]

"""
SSE Transport Package

This package provides the stream framing and HTTP transport used by the
MCP client: an incremental Server-Sent Events scanner and a transport that
holds the push stream open while posting requests to the endpoint the
server announces.

Usage:
    from mcpclient.sse import SSETransport, TransportConfig

    transport = SSETransport(
        "http://localhost:8777",
        headers={"Authorization": "Bearer abcd"},
        config=TransportConfig(endpoint_timeout=10.0),
    )
"""

from .framing import (
    ENDPOINT_EVENT,
    MESSAGE_EVENT,
    SSEEvent,
    SSEFramer,
    parse_stream,
)

from .transport import (
    SSETransport,
    Transport,
    TransportConfig,
    TransportState,
)


__all__ = [
    # Framing exports
    "ENDPOINT_EVENT",
    "MESSAGE_EVENT",
    "SSEEvent",
    "SSEFramer",
    "parse_stream",
    # Transport exports
    "SSETransport",
    "Transport",
    "TransportConfig",
    "TransportState",
]

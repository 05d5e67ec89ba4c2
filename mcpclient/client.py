"""
MCP client: request correlation over an asynchronous transport.

Every request gets a fresh id from a per-client counter. Responses arrive
on the transport's receive loop in any order and are matched back to the
caller waiting on that id. A response that shows up before its caller
starts waiting is buffered until the wait begins.

All correlation state lives on the event loop thread and is only touched
by synchronous code, so `dispatch` and `wait_for` never interleave inside
an update.
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional, Union

from .errors import (
    ClientError,
    ConnectionLostError,
    ProtocolError,
    RequestTimeoutError,
)
from .messages import (
    PROTOCOL_VERSION,
    Notification,
    Request,
    Response,
    Tool,
    ToolCallResult,
    decode_content,
    decode_tools,
)
from .sse.transport import Transport


# Configure logging
logger = logging.getLogger(__name__)


class MCPClient:
    """
    Client for calling tools exposed by an MCP server.

    Usage:
        client = MCPClient("spark", "1.0.0")
        await client.connect(SSETransport("http://localhost:8777"))
        tools = await client.list_tools()
        content = await client.call_tool("query", {"query": "SELECT 1"})
    """

    # Abandoned ids remembered for dropping late responses; oldest evicted first
    ABANDONED_LIMIT = 1024

    def __init__(
        self,
        name: str,
        version: str,
        request_timeout: Optional[float] = 30.0,
        capabilities: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the client.

        Args:
            name: Client name announced in the handshake
            version: Client version announced in the handshake
            request_timeout: Default deadline for each call in seconds,
                None to wait indefinitely
            capabilities: Client capabilities announced in the handshake
        """
        self.name = name
        self.version = version
        self.request_timeout = request_timeout
        self.capabilities = capabilities or {}
        self.server_info: Optional[Dict[str, Any]] = None

        self._transport: Optional[Transport] = None
        self._ids = itertools.count(1)
        self._last_id = 0
        # Per id: a future while a caller waits, a Response while buffered
        self._entries: Dict[int, Union[asyncio.Future, Response]] = {}
        # Insertion ordered, used as a bounded set
        self._abandoned: Dict[int, None] = {}
        self._connection_error: Optional[ConnectionLostError] = None

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._connection_error is None

    @property
    def last_request_id(self) -> int:
        """Get the most recently issued request id (0 before the first)."""
        return self._last_id

    @property
    def pending_count(self) -> int:
        """Get the number of buffered responses nobody has waited for yet."""
        return sum(1 for entry in self._entries.values() if isinstance(entry, Response))

    @property
    def waiting_count(self) -> int:
        """Get the number of callers currently waiting for a response."""
        return sum(1 for entry in self._entries.values() if isinstance(entry, asyncio.Future))

    def _next_id(self) -> int:
        self._last_id = next(self._ids)
        return self._last_id

    async def connect(self, transport: Transport, timeout: Optional[float] = None) -> None:
        """
        Start the transport and perform the initialize handshake.

        If starting or the handshake fails, the transport is closed and the
        client stays disconnected, so `connect` may be retried with a new
        transport.

        Args:
            transport: Transport to the server
            timeout: Deadline for the handshake response (defaults to
                `request_timeout`)

        Raises:
            ClientError: If the client is already connected
            TransportError: If the transport fails to start or send
            ProtocolError: If the server rejects the handshake
            RequestTimeoutError: If the handshake response does not arrive
        """
        if self._transport is not None:
            raise ClientError("Client is already connected")

        transport.on_message(self.dispatch)
        transport.on_close(self._on_transport_closed)
        self._transport = transport

        try:
            request_id = self._next_id()
            await transport.start()

            result = await self._call(
                request_id,
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": self.capabilities,
                    "clientInfo": {
                        "name": self.name,
                        "version": self.version,
                    },
                },
                timeout,
            )
            self.server_info = result.get("serverInfo") if isinstance(result, dict) else None

            await transport.send(Notification("notifications/initialized"))
        except BaseException as e:
            # Leave the client reusable with a fresh transport
            logger.warning(f"Connect failed, releasing transport: {e!r}")
            self._transport = None
            self.server_info = None
            await transport.close()
            self._connection_error = None
            raise

        logger.info(f"Connected as {self.name}/{self.version}, server: {self.server_info}")

    async def request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Send a request and wait for its result map.

        Args:
            method: JSON-RPC method name
            params: Method parameters
            timeout: Deadline in seconds (defaults to `request_timeout`)

        Returns:
            The response's result map, empty if the server sent none

        Raises:
            ProtocolError: If the response carries an error
        """
        if self._transport is None:
            raise ClientError("Client is not connected")
        return await self._call(self._next_id(), method, params or {}, timeout)

    async def _call(
        self,
        request_id: int,
        method: str,
        params: Dict[str, Any],
        timeout: Optional[float]
    ) -> Dict[str, Any]:
        try:
            await self._transport.send(Request(request_id, method, params))
        except BaseException:
            self._abandon(request_id)
            raise

        response = await self.wait_for(request_id, timeout)
        if response.error is not None:
            raise ProtocolError(
                response.error.code,
                response.error.message,
                response.error.data,
                request_id,
            )
        return response.result if response.result is not None else {}

    async def list_tools(self, timeout: Optional[float] = None) -> List[Tool]:
        """
        List the tools offered by the server.

        Raises:
            ProtocolError: If the server answers with an error
            ResultDecodeError: If the result has no well-formed `tools` array
        """
        result = await self.request("tools/list", {}, timeout)
        tools = decode_tools(result)
        logger.debug(f"Server offers {len(tools)} tools")
        return tools

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> List[ToolCallResult]:
        """
        Invoke a tool and return its content items.

        Args:
            name: Tool name
            arguments: Tool arguments
            timeout: Deadline in seconds (defaults to `request_timeout`)

        Raises:
            ProtocolError: If the server answers with an error
            ResultDecodeError: If the result has no well-formed `content` array
        """
        result = await self.request(
            "tools/call",
            {
                "name": name,
                "arguments": arguments or {},
            },
            timeout,
        )
        return decode_content(result)

    def dispatch(self, response: Response) -> None:
        """
        Route a response to its waiting caller, or buffer it.

        Responses to requests whose caller gave up (timeout or cancellation)
        are dropped. A second response for an id that is still buffered is
        dropped too.
        """
        entry = self._entries.get(response.id)

        if isinstance(entry, asyncio.Future):
            del self._entries[response.id]
            if not entry.done():
                entry.set_result(response)
            return

        if response.id in self._abandoned:
            del self._abandoned[response.id]
            logger.debug(f"Dropping late response {response.id}")
            return

        if entry is not None:
            logger.warning(f"Dropping duplicate response {response.id}")
            return

        self._entries[response.id] = response

    async def wait_for(self, request_id: int, timeout: Optional[float] = None) -> Response:
        """
        Wait for the response to a request issued by this client.

        Args:
            request_id: Id returned by this client's generator
            timeout: Deadline in seconds (defaults to `request_timeout`)

        Returns:
            The matching response, delivered exactly once

        Raises:
            ValueError: If the id was never issued by this client
            RequestTimeoutError: If the deadline passes first
            ConnectionLostError: If the stream ends before the response arrives
        """
        if not 0 < request_id <= self._last_id:
            raise ValueError(f"Request id {request_id} was not issued by this client")

        entry = self._entries.get(request_id)
        if isinstance(entry, Response):
            del self._entries[request_id]
            return entry
        if entry is not None:
            raise ClientError("Another caller is already waiting", request_id)

        if self._connection_error is not None:
            raise ConnectionLostError(
                self._connection_error.message,
                cause=self._connection_error.cause,
                request_id=request_id,
            )

        if timeout is None:
            timeout = self.request_timeout

        future = asyncio.get_running_loop().create_future()
        self._entries[request_id] = future
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(request_id, timeout) from None
        finally:
            if self._entries.get(request_id) is future:
                del self._entries[request_id]
                self._abandon(request_id)

    def _abandon(self, request_id: int) -> None:
        """
        Forget a request whose caller gave up.

        A buffered response is discarded now; otherwise the id is remembered
        so its late response can be dropped. At most `ABANDONED_LIMIT` ids
        are remembered. A response for an evicted id is buffered like one
        for an unknown id.
        """
        if isinstance(self._entries.get(request_id), Response):
            del self._entries[request_id]
            return

        self._abandoned[request_id] = None
        if len(self._abandoned) > self.ABANDONED_LIMIT:
            evicted = next(iter(self._abandoned))
            del self._abandoned[evicted]
            logger.debug(f"No longer tracking abandoned request {evicted}")

    def _on_transport_closed(self, error: Optional[BaseException]) -> None:
        message = "Event stream ended" if error is None else "Event stream failed"
        self._connection_error = ConnectionLostError(message, cause=error)

        waiters = [
            (request_id, entry)
            for request_id, entry in self._entries.items()
            if isinstance(entry, asyncio.Future)
        ]
        for request_id, future in waiters:
            del self._entries[request_id]
            if not future.done():
                future.set_exception(
                    ConnectionLostError(message, cause=error, request_id=request_id)
                )

        if waiters:
            logger.warning(f"{message}, failed {len(waiters)} outstanding requests")
        else:
            logger.info(message)

    async def close(self) -> None:
        """Close the transport, failing any outstanding requests."""
        if self._transport is not None:
            await self._transport.close()

    async def __aenter__(self) -> "MCPClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


# Export symbols
__all__ = [
    "MCPClient",
]

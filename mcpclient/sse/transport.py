"""
SSE transport for the MCP client.

The transport owns the HTTP side of a connection: a long-lived GET that
carries the server push stream, and one POST per outgoing message to the
endpoint the server announces on that stream. Incoming `message` events are
decoded into `Response` objects and handed to the single registered
consumer.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Union
from urllib.parse import urljoin

import httpx

from ..errors import FramingError, TransportError
from ..messages import Notification, Request, Response, decode_payload, is_peer_initiated
from .framing import ENDPOINT_EVENT, MESSAGE_EVENT, SSEEvent, parse_stream


# Configure logging
logger = logging.getLogger(__name__)


MessageCallback = Callable[[Response], None]
CloseCallback = Callable[[Optional[BaseException]], None]


class TransportState(Enum):
    """Lifecycle state of a transport connection."""
    IDLE = "idle"
    RUNNING = "running"
    ENDED_EOF = "ended-eof"
    ENDED_ERROR = "ended-error"
    CLOSED = "closed"


@dataclass
class TransportConfig:
    """Configuration for the SSE transport."""

    # Timeout settings
    connection_timeout: float = 10.0
    request_timeout: float = 30.0
    # None keeps an idle push stream open indefinitely
    read_timeout: Optional[float] = None
    # None waits for the endpoint announcement indefinitely
    endpoint_timeout: Optional[float] = 30.0

    encoding: str = "utf-8"


class Transport(ABC):
    """Abstract connection used by the client to exchange messages."""

    @abstractmethod
    async def start(self) -> None:
        """Open the connection and begin receiving."""
        ...

    @abstractmethod
    async def send(self, message: Union[Request, Notification]) -> None:
        """Transmit one message to the peer."""
        ...

    @abstractmethod
    def on_message(self, callback: MessageCallback) -> None:
        """Register the consumer of incoming responses."""
        ...

    @abstractmethod
    def on_close(self, callback: CloseCallback) -> None:
        """Register the listener notified when receiving stops."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""
        ...

    async def __aenter__(self) -> "Transport":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class SSETransport(Transport):
    """
    Transport over a Server-Sent Events stream plus HTTP POST.

    The server announces the POST target with an `endpoint` event. The first
    announcement wins; later ones on the same connection are ignored.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        config: Optional[TransportConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the SSE transport.

        Args:
            base_url: URL of the event stream
            headers: Headers attached to every request (e.g. bearer auth)
            config: Optional transport configuration
            http_client: Optional pre-built client; the transport closes only
                clients it created itself
        """
        self.base_url = base_url
        self.headers = dict(headers or {})
        self.config = config or TransportConfig()
        self._http_client = http_client
        self._owns_client = http_client is None

        self._state = TransportState.IDLE
        self._endpoint: Optional[str] = None
        self._endpoint_ready = asyncio.Event()
        self._message_callback: Optional[MessageCallback] = None
        self._close_callback: Optional[CloseCallback] = None
        self._close_notified = False
        self._stream_response: Optional[httpx.Response] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._error: Optional[BaseException] = None

        logger.info(f"SSETransport initialized for {self.base_url}")

    @property
    def state(self) -> TransportState:
        """Get the current lifecycle state."""
        return self._state

    @property
    def endpoint(self) -> Optional[str]:
        """Get the endpoint announced by the server, if any."""
        return self._endpoint

    @property
    def endpoint_url(self) -> Optional[str]:
        """Get the absolute POST target, if the endpoint is known."""
        if self._endpoint is None:
            return None
        return urljoin(self.base_url, self._endpoint)

    @property
    def error(self) -> Optional[BaseException]:
        """Get the exception that ended the stream, if any."""
        return self._error

    def on_message(self, callback: MessageCallback) -> None:
        """
        Register the consumer of decoded responses.

        Raises:
            TransportError: If a consumer is already registered
        """
        if self._message_callback is not None:
            raise TransportError("A message consumer is already registered")
        self._message_callback = callback

    def on_close(self, callback: CloseCallback) -> None:
        """
        Register the listener called once when receiving stops.

        The listener gets None on a clean end of stream or local close, and
        the terminating exception otherwise.

        Raises:
            TransportError: If a listener is already registered
        """
        if self._close_callback is not None:
            raise TransportError("A close listener is already registered")
        self._close_callback = callback

    async def start(self) -> None:
        """
        Open the event stream and spawn the receive loop.

        Raises:
            TransportError: If already started, the request fails, or the
                server does not answer with status 200
        """
        if self._state != TransportState.IDLE:
            raise TransportError(f"Transport cannot start from state '{self._state.value}'")

        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self.config.request_timeout,
                    connect=self.config.connection_timeout,
                ),
            )

        headers = {**self.headers, "Accept": "text/event-stream"}
        request = self._http_client.build_request(
            "GET",
            self.base_url,
            headers=headers,
            timeout=httpx.Timeout(
                self.config.request_timeout,
                connect=self.config.connection_timeout,
                read=self.config.read_timeout,
            ),
        )

        try:
            response = await self._http_client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to open event stream: {e}", url=self.base_url) from e

        if response.status_code != 200:
            await response.aclose()
            raise TransportError(
                "Expected status code 200 for event stream",
                status_code=response.status_code,
                url=self.base_url,
            )

        self._stream_response = response
        self._state = TransportState.RUNNING
        self._receive_task = asyncio.create_task(self._receive_loop(response))
        logger.info(f"Event stream opened at {self.base_url}")

    async def _receive_loop(self, response: httpx.Response) -> None:
        """Feed the stream through the framer until EOF or failure."""
        error: Optional[BaseException] = None
        try:
            async for event in parse_stream(response.aiter_bytes(), self.config.encoding):
                self._handle_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
            self._error = e
            self._state = TransportState.ENDED_ERROR
            logger.error(f"Event stream terminated: {e}")
        else:
            self._state = TransportState.ENDED_EOF
            logger.info("Event stream ended")
        finally:
            await response.aclose()

        self._notify_close(error)

    def _handle_event(self, event: SSEEvent) -> None:
        if event.event == ENDPOINT_EVENT:
            self._set_endpoint(event.data)
        elif event.event == MESSAGE_EVENT:
            data = decode_payload(event.data)
            if is_peer_initiated(data):
                kind = "notification" if "id" not in data else "request"
                logger.debug(f"Ignoring server {kind} '{data.get('method')}'")
                return
            self._deliver(Response.from_dict(data))
        else:
            logger.debug(f"Ignoring '{event.event}' event")

    def _set_endpoint(self, endpoint: str) -> None:
        if not endpoint:
            raise FramingError("Endpoint event carries an empty address")

        if self._endpoint is not None:
            if endpoint != self._endpoint:
                logger.warning(
                    f"Ignoring endpoint '{endpoint}', already using '{self._endpoint}'"
                )
            return

        self._endpoint = endpoint
        self._endpoint_ready.set()
        logger.info(f"Server announced endpoint {self.endpoint_url}")

    def _deliver(self, response: Response) -> None:
        if self._message_callback is None:
            logger.warning(f"No message consumer registered, dropping response {response.id}")
            return
        logger.debug(f"Received response {response.id}")
        self._message_callback(response)

    def _notify_close(self, error: Optional[BaseException]) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        if self._close_callback is not None:
            self._close_callback(error)

    async def _wait_for_endpoint(self) -> None:
        if self._endpoint is not None:
            return

        if self._state != TransportState.RUNNING:
            raise TransportError(
                f"No endpoint known and event stream is {self._state.value}",
                url=self.base_url,
            )

        waiter = asyncio.ensure_future(self._endpoint_ready.wait())
        try:
            await asyncio.wait(
                {waiter, self._receive_task},
                timeout=self.config.endpoint_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not waiter.done():
                waiter.cancel()

        if self._endpoint is None:
            if self._receive_task.done():
                raise TransportError(
                    "Event stream ended before an endpoint was announced",
                    url=self.base_url,
                )
            raise TransportError(
                f"No endpoint announced within {self.config.endpoint_timeout}s",
                url=self.base_url,
            )

    async def send(self, message: Union[Request, Notification]) -> None:
        """
        POST a message to the announced endpoint.

        Waits for the endpoint announcement first, bounded by
        `TransportConfig.endpoint_timeout`.

        Args:
            message: Request or notification to transmit

        Raises:
            TransportError: If the transport is not started, no endpoint
                becomes known, the request fails, or the server does not
                acknowledge with status 202
        """
        if self._state == TransportState.IDLE:
            raise TransportError("Transport not started")
        if self._state == TransportState.CLOSED:
            raise TransportError("Transport closed")

        await self._wait_for_endpoint()

        url = self.endpoint_url
        headers = {**self.headers, "Content-Type": "application/json"}
        body = message.encode().encode(self.config.encoding)

        try:
            response = await self._http_client.post(
                url,
                content=body,
                headers=headers,
                timeout=self.config.request_timeout,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to send '{message.method}': {e}", url=url) from e

        if response.status_code != 202:
            raise TransportError(
                f"Expected status code 202 for '{message.method}'",
                status_code=response.status_code,
                url=url,
            )

        logger.debug(f"Sent '{message.method}' to {url}")

    async def close(self) -> None:
        """Stop receiving and release the HTTP resources."""
        if self._state == TransportState.CLOSED:
            return

        self._state = TransportState.CLOSED

        if self._receive_task and not self._receive_task.done():
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass

        if self._stream_response is not None:
            await self._stream_response.aclose()
            self._stream_response = None

        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

        self._notify_close(None)
        logger.info(f"Transport for {self.base_url} closed")


# Export symbols
__all__ = [
    "CloseCallback",
    "MessageCallback",
    "SSETransport",
    "Transport",
    "TransportConfig",
    "TransportState",
]

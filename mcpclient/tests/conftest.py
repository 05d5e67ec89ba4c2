"""
Shared fixtures for the MCP client test suite.

`FakeSSEPeer` is an in-process MCP server built on `httpx.MockTransport`:
GET returns a live event stream fed from a queue, POST records the request
and (optionally) pushes the matching reply onto the stream.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from mcpclient.config import Config
from mcpclient.sse.transport import SSETransport, TransportConfig


class FakeSSEPeer:
    """Scriptable SSE peer."""

    base_url = "http://peer.test/sse"

    def __init__(self, endpoint: Optional[str] = "/messages/?session_id=abc123"):
        self.endpoint = endpoint
        self.events: asyncio.Queue = asyncio.Queue()
        self.stream_status = 200
        self.post_status = 202
        self.auto_reply = True
        self.stream_headers: Optional[httpx.Headers] = None
        self.post_headers: List[httpx.Headers] = []
        self.post_urls: List[str] = []
        self.posts: List[Dict[str, Any]] = []
        self.errors: Dict[str, Dict[str, Any]] = {}
        self.results: Dict[str, Any] = {
            "initialize": {
                "protocolVersion": "2024-11-05",
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "fake-peer", "version": "0.1.0"},
            },
            "tools/list": {
                "tools": [
                    {"name": "query", "description": "run a query", "inputSchema": {}},
                ],
            },
            "tools/call": {
                "content": [{"type": "text", "text": "ok"}],
            },
        }

    @staticmethod
    def block(event: str, data: str) -> bytes:
        return f"event: {event}\ndata: {data}\n\n".encode("utf-8")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            self.stream_headers = request.headers
            if self.stream_status != 200:
                return httpx.Response(self.stream_status, text="denied")
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                content=self._stream(),
            )

        body = json.loads(request.content)
        self.post_urls.append(str(request.url))
        self.post_headers.append(request.headers)
        self.posts.append(body)

        if self.post_status != 202:
            return httpx.Response(self.post_status, text="rejected")

        if self.auto_reply and "id" in body:
            self.reply(body)
        return httpx.Response(202, text="Accepted")

    async def _stream(self):
        if self.endpoint is not None:
            yield self.block("endpoint", self.endpoint)
        while True:
            chunk = await self.events.get()
            if chunk is None:
                return
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    def reply(self, body: Dict[str, Any], result: Any = None) -> None:
        """Push the reply to a posted request onto the stream."""
        method = body["method"]
        if method in self.errors:
            self.send_message({"jsonrpc": "2.0", "id": body["id"], "error": self.errors[method]})
            return
        if result is None:
            result = self.results.get(method, {})
        self.send_message({"jsonrpc": "2.0", "id": body["id"], "result": result})

    def send_message(self, payload: Dict[str, Any]) -> None:
        self.events.put_nowait(self.block("message", json.dumps(payload)))

    def send_raw(self, chunk: bytes) -> None:
        self.events.put_nowait(chunk)

    def end_stream(self) -> None:
        self.events.put_nowait(None)

    def fail_stream(self, error: Exception) -> None:
        self.events.put_nowait(error)

    def posted(self, method: str) -> List[Dict[str, Any]]:
        return [body for body in self.posts if body.get("method") == method]

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def transport(self, base_url: Optional[str] = None, **config_kwargs) -> SSETransport:
        return SSETransport(
            base_url or self.base_url,
            headers={"Authorization": "Bearer abcd"},
            config=TransportConfig(**config_kwargs),
            http_client=self.http_client(),
        )


@pytest.fixture
def peer():
    """Create a fake SSE peer."""
    return FakeSSEPeer()


@pytest.fixture
def wait_until():
    """Poll a predicate on the event loop until it holds."""
    async def _wait_until(predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met in time")
            await asyncio.sleep(0.005)
    return _wait_until


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep MCPCLIENT_* variables from the outer environment out of tests."""
    for env_var in Config.ENV_MAPPINGS:
        monkeypatch.delenv(env_var, raising=False)

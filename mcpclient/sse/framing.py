"""
Server-Sent Events framing for the MCP SSE client.

This module turns the raw byte stream of an SSE connection into discrete
`SSEEvent` values. The scanner is incremental: input may arrive in chunks of
any size, partial lines and partial event blocks are retained between reads,
and a single chunk may complete several blocks at once.

Grammar accepted per block::

    event: <kind>
    data: <payload>
    <blank line>

Comment lines (starting with ``:``) are skipped, as are the standard ``id``
and ``retry`` fields. Lines may end in ``\\n``, ``\\r\\n`` or ``\\r``.
"""

import codecs
import logging
import re
from dataclasses import dataclass
from typing import AsyncGenerator, AsyncIterable, List, Optional, Union

from ..errors import FramingError


# Configure logging
logger = logging.getLogger(__name__)


ENDPOINT_EVENT = "endpoint"
MESSAGE_EVENT = "message"

_LINE_END = re.compile(r"\r\n|\r|\n")
_IGNORED_FIELDS = ("id", "retry")


@dataclass(frozen=True)
class SSEEvent:
    """A complete event block: its kind and payload."""
    event: str
    data: str


class SSEFramer:
    """
    Incremental scanner for an SSE byte stream.

    Feed it chunks with `feed()`; each call returns the events completed by
    that chunk. Call `close()` once the stream has ended.
    """

    def __init__(self, encoding: str = "utf-8"):
        """
        Initialize the framer.

        Args:
            encoding: Text encoding of the stream
        """
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)()
        self._buffer = ""
        self._reset_block()

    def _reset_block(self) -> None:
        self._event: Optional[str] = None
        self._data_lines: List[str] = []
        self._in_block = False

    def feed(self, chunk: Union[bytes, str]) -> List[SSEEvent]:
        """
        Feed a chunk of the stream and return the events it completes.

        Args:
            chunk: Raw bytes (decoded incrementally) or already decoded text

        Returns:
            List of complete events, possibly empty

        Raises:
            FramingError: If a line or block does not match the grammar
        """
        if isinstance(chunk, bytes):
            try:
                chunk = self._decoder.decode(chunk)
            except UnicodeDecodeError as e:
                raise FramingError(f"Stream is not valid {self.encoding}: {e}") from e

        self._buffer += chunk
        events = []
        for line in self._take_lines():
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def close(self) -> List[SSEEvent]:
        """
        Signal end of input.

        A block left without its terminating blank line is discarded, the
        stream having ended cleanly.

        Returns:
            Events completed by a trailing CR held back from the last chunk

        Raises:
            FramingError: If the stream ends inside a multi-byte character
        """
        try:
            self._buffer += self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise FramingError(f"Stream ended inside a {self.encoding} sequence") from e

        events = []
        if self._buffer.endswith("\r"):
            line, self._buffer = self._buffer[:-1], ""
            event = self._process_line(line)
            if event is not None:
                events.append(event)

        if self._buffer or self._in_block:
            logger.warning("Stream ended inside an event block, discarding it")
        self._buffer = ""
        self._reset_block()
        return events

    def has_buffered_data(self) -> bool:
        """Check if a partial line or block is waiting for more input."""
        return bool(self._buffer) or self._in_block

    def _take_lines(self) -> List[str]:
        lines = []
        while True:
            match = _LINE_END.search(self._buffer)
            if match is None:
                break
            # A trailing CR may be the first half of a CRLF split across chunks
            if match.group() == "\r" and match.end() == len(self._buffer):
                break
            lines.append(self._buffer[:match.start()])
            self._buffer = self._buffer[match.end():]
        return lines

    def _process_line(self, line: str) -> Optional[SSEEvent]:
        if not line.strip():
            return self._finish_block()

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        name = name.strip()
        if not sep:
            raise FramingError("Malformed stream line", line=line)

        self._in_block = True
        if name == "event":
            if self._event is not None:
                raise FramingError("Duplicate event field in block", line=line)
            self._event = value.strip()
            if not self._event:
                raise FramingError("Empty event kind", line=line)
        elif name == "data":
            self._data_lines.append(value.strip())
        elif name in _IGNORED_FIELDS:
            pass
        else:
            raise FramingError(f"Unknown field '{name}'", line=line)
        return None

    def _finish_block(self) -> Optional[SSEEvent]:
        if not self._in_block:
            # Blank line outside a block, or a comment-only block
            return None

        if self._event is None:
            raise FramingError("Event block has no event field")
        if not self._data_lines:
            raise FramingError(f"Event block '{self._event}' has no data field")

        event = SSEEvent(event=self._event, data="\n".join(self._data_lines).strip())
        self._reset_block()
        return event


async def parse_stream(
    chunks: AsyncIterable[Union[bytes, str]],
    encoding: str = "utf-8"
) -> AsyncGenerator[SSEEvent, None]:
    """
    Lazily parse an async chunk source into events.

    Args:
        chunks: Async iterable of raw stream chunks
        encoding: Text encoding of the stream

    Yields:
        Complete events in stream order

    Raises:
        FramingError: On the first malformed block
    """
    framer = SSEFramer(encoding)
    async for chunk in chunks:
        for event in framer.feed(chunk):
            yield event
    for event in framer.close():
        yield event


# Export symbols
__all__ = [
    "ENDPOINT_EVENT",
    "MESSAGE_EVENT",
    "SSEEvent",
    "SSEFramer",
    "parse_stream",
]

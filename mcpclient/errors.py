"""
Error definitions for the MCP SSE client.

This module defines custom exception classes for the different failure
classes a client call can run into: transport failures, stream framing
failures, remote protocol errors and result decoding failures.
"""

from typing import Any, Optional


class ClientError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, request_id: Optional[int] = None):
        """
        Initialize the client error.

        Args:
            message: Error message
            request_id: Id of the request the error belongs to (optional)
        """
        self.message = message
        self.request_id = request_id
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with the request id if available."""
        if self.request_id is not None:
            return f"[request {self.request_id}] {self.message}"
        return self.message


class TransportError(ClientError):
    """Connection or HTTP failure, including unexpected status codes."""

    def __init__(self, message: str, status_code: int = None, url: str = None):
        """
        Initialize the transport error.

        Args:
            message: Error message
            status_code: HTTP status code returned by the peer (optional)
            url: URL the failing request was sent to (optional)
        """
        self.status_code = status_code
        self.url = url
        super().__init__(message)

    def _format_message(self) -> str:
        """Format the error message with status and url if available."""
        base_message = super()._format_message()
        if self.status_code is not None:
            base_message = f"{base_message} (status: {self.status_code})"
        if self.url:
            base_message = f"{base_message} (url: {self.url})"
        return base_message


class FramingError(ClientError):
    """Malformed event block on the push stream."""

    def __init__(self, message: str, line: str = None):
        """
        Initialize the framing error.

        Args:
            message: Error message
            line: Offending stream line (optional)
        """
        self.line = line
        super().__init__(message)

    def _format_message(self) -> str:
        base_message = super()._format_message()
        if self.line is not None:
            return f"{base_message} (line: {self.line!r})"
        return base_message


class MessageDecodeError(FramingError):
    """A `message` event payload is not a valid response envelope."""


class ProtocolError(ClientError):
    """The peer answered a request with a JSON-RPC error object."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
        request_id: Optional[int] = None
    ):
        """
        Initialize the protocol error.

        Args:
            code: Remote JSON-RPC error code
            message: Remote error message
            data: Optional remote error data
            request_id: Id of the failed request (optional)
        """
        self.code = code
        self.data = data
        super().__init__(message, request_id)

    def _format_message(self) -> str:
        return f"{super()._format_message()} (code: {self.code})"


class ResultDecodeError(ClientError):
    """A successful result is missing expected fields or has the wrong shape."""


class RequestTimeoutError(ClientError):
    """No response arrived for a request before its deadline."""

    def __init__(self, request_id: int, timeout: float):
        self.timeout = timeout
        super().__init__(f"No response within {timeout}s", request_id)


class ConnectionLostError(ClientError):
    """The push stream ended while requests were still outstanding."""

    def __init__(
        self,
        message: str = "Connection lost",
        cause: Optional[BaseException] = None,
        request_id: Optional[int] = None
    ):
        """
        Initialize the connection lost error.

        Args:
            message: Error message
            cause: Exception that terminated the stream, None on clean EOF
            request_id: Id of the request that was waiting (optional)
        """
        self.cause = cause
        super().__init__(message, request_id)

    def _format_message(self) -> str:
        base_message = super()._format_message()
        if self.cause is not None:
            return f"{base_message}: {self.cause}"
        return base_message


class ConfigError(ClientError):
    """Error in configuration."""

    def __init__(self, message: str, config_key: str = None):
        """
        Initialize the configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error (optional)
        """
        self.config_key = config_key
        super().__init__(message)

    def _format_message(self) -> str:
        """Format the error message with config key if available."""
        base_message = super()._format_message()
        if self.config_key:
            return f"{base_message} (config: {self.config_key})"
        return base_message

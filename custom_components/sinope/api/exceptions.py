"""Exceptions raised by the Sinopé gateway client."""

from __future__ import annotations


class SinopeError(Exception):
    """Base class for every error raised by the gateway client."""


class ConfigurationError(SinopeError):
    """The gateway endpoint is missing a field or a field is malformed.

    These errors are fatal until the user fixes the configuration; they
    are never retried automatically.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class CommunicationError(SinopeError):
    """The conversation with the gateway broke down.

    The connection is torn down and retried on the next poll or the
    next explicit request.
    """


class GatewayConnectionError(CommunicationError):
    """The TCP connection or the login handshake failed."""


class LoginRefusedError(GatewayConnectionError):
    """The gateway answered the login request with a non-zero status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Gateway refused the login (status {status})")
        self.status = status


class ProtocolError(CommunicationError):
    """A frame could not be decoded from the stream."""


class CommandError(SinopeError):
    """A well formed data request was rejected by the gateway."""

    def __init__(self, status: int, message: str | None = None) -> None:
        super().__init__(message or f"Gateway rejected the request (status {status})")
        self.status = status


class GatewayBusyError(SinopeError):
    """The connection is held by a device search."""

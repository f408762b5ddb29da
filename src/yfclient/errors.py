"""Exception hierarchy shared by the transport and streaming layers."""
from __future__ import annotations


class YFClientError(Exception):
    """Base class for every error raised by yfclient."""


class TransportError(YFClientError):
    """Raised when an HTTP exchange with the provider cannot be completed."""

    def __init__(self, message: str, *, url: str | None = None, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.cause = cause


class TransientNetworkError(TransportError):
    """No response was received, or the provider answered 408/429/5xx."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, url=url, cause=cause)
        self.status_code = status_code


class AuthenticationError(TransportError):
    """Crumb or cookies were rejected on an authenticated path."""


class CrumbUnavailableError(AuthenticationError):
    """An authentication strategy could not produce a crumb."""


class TerminalClientError(TransportError):
    """The provider rejected the request with a non-retryable 4xx status."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code


class MaxRetriesExceeded(TransportError):
    """All configured attempts were spent without a successful response."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        attempts: int,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, url=url, cause=cause)
        self.attempts = attempts


class DecodeError(YFClientError):
    """A response body could not be decoded as requested."""


class NotConnectedError(YFClientError):
    """A streaming operation was attempted without an open connection."""


class StreamConnectError(YFClientError):
    """The streaming handshake failed or timed out."""


class StreamError(YFClientError):
    """Error reported by the streaming endpoint or the reconnect loop."""


__all__ = [
    "AuthenticationError",
    "CrumbUnavailableError",
    "DecodeError",
    "MaxRetriesExceeded",
    "NotConnectedError",
    "StreamConnectError",
    "StreamError",
    "TerminalClientError",
    "TransientNetworkError",
    "TransportError",
    "YFClientError",
]

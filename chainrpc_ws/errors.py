"""Error types raised or delivered by the WebSocket provider.

Transport failures are never raised into unrelated tasks. They are handed
to the callback of every affected request, or to ``error`` listeners, as
instances of the classes below.
"""

import json
from typing import Any, Optional


class ProviderError(Exception):
    """Base class for all provider errors."""
    pass


class InvalidResponseError(ProviderError):
    """A buffered fragment never completed into valid JSON."""

    def __init__(self, fragment: Any):
        self.fragment = fragment
        if isinstance(fragment, str):
            shown = fragment
        else:
            try:
                shown = json.dumps(fragment)
            except (TypeError, ValueError):
                shown = repr(fragment)
        super().__init__(f"Invalid JSON RPC response: {shown}")


class ConnectionTimeoutError(ProviderError):
    """A request received no response within its timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"CONNECTION TIMEOUT: timeout of {int(timeout * 1000)} ms achieved"
        )


class InvalidConnectionError(ProviderError):
    """The socket closed or errored while requests were outstanding."""

    def __init__(self, host: str = "on WS", cause: Optional[BaseException] = None):
        self.host = host
        self.cause = cause
        super().__init__(f"CONNECTION ERROR: Couldn't connect to node {host}.")


class SendRejectedError(ProviderError):
    """A send was attempted while the socket was not open."""

    def __init__(self, message: str = "connection not open"):
        super().__init__(message)


class AuthRefreshError(ProviderError):
    """The access token provider failed."""

    def __init__(self, message: str = "Cannot get a new access token"):
        super().__init__(message)


class MalformedTokenError(ProviderError):
    """A bearer token could not be decoded into an expiry instant."""
    pass


__all__ = [
    "AuthRefreshError",
    "ConnectionTimeoutError",
    "InvalidConnectionError",
    "InvalidResponseError",
    "MalformedTokenError",
    "ProviderError",
    "SendRejectedError",
]

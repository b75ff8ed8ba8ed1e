"""chainrpc_ws - persistent JSON-RPC transport over WebSocket.

Usage:
    from chainrpc_ws import WebsocketProvider

    provider = await WebsocketProvider.connect("wss://node.example/ws", timeout=30.0)
    result = await provider.request({"jsonrpc": "2.0", "id": 1, "method": "eth_chainId"})
"""

from chainrpc_ws.client import (
    WebsocketProvider,
    ProviderConfig,
    ReadyState,
    load_client_config,
    get_provider_config,
)
from chainrpc_ws.errors import (
    ProviderError,
    InvalidResponseError,
    ConnectionTimeoutError,
    InvalidConnectionError,
    SendRejectedError,
    AuthRefreshError,
    MalformedTokenError,
)
from chainrpc_ws.messages import (
    SUBSCRIPTION_SUFFIX,
    Single,
    Batch,
    as_response,
    is_subscription_notification,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "WebsocketProvider",
    "ProviderConfig",
    "ReadyState",
    "load_client_config",
    "get_provider_config",
    # Errors
    "ProviderError",
    "InvalidResponseError",
    "ConnectionTimeoutError",
    "InvalidConnectionError",
    "SendRejectedError",
    "AuthRefreshError",
    "MalformedTokenError",
    # Messages
    "SUBSCRIPTION_SUFFIX",
    "Single",
    "Batch",
    "as_response",
    "is_subscription_notification",
]

"""chainrpc_ws client implementations."""

from chainrpc_ws.client.provider import WebsocketProvider
from chainrpc_ws.client.config import ProviderConfig, load_client_config, get_provider_config
from chainrpc_ws.client.transport import ReadyState, WebSocketHandle
from chainrpc_ws.client.auth import AuthState, is_token_expired, token_expiry

__all__ = [
    "WebsocketProvider",
    "ProviderConfig",
    "load_client_config",
    "get_provider_config",
    "ReadyState",
    "WebSocketHandle",
    "AuthState",
    "is_token_expired",
    "token_expiry",
]

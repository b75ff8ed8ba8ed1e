"""JSON-RPC message shapes seen by the provider.

Inbound values are normalized at the parse boundary into a tagged variant:
``Single`` for one message object and ``Batch`` for an array of them. Both
expose ``ids`` so correlation code never has to care which one it holds.

Usage:
    from chainrpc_ws.messages import as_response, is_subscription_notification

    response = as_response({"jsonrpc": "2.0", "id": 1, "result": "0x1"})
    response.ids  # (1,)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

# Method-name marker of server-initiated subscription pushes
# (e.g. ``eth_subscription``).
SUBSCRIPTION_SUFFIX = "_subscription"

Payload = Union[Dict[str, Any], List[Dict[str, Any]]]


@dataclass(frozen=True)
class Single:
    """A single JSON-RPC message (request, response or notification)."""
    message: Any

    @property
    def ids(self) -> Tuple[Any, ...]:
        if isinstance(self.message, dict) and self.message.get("id") is not None:
            return (self.message["id"],)
        return ()

    @property
    def value(self) -> Any:
        return self.message


@dataclass(frozen=True)
class Batch:
    """A JSON-RPC batch: an ordered sequence of messages."""
    messages: Tuple[Any, ...]

    @property
    def ids(self) -> Tuple[Any, ...]:
        return tuple(
            m["id"] for m in self.messages
            if isinstance(m, dict) and m.get("id") is not None
        )

    @property
    def value(self) -> List[Any]:
        return list(self.messages)


Response = Union[Single, Batch]


def as_response(value: Any) -> Response:
    """Wrap a parsed JSON value in the ``Single``/``Batch`` variant."""
    if isinstance(value, list):
        return Batch(tuple(value))
    return Single(value)


def is_subscription_notification(value: Any) -> bool:
    """Return True for an id-less message whose method marks a push."""
    if not isinstance(value, dict):
        return False
    if value.get("id") is not None:
        return False
    method = value.get("method")
    return isinstance(method, str) and SUBSCRIPTION_SUFFIX in method


def _first(payload: Payload) -> Dict[str, Any]:
    if isinstance(payload, dict):
        return payload
    if isinstance(payload, Sequence) and payload and isinstance(payload[0], dict):
        return payload[0]
    raise ValueError("payload must be a JSON-RPC object or a non-empty batch")


def request_id(payload: Payload) -> Any:
    """Id under which a payload's response will be correlated.

    For a batch this is the id of its first element.
    """
    ident = _first(payload).get("id")
    if ident is None:
        raise ValueError("payload has no id to correlate a response with")
    return ident


def request_method(payload: Payload) -> Optional[str]:
    """Method name of a payload (first element's method for a batch)."""
    return _first(payload).get("method")


__all__ = [
    "Batch",
    "Payload",
    "Response",
    "SUBSCRIPTION_SUFFIX",
    "Single",
    "as_response",
    "is_subscription_notification",
    "request_id",
    "request_method",
]

"""Ownership of the provider's single live socket handle.

``ConnectionManager`` creates socket handles, wires their lifecycle events
to the callback registry and notification bus, and replaces the handle
when credentials change.

Lifecycle wiring:
    open    -> ``connect`` listeners
    message -> provider frame handler
    error   -> invalidate pending requests, then ``error`` listeners
    close   -> invalidate pending requests, clear notification listeners,
               reattach default handlers, then ``end`` listeners

Listener registrations belong to the manager rather than to a handle, so
they survive ``recreate()``. Events raised by a handle that has already
been replaced are ignored.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from chainrpc_ws.errors import InvalidConnectionError
from chainrpc_ws.client.notifications import NotificationBus
from chainrpc_ws.client.registry import CallbackRegistry
from chainrpc_ws.client.transport import ReadyState, SocketFactory, create_websocket

logger = logging.getLogger(__name__)

CONNECTION_EVENTS = ("connect", "end", "error")


class ConnectionManager:
    """Single-owner holder of the active socket handle.

    Args:
        registry: Pending requests to invalidate on close/error.
        notifications: Subscription listeners to clear on close.
        on_message: Receives every inbound text frame of the live handle.
        on_reset: Called whenever pending state is discarded (close or
            handle replacement), e.g. to drop a partial frame buffer.
        socket_factory: Builds handles; defaults to the ``websockets``
            backed ``WebSocketHandle``.
    """

    def __init__(
        self,
        registry: CallbackRegistry,
        notifications: NotificationBus,
        on_message: Callable[[str], Any],
        on_reset: Optional[Callable[[], Any]] = None,
        socket_factory: Optional[SocketFactory] = None,
    ):
        self._registry = registry
        self._notifications = notifications
        self._on_message = on_message
        self._on_reset = on_reset
        self._factory = socket_factory or create_websocket

        self._handle: Optional[Any] = None
        self._listeners: Dict[str, List[Callable[..., Any]]] = {
            event: [] for event in CONNECTION_EVENTS
        }

        self.url: Optional[str] = None
        self.headers: Dict[str, str] = {}
        self.protocol: Optional[str] = None
        self.options: Dict[str, Any] = {}

    # =========================================================================
    # State
    # =========================================================================

    @property
    def handle(self) -> Optional[Any]:
        return self._handle

    @property
    def state(self) -> ReadyState:
        if self._handle is None:
            return ReadyState.CLOSED
        return ReadyState(self._handle.ready_state)

    @property
    def connected(self) -> bool:
        return self._handle is not None and self._handle.ready_state == ReadyState.OPEN

    # =========================================================================
    # Handle lifecycle
    # =========================================================================

    def open(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        protocol: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Create a new handle and make it the live one."""
        self.url = url
        self.headers = dict(headers or {})
        self.protocol = protocol
        self.options = dict(options or {})

        handle = self._factory(url, protocol, dict(self.headers), dict(self.options))
        self._handle = handle
        self._attach(handle)
        logger.debug("Opened socket handle %r", handle)
        return handle

    async def recreate(self, headers: Optional[Dict[str, str]] = None) -> Any:
        """Replace the live handle and close the old one.

        Requests still pending on the old handle can never be answered and
        are invalidated. The replacement is live before the old handle's
        closing handshake starts, so sends issued meanwhile see it
        CONNECTING rather than CLOSED. Listener registrations are kept.
        """
        if self.url is None:
            raise RuntimeError("recreate() called before open()")

        old = self._handle
        if old is not None:
            self._detach(old)
            self._handle = None

        self._registry.resolve_all(InvalidConnectionError())
        if self._on_reset is not None:
            self._on_reset()

        logger.info("Recreating connection to %s", self.url)
        handle = self.open(
            self.url,
            self.headers if headers is None else headers,
            self.protocol,
            self.options,
        )
        if old is not None:
            await old.close()
        return handle

    async def close(self) -> None:
        """Close the live handle; its close event runs the usual cleanup."""
        if self._handle is not None:
            await self._handle.close()

    def reset(self) -> None:
        """Invalidate pending requests, clear subscriptions, rewire handlers."""
        self._registry.resolve_all(InvalidConnectionError())
        self._notifications.clear()
        if self._on_reset is not None:
            self._on_reset()
        if self._handle is not None:
            self._attach(self._handle)

    def _attach(self, handle: Any) -> None:
        handle.on_open = lambda: self._handle_open(handle)
        handle.on_message = lambda text: self._handle_message(handle, text)
        handle.on_error = lambda exc: self._handle_error(handle, exc)
        handle.on_close = lambda code=None, reason="": self._handle_close(handle, code, reason)

    @staticmethod
    def _detach(handle: Any) -> None:
        handle.on_open = None
        handle.on_message = None
        handle.on_error = None
        handle.on_close = None

    def _handle_open(self, handle: Any) -> None:
        if handle is not self._handle:
            return
        for listener in list(self._listeners["connect"]):
            listener()

    def _handle_message(self, handle: Any, text: str) -> None:
        if handle is not self._handle:
            return
        self._on_message(text)

    def _handle_error(self, handle: Any, exc: BaseException) -> None:
        if handle is not self._handle:
            return
        self._registry.resolve_all(InvalidConnectionError(cause=exc))
        self.emit_error(exc)

    def _handle_close(self, handle: Any, code: Optional[int], reason: str) -> None:
        if handle is not self._handle:
            return
        logger.info("Connection to %s closed (code=%s)", self.url, code)
        self.reset()
        for listener in list(self._listeners["end"]):
            listener(code, reason)

    # =========================================================================
    # Listeners
    # =========================================================================

    def emit_error(self, error: BaseException) -> None:
        """Report ``error`` to every ``error`` listener."""
        for listener in list(self._listeners["error"]):
            listener(error)

    def add_listener(self, event: str, listener: Callable[..., Any]) -> None:
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Callable[..., Any]) -> None:
        self._listeners[event] = [cb for cb in self._listeners[event] if cb != listener]

    def remove_all_listeners(self, event: str) -> None:
        self._listeners[event] = []

    def listeners(self, event: str) -> List[Callable[..., Any]]:
        return list(self._listeners[event])


__all__ = ["CONNECTION_EVENTS", "ConnectionManager"]

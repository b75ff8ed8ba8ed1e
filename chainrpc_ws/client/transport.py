"""Thin event-style handle over a ``websockets`` client connection.

The provider only needs a narrow view of a socket: a ready state, an async
``send``, ``close``, and four callbacks (``on_open``, ``on_message``,
``on_close``, ``on_error``). ``WebSocketHandle`` adapts the
``websockets`` asyncio client to that view. Constructing a handle starts
connecting immediately; a background task owns the connection and feeds
inbound text frames to ``on_message``.

Any object with the same attributes can be injected into the provider via
``socket_factory`` (the test suite does exactly that).
"""

import asyncio
import logging
from enum import IntEnum
from typing import Any, Callable, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from chainrpc_ws.errors import SendRejectedError

logger = logging.getLogger(__name__)


class ReadyState(IntEnum):
    """Socket ready states, numbered like the W3C WebSocket API."""
    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


# factory(url, protocol, headers, options) -> handle
SocketFactory = Callable[[str, Optional[str], Dict[str, str], Dict[str, Any]], Any]


class WebSocketHandle:
    """One WebSocket connection attempt and its lifetime.

    Callback signatures:
        on_open() -> None
        on_message(text: str) -> None
        on_close(code: Optional[int], reason: str) -> None
        on_error(exc: BaseException) -> None

    A failed connection attempt fires ``on_error`` followed by
    ``on_close``. ``on_close`` fires exactly once per handle.
    """

    def __init__(
        self,
        url: str,
        protocol: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ):
        self.url = url
        self.protocol = protocol
        self.headers = dict(headers or {})
        self.options = dict(options or {})
        self.ready_state = ReadyState.CONNECTING

        self.on_open: Optional[Callable[[], Any]] = None
        self.on_message: Optional[Callable[[str], Any]] = None
        self.on_close: Optional[Callable[[Optional[int], str], Any]] = None
        self.on_error: Optional[Callable[[BaseException], Any]] = None

        self._ws: Optional[Any] = None
        self._finished = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def __repr__(self) -> str:
        return f"WebSocketHandle({self.url!r}, state={self.ready_state.name})"

    def _fire(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            # Keep the reader alive; the listener owns its own failures.
            logger.exception("Socket listener raised")

    async def _run(self) -> None:
        code: Optional[int] = None
        reason = ""
        try:
            async with websockets.connect(
                self.url,
                additional_headers=self.headers or None,
                subprotocols=[self.protocol] if self.protocol else None,
                **self.options,
            ) as ws:
                self._ws = ws
                self.ready_state = ReadyState.OPEN
                logger.info("Connected to %s", self.url)
                self._fire(self.on_open)

                async for message in ws:
                    if not isinstance(message, str):
                        logger.debug("Ignoring binary frame (%d bytes)", len(message))
                        continue
                    self._fire(self.on_message, message)

                code, reason = ws.close_code, ws.close_reason or ""
        except ConnectionClosed as exc:
            rcvd = exc.rcvd
            code = rcvd.code if rcvd is not None else None
            reason = rcvd.reason if rcvd is not None else ""
            logger.info("Connection to %s closed: %s", self.url, exc)
        except asyncio.CancelledError:
            logger.debug("Connection attempt to %s cancelled", self.url)
        except Exception as exc:
            logger.info("Connection to %s failed: %s", self.url, exc)
            self._fire(self.on_error, exc)
        finally:
            self._finish(code, reason)

    def _finish(self, code: Optional[int], reason: str) -> None:
        if self._finished:
            return
        self._finished = True
        self._ws = None
        self.ready_state = ReadyState.CLOSED
        self._fire(self.on_close, code, reason)

    async def send(self, text: str) -> None:
        """Transmit one text frame. Raises ``SendRejectedError`` unless open."""
        if self.ready_state != ReadyState.OPEN or self._ws is None:
            raise SendRejectedError("connection not open")
        await self._ws.send(text)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection (or abandon the attempt) and wait for it."""
        if self.ready_state == ReadyState.CLOSED:
            return
        self.ready_state = ReadyState.CLOSING
        if self._ws is not None:
            await self._ws.close(code, reason)
        else:
            self._task.cancel()
        if self._task is not asyncio.current_task():
            await asyncio.gather(self._task, return_exceptions=True)
        # A task cancelled before its first step never reaches its finally.
        self._finish(None, reason)


def create_websocket(
    url: str,
    protocol: Optional[str],
    headers: Dict[str, str],
    options: Dict[str, Any],
) -> WebSocketHandle:
    """Default ``SocketFactory``."""
    return WebSocketHandle(url, protocol=protocol, headers=headers, options=options)


__all__ = [
    "ReadyState",
    "SocketFactory",
    "WebSocketHandle",
    "create_websocket",
]

"""Correlation of JSON-RPC responses with pending requests.

Every outbound request is stored as a ``PendingRequest`` keyed by its id.
A pending request is resolved exactly once, by whichever comes first:

- a response carrying its id (``resolve_one``),
- its per-request timeout (``ConnectionTimeoutError``),
- mass invalidation when the socket closes or errors (``resolve_all``),
- an explicit rejection when transmission fails (``reject``).

The entry is always removed from the registry before its callback runs,
so a callback that immediately sends again sees a consistent state.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from chainrpc_ws.errors import ConnectionTimeoutError
from chainrpc_ws.messages import as_response, is_subscription_notification
from chainrpc_ws.client.notifications import NotificationBus

logger = logging.getLogger(__name__)

# Node-style callback: (error, result). Exactly one of them is not None.
ResponseCallback = Callable[[Optional[BaseException], Any], Any]


def _key(ident: Any) -> str:
    """Registry key for a request id (``42`` and ``"42"`` are the same id)."""
    return str(ident)


@dataclass
class PendingRequest:
    """An outstanding request awaiting its response."""
    id: Any
    method: Optional[str]
    callback: ResponseCallback
    timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class CallbackRegistry:
    """Map of request id to ``PendingRequest``.

    Args:
        notifications: Bus receiving unmatched subscription pushes. When
            None, unmatched values are always dropped.
    """

    def __init__(self, notifications: Optional[NotificationBus] = None):
        self._notifications = notifications
        self._pending: Dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, ident: Any) -> bool:
        return _key(ident) in self._pending

    def get(self, ident: Any) -> Optional[PendingRequest]:
        return self._pending.get(_key(ident))

    @property
    def pending_ids(self) -> List[Any]:
        return [p.id for p in self._pending.values()]

    def register(
        self,
        ident: Any,
        method: Optional[str],
        callback: ResponseCallback,
        timeout: Optional[float] = None,
    ) -> PendingRequest:
        """Store ``callback`` under ``ident``.

        Args:
            ident: Request id.
            method: Originating method name, kept for diagnostics.
            callback: Invoked once with ``(error, result)``.
            timeout: Seconds to wait before failing the request with
                ``ConnectionTimeoutError``. None disables the timeout.
        """
        key = _key(ident)
        previous = self._pending.get(key)
        if previous is not None:
            logger.warning(
                "Request id %r (%s) re-registered while still pending; "
                "previous callback discarded", ident, previous.method,
            )
            previous.cancel_timer()

        pending = PendingRequest(id=ident, method=method, callback=callback)
        if timeout:
            loop = asyncio.get_running_loop()
            pending.timer = loop.call_later(timeout, self._expire, key, pending, timeout)
        self._pending[key] = pending
        logger.debug("Registered request %r (%s), %d pending", ident, method, len(self._pending))
        return pending

    def _pop(self, key: str) -> Optional[PendingRequest]:
        pending = self._pending.pop(key, None)
        if pending is not None:
            pending.cancel_timer()
        return pending

    def _expire(self, key: str, pending: PendingRequest, timeout: float) -> None:
        # The id may have been resolved and reused since the timer was armed.
        if self._pending.get(key) is not pending:
            return
        del self._pending[key]
        pending.timer = None
        logger.debug("Request %r (%s) timed out after %ss", pending.id, pending.method, timeout)
        pending.callback(ConnectionTimeoutError(timeout), None)

    def resolve_one(self, value: Any) -> bool:
        """Deliver a parsed inbound value to the request it answers.

        For a batch, the first element whose id is currently registered
        selects the callback; the whole batch is passed to it. Unmatched
        subscription pushes go to the notification bus.

        Returns:
            True if a pending request was resolved.
        """
        response = as_response(value)
        for ident in response.ids:
            pending = self._pop(_key(ident))
            if pending is not None:
                logger.debug("Resolved request %r (%s)", pending.id, pending.method)
                pending.callback(None, value)
                return True

        if is_subscription_notification(value):
            if self._notifications is not None:
                self._notifications.dispatch(value)
        else:
            logger.debug("Dropping uncorrelated message with ids %r", response.ids)
        return False

    def reject(self, ident: Any, error: BaseException) -> bool:
        """Fail a single pending request. Returns False if it was not pending."""
        pending = self._pop(_key(ident))
        if pending is None:
            return False
        pending.callback(error, None)
        return True

    def resolve_all(self, error: BaseException) -> int:
        """Fail every pending request with ``error`` and clear the registry.

        Returns:
            Number of requests invalidated.
        """
        pending = list(self._pending.values())
        self._pending.clear()
        for entry in pending:
            entry.cancel_timer()
        if pending:
            logger.info("Invalidating %d pending request(s): %s", len(pending), error)
        for entry in pending:
            entry.callback(error, None)
        return len(pending)


__all__ = ["CallbackRegistry", "PendingRequest", "ResponseCallback"]

"""Listeners for subscription pushes."""

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

NotificationListener = Callable[[Any], Any]


class NotificationBus:
    """Ordered list of listeners invoked for every subscription push.

    Listener exceptions are not suppressed; they propagate to whoever
    called ``dispatch``.
    """

    def __init__(self):
        self._listeners: List[NotificationListener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def __contains__(self, listener: NotificationListener) -> bool:
        return listener in self._listeners

    def add_listener(self, listener: NotificationListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: NotificationListener) -> None:
        """Remove every registration of ``listener``."""
        self._listeners = [cb for cb in self._listeners if cb != listener]

    def clear(self) -> None:
        self._listeners = []

    def dispatch(self, value: Any) -> None:
        """Invoke each listener with ``value`` in registration order."""
        # Snapshot so listeners may (un)register during dispatch.
        for listener in list(self._listeners):
            listener(value)


__all__ = ["NotificationBus", "NotificationListener"]

"""Re-framing of JSON-RPC messages from raw WebSocket text frames.

Nodes are free to pack several JSON values into one frame with no
separator (``...}{...``, ``...}][{...``) or to split one value across
several frames. ``FrameDechunker`` restores the message boundaries:

    dechunker = FrameDechunker(on_timeout=registry.resolve_all)
    dechunker.ingest('{"id":1,"result":1}{"id":2,')   # -> [{"id": 1, ...}]
    dechunker.ingest('"result":2}')                   # -> [{"id": 2, ...}]

A fragment that never completes is dropped after ``timeout`` seconds and
``on_timeout`` receives an ``InvalidResponseError``.
"""

import asyncio
import json
import logging
import re
from typing import Any, Callable, List, Optional

from chainrpc_ws.errors import InvalidResponseError

logger = logging.getLogger(__name__)

DEFAULT_DECHUNK_TIMEOUT = 15.0

# Internal delimiter inserted at every detected message boundary.
_DELIMITER = "|--|"

# Applied in order. Each pattern matches a closing brace/bracket directly
# followed (optionally across one line break) by an opening one.
_BOUNDARIES = (
    (re.compile(r"\}[\n\r]?\{"), "}" + _DELIMITER + "{"),
    (re.compile(r"\}\][\n\r]?\[\{"), "}]" + _DELIMITER + "[{"),
    (re.compile(r"\}[\n\r]?\[\{"), "}" + _DELIMITER + "[{"),
    (re.compile(r"\}\][\n\r]?\{"), "}]" + _DELIMITER + "{"),
)


def split_candidates(chunk: str) -> List[str]:
    """Split a raw frame into candidate JSON texts, preserving order."""
    for pattern, replacement in _BOUNDARIES:
        chunk = pattern.sub(replacement, chunk)
    return chunk.split(_DELIMITER)


class FrameDechunker:
    """Stateful parser turning text frames into complete JSON values.

    At most one partial fragment is buffered at a time. It is prepended to
    the next candidate and cleared on every successful parse.
    """

    def __init__(
        self,
        on_timeout: Optional[Callable[[InvalidResponseError], Any]] = None,
        timeout: float = DEFAULT_DECHUNK_TIMEOUT,
    ):
        self._on_timeout = on_timeout
        self._timeout = timeout
        self._buffer: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def buffered(self) -> Optional[str]:
        """The partial fragment awaiting completion, if any."""
        return self._buffer

    def ingest(self, chunk: str) -> List[Any]:
        """Parse a frame, returning the complete values it finishes."""
        values: List[Any] = []

        for candidate in split_candidates(chunk):
            if self._buffer:
                candidate = self._buffer + candidate

            try:
                value = json.loads(candidate)
            except ValueError:
                self._buffer = candidate
                self._arm_timer()
                continue

            self._cancel_timer()
            self._buffer = None
            values.append(value)

        return values

    def reset(self) -> None:
        """Drop any buffered fragment and cancel its completion timer."""
        self._cancel_timer()
        self._buffer = None

    def _arm_timer(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._timeout, self._expire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        fragment = self._buffer
        self._timer = None
        self._buffer = None
        logger.warning(
            "Dropping incomplete frame after %.1fs: %.200r", self._timeout, fragment,
        )
        if self._on_timeout is not None:
            self._on_timeout(InvalidResponseError(fragment))


__all__ = [
    "DEFAULT_DECHUNK_TIMEOUT",
    "FrameDechunker",
    "split_candidates",
]

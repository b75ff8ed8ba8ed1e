"""Bearer-token refresh for authenticated node endpoints.

``AuthRefresher`` obtains a token from a user-supplied async callable,
hands it to the provider (which installs ``Authorization: Bearer ...`` and
recreates the socket), and keeps doing so on a fixed interval. Failures
are retried forever with a fixed backoff and are never surfaced to
request callbacks.

State machine:
    IDLE -> REFRESHING (start)
    REFRESHING -> SCHEDULED (token installed; wait sync_interval)
    REFRESHING -> BACKOFF_WAIT (provider failed; wait retry_delay)
    SCHEDULED | BACKOFF_WAIT -> REFRESHING (timer elapsed)
    * -> IDLE (stop)

Independently, ``ensure_fresh()`` runs before every send and performs one
refresh cycle when the current token's ``exp`` claim has passed.
"""

import asyncio
import inspect
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from jose import jwt
from jose.exceptions import JOSEError

from chainrpc_ws.errors import AuthRefreshError, MalformedTokenError

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = 60.0
DEFAULT_RETRY_DELAY = 10.0

TokenProvider = Callable[[], Awaitable[str]]
TokenSink = Callable[[str], Any]


def token_expiry(token: str) -> float:
    """Return the ``exp`` claim of a JWT as epoch seconds.

    The signature is not verified; only the expiry is of interest here.

    Raises:
        MalformedTokenError: The token is not a decodable JWT or carries no
            numeric ``exp`` claim.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JOSEError as exc:
        raise MalformedTokenError(f"Cannot decode access token: {exc}") from exc

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise MalformedTokenError("Access token has no numeric 'exp' claim")
    return float(exp)


def is_token_expired(token: str, now: Optional[float] = None) -> bool:
    """True once the current whole second is past the token's expiry."""
    if now is None:
        now = time.time()
    return int(now) > token_expiry(token)


class AuthState(Enum):
    """Refresh loop state."""
    IDLE = "idle"
    REFRESHING = "refreshing"
    SCHEDULED = "scheduled"
    BACKOFF_WAIT = "backoff_wait"


class AuthRefresher:
    """Background token refresh loop.

    Args:
        get_access_token: Async callable returning a bearer token string.
        on_token: Called with each new token; may be a coroutine function.
        sync_interval: Seconds between successful refreshes.
        retry_delay: Seconds to wait after a failed refresh.
    """

    def __init__(
        self,
        get_access_token: TokenProvider,
        on_token: TokenSink,
        sync_interval: float = DEFAULT_SYNC_INTERVAL,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ):
        self._get_access_token = get_access_token
        self._on_token = on_token
        self.sync_interval = sync_interval
        self.retry_delay = retry_delay

        self._token: Optional[str] = None
        self._state = AuthState.IDLE
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def token_expired(self) -> bool:
        """Whether the installed token is known to have expired.

        Opaque (non-JWT) tokens have no readable expiry and are treated as
        valid; the periodic refresh still replaces them.
        """
        if not self._token:
            return False
        try:
            return is_token_expired(self._token)
        except MalformedTokenError as exc:
            logger.debug("Token expiry unknown: %s", exc)
            return False

    async def _refresh_locked(self) -> None:
        self._state = AuthState.REFRESHING
        try:
            token = await self._get_access_token()
            if not token:
                raise ValueError("token provider returned an empty token")
            result = self._on_token(token)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise AuthRefreshError() from exc
        self._token = token
        logger.info("Access token refreshed")

    async def refresh(self) -> None:
        """Run one REFRESHING step. Raises ``AuthRefreshError`` on failure."""
        async with self._lock:
            await self._refresh_locked()

    async def sync(self) -> float:
        """Run one full cycle and return the delay before the next one."""
        try:
            await self.refresh()
        except AuthRefreshError as exc:
            logger.warning(
                "%s (%s); retrying in %.0fs", exc, exc.__cause__, self.retry_delay,
            )
            self._state = AuthState.BACKOFF_WAIT
            return self.retry_delay
        self._state = AuthState.SCHEDULED
        return self.sync_interval

    async def start(self) -> None:
        """Refresh once now, then keep refreshing in the background."""
        if self._task is not None:
            return
        delay = await self.sync()
        self._task = asyncio.get_running_loop().create_task(self._run(delay))

    async def _run(self, delay: float) -> None:
        while True:
            await asyncio.sleep(delay)
            delay = await self.sync()

    async def ensure_fresh(self) -> None:
        """Refresh synchronously if the current token has expired."""
        if not self.token_expired:
            return
        async with self._lock:
            # Another caller may have refreshed while we waited for the lock.
            if not self.token_expired:
                return
            logger.info("Access token expired; refreshing before send")
            try:
                await self._refresh_locked()
            except AuthRefreshError as exc:
                logger.warning("%s (%s); sending with the current token", exc, exc.__cause__)
                self._state = AuthState.BACKOFF_WAIT
                return
            self._state = AuthState.SCHEDULED

    async def stop(self) -> None:
        """Cancel the background loop."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._state = AuthState.IDLE


__all__ = [
    "AuthRefresher",
    "AuthState",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_SYNC_INTERVAL",
    "TokenProvider",
    "is_token_expired",
    "token_expiry",
]

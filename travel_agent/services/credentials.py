"""Bearer-token cache with request coalescing.

One ``CredentialCache`` per API client (injectable, no module globals).

* The token is fetched lazily on first use and then reused until
  ``invalidate()`` is called (the client does that on a 401).
* While a login is in flight, every other caller awaits the *same* task, so
  N concurrent callers produce exactly one login call and all see the same
  token or the same exception.
* A failed login clears the in-flight slot: the next caller starts a fresh
  attempt instead of re-awaiting the broken one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

LoginFn = Callable[[], Awaitable[str]]


class CredentialCache:
    """Caches one bearer token and coalesces concurrent acquisitions."""

    def __init__(self, login: LoginFn) -> None:
        self._login = login
        self._token: str | None = None
        self._inflight: asyncio.Future[str] | None = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> str | None:
        """The cached token, if any (never triggers a login)."""
        return self._token

    def invalidate(self) -> None:
        """Forget the cached token so the next ``get_token`` logs in again."""
        self._token = None
        # A finished task still holds the old token; drop it too
        if self._inflight is not None and self._inflight.done():
            self._inflight = None

    async def get_token(self, force_refresh: bool = False) -> str:
        """Return the cached token, logging in (once) if there is none."""
        async with self._lock:
            if force_refresh:
                self.invalidate()
            if self._token is not None:
                return self._token
            if self._inflight is None:
                logger.debug("No cached token, starting login")
                self._inflight = asyncio.ensure_future(self._acquire())
            inflight = self._inflight
        # shield: one cancelled caller must not cancel the shared login
        return await asyncio.shield(inflight)

    async def _acquire(self) -> str:
        try:
            token = await self._login()
        except BaseException:
            self._inflight = None
            raise
        self._token = token
        return token

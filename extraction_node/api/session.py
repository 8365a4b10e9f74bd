"""
Owns the single process-wide client-emulation session.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .client import InnertubeSession

log = logging.getLogger(__name__)

SessionFactory = Callable[[], Awaitable[InnertubeSession]]


class SessionManager:
    """
    Creates the session on first use and hands out the same instance afterwards.

    Creation is single-flight: concurrent first callers wait on the same lock
    and share one session. A failed creation is not cached, so the next call
    starts over.
    """

    def __init__(self, factory: SessionFactory = InnertubeSession.create):
        self._factory = factory
        self._session: Optional[InnertubeSession] = None
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def get_session(self) -> InnertubeSession:
        """Returns the singleton session, creating it on the first call."""
        async with self._get_lock():
            if self._session is not None and not self._session.closed:
                return self._session

            log.debug("Creating client-emulation session...")
            self._session = await self._factory()
            log.debug("Client-emulation session ready.")

        return self._session

    async def close(self) -> None:
        """Closes the session if one was created."""
        async with self._get_lock():
            if self._session is not None:
                await self._session.close()
                self._session = None
                log.debug("Client-emulation session closed.")


_manager = SessionManager()


async def get_session() -> InnertubeSession:
    """Gets or creates the shared client-emulation session."""
    return await _manager.get_session()


async def close_session() -> None:
    """Closes the shared client-emulation session."""
    await _manager.close()

"""
Sender allow-list with an explicit cache.

The allowed From addresses come either from a static list (ALLOWED_SENDERS) or
from a resolver such as ``SesTransport.list_verified_senders``. Resolved lists
are cached for ``ttl_seconds``; ``None`` keeps them for the life of the
process, in which case newly verified identities only appear after
``invalidate()`` or a restart.

A failed resolution raises and leaves the cache untouched.
"""

import asyncio
import logging
import time
from typing import Callable, Iterable, Optional

from maildeck.services.blocking import run_blocking

logger = logging.getLogger(__name__)


def parse_sender_list(value: Optional[str]) -> list[str]:
    """Split a comma-separated ALLOWED_SENDERS value."""
    if not value:
        return []
    return [s.strip() for s in value.split(",") if s.strip()]


class SenderAllowList:
    def __init__(
        self,
        static_senders: Optional[Iterable[str]] = None,
        resolver: Optional[Callable[[], list[str]]] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if static_senders is None and resolver is None:
            raise ValueError("SenderAllowList needs static_senders or a resolver")

        self._static = list(static_senders) if static_senders is not None else None
        self._resolver = resolver
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached: Optional[list[str]] = None
        self._cached_at = 0.0
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        if self._cached is None:
            return False
        if self._ttl is None:
            return True
        return self._clock() - self._cached_at < self._ttl

    def invalidate(self) -> None:
        """Drop the cached list; the next lookup resolves again."""
        self._cached = None

    async def get_senders(self) -> list[str]:
        """
        Return the allowed sender addresses.

        Raises:
            UpstreamServiceError: The resolver failed
        """
        if self._static is not None:
            return list(self._static)

        if self._is_fresh():
            return list(self._cached)

        async with self._lock:
            # Another request may have refreshed while we waited
            if self._is_fresh():
                return list(self._cached)

            senders = await run_blocking(self._resolver)
            self._cached = list(senders)
            self._cached_at = self._clock()
            logger.info(f"Sender allow-list refreshed: {len(self._cached)} address(es)")
            return list(self._cached)

    async def is_allowed(self, address: str) -> bool:
        wanted = address.strip().lower()
        return any(s.lower() == wanted for s in await self.get_senders())

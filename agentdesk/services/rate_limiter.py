"""
Provider Rate Limiter

Spaces outbound embedding/completion calls at least MIN_API_INTERVAL_MS
apart across every request in the process. Slot reservation happens
under a thread lock so the limiter is safe when shared between event
loops (API workers, Celery tasks running ``asyncio.run``).
"""

import asyncio
import logging
import threading
import time
from functools import lru_cache
from typing import Callable, Optional

from agentdesk.config import settings

logger = logging.getLogger(__name__)


class ProviderRateLimiter:
    """
    Token bucket of one

    Each caller reserves the next free slot (``last + interval``) while
    holding the lock, then sleeps until that slot outside the lock.
    Grants are therefore FIFO by arrival at the lock and never closer
    together than ``min_interval``.
    """

    def __init__(
        self,
        min_interval_ms: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        interval = settings.MIN_API_INTERVAL_MS if min_interval_ms is None else min_interval_ms
        self.min_interval = interval / 1000.0
        self._clock = clock
        self._lock = threading.Lock()
        self._last_granted: Optional[float] = None

    def _reserve(self) -> float:
        with self._lock:
            now = self._clock()
            if self._last_granted is None:
                slot = now
            else:
                slot = max(now, self._last_granted + self.min_interval)
            self._last_granted = slot
            return slot

    async def await_turn(self) -> float:
        """
        Wait until this caller may issue a provider call

        Returns:
            The granted slot time (clock units)
        """
        slot = self._reserve()
        delay = slot - self._clock()
        if delay > 0:
            await asyncio.sleep(delay)
        return slot


@lru_cache(maxsize=1)
def get_rate_limiter() -> ProviderRateLimiter:
    """Process-wide limiter shared by every provider client"""
    return ProviderRateLimiter()

"""
Per-source request pacing.

After each request to a source the crawler sleeps ceil(60000 / rate) ms, where
rate is the source's rate_limit_per_minute. State is keyed by source id so
sources never share a budget.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


def pacing_delay_ms(rate_limit_per_minute: Optional[int]) -> int:
    """Milliseconds to wait after one request; 0 when the rate is non-positive."""
    if not rate_limit_per_minute or rate_limit_per_minute <= 0:
        return 0
    return math.ceil(60000 / rate_limit_per_minute)


@dataclass
class SourcePacing:
    """Pacing counters for one source."""
    requests: int = 0
    slept_ms: int = 0


class SourceThrottle:
    """Sleeps between requests to the same source."""

    def __init__(self, sleep: Optional[Callable[[float], Awaitable[None]]] = None):
        self._sleep = sleep or asyncio.sleep
        self._state: Dict[str, SourcePacing] = {}

    def state_for(self, source_id: str) -> SourcePacing:
        return self._state.setdefault(str(source_id), SourcePacing())

    async def pace(self, source_id: str, rate_limit_per_minute: Optional[int]) -> int:
        """
        Record a request to source_id and wait out its pacing delay.

        Returns:
            The delay applied, in milliseconds
        """
        state = self.state_for(source_id)
        state.requests += 1

        delay_ms = pacing_delay_ms(rate_limit_per_minute)
        if delay_ms:
            state.slept_ms += delay_ms
            await self._sleep(delay_ms / 1000)
        return delay_ms

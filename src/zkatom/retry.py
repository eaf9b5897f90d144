"""
Retry policy untuk optimistic concurrency loops.

Full-jitter exponential backoff: delay untuk attempt ke-n adalah
random di antara 0 dan min(max_delay, base_delay * 2^(n-1)).
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Optional

from .errors import RetryLimitExceeded


@dataclass
class RetryPolicy:
    """
    Args:
        base_delay: Delay dasar (seconds)
        max_delay: Batas atas delay (seconds)
        max_attempts: None = retry tanpa batas
    """
    base_delay: float = 0.005
    max_delay: float = 0.5
    max_attempts: Optional[int] = None

    def delay(self, attempt: int) -> float:
        """Randomized delay sebelum retry ke-`attempt` (mulai dari 1)"""
        if self.base_delay <= 0:
            return 0.0
        exponent = min(max(attempt, 1) - 1, 32)
        ceiling = min(self.max_delay, self.base_delay * (2 ** exponent))
        return random.uniform(0, ceiling)

    async def wait(self, attempt: int) -> None:
        """
        Sleep sebelum retry. Raise RetryLimitExceeded jika
        `attempt` failures sudah mencapai max_attempts.
        """
        if self.max_attempts is not None and attempt >= self.max_attempts:
            raise RetryLimitExceeded(attempt)
        await asyncio.sleep(self.delay(attempt))

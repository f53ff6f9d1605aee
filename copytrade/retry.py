import random
from dataclasses import dataclass
from typing import Optional

from copytrade.enums import RetryMode


@dataclass
class RetryPolicy:
    mode: RetryMode = RetryMode.FIXED
    delay_s: float = 10.0
    max_delay_s: float = 300.0
    max_retries: Optional[int] = None
    jitter: bool = True

    def exhausted(self, attempt: int) -> bool:
        return self.max_retries is not None and attempt > self.max_retries

    def delay(self, attempt: int) -> float:
        """Delay before restart number `attempt` (1-based)."""
        if self.mode is RetryMode.FIXED:
            return self.delay_s
        backoff = min(self.max_delay_s, self.delay_s * (2 ** min(attempt - 1, 10)))
        if self.jitter:
            backoff *= random.uniform(0.8, 1.3)
            backoff = min(backoff, self.max_delay_s)
        return backoff

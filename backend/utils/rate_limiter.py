"""Rate limiting for application submissions (in-memory sliding window per key)."""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
import logging
import os

logger = logging.getLogger(__name__)

SUBMIT_RATE_LIMIT = int(os.getenv("SUBMIT_RATE_LIMIT", "10"))
SUBMIT_RATE_WINDOW_MINUTES = int(os.getenv("SUBMIT_RATE_WINDOW_MINUTES", "60"))


class RateLimiter:
    def __init__(self):
        # In-memory rate limiting (single process)
        self.attempts: Dict[str, List[datetime]] = {}

    async def check_rate_limit(
        self,
        key: str,
        max_attempts: int,
        window_minutes: int,
        now: Optional[datetime] = None,
    ) -> tuple[bool, Optional[int]]:
        """
        Record an attempt for `key` unless the window is already full.

        Returns:
            (allowed: bool, retry_after_seconds: Optional[int])
        """
        now = now or datetime.now(timezone.utc)
        window = timedelta(minutes=window_minutes)

        recent = [t for t in self.attempts.get(key, []) if now - t < window]
        if len(recent) >= max_attempts:
            self.attempts[key] = recent
            retry_after = max(1, int((min(recent) + window - now).total_seconds()))
            logger.warning(f"Rate limit exceeded for {key}; retry in {retry_after}s")
            return False, retry_after

        recent.append(now)
        self.attempts[key] = recent
        return True, None

    def reset(self):
        self.attempts.clear()


rate_limiter = RateLimiter()

"""
Rate limits for Peer Relay.

Two independent limits live here. The SlowAPI ``limiter`` throttles the
plain HTTP endpoints per client address; route modules import it from here
so that ``main`` does not have to be imported first. ``PollRateLimiter``
spaces out mailbox drains of a single signaling session.
"""

import logging
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from peer_relay.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 4500

_REDIS_SCHEMES = ("redis://", "rediss://")


def get_limiter_storage() -> Optional[str]:
    """
    Storage URI for the HTTP limiter.

    A well-formed ``redis_url`` shares counters between relay instances.
    Anything else keeps counters in process memory.
    """
    url = settings.redis_url
    if not url:
        return None
    if not url.startswith(_REDIS_SCHEMES):
        logger.warning("Ignoring REDIS_URL with unsupported scheme; using in-memory storage")
        return None
    return url


def create_limiter() -> Limiter:
    """Build the per-address limiter; limits are applied per route."""
    storage_uri = get_limiter_storage()
    logger.info(
        "HTTP rate limit storage selected",
        extra={"storage": "redis" if storage_uri else "memory"},
    )
    return Limiter(
        key_func=get_remote_address,
        storage_uri=storage_uri or "memory://",
        default_limits=[],
    )


class PollRateLimiter:
    """
    Minimum-interval gate for mailbox drains.

    A drain is allowed when no drain happened yet or when at least
    ``min_interval_ms`` elapsed since the last allowed one. ``acquire``
    records the new timestamp in the same step, so two overlapping polls on
    one session cannot both pass and the window does not depend on how long
    the drain itself takes.
    """

    def __init__(self, min_interval_ms: int = DEFAULT_POLL_INTERVAL_MS):
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must be non-negative")
        self.min_interval_ms = min_interval_ms
        self.last_poll_at: Optional[int] = None

    def allow(self, now_ms: int) -> bool:
        if self.last_poll_at is None:
            return True
        return now_ms - self.last_poll_at >= self.min_interval_ms

    def acquire(self, now_ms: int) -> bool:
        if not self.allow(now_ms):
            return False
        self.last_poll_at = now_ms
        return True

    def release(self, previous: Optional[int]) -> None:
        """Undo the last ``acquire``, restoring the timestamp it replaced"""
        self.last_poll_at = previous


# Shared by every route module
limiter = create_limiter()

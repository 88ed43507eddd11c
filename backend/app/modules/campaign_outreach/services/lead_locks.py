"""
Per-Lead Lock Registry

In-process asyncio locks keyed by (campaign_id, lead_id).

The dispatcher holds the lock around safety check -> processing -> provider call -> advance,
and the webhook holds it around its status write + advance, so a scheduler tick, a human
approval and a PhantomBuster callback can never interleave on the same CampaignLead.

IMPORTANT: This is a single-process lock. If you run several API instances,
each needs its own scheduler disabled or a database-level lock instead.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Tuple

logger = logging.getLogger("lead_locks")

LeadKey = Tuple[int, int]


class LeadLockRegistry:
    """
    Usage:
        async with lead_locks.hold(campaign_id, lead_id):
            ...  # exclusive for this pair inside this process

    Locks are dropped from the registry once nobody holds or waits on them.
    """

    def __init__(self):
        self._locks: Dict[LeadKey, asyncio.Lock] = {}
        self._waiters: Dict[LeadKey, int] = {}

    @asynccontextmanager
    async def hold(self, campaign_id: int, lead_id: int):
        key = (campaign_id, lead_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1

        if lock.locked():
            logger.debug(f"Waiting for lead lock {key}")

        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    def is_locked(self, campaign_id: int, lead_id: int) -> bool:
        lock = self._locks.get((campaign_id, lead_id))
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Singleton instance shared by dispatcher, webhook and scheduler
lead_locks = LeadLockRegistry()

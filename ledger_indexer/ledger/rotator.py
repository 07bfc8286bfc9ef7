"""
Credential rotation and throttling for outbound ledger calls.

Spreads requests round-robin over one or more pools of API keys and
enforces a minimum interval between two uses of the same key, so the
upstream RPC endpoint never sees a burst on a single credential.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

import structlog

logger = structlog.get_logger()


class CredentialRotator:
    """
    Round-robin credential selector with per-credential backoff.

    All pools share one ``asyncio.Lock``. When the selected credential was
    used less than ``min_delay`` seconds ago, :meth:`acquire` sleeps for the
    remainder while still holding the lock, so acquisitions are serialized
    pool-wide. A pool of size 1 therefore caps its callers at
    ``1 / min_delay`` requests per second.
    """

    def __init__(
        self,
        pools: Mapping[str, Sequence[str]],
        min_delay: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the rotator.

        Args:
            pools: Pool name to credential list. Blank entries are dropped.
            min_delay: Minimum seconds between two uses of one credential
            clock: Monotonic clock (injectable for tests)
            sleep: Async sleep function (injectable for tests)

        Raises:
            ValueError: If a credential appears in more than one pool
        """
        if min_delay < 0:
            raise ValueError("min_delay must be >= 0")

        self._pools: Dict[str, List[str]] = {}
        owner: Dict[str, str] = {}
        for name, credentials in pools.items():
            cleaned = [c.strip() for c in credentials if c and c.strip()]
            for credential in cleaned:
                if owner.get(credential, name) != name:
                    raise ValueError(
                        f"Credential configured in both '{owner[credential]}' "
                        f"and '{name}' pools"
                    )
                owner[credential] = name
            self._pools[name] = cleaned

        self.min_delay = min_delay
        self._clock = clock
        self._sleep = sleep
        self._cursors: Dict[str, int] = {name: 0 for name in self._pools}
        self._last_used: Dict[str, float] = {}
        self._lock = asyncio.Lock()

        logger.info(
            "rotator.initialized",
            pools={name: len(keys) for name, keys in self._pools.items()},
            min_delay_ms=int(min_delay * 1000),
        )

    async def acquire(self, pool: str) -> Optional[str]:
        """
        Return the next credential of ``pool`` in round-robin order.

        Args:
            pool: Pool name

        Returns:
            The credential, or None when the pool is empty or unknown
        """
        async with self._lock:
            credentials = self._pools.get(pool)
            if not credentials:
                return None

            cursor = self._cursors[pool]
            credential = credentials[cursor % len(credentials)]
            self._cursors[pool] = cursor + 1

            last_used = self._last_used.get(credential)
            if last_used is not None:
                elapsed = self._clock() - last_used
                if elapsed < self.min_delay:
                    wait = self.min_delay - elapsed
                    logger.debug(
                        "rotator.throttled",
                        pool=pool,
                        wait_ms=round(wait * 1000, 2),
                    )
                    await self._sleep(wait)

            self._last_used[credential] = self._clock()
            return credential

    def pool_size(self, pool: str) -> int:
        return len(self._pools.get(pool, []))

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot of pool sizes and rotation counters. Does not alter state."""
        rotations = dict(self._cursors)
        return {
            "pools": {name: len(keys) for name, keys in self._pools.items()},
            "rotations": rotations,
            "total_rotations": sum(rotations.values()),
            "tracked_credentials": len(self._last_used),
            "min_delay_ms": int(self.min_delay * 1000),
        }

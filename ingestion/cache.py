"""
Two-tier geocode cache mapping a normalized place key to a PIN code.

Tier 1 is a process-local, size-bounded TTL map (no I/O).
Tier 2 is Redis, shared between workers; any Redis failure is logged and
treated as a miss so resolution can always fall through to the external
lookup. Unresolved lookups are never cached.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Tuple

from redis.exceptions import RedisError

from core.exceptions import CacheTierError

logger = logging.getLogger(__name__)


def place_key(village: str, district: Optional[str] = None) -> str:
    """Normalized cache key: "<village>-<district>", lowercased and trimmed"""
    return f"{village.strip().lower()}-{(district or '').strip().lower()}"


class LocalTTLCache:
    """
    Process-local cache with per-entry expiry.

    Expired entries are dropped lazily on read; when full, the oldest
    inserted entry is evicted.
    """

    def __init__(
        self,
        default_ttl: float = 86400,
        maxsize: int = 10000,
        clock: Callable[[], float] = time.monotonic
    ):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.default_ttl = default_ttl
        self.maxsize = maxsize
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._entries.pop(key, None)
        while len(self._entries) >= self.maxsize:
            self._entries.popitem(last=False)
        self._entries[key] = (value, self._clock() + ttl)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class RedisCacheTier:
    """
    Distributed tier backed by redis.asyncio.

    get/set never raise: connection problems degrade to a miss.
    """

    def __init__(self, client, default_ttl: int = 86400, prefix: str = "pin:"):
        self.client = client
        self.default_ttl = default_ttl
        self.prefix = prefix

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self._call("GET", self.client.get, self.prefix + key)
        except CacheTierError as e:
            logger.warning(
                f"Redis get failed - falling back to local cache: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        try:
            await self._call("SET", self.client.set, self.prefix + key, value, ex=int(ttl))
        except CacheTierError as e:
            logger.warning(
                f"Redis set failed - using local cache only: {e.message}",
                extra={"error_context": e.to_dict()}
            )

    async def _call(self, command: str, func, *args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (RedisError, OSError) as e:
            raise CacheTierError(
                f"Redis {command} failed",
                context={"command": command, "key": args[0]},
                original_exception=e
            )


class GeocodeCache:
    """
    Tiered cache consulted by the postal resolver.

    Lookup: local tier, then Redis (backfilling local on a Redis hit).
    Store: both tiers.
    """

    def __init__(
        self,
        local: LocalTTLCache,
        remote: Optional[RedisCacheTier] = None,
        remote_ttl: Optional[int] = None
    ):
        self.local = local
        self.remote = remote
        self.remote_ttl = remote_ttl

    async def get(self, key: str) -> Optional[str]:
        value = self.local.get(key)
        if value is not None:
            return value

        if self.remote is None:
            return None

        value = await self.remote.get(key)
        if value is not None:
            logger.debug(f"Geocode cache: Redis hit for {key}")
            self.local.set(key, value)
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self.local.set(key, value, ttl)
        if self.remote is not None:
            await self.remote.set(key, value, ttl if ttl is not None else self.remote_ttl)

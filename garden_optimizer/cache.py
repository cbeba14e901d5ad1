"""
Layout Cache - TTL cache with single-flight computation.

At most one computation runs per key at a time. Callers that arrive while
a key is being computed block on the in-flight slot and receive the same
value (or the same CacheComputationError). A waiter may bound its wait, and
may refuse a value that is no good to it (a result cut short by another
caller's tighter deadline) and compute again. Expired entries are dropped
lazily on access; nothing sweeps in the background.
"""

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from garden_optimizer.errors import CacheComputationError, CacheWaitTimeoutError
from garden_optimizer.models import Garden, Plant
from garden_optimizer.settings import DEFAULT_CACHE_TTL_SECONDS, OptimizationParams

log = logging.getLogger(__name__)

# Params that change how long a call may run or how long it is kept, not what it computes
_NON_RESULT_PARAMS = ("deadline_ms", "cache_ttl_seconds", "max_workers")


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class _InFlight:
    """A computation currently running for one key."""

    def __init__(self):
        self.done = threading.Event()
        self.value: Any = None
        self.error: Optional[CacheComputationError] = None


def layout_cache_key(garden: Garden, plants: Iterable[Plant], params: OptimizationParams) -> str:
    """
    Cache key for one compute_layout call.

    Format: "<garden id>:<sha256 of zones, plants and result-affecting params>".
    Plants are sorted by id so input order does not change the key.
    """
    params_dict = {k: v for k, v in params.to_dict().items() if k not in _NON_RESULT_PARAMS}
    document = {
        "garden": {"id": garden.id, "total_area": garden.total_area},
        "zones": [
            {"id": z.id, "area": z.area, "sunlight_condition": z.sunlight_condition.value}
            for z in garden.zones
        ],
        "plants": [p.to_dict() for p in sorted(plants, key=lambda p: p.id)],
        "params": params_dict,
    }
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{garden.id}:{digest}"


class LayoutCache:
    """
    Thread-safe layout cache.

    The lock guards the entry map and the in-flight map only; compute
    functions always run outside it.

    Usage:
        cache = LayoutCache()
        layout = cache.get_or_compute(key, lambda: engine.run(...))
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, _InFlight] = {}

        self.hits = 0
        self.misses = 0
        self.computations = 0
        self.shared_waits = 0

    def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Any],
        ttl: Optional[float] = None,
        should_cache: Optional[Callable[[Any], bool]] = None,
        wait_timeout: Optional[float] = None,
        should_share: Optional[Callable[[Any], bool]] = None,
    ) -> Any:
        """
        Return the cached value for key, computing it at most once concurrently.

        Args:
            key: Cache key (see layout_cache_key)
            compute_fn: Zero-argument function producing the value
            ttl: Seconds the value stays valid (default_ttl if None)
            should_cache: Predicate deciding whether a computed value is stored
            wait_timeout: Longest this caller waits on another caller's computation
            should_share: Predicate deciding whether this caller may take a value
                another caller computed; if it says no, this caller computes again

        Raises:
            CacheComputationError: compute_fn raised; every waiter gets the same error
            CacheWaitTimeoutError: wait_timeout ran out while another caller was computing
        """
        ttl = self.default_ttl if ttl is None else ttl
        wait_until = None if wait_timeout is None else time.monotonic() + wait_timeout

        while True:
            with self._lock:
                entry = self._entries.get(key)
                if entry is not None:
                    if not entry.expired(self._clock()):
                        self.hits += 1
                        log.debug(f"Cache hit for {key}")
                        return entry.value
                    del self._entries[key]
                    log.debug(f"Cache entry expired for {key}")

                slot = self._inflight.get(key)
                leader = slot is None
                if leader:
                    slot = _InFlight()
                    self._inflight[key] = slot
                    self.misses += 1
                else:
                    self.shared_waits += 1

            if leader:
                break

            log.debug(f"Waiting on in-flight computation for {key}")
            remaining = None if wait_until is None else max(0.0, wait_until - time.monotonic())
            if not slot.done.wait(remaining):
                log.warning(f"Timed out waiting on in-flight computation for {key}")
                raise CacheWaitTimeoutError(key, wait_timeout)
            if slot.error is not None:
                raise slot.error
            if should_share is None or should_share(slot.value):
                return slot.value
            log.debug(f"In-flight result for {key} not usable by this caller, computing again")

        log.info(f"Cache miss for {key}, computing")
        try:
            value = compute_fn()
        except Exception as e:
            slot.error = CacheComputationError(key, f"Layout computation failed for {key}: {e}")
            slot.error.__cause__ = e
            log.error(f"Computation for {key} failed: {e}")
            raise slot.error from e
        else:
            slot.value = value
            with self._lock:
                if should_cache is None or should_cache(value):
                    self._entries[key] = CacheEntry(key, value, self._clock() + ttl)
                else:
                    log.debug(f"Result for {key} not cached")
            return value
        finally:
            with self._lock:
                self.computations += 1
                self._inflight.pop(key, None)
            slot.done.set()

    def get(self, key: str) -> Optional[Any]:
        """Cached value for key, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_garden(self, garden_id: str) -> int:
        """Drop every entry computed for a garden. Returns the number removed."""
        prefix = f"{garden_id}:"
        with self._lock:
            stale = [k for k in self._entries if k.startswith(prefix)]
            for k in stale:
                del self._entries[k]
        if stale:
            log.info(f"Invalidated {len(stale)} cached layouts for garden {garden_id}")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "in_flight": len(self._inflight),
                "hits": self.hits,
                "misses": self.misses,
                "computations": self.computations,
                "shared_waits": self.shared_waits,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

"""Bounded caches for constraint rectangles and screen-side results."""

import logging
from typing import Any, Dict, Hashable, Iterable, Mapping, Optional, Tuple

from ..core.models import PlayerState, PositionBounds

logger = logging.getLogger("overlap_engine.cache")

# (id, slot, x_mm, y_mm, is_server) for one of the other players
OtherPlayerKey = Tuple[str, int, float, float, bool]
CacheKey = Tuple[int, bool, Tuple[OtherPlayerKey, ...]]


def constraint_cache_key(
    slot: int,
    positions: Mapping[int, PlayerState],
    is_server: bool,
    precision: int = 3
) -> CacheKey:
    """
    Structural key: the dragged slot, its server flag and the sorted
    positions of every other player rounded to `precision` decimals.
    """
    others = tuple(sorted(
        (p.id, p.slot, round(p.x, precision), round(p.y, precision), p.is_server)
        for s, p in positions.items()
        if s != slot
    ))
    return (slot, is_server, others)



class BoundedCache:
    """
    Fixed-capacity map. Oldest entry is evicted first. Entries never
    expire on their own; callers invalidate explicitly.
    """

    def __init__(self, capacity: int = 256):
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.capacity = capacity
        self._entries: Dict[Hashable, Any] = {}
        self.evictions = 0

    def get(self, key: Hashable) -> Optional[Any]:
        return self._entries.get(key)

    def put(self, key: Hashable, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.capacity:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self.evictions += 1
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def info(self) -> Dict[str, int]:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "evictions": self.evictions,
        }


class ConstraintCache(BoundedCache):
    """BoundedCache from CacheKey to PositionBounds, invalidated per dragged slot."""

    def get(self, key: CacheKey) -> Optional[PositionBounds]:
        return super().get(key)

    def put(self, key: CacheKey, bounds: PositionBounds) -> None:
        super().put(key, bounds)

    def invalidate_slots(self, slots: Iterable[int]) -> int:
        """Drop entries computed for any of the given dragged slots."""
        targets = set(slots)
        stale = [key for key in self._entries if key[0] in targets]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cache entries for slots {sorted(targets)}")
        return len(stale)

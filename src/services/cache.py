"""
CacheManager - stores previously seen items for offline reuse.
Items are ranked by freshness x relevance; the snapshot persists as JSON.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Collection, Dict, List, Optional

from pydantic import ValidationError

from core.entities import CachedItem, utcnow
from core.schemas import CacheSnapshot, CachedItemRecord
from services.config import CacheSettings

logger = logging.getLogger(__name__)


class CacheManager:
    def __init__(self, settings: CacheSettings):
        self.settings = settings
        self._items: Dict[str, CachedItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Optional[CachedItem]:
        return self._items.get(item_id)

    def score(self, item: CachedItem, now: datetime) -> float:
        return item.score(now, self.settings.freshness_half_life_hours)

    def _expired(self, item: CachedItem, now: datetime) -> bool:
        return item.age_hours(now) > self.settings.max_age_hours

    def put(self, item: CachedItem, now: Optional[datetime] = None) -> bool:
        """
        Insert or replace an item. Returns False when the item is rejected.
        """
        now = now or utcnow()

        if item.quality < self.settings.quality_floor:
            logger.debug(f"[cache] Rejected {item.id}: quality {item.quality:.2f} below floor")
            return False

        self._items[item.id] = item

        while len(self._items) > self.settings.capacity:
            evicted = min(self._items.values(), key=lambda i: self.score(i, now))
            del self._items[evicted.id]
            logger.debug(f"[cache] Evicted {evicted.id} (score {self.score(evicted, now):.3f})")

        return item.id in self._items

    def serve(
        self,
        count: int,
        now: Optional[datetime] = None,
        exclude: Collection[str] = (),
    ) -> List[CachedItem]:
        """
        Freshest, highest-relevance unexpired items first; marks them used.
        """
        now = now or utcnow()
        available = [
            item for item in self._items.values()
            if item.id not in exclude and not self._expired(item, now)
        ]
        available.sort(key=lambda i: (-self.score(i, now), i.times_used))

        served = available[:max(0, count)]
        for item in served:
            item.times_used += 1

        logger.debug(f"[cache] Served {len(served)}/{len(available)} items")
        return served

    def available_count(self, now: Optional[datetime] = None, exclude: Collection[str] = ()) -> int:
        now = now or utcnow()
        return sum(
            1 for item in self._items.values()
            if item.id not in exclude and not self._expired(item, now)
        )

    def prune(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        stale = [
            item_id for item_id, item in self._items.items()
            if self._expired(item, now) or item.quality < self.settings.quality_floor
        ]
        for item_id in stale:
            del self._items[item_id]

        if stale:
            logger.info(f"[cache] Pruned {len(stale)} items, {len(self._items)} remain")
        return len(stale)

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(items=[CachedItemRecord.from_item(i) for i in self._items.values()])

    def save(self, path: str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.snapshot().model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"[cache] Saved {len(self._items)} items to {target}")

    def load(self, path: str, now: Optional[datetime] = None) -> int:
        """
        Replace contents from a snapshot file. Missing or corrupt files leave an empty cache.
        """
        self._items = {}
        source = Path(path)

        if not source.exists():
            logger.info(f"[cache] No cache file at {source}, starting empty")
            return 0

        try:
            snapshot = CacheSnapshot.model_validate_json(source.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.warning(f"[cache] Ignoring corrupt cache file {source}: {e}")
            return 0

        for record in snapshot.items:
            self.put(record.to_item(), now)

        logger.info(f"[cache] Loaded {len(self._items)} items from {source}")
        return len(self._items)

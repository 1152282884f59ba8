"""
Fallback Orchestrator - chooses live, cached or procedural content per fetch cycle.
Consecutive failures demote the primary source; consecutive successes promote it back.
"""
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Collection, Deque, List, Optional, Tuple

from core.entities import CachedItem, ContentOrigin, GameContext, RawItem, utcnow
from ingestion.procedural import ProceduralGenerator
from services.cache import CacheManager
from services.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceHealth:
    primary: ContentOrigin
    consecutive_failures: int
    consecutive_successes: int
    health: float
    attempts: int
    last_error: Optional[str]


def cached_to_raw(item: CachedItem) -> RawItem:
    return RawItem(
        id=item.id,
        headline=item.headline,
        summary=item.summary,
        source=f"cache:{item.origin.value}",
        published_at=item.cached_at,
        origin=ContentOrigin.CACHE,
    )


class FallbackOrchestrator:
    def __init__(
        self,
        settings: Settings,
        cache: CacheManager,
        generator: ProceduralGenerator,
    ):
        self.settings = settings
        self.cache = cache
        self.generator = generator

        self.primary = ContentOrigin.LIVE
        self.consecutive_failures = 0
        self.consecutive_successes = 0
        self.attempts = 0
        self.last_error: Optional[str] = None
        self._window: Deque[bool] = deque(maxlen=max(1, settings.fallback.health_window))

    @property
    def health(self) -> float:
        """Success ratio over the rolling window; 1.0 before any attempt."""
        if not self._window:
            return 1.0
        return sum(self._window) / len(self._window)

    def _offline_target(self, now: Optional[datetime] = None, exclude: Collection[str] = ()) -> ContentOrigin:
        if self.cache.available_count(now, exclude) >= self.settings.fallback.min_cached_for_offline:
            return ContentOrigin.CACHE
        if self.settings.enable_procedural_fallback:
            return ContentOrigin.PROCEDURAL
        return ContentOrigin.CACHE

    def _switch(self, target: ContentOrigin) -> Optional[Tuple[ContentOrigin, ContentOrigin]]:
        if target == self.primary:
            return None
        previous, self.primary = self.primary, target
        logger.warning(f"[fallback] Primary source {previous.value} -> {target.value}")
        return previous, target

    def record_success(self) -> Optional[Tuple[ContentOrigin, ContentOrigin]]:
        """
        Record a successful live fetch. Returns (previous, current) when the primary changes.
        """
        self.attempts += 1
        self._window.append(True)
        self.consecutive_failures = 0
        self.consecutive_successes += 1

        if (
            self.primary != ContentOrigin.LIVE
            and self.consecutive_successes >= self.settings.fallback.promote_after_successes
        ):
            return self._switch(ContentOrigin.LIVE)
        return None

    def record_failure(
        self,
        reason: str = "",
        now: Optional[datetime] = None,
        exclude: Collection[str] = (),
    ) -> Optional[Tuple[ContentOrigin, ContentOrigin]]:
        """
        Record a failed live fetch. Returns (previous, current) when the primary changes.
        Cached items in `exclude` do not count towards switching to the cache.
        """
        self.attempts += 1
        self._window.append(False)
        self.consecutive_successes = 0
        self.consecutive_failures += 1
        self.last_error = reason or None

        logger.info(
            f"[fallback] Live fetch failed ({self.consecutive_failures} in a row): {reason}"
        )

        if (
            self.primary == ContentOrigin.LIVE
            and self.consecutive_failures >= self.settings.fallback.demote_after_failures
        ):
            return self._switch(self._offline_target(now, exclude))
        return None

    def generate_procedural(self, count: int, context: GameContext, now: Optional[datetime] = None) -> List[RawItem]:
        return self._procedural(count, context, now or utcnow())

    def _procedural(self, count: int, context: GameContext, now: datetime) -> List[RawItem]:
        if not self.settings.enable_procedural_fallback or count <= 0:
            return []
        limit = min(count, self.settings.fallback.max_procedural_per_cycle)
        return self.generator.generate(limit, context, now)

    def _cached(self, count: int, now: datetime, exclude: Collection[str]) -> List[RawItem]:
        return [cached_to_raw(item) for item in self.cache.serve(count, now, exclude)]

    def select_content(
        self,
        live_items: Optional[List[RawItem]],
        count: int,
        context: GameContext,
        exclude: Collection[str] = (),
        now: Optional[datetime] = None,
        cache_exclude: Optional[Collection[str]] = None,
    ) -> List[RawItem]:
        """
        Items for one cycle. `live_items` is None when no live result is usable.
        `exclude` filters live items; `cache_exclude` (default: `exclude`) filters cached ones.
        """
        now = now or utcnow()
        if cache_exclude is None:
            cache_exclude = exclude
        if count <= 0:
            return []

        if self.primary == ContentOrigin.LIVE and live_items is not None:
            blended = 0
            if self.settings.enable_procedural_fallback and live_items:
                blended = int(round(count * self.settings.blend_ratio))
            fresh = [item for item in live_items if item.id not in exclude]
            selected = fresh[:count - blended]
            selected.extend(self._procedural(blended, context, now))
            logger.debug(
                f"[fallback] Live cycle: {len(fresh)} live available, {blended} procedural slots"
            )
            return selected

        if self.primary == ContentOrigin.PROCEDURAL:
            selected = self._procedural(count, context, now)
            if not selected:
                selected = self._cached(count, now, cache_exclude)
            return selected

        # Cache primary, or live not yet demoted but this cycle's fetch failed
        selected = self._cached(count, now, cache_exclude)
        if len(selected) < count:
            selected.extend(self._procedural(count - len(selected), context, now))
        return selected

    def status(self) -> SourceHealth:
        return SourceHealth(
            primary=self.primary,
            consecutive_failures=self.consecutive_failures,
            consecutive_successes=self.consecutive_successes,
            health=self.health,
            attempts=self.attempts,
            last_error=self.last_error,
        )

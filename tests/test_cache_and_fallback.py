import random
from datetime import timedelta

import pytest

from core.entities import CachedItem, ContentOrigin, EventCategory, GameContext
from ingestion.procedural import ProceduralGenerator
from services.cache import CacheManager
from services.config import CacheSettings, FallbackSettings, Settings
from services.fallback import FallbackOrchestrator

from conftest import NOW, make_item


def _cached(item_id, relevance=0.8, quality=0.8, age_hours=0.0):
    return CachedItem(
        id=item_id,
        origin=ContentOrigin.LIVE,
        headline=f"Headline {item_id}",
        summary="",
        category=EventCategory.ECONOMIC,
        keywords=["budget"],
        relevance=relevance,
        quality=quality,
        controversy=0.1,
        cached_at=NOW - timedelta(hours=age_hours),
    )


class TestCacheManager:
    def test_rejects_low_quality(self):
        cache = CacheManager(CacheSettings())
        assert not cache.put(_cached("a", quality=0.2), NOW)
        assert len(cache) == 0

    def test_evicts_lowest_score_over_capacity(self):
        cache = CacheManager(CacheSettings(capacity=2))
        cache.put(_cached("fresh", relevance=0.9), NOW)
        cache.put(_cached("stale", relevance=0.9, age_hours=48), NOW)
        cache.put(_cached("new", relevance=0.5), NOW)

        assert "stale" not in cache
        assert "fresh" in cache and "new" in cache

    def test_serve_orders_by_score_and_counts_use(self):
        cache = CacheManager(CacheSettings())
        cache.put(_cached("low", relevance=0.3), NOW)
        cache.put(_cached("high", relevance=0.9), NOW)

        served = cache.serve(2, NOW)

        assert [i.id for i in served] == ["high", "low"]
        assert cache.get("high").times_used == 1

    def test_serve_skips_expired_and_excluded(self):
        cache = CacheManager(CacheSettings(max_age_hours=72))
        cache.put(_cached("old", age_hours=100), NOW)
        cache.put(_cached("taken"), NOW)
        cache.put(_cached("ok"), NOW)

        assert [i.id for i in cache.serve(5, NOW, exclude={"taken"})] == ["ok"]
        assert cache.prune(NOW) == 1
        assert "old" not in cache

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "cache" / "news.json"
        cache = CacheManager(CacheSettings())
        cache.put(_cached("a"), NOW)
        cache.put(_cached("b", relevance=0.6), NOW)
        cache.save(str(path))

        restored = CacheManager(CacheSettings())
        assert restored.load(str(path), NOW) == 2
        assert restored.get("b").relevance == 0.6

    def test_corrupt_file_gives_empty_cache(self, tmp_path):
        path = tmp_path / "news.json"
        path.write_text("{not json", encoding="utf-8")

        cache = CacheManager(CacheSettings())
        cache.put(_cached("a"), NOW)

        assert cache.load(str(path), NOW) == 0
        assert len(cache) == 0

    def test_offset_free_timestamps_load_as_utc(self, tmp_path):
        path = tmp_path / "news.json"
        path.write_text(
            '{"version": 1, "items": [{"id": "a", "origin": "live", "headline": "Budget vote", '
            '"category": "Economic", "relevance": 0.8, "quality": 0.8, '
            '"cached_at": "2026-03-01T10:00:00"}]}',
            encoding="utf-8",
        )
        cache = CacheManager(CacheSettings())

        assert cache.load(str(path), NOW) == 1
        assert cache.get("a").cached_at == NOW - timedelta(hours=2)
        assert [i.id for i in cache.serve(5, NOW)] == ["a"]
        assert cache.prune(NOW) == 0

    def test_missing_file_gives_empty_cache(self, tmp_path):
        assert CacheManager(CacheSettings()).load(str(tmp_path / "missing.json"), NOW) == 0


def _orchestrator(settings=None, cache=None):
    settings = settings or Settings(enable_procedural_fallback=True)
    cache = cache or CacheManager(settings.cache)
    return FallbackOrchestrator(settings, cache, ProceduralGenerator(random.Random(3)))


class TestFallbackOrchestrator:
    def test_demotes_to_procedural_after_consecutive_failures(self):
        fallback = _orchestrator()

        assert fallback.record_failure("down", NOW) is None
        assert fallback.record_failure("down", NOW) is None
        change = fallback.record_failure("down", NOW)

        assert change == (ContentOrigin.LIVE, ContentOrigin.PROCEDURAL)
        assert fallback.primary == ContentOrigin.PROCEDURAL
        assert fallback.health == 0.0

    def test_demotes_to_cache_when_enough_items(self):
        settings = Settings(fallback=FallbackSettings(min_cached_for_offline=2))
        cache = CacheManager(settings.cache)
        cache.put(_cached("a"), NOW)
        cache.put(_cached("b"), NOW)
        fallback = _orchestrator(settings, cache)

        for _ in range(3):
            change = fallback.record_failure("down", NOW)

        assert change == (ContentOrigin.LIVE, ContentOrigin.CACHE)

    def test_items_backing_active_events_do_not_count_for_cache(self):
        settings = Settings(
            enable_procedural_fallback=True,
            fallback=FallbackSettings(min_cached_for_offline=2),
        )
        cache = CacheManager(settings.cache)
        cache.put(_cached("a"), NOW)
        cache.put(_cached("b"), NOW)
        fallback = _orchestrator(settings, cache)

        for _ in range(3):
            change = fallback.record_failure("down", NOW, exclude={"a"})

        assert change == (ContentOrigin.LIVE, ContentOrigin.PROCEDURAL)

    def test_success_resets_failure_streak(self):
        fallback = _orchestrator()
        fallback.record_failure("down", NOW)
        fallback.record_failure("down", NOW)
        fallback.record_success()
        fallback.record_failure("down", NOW)

        assert fallback.primary == ContentOrigin.LIVE

    def test_promotes_back_after_consecutive_successes(self):
        fallback = _orchestrator()
        for _ in range(3):
            fallback.record_failure("down", NOW)

        assert fallback.record_success() is None
        assert fallback.record_success() == (ContentOrigin.PROCEDURAL, ContentOrigin.LIVE)
        assert fallback.status().consecutive_successes == 2

    def test_live_cycle_blends_procedural_slots(self):
        fallback = _orchestrator()
        live = [make_item(f"Live story {i}", item_id=f"live-{i}") for i in range(10)]

        selected = fallback.select_content(live, 5, GameContext(), now=NOW)

        origins = [i.origin for i in selected]
        assert origins.count(ContentOrigin.LIVE) == 3
        assert origins.count(ContentOrigin.PROCEDURAL) == 2

    def test_live_cycle_without_procedural(self):
        fallback = _orchestrator(Settings(enable_procedural_fallback=False))
        live = [make_item(f"Live story {i}", item_id=f"live-{i}") for i in range(10)]

        selected = fallback.select_content(live, 5, GameContext(), exclude={"live-0"}, now=NOW)

        assert [i.id for i in selected] == ["live-1", "live-2", "live-3", "live-4", "live-5"]

    def test_failed_cycle_serves_cache_then_procedural(self):
        settings = Settings(enable_procedural_fallback=True)
        cache = CacheManager(settings.cache)
        cache.put(_cached("a"), NOW)
        fallback = _orchestrator(settings, cache)

        selected = fallback.select_content(None, 3, GameContext(), now=NOW)

        assert selected[0].id == "a"
        assert selected[0].origin == ContentOrigin.CACHE
        assert [i.origin for i in selected[1:]] == [ContentOrigin.PROCEDURAL] * 2


class TestProceduralGenerator:
    def test_generates_requested_items(self):
        generator = ProceduralGenerator(random.Random(11))

        items = generator.generate(6, GameContext(), NOW)

        assert len(items) == 6
        assert len({i.id for i in items}) == 6
        assert all(i.origin == ContentOrigin.PROCEDURAL for i in items)
        assert all("{" not in i.headline and "{" not in i.summary for i in items)

    def test_same_seed_same_output(self):
        first = ProceduralGenerator(random.Random(5)).generate(4, GameContext(), NOW)
        second = ProceduralGenerator(random.Random(5)).generate(4, GameContext(), NOW)
        assert first == second

    @pytest.mark.parametrize(
        "context, category",
        [
            (GameContext(office_tier=3), EventCategory.INTERNATIONAL),
            (GameContext(turns_to_election=5), EventCategory.ELECTION),
            (GameContext(approval=0.2), EventCategory.SCANDAL),
        ],
    )
    def test_context_unlocks_categories(self, context, category):
        weights = ProceduralGenerator(random.Random(1)).category_weights(context)
        assert category in weights
        assert category not in ProceduralGenerator(random.Random(1)).category_weights(GameContext())

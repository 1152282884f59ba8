import asyncio
from datetime import datetime, timedelta

import pytest

from core.entities import ContentOrigin, CycleStage, ResponseStatus
from delivery.base import NotificationKind
from workflows.pipeline_factory import build_orchestrator

from conftest import (
    NOW,
    SCANDAL_HEADLINE,
    SCANDAL_SUMMARY,
    FailingSource,
    FixedRandom,
    RaisingSource,
    SlowSource,
    StaticSource,
    hours_ago,
    make_item,
)


def _build(settings, state, sink, source, roll=0.0):
    return build_orchestrator(settings, state, source=source, sinks=[sink], rng=FixedRandom(roll))


class TestScandalScenario:
    @pytest.mark.asyncio
    async def test_breaking_scandal_to_condemn(self, settings, state, sink, scandal_item):
        state.tier = 3
        source = StaticSource([scandal_item])
        orchestrator = _build(settings, state, sink, source)

        created = await orchestrator.update(NOW)

        assert len(created) == 1
        event = created[0]
        assert event.template_id == "SCAN_001"
        assert event.stage == CycleStage.BREAKING
        assert event.effects["trust"] == pytest.approx(-9.6)
        assert sink.kinds() == [NotificationKind.NEW_EVENT_AVAILABLE, NotificationKind.BREAKING_NEWS]
        assert sink.received[0].requires_action
        assert orchestrator.pending_player_actions() == [event]

        result = orchestrator.process_player_response(event.id, "condemn")

        assert result.status == ResponseStatus.APPLIED and result.success
        assert state.resources["trust"] == pytest.approx(53.6)
        assert state.resources["party_loyalty"] == pytest.approx(48.2)
        assert state.resources["political_capital"] == 20.0
        assert event.resolved
        assert orchestrator.stances.latest("defense").stance == "Oppose"
        assert orchestrator.would_be_flip_flop("defense", "Support")
        assert sink.kinds()[-1] == NotificationKind.RESPONSE_PROCESSED

    @pytest.mark.asyncio
    async def test_second_response_is_rejected(self, settings, state, sink, scandal_item):
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        event = (await orchestrator.update(NOW))[0]
        orchestrator.process_player_response(event.id, "condemn")
        before = dict(state.resources)

        result = orchestrator.process_player_response(event.id, "defend")

        assert result.status == ResponseStatus.REJECTED
        assert state.resources == before
        assert sink.kinds()[-1] == NotificationKind.COMMAND_REJECTED

    @pytest.mark.asyncio
    async def test_resolved_event_retires_on_turn_advance(self, settings, state, sink, scandal_item):
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        event = (await orchestrator.update(NOW))[0]
        orchestrator.process_player_response(event.id, "condemn")

        state.advance_turn()
        orchestrator.on_turn_advance()

        assert orchestrator.active_events() == []
        assert orchestrator.get_event(event.id) is event
        assert event.stage == CycleStage.ARCHIVED
        assert NotificationKind.STAGE_CHANGED in sink.kinds()
        assert NotificationKind.EVENT_EXPIRED not in sink.kinds()

        late = orchestrator.process_player_response(event.id, "condemn")
        assert late.status == ResponseStatus.REJECTED


class TestCommands:
    @pytest.mark.asyncio
    async def test_unknown_event_is_rejected(self, settings, state, sink):
        orchestrator = _build(settings, state, sink, None)

        result = orchestrator.process_player_response("evt-missing", "condemn")

        assert result.status == ResponseStatus.REJECTED
        assert sink.of_kind(NotificationKind.COMMAND_REJECTED)[0].event_id == "evt-missing"

    @pytest.mark.asyncio
    async def test_alignment_mismatch_leaves_event_open(self, settings, state, sink, scandal_item):
        state.good_evil = 80.0
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        event = (await orchestrator.update(NOW))[0]
        before = dict(state.resources)

        result = orchestrator.process_player_response(event.id, "defend")

        assert result.status == ResponseStatus.ALIGNMENT_MISMATCH
        assert state.resources == before
        assert not event.resolved
        processed = sink.of_kind(NotificationKind.RESPONSE_PROCESSED)[-1]
        assert processed.payload["success"] is False

    @pytest.mark.asyncio
    async def test_insufficient_resources(self, settings, state, sink, crisis_item):
        state.resources["political_capital"] = 2.0
        orchestrator = _build(settings, state, sink, StaticSource([crisis_item]))
        event = (await orchestrator.update(NOW))[0]

        result = orchestrator.process_player_response(event.id, "act")

        assert result.status == ResponseStatus.INSUFFICIENT_RESOURCES
        assert state.resources["political_capital"] == 2.0
        assert not event.resolved


class TestTurnAdvance:
    @pytest.mark.asyncio
    async def test_deferred_effect_applies_once(self, settings, state, sink, crisis_item):
        orchestrator = _build(settings, state, sink, StaticSource([crisis_item]))
        event = (await orchestrator.update(NOW))[0]
        result = orchestrator.process_player_response(event.id, "investigate")
        assert result.success and len(result.deferred) == 1
        trust_after_response = state.resources["trust"]

        state.advance_turn()
        orchestrator.on_turn_advance()
        assert state.resources["trust"] == pytest.approx(trust_after_response)

        state.advance_turn()
        orchestrator.on_turn_advance()
        orchestrator.on_turn_advance()
        assert state.resources["trust"] == pytest.approx(trust_after_response + 3.0 * 0.3 * 1.5)
        assert orchestrator.effects.pending() == []

    @pytest.mark.asyncio
    async def test_gradual_effect_and_reputation_over_turns(self, settings, state, sink, crisis_item):
        orchestrator = _build(settings, state, sink, StaticSource([crisis_item]))
        event = (await orchestrator.update(NOW))[0]
        result = orchestrator.process_player_response(event.id, "delegate")
        gradual = result.deferred[0]
        capital = state.resources["political_capital"]

        assert orchestrator.status().reputation_tags == ("crisis_handler",)
        assert sink.of_kind(NotificationKind.RESPONSE_PROCESSED)[-1].payload["reputation"] == ["crisis_handler"]

        assert gradual.due_turn == 1
        state.advance_turn()
        orchestrator.on_turn_advance()
        assert state.resources["political_capital"] == pytest.approx(capital + gradual.delta / 3)

        for _ in range(2):
            state.advance_turn()
            orchestrator.on_turn_advance()
        assert state.resources["political_capital"] == pytest.approx(capital + gradual.delta)
        assert orchestrator.effects.active_gradual() == []

    @pytest.mark.asyncio
    async def test_unanswered_event_expires(self, settings, state, sink):
        item = make_item("Local bakery wins award", "A family bakery won praise downtown.", item_id="bakery")
        orchestrator = _build(settings, state, sink, StaticSource([item]))
        event = (await orchestrator.update(NOW))[0]

        state.turn = event.expiration_turn
        orchestrator.on_turn_advance()

        assert event.expired
        assert orchestrator.active_events() == []
        assert sink.of_kind(NotificationKind.EVENT_EXPIRED)[0].event_id == event.id

    @pytest.mark.asyncio
    async def test_procedural_top_up_keeps_minimum_active(self, state, sink):
        from services.config import Settings

        settings = Settings(
            enable_live_news=False,
            enable_procedural_fallback=True,
            cache_path=None,
            min_active_events=3,
        )
        orchestrator = _build(settings, state, sink, None)

        orchestrator.on_turn_advance()

        assert len(orchestrator.active_events()) == 3
        assert all(e.origin == ContentOrigin.PROCEDURAL for e in orchestrator.active_events())

    @pytest.mark.asyncio
    async def test_stages_only_move_forward_until_historical(self, state, sink, scandal_item):
        from services.config import Settings

        settings = Settings(
            enable_procedural_fallback=False,
            cache_path=None,
            fetch_interval_seconds=0,
            turn_duration_hours=120.0,
        )
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        event = (await orchestrator.update(NOW))[0]

        stages = [event.stage]
        for _ in range(15):
            orchestrator.on_turn_advance()
            cycle = orchestrator.cycles.get_state(event.id)
            if cycle is not None:
                assert cycle.stage == event.stage
            stages.append(event.stage)

        assert stages == sorted(stages)
        assert stages[0] == CycleStage.BREAKING
        assert stages[-1] == CycleStage.HISTORICAL
        assert orchestrator.get_event(event.id) is None
        changes = [n for n in sink.of_kind(NotificationKind.STAGE_CHANGED) if n.event_id == event.id]
        assert changes[-1].payload == {"previous": "ARCHIVED", "current": "HISTORICAL"}

    @pytest.mark.asyncio
    async def test_forced_archive_announces_stage_change(self, settings, state, sink, scandal_item):
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        event = (await orchestrator.update(NOW))[0]
        orchestrator.process_player_response(event.id, "condemn")

        orchestrator.on_turn_advance()

        change = sink.of_kind(NotificationKind.STAGE_CHANGED)[-1]
        assert change.event_id == event.id
        assert change.payload == {"previous": "DEVELOPING", "current": "ARCHIVED"}

    @pytest.mark.asyncio
    async def test_seen_ids_are_forgotten_with_history(self, state, sink, scandal_item):
        from services.config import Settings

        settings = Settings(
            enable_procedural_fallback=False,
            cache_path=None,
            fetch_interval_seconds=0,
            turn_duration_hours=1200.0,
        )
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        await orchestrator.update(NOW)
        assert orchestrator.has_seen(scandal_item.id)

        orchestrator.on_turn_advance()
        orchestrator.on_turn_advance()

        assert not orchestrator.has_seen(scandal_item.id)

    @pytest.mark.asyncio
    async def test_step_failure_does_not_stop_turn(self, settings, state, sink, scandal_item, monkeypatch):
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        await orchestrator.update(NOW)

        def broken():
            raise RuntimeError("fatigue store offline")

        monkeypatch.setattr(orchestrator.fatigue, "decay", broken)
        state.advance_turn()
        orchestrator.on_turn_advance()

        assert NotificationKind.STAGE_CHANGED in sink.kinds()


class TestFetchCycle:
    @pytest.mark.asyncio
    async def test_repeated_items_are_not_duplicated(self, settings, state, sink, scandal_item):
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))

        first = await orchestrator.update(NOW)
        second = await orchestrator.update(NOW + timedelta(minutes=10))

        assert len(first) == 1
        assert second == []
        assert len(orchestrator.active_events()) == 1

    @pytest.mark.asyncio
    async def test_seen_ids_are_capped(self, state, sink):
        from services.config import Settings

        settings = Settings(enable_procedural_fallback=False, cache_path=None, max_seen_items=2)
        orchestrator = _build(settings, state, sink, None)
        items = [make_item(f"Story number {n}", item_id=f"story-{n}") for n in range(3)]

        orchestrator.ingest(items, now=NOW)

        assert not orchestrator.has_seen("story-0")
        assert orchestrator.has_seen("story-1") and orchestrator.has_seen("story-2")

    @pytest.mark.asyncio
    async def test_breaking_cap_demotes_extra_items(self, settings, state, sink):
        items = [
            make_item(f"Story number {name}", "Nothing to see.", item_id=f"story-{name}")
            for name in ("one", "two", "three")
        ]
        orchestrator = _build(settings, state, sink, StaticSource(items))

        created = await orchestrator.update(NOW)

        assert [e.stage for e in created] == [
            CycleStage.BREAKING, CycleStage.BREAKING, CycleStage.DEVELOPING,
        ]
        assert orchestrator.dequeue_next_event().stage == CycleStage.BREAKING

    @pytest.mark.asyncio
    async def test_old_items_enter_later_stages(self, settings, state, sink):
        item = make_item("Story from last week", "Nothing to see.", item_id="old", published_at=hours_ago(100))
        orchestrator = _build(settings, state, sink, StaticSource([item]))

        created = await orchestrator.update(NOW)

        assert created[0].stage == CycleStage.ONGOING
        assert NotificationKind.BREAKING_NEWS not in sink.kinds()

    @pytest.mark.asyncio
    async def test_offset_free_publish_time_is_read_as_utc(self, settings, state, sink):
        item = make_item(
            SCANDAL_HEADLINE, SCANDAL_SUMMARY, item_id="scandal-naive", published_at=datetime(2026, 3, 1, 11, 0)
        )
        orchestrator = _build(settings, state, sink, StaticSource([item]))

        created = await orchestrator.update(NOW)

        assert len(created) == 1
        assert created[0].stage == CycleStage.BREAKING
        assert item.published_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_disabled_category_is_skipped(self, state, sink, scandal_item):
        from core.entities import EventCategory
        from services.config import Settings

        settings = Settings(
            enable_procedural_fallback=False,
            cache_path=None,
            disabled_categories=[EventCategory.SCANDAL],
        )
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))

        assert await orchestrator.update(NOW) == []

    @pytest.mark.asyncio
    async def test_failures_demote_to_procedural(self, state, sink):
        from services.config import Settings

        settings = Settings(enable_procedural_fallback=True, cache_path=None, fetch_interval_seconds=0)
        orchestrator = _build(settings, state, sink, FailingSource())

        for minute in range(3):
            await orchestrator.update(NOW + timedelta(minutes=minute))

        assert orchestrator.current_source == ContentOrigin.PROCEDURAL
        change = sink.of_kind(NotificationKind.SOURCE_CHANGED)
        assert [n.payload for n in change] == [{"previous": "live", "current": "procedural"}]
        assert orchestrator.active_events()
        assert all(e.origin == ContentOrigin.PROCEDURAL for e in orchestrator.active_events())

        orchestrator.source = StaticSource([make_item("Senate passes bill", item_id="live-1")])
        await orchestrator.update(NOW + timedelta(minutes=5))
        await orchestrator.update(NOW + timedelta(minutes=6))

        assert orchestrator.current_source == ContentOrigin.LIVE

    @pytest.mark.asyncio
    async def test_raising_source_counts_as_failure(self, settings, state, sink):
        orchestrator = _build(settings, state, sink, RaisingSource())

        assert await orchestrator.update(NOW) == []
        assert orchestrator.fallback.consecutive_failures == 1
        assert orchestrator.fallback.last_error == "adapter bug"

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self, state, sink):
        from services.config import Settings

        settings = Settings(
            enable_procedural_fallback=True,
            cache_path=None,
            fetch_timeout_seconds=0.05,
        )
        orchestrator = _build(settings, state, sink, SlowSource(delay=1.0))

        created = await orchestrator.update(NOW)

        assert orchestrator.fallback.consecutive_failures == 1
        assert "timed out" in orchestrator.fallback.last_error
        assert created and all(e.origin == ContentOrigin.PROCEDURAL for e in created)

    @pytest.mark.asyncio
    async def test_stale_fetch_result_is_discarded(self, settings, state, sink, scandal_item):
        orchestrator = _build(settings, state, sink, SlowSource(delay=0.01, items=[scandal_item]))

        stale, fresh = await asyncio.gather(
            orchestrator.run_fetch_cycle(NOW),
            orchestrator.run_fetch_cycle(NOW),
        )

        assert stale == []
        assert len(fresh) == 1

    @pytest.mark.asyncio
    async def test_cache_round_trip_through_orchestrator(self, settings, state, sink, scandal_item, tmp_path):
        path = str(tmp_path / "cache.json")
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        await orchestrator.update(NOW)
        orchestrator.save_cache(path)

        restored = _build(settings, state, sink, None)
        assert restored.load_cache(path) == 1

    @pytest.mark.asyncio
    async def test_status_reports_counts(self, settings, state, sink, scandal_item):
        orchestrator = _build(settings, state, sink, StaticSource([scandal_item]))
        await orchestrator.update(NOW)

        status = orchestrator.status()

        assert status.active_events == 1
        assert status.stage_counts["BREAKING"] == 1
        assert status.source.primary == ContentOrigin.LIVE
        assert status.cached_items == 1
        assert status.consistency_score == 100.0

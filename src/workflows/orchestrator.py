"""
NewsOrchestrator - wires classification, matching, temporal cycles, fallback
and consequences into the host's update loop and command surface.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Dict, List, Optional, Tuple

from core.entities import (
    CachedItem,
    ClassifiedItem,
    ConsequenceResult,
    ContentOrigin,
    CycleStage,
    GameContext,
    GameEvent,
    PlayerResponse,
    RawItem,
    ResponseStatus,
    as_utc,
    utcnow,
)
from delivery.base import Notification, NotificationKind
from delivery.queue import NotificationQueue
from ingestion.base import ContentSource, FetchResult
from processing.classifier import Classifier
from processing.consequences import ConsequenceCalculator
from processing.event_factory import EventFactory
from processing.matcher import TemplateMatcher
from services.cache import CacheManager
from services.config import Settings
from services.cycle_manager import CycleManager, StageTransition
from services.effects import EffectApplicator
from services.fallback import FallbackOrchestrator, SourceHealth
from services.fatigue import FatigueTracker
from services.game_state import GameStateProvider
from services.stances import StanceTracker
from workflows.base import NewsLoop

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemStatus:
    active_events: int
    archived_events: int
    queued_events: int
    stage_counts: Dict[str, int]
    source: SourceHealth
    cached_items: int
    pending_effects: int
    consistency_score: float
    fetch_generation: int
    reputation_tags: Tuple[str, ...] = ()


class NewsOrchestrator(NewsLoop):
    """
    Composition root for the news pipeline. Every collaborator is injected.
    """

    def __init__(
        self,
        settings: Settings,
        state: GameStateProvider,
        *,
        classifier: Classifier,
        matcher: TemplateMatcher,
        factory: EventFactory,
        cycles: CycleManager,
        fatigue: FatigueTracker,
        cache: CacheManager,
        fallback: FallbackOrchestrator,
        calculator: ConsequenceCalculator,
        effects: EffectApplicator,
        stances: StanceTracker,
        notifications: NotificationQueue,
        source: Optional[ContentSource] = None,
    ):
        self.settings = settings
        self.state = state
        self.classifier = classifier
        self.matcher = matcher
        self.factory = factory
        self.cycles = cycles
        self.fatigue = fatigue
        self.cache = cache
        self.fallback = fallback
        self.calculator = calculator
        self.effects = effects
        self.stances = stances
        self.notifications = notifications
        self.source = source

        self._active: Dict[str, GameEvent] = {}
        self._archive: Dict[str, GameEvent] = {}
        self._queue: Deque[str] = deque()
        self._seen: Dict[str, None] = {}

        self._last_temporal_tick: Optional[datetime] = None
        self._last_fetch: Optional[datetime] = None
        self._fetch_generation = 0

    # ----------------------------
    # Host entry points
    # ----------------------------

    async def update(self, now: Optional[datetime] = None) -> List[GameEvent]:
        now = as_utc(now) or utcnow()
        created: List[GameEvent] = []

        try:
            self._temporal_tick(now)
        except Exception as e:
            logger.exception(f"Temporal tick failed: {e}")

        if self._fetch_due(now):
            try:
                created = await self.run_fetch_cycle(now)
            except Exception as e:
                logger.exception(f"Fetch cycle failed: {e}")

        self.notifications.flush()
        return created

    def on_turn_advance(self) -> None:
        now = utcnow()
        try:
            context = self.state.snapshot()
        except Exception as e:
            logger.exception(f"Could not read game state on turn advance: {e}")
            return

        steps = (
            ("temporal", lambda: self._handle_transitions(self.cycles.tick(self.settings.turn_duration_hours))),
            ("expiration", lambda: self._expire_and_retire(context.turn)),
            ("deferred effects", lambda: self.effects.flush(context.turn)),
            ("fatigue", self.fatigue.decay),
            ("procedural", lambda: self._top_up_procedural(context, now)),
            ("cache", lambda: self.cache.prune(now)),
            ("history", self._prune_history),
        )
        for name, step in steps:
            try:
                step()
            except Exception as e:
                logger.exception(f"Turn advance step '{name}' failed: {e}")

        logger.info(
            f"Turn {context.turn}: {len(self._active)} active events, "
            f"source={self.fallback.primary.value}"
        )
        self.notifications.flush()

    # ----------------------------
    # Fetch cycle
    # ----------------------------

    def _fetch_due(self, now: datetime) -> bool:
        if self._last_fetch is None:
            return True
        elapsed = (now - self._last_fetch).total_seconds()
        return elapsed >= self.settings.fetch_interval_seconds

    async def _fetch_live(self, count: int) -> FetchResult:
        try:
            return await asyncio.wait_for(
                self.source.fetch(count),
                timeout=self.settings.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return FetchResult.failed(f"timed out after {self.settings.fetch_timeout_seconds}s")
        except Exception as e:
            logger.error(f"Source {self.source.name} raised: {e}")
            return FetchResult.failed(str(e))

    async def run_fetch_cycle(self, now: Optional[datetime] = None) -> List[GameEvent]:
        """
        One fetch cycle: live fetch (when enabled), fallback decision, materialization.
        A result that arrives after a newer cycle has started is discarded.
        """
        now = as_utc(now) or utcnow()
        self._last_fetch = now
        self._fetch_generation += 1
        generation = self._fetch_generation
        count = self.settings.max_events_per_cycle

        live_items: Optional[List[RawItem]] = None
        classified: Dict[str, ClassifiedItem] = {}

        if self.settings.enable_live_news and self.source is not None:
            result = await self._fetch_live(count * 2)

            if generation != self._fetch_generation:
                logger.info(f"Discarding stale fetch result (cycle {generation})")
                return []

            if result.success:
                change = self.fallback.record_success()
                live_items = [item for item in result.items if item.id not in self._seen]
                classified = self._cache_live(live_items, now)
                logger.info(f"Fetched {len(result.items)} live items, {len(live_items)} new")
            else:
                change = self.fallback.record_failure(
                    result.error or "", now, exclude=self._active_source_ids()
                )

            if change is not None:
                previous, current = change
                self.notifications.publish(
                    Notification(
                        kind=NotificationKind.SOURCE_CHANGED,
                        payload={"previous": previous.value, "current": current.value},
                    )
                )

        context = self.state.snapshot()
        items = self.fallback.select_content(
            live_items,
            count,
            context,
            exclude=self._seen,
            now=now,
            cache_exclude=self._active_source_ids(),
        )
        return self.ingest(items, now=now, context=context, classified=classified)

    def _cache_live(self, items: List[RawItem], now: datetime) -> Dict[str, ClassifiedItem]:
        classified = {}
        for item in items:
            c = self.classifier.classify(item)
            classified[item.id] = c
            self._remember(c, now)
        return classified

    def _remember(self, item: ClassifiedItem, now: datetime) -> None:
        raw = item.item
        if raw.origin == ContentOrigin.CACHE or raw.id in self.cache:
            return

        quality = (
            self.settings.cache.live_quality
            if raw.origin == ContentOrigin.LIVE
            else self.settings.cache.procedural_quality
        )
        self.cache.put(
            CachedItem(
                id=raw.id,
                origin=raw.origin,
                headline=raw.headline,
                summary=raw.summary,
                category=item.category,
                keywords=list(item.topics),
                relevance=item.relevance / 100.0,
                quality=quality,
                controversy=item.controversy / 100.0,
                cached_at=now,
            ),
            now,
        )

    def _active_source_ids(self) -> set[str]:
        return {event.source_item_id for event in self._active.values()}

    # ----------------------------
    # Materialization
    # ----------------------------

    def ingest(
        self,
        items: List[RawItem],
        now: Optional[datetime] = None,
        context: Optional[GameContext] = None,
        classified: Optional[Dict[str, ClassifiedItem]] = None,
    ) -> List[GameEvent]:
        """
        Turn raw items into registered events. A failing item is dropped, not fatal.
        """
        now = as_utc(now) or utcnow()
        context = context or self.state.snapshot()
        classified = classified or {}
        created: List[GameEvent] = []
        active_sources = self._active_source_ids()

        for item in items:
            if len(created) >= self.settings.max_events_per_cycle:
                break
            if len(self._active) >= self.settings.temporal.max_active_events:
                logger.info("Active event limit reached, deferring remaining items")
                break

            if item.origin == ContentOrigin.CACHE:
                if item.id in active_sources:
                    continue
            elif item.id in self._seen:
                continue

            try:
                event = self._materialize(item, now, context, classified.get(item.id))
            except Exception as e:
                logger.exception(f"Failed to process item {item.id}: {e}")
                continue

            if event is not None:
                created.append(event)
                active_sources.add(item.id)

        if created:
            logger.info(f"Materialized {len(created)} events from {len(items)} items")
        return created

    def _materialize(
        self,
        item: RawItem,
        now: datetime,
        context: GameContext,
        classified: Optional[ClassifiedItem],
    ) -> Optional[GameEvent]:
        c = classified or self.classifier.classify(item)
        self._mark_seen(item.id)

        if not self.settings.category_enabled(c.category):
            logger.debug(f"Skipping {item.id}: category {c.category.value} disabled")
            return None

        modifier = self.fatigue.modifier(c.category, c.entity_names)
        if modifier < self.settings.fatigue.suppression_threshold:
            logger.info(f"Suppressed by fatigue ({modifier:.2f}): {item.headline}")
            return None

        self._remember(c, now)

        match = self.matcher.find_best_match(c)
        event = self.factory.create(c, match, context, fatigue_modifier=modifier)
        self.fatigue.record(c.category, c.entity_names)

        age_hours = 0.0
        if item.published_at is not None:
            age_hours = max(0.0, (now - item.published_at).total_seconds() / 3600.0)
        stage = self.cycles.initial_stage_for_age(age_hours)
        if (
            stage == CycleStage.BREAKING
            and self._count_stage(CycleStage.BREAKING) >= self.settings.temporal.max_active_breaking
        ):
            stage = CycleStage.DEVELOPING

        self.cycles.register(event.id, stage)
        event.stage = stage
        self._active[event.id] = event

        payload = self._payload(event)
        self.notifications.publish(
            Notification(
                kind=NotificationKind.NEW_EVENT_AVAILABLE,
                event_id=event.id,
                payload=payload,
                stage=stage,
                requires_action=not event.is_generic,
            )
        )

        if stage == CycleStage.BREAKING:
            self._queue.appendleft(event.id)
            self.notifications.publish(
                Notification(
                    kind=NotificationKind.BREAKING_NEWS,
                    event_id=event.id,
                    payload=payload,
                    stage=stage,
                    requires_action=True,
                )
            )
        else:
            self._queue.append(event.id)

        return event

    def _mark_seen(self, item_id: str) -> None:
        self._seen[item_id] = None
        while len(self._seen) > self.settings.max_seen_items:
            del self._seen[next(iter(self._seen))]

    def _count_stage(self, stage: CycleStage) -> int:
        return sum(1 for event in self._active.values() if event.stage == stage)

    @staticmethod
    def _payload(event: GameEvent) -> Dict[str, object]:
        return {
            "headline": event.headline,
            "description": event.description,
            "category": event.category.value,
            "kind": event.kind.value,
            "urgency": event.urgency.value,
            "options": [o.option_id for o in event.response_options],
            "deadline_turn": event.deadline_turn,
            "expiration_turn": event.expiration_turn,
            "origin": event.origin.value,
        }

    # ----------------------------
    # Temporal handling
    # ----------------------------

    def _temporal_tick(self, now: datetime) -> None:
        if self._last_temporal_tick is None:
            self._last_temporal_tick = now
            return

        elapsed = (now - self._last_temporal_tick).total_seconds()
        if elapsed < self.settings.temporal_interval_seconds:
            return

        self._last_temporal_tick = now
        hours = elapsed / 3600.0 * self.settings.game_hours_per_real_hour
        self._handle_transitions(self.cycles.tick(hours))

    def _handle_transitions(self, transitions: List[StageTransition]) -> None:
        for transition in transitions:
            event = self._active.get(transition.event_id) or self._archive.get(transition.event_id)
            if event is None:
                continue

            self._apply_transition(event, transition)

            if transition.current >= CycleStage.ARCHIVED and event.id in self._active:
                self._retire(event, expired=not event.resolved)

    def _apply_transition(self, event: GameEvent, transition: StageTransition) -> None:
        event.stage = transition.current
        self.notifications.publish(
            Notification(
                kind=NotificationKind.STAGE_CHANGED,
                event_id=event.id,
                payload={
                    "previous": transition.previous.name,
                    "current": transition.current.name,
                },
                stage=transition.current,
            )
        )

    def _expire_and_retire(self, turn: int) -> None:
        for event in list(self._active.values()):
            if event.resolved:
                self._retire(event, expired=False)
            elif turn >= event.expiration_turn:
                self._retire(event, expired=True)

    def _retire(self, event: GameEvent, expired: bool) -> None:
        self._active.pop(event.id, None)
        self._archive[event.id] = event
        if event.id in self._queue:
            self._queue.remove(event.id)

        transition = self.cycles.archive(event.id)
        if transition is not None:
            self._apply_transition(event, transition)

        if expired:
            event.expired = True
            logger.info(f"Event expired: {event.headline}", extra={"event_id": event.id})
            self.notifications.publish(
                Notification(
                    kind=NotificationKind.EVENT_EXPIRED,
                    event_id=event.id,
                    payload={"headline": event.headline},
                    stage=event.stage,
                )
            )

    def _top_up_procedural(self, context: GameContext, now: datetime) -> None:
        if not self.settings.enable_procedural_fallback:
            return
        missing = self.settings.min_active_events - len(self._active)
        if missing <= 0:
            return
        items = self.fallback.generate_procedural(missing, context, now)
        self.ingest(items, now=now, context=context)

    def _prune_history(self) -> None:
        for event_id in self.cycles.prune_historical():
            event = self._archive.pop(event_id, None)
            if event is not None:
                self._seen.pop(event.source_item_id, None)

    # ----------------------------
    # Commands
    # ----------------------------

    def process_player_response(self, event_id: str, option_id: str) -> ConsequenceResult:
        """
        Resolve a player's choice. Invalid commands are rejected without mutating state.
        """
        event = self._active.get(event_id)
        if event is None:
            reason = (
                f"Event '{event_id}' is no longer active"
                if event_id in self._archive
                else f"Unknown event '{event_id}'"
            )
            return self._reject(event_id, option_id, reason)

        context = self.state.snapshot()
        result = self.calculator.evaluate(event, option_id, context)

        if result.status == ResponseStatus.REJECTED:
            return self._reject(event_id, option_id, result.message)

        if result.status != ResponseStatus.APPLIED:
            self._publish_response(event, result)
            self.notifications.flush()
            return result

        self.effects.apply(result, context.turn)

        option = event.option(option_id)
        if option.stance:
            for issue in event.issue_tags:
                self.stances.record(
                    issue,
                    option.stance,
                    context.turn,
                    strength=option.stance_strength,
                    event_id=event.id,
                )

        event.responses.append(PlayerResponse(option_id, context.turn, result.success))
        event.resolved = True
        self.cycles.record_interaction(event.id)
        if event.id in self._queue:
            self._queue.remove(event.id)

        self._publish_response(event, result)
        self.notifications.flush()
        return result

    def _reject(self, event_id: str, option_id: str, reason: str) -> ConsequenceResult:
        logger.info(f"Rejected response {option_id}: {reason}", extra={"event_id": event_id})
        result = ConsequenceResult(
            event_id=event_id,
            option_id=option_id,
            status=ResponseStatus.REJECTED,
            message=reason,
        )
        self.notifications.publish(
            Notification(
                kind=NotificationKind.COMMAND_REJECTED,
                event_id=event_id,
                payload={"option_id": option_id, "reason": reason},
            )
        )
        self.notifications.flush()
        return result

    def _publish_response(self, event: GameEvent, result: ConsequenceResult) -> None:
        self.notifications.publish(
            Notification(
                kind=NotificationKind.RESPONSE_PROCESSED,
                event_id=event.id,
                payload={
                    "option_id": result.option_id,
                    "status": result.status.value,
                    "success": result.success,
                    "deltas": dict(result.deltas),
                    "deferred": len(result.deferred),
                    "reputation": [tag.tag_id for tag in result.reputation],
                    "message": result.message,
                    "flip_flop": result.flip_flop,
                },
                stage=event.stage,
            )
        )

    # ----------------------------
    # Queries
    # ----------------------------

    def get_event(self, event_id: str) -> Optional[GameEvent]:
        return self._active.get(event_id) or self._archive.get(event_id)

    def active_events(self) -> List[GameEvent]:
        return list(self._active.values())

    def archived_events(self) -> List[GameEvent]:
        return list(self._archive.values())

    def events_by_stage(self, stage: CycleStage) -> List[GameEvent]:
        return [event for event in self._active.values() if event.stage == stage]

    def pending_player_actions(self) -> List[GameEvent]:
        """Unresolved events that are breaking or past their deadline."""
        turn = self.state.current_turn()
        return [
            event for event in self._active.values()
            if not event.resolved
            and (event.stage == CycleStage.BREAKING or turn >= event.deadline_turn)
        ]

    def queued_event_ids(self) -> List[str]:
        return list(self._queue)

    def dequeue_next_event(self) -> Optional[GameEvent]:
        """Next event for presentation; breaking events come first."""
        while self._queue:
            event = self._active.get(self._queue.popleft())
            if event is not None and not event.resolved:
                return event
        return None

    def has_seen(self, item_id: str) -> bool:
        return item_id in self._seen

    def would_be_flip_flop(self, issue: str, stance: str) -> bool:
        return self.stances.would_be_flip_flop(issue, stance)

    @property
    def consistency_score(self) -> float:
        return self.stances.consistency_score

    @property
    def current_source(self) -> ContentOrigin:
        return self.fallback.primary

    def status(self) -> SystemStatus:
        counts = {stage.name: 0 for stage in CycleStage}
        for event in self._active.values():
            counts[event.stage.name] += 1

        return SystemStatus(
            active_events=len(self._active),
            archived_events=len(self._archive),
            queued_events=len(self._queue),
            stage_counts=counts,
            source=self.fallback.status(),
            cached_items=len(self.cache),
            pending_effects=len(self.effects.pending()),
            consistency_score=self.stances.consistency_score,
            fetch_generation=self._fetch_generation,
            reputation_tags=tuple(a.tag.tag_id for a in self.effects.reputation()),
        )

    # ----------------------------
    # Cache persistence
    # ----------------------------

    def save_cache(self, path: Optional[str] = None) -> None:
        path = path or self.settings.cache_path
        if not path:
            return
        try:
            self.cache.save(path)
        except OSError as e:
            logger.error(f"Failed to save cache to {path}: {e}")

    def load_cache(self, path: Optional[str] = None) -> int:
        path = path or self.settings.cache_path
        if not path:
            return 0
        return self.cache.load(path)

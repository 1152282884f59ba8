"""
Effect Applicator - the only writer of player resources.
Immediate deltas are written at once; deferred ones wait for their turn.
Gradual effects are split into equal per-turn installments when scheduled.
"""
import logging
from dataclasses import dataclass, replace
from typing import AbstractSet, Dict, List, Optional

from core.entities import ConsequenceResult, DeferredEffect, ReputationTag
from services.game_state import GameStateProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradualProgress:
    effect_id: str
    resource: str
    remaining: float
    turns_left: int


@dataclass(frozen=True)
class ActiveReputation:
    tag: ReputationTag
    acquired_turn: int

    @property
    def expires_turn(self) -> Optional[int]:
        if self.tag.duration_turns is None:
            return None
        return self.acquired_turn + self.tag.duration_turns


def installments(effect: DeferredEffect) -> List[DeferredEffect]:
    """One single-turn effect per turn of a gradual effect, starting at its due turn."""
    if not effect.gradual:
        return [effect]
    portion = effect.delta / effect.duration_turns
    return [
        replace(
            effect,
            effect_id=f"{effect.effect_id}#{index}",
            delta=portion,
            due_turn=effect.due_turn + index,
            duration_turns=1,
        )
        for index in range(effect.duration_turns)
    ]


def due_effects(
    schedule: Dict[int, List[DeferredEffect]],
    applied: AbstractSet[str],
    turn: int,
) -> List[DeferredEffect]:
    """
    Scheduled effects due at or before `turn` that have not been applied yet.
    """
    due: List[DeferredEffect] = []
    for due_turn in sorted(schedule):
        if due_turn > turn:
            break
        due.extend(e for e in schedule[due_turn] if e.effect_id not in applied)
    return due


class EffectApplicator:
    def __init__(self, state: GameStateProvider):
        self.state = state
        self._schedule: Dict[int, List[DeferredEffect]] = {}
        self._applied: set[str] = set()
        self._gradual: Dict[str, DeferredEffect] = {}
        self._reputation: Dict[str, ActiveReputation] = {}

    def apply(self, result: ConsequenceResult, turn: Optional[int] = None) -> None:
        if not result.applied:
            return

        for resource, delta in result.deltas.items():
            self.state.apply_resource_delta(resource, delta)

        for effect in result.deferred:
            self.schedule(effect)

        if result.reputation:
            acquired = self.state.current_turn() if turn is None else turn
            for tag in result.reputation:
                self._reputation[tag.tag_id] = ActiveReputation(tag, acquired)
                logger.info(f"[effects] Reputation tag {tag.tag_id} ({tag.strength:+.1f})")

    def schedule(self, effect: DeferredEffect) -> None:
        if effect.gradual:
            self._gradual.setdefault(effect.effect_id, effect)

        for part in installments(effect):
            if part.effect_id in self._applied:
                continue
            bucket = self._schedule.setdefault(part.due_turn, [])
            if any(e.effect_id == part.effect_id for e in bucket):
                continue
            bucket.append(part)
            logger.debug(f"[effects] Scheduled {part.effect_id} for turn {part.due_turn}")

    def flush(self, turn: int) -> List[DeferredEffect]:
        """
        Apply every effect due by `turn` exactly once and drop expired reputation tags.
        """
        due = due_effects(self._schedule, self._applied, turn)
        for effect in due:
            self.state.apply_resource_delta(effect.resource, effect.delta)
            self._applied.add(effect.effect_id)

        for due_turn in [t for t in self._schedule if t <= turn]:
            del self._schedule[due_turn]

        pending_ids = {e.effect_id for e in self.pending()}
        for effect_id in list(self._gradual):
            if not any(p.startswith(f"{effect_id}#") for p in pending_ids):
                del self._gradual[effect_id]

        for tag_id, active in list(self._reputation.items()):
            if active.expires_turn is not None and turn >= active.expires_turn:
                del self._reputation[tag_id]
                logger.info(f"[effects] Reputation tag {tag_id} expired at turn {turn}")

        if due:
            logger.info(f"[effects] Applied {len(due)} deferred effects at turn {turn}")
        return due

    def pending(self) -> List[DeferredEffect]:
        return [effect for due_turn in sorted(self._schedule) for effect in self._schedule[due_turn]]

    def active_gradual(self) -> List[GradualProgress]:
        """Gradual effects with installments still to come."""
        pending = self.pending()
        progress = []
        for effect_id, effect in self._gradual.items():
            left = [p for p in pending if p.effect_id.startswith(f"{effect_id}#")]
            progress.append(
                GradualProgress(effect_id, effect.resource, sum(p.delta for p in left), len(left))
            )
        return progress

    def reputation(self) -> List[ActiveReputation]:
        return list(self._reputation.values())

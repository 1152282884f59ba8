"""
Temporal Cycle Manager - one CycleState per registered event.
Stages only move forward; HISTORICAL is terminal.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.entities import CycleStage, CycleState
from services.config import TemporalSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageTransition:
    event_id: str
    previous: CycleStage
    current: CycleStage


class CycleManager:
    def __init__(self, settings: TemporalSettings):
        self.settings = settings
        self._states: Dict[str, CycleState] = {}

    def stage_threshold(self, stage: CycleStage) -> Optional[float]:
        """Hours an event spends in a stage before advancing; None for the terminal stage."""
        thresholds = {
            CycleStage.BREAKING: self.settings.breaking_hours,
            CycleStage.DEVELOPING: self.settings.developing_hours,
            CycleStage.ONGOING: self.settings.ongoing_hours,
            CycleStage.FADING: self.settings.fading_hours,
            CycleStage.ARCHIVED: self.settings.archived_hours,
            CycleStage.HISTORICAL: None,
        }
        return thresholds[stage]

    def initial_stage_for_age(self, age_hours: float) -> CycleStage:
        if age_hours < self.settings.breaking_age_hours:
            return CycleStage.BREAKING
        if age_hours < self.settings.developing_age_hours:
            return CycleStage.DEVELOPING
        if age_hours < self.settings.ongoing_age_hours:
            return CycleStage.ONGOING
        return CycleStage.FADING

    def register(self, event_id: str, initial_stage: CycleStage = CycleStage.BREAKING) -> CycleState:
        if event_id in self._states:
            raise ValueError(f"Event {event_id} already has a cycle state")

        state = CycleState(event_id=event_id, stage=initial_stage)
        self._states[event_id] = state
        logger.debug(f"[cycle] Registered {event_id} at {initial_stage.name}")
        return state

    def get_state(self, event_id: str) -> Optional[CycleState]:
        return self._states.get(event_id)

    def events_in_stage(self, stage: CycleStage) -> List[str]:
        return [event_id for event_id, s in self._states.items() if s.stage == stage]

    def count_in_stage(self, stage: CycleStage) -> int:
        return sum(1 for s in self._states.values() if s.stage == stage)

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._states

    def tick(self, hours: float) -> List[StageTransition]:
        """
        Advance every cycle by `hours` of game time and report stage transitions.
        """
        if hours <= 0:
            return []

        days = hours / 24.0
        attention_loss = self.settings.fatigue_rate_per_day * days
        interest_loss = attention_loss * self.settings.interest_decay_ratio
        transitions: List[StageTransition] = []

        for state in self._states.values():
            if state.stage == CycleStage.HISTORICAL:
                continue

            state.media_attention = max(0.0, state.media_attention - attention_loss)
            state.public_interest = max(0.0, state.public_interest - interest_loss)
            state.hours_in_stage += hours

            threshold = self.stage_threshold(state.stage)
            while threshold is not None and state.hours_in_stage >= threshold:
                previous = state.stage
                state.stage = CycleStage(previous + 1)
                state.hours_in_stage -= threshold
                transitions.append(StageTransition(state.event_id, previous, state.stage))
                threshold = self.stage_threshold(state.stage)

            if state.stage == CycleStage.HISTORICAL:
                state.hours_in_stage = 0.0

        if transitions:
            logger.debug(f"[cycle] {len(transitions)} stage transitions after {hours:.1f}h")
        return transitions

    def archive(self, event_id: str) -> Optional[StageTransition]:
        """Move an event forward to ARCHIVED; no-op when already archived or later."""
        state = self._states.get(event_id)
        if state is None or state.stage >= CycleStage.ARCHIVED:
            return None

        previous = state.stage
        state.stage = CycleStage.ARCHIVED
        state.hours_in_stage = 0.0
        return StageTransition(event_id, previous, state.stage)

    def record_interaction(self, event_id: str) -> None:
        """Partial reset of attention and interest toward full."""
        state = self._states.get(event_id)
        if state is None:
            return

        recovery = self.settings.interaction_recovery
        state.media_attention = min(1.0, state.media_attention + (1.0 - state.media_attention) * recovery)
        state.public_interest = min(1.0, state.public_interest + (1.0 - state.public_interest) * recovery)
        state.interactions += 1

    def prune_historical(self) -> List[str]:
        removed = [event_id for event_id, s in self._states.items() if s.stage == CycleStage.HISTORICAL]
        for event_id in removed:
            del self._states[event_id]
        return removed

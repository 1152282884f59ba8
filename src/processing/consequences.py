"""
Consequence Calculator - turns a chosen response into resource deltas.

Exposure is the event's scaled effect set; a response absorbs part of it
(the option's mitigation) and adds the option's own effects. Option effects
scale with context: office tier, urgency, election proximity, chaos mode
and approval.
"""
import logging
import random
from typing import Dict, List, Optional, Tuple

from core.entities import (
    ConsequenceResult,
    DeferredEffect,
    EventKind,
    GameContext,
    GameEvent,
    ReputationTag,
    ResponseOption,
    ResponseStatus,
)
from services.config import ConsequenceSettings
from services.stances import StanceTracker

logger = logging.getLogger(__name__)


def _add(deltas: Dict[str, float], resource: str, value: float) -> None:
    deltas[resource] = deltas.get(resource, 0.0) + value


CRISIS_HANDLER = ReputationTag("crisis_handler", "Crisis Handler", 0.3, "crisis_management", 20)
CRISIS_FUMBLER = ReputationTag("crisis_fumbler", "Crisis Fumbler", -0.3, "crisis_management", 15)
CREDIBILITY_ISSUE = ReputationTag("credibility_issue", "Credibility Issues", -0.4, "honesty", 25)


def reputation_changes(event: GameEvent, option: ResponseOption, success: bool) -> Tuple[ReputationTag, ...]:
    """
    Tags earned by a response: how an emergency was handled, and a failed defence of the accused.
    """
    tags: List[ReputationTag] = []
    if event.kind == EventKind.EMERGENCY:
        tags.append(CRISIS_HANDLER if success else CRISIS_FUMBLER)
    if option.option_id == "defend" and not success:
        tags.append(CREDIBILITY_ISSUE)
    return tuple(tags)


class ConsequenceCalculator:
    def __init__(
        self,
        settings: ConsequenceSettings,
        stances: StanceTracker,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.stances = stances
        self.rng = rng or random.Random()

    def success_threshold(self, option: ResponseOption, context: GameContext) -> float:
        s = self.settings
        threshold = option.success_probability + (context.approval - 0.5) * s.approval_probability_weight
        return min(s.max_success_probability, max(s.min_success_probability, threshold))

    def context_scale(self, event: GameEvent, context: GameContext) -> float:
        s = self.settings
        scale = event.tier_multiplier * s.urgency_scale.get(event.urgency.value, 1.0)

        if context.turns_to_election <= s.election_window_turns:
            scale *= 1.0 + (s.election_window_turns - context.turns_to_election) * s.election_step

        if context.chaos_mode:
            scale *= s.chaos_multiplier

        if context.approval >= s.high_approval_threshold:
            scale *= s.high_approval_scale
        elif context.approval <= s.low_approval_threshold:
            scale *= s.low_approval_scale

        return scale

    def _rejected(self, event: GameEvent, option_id: str, status: ResponseStatus, message: str) -> ConsequenceResult:
        logger.info(f"[consequences] {event.id}/{option_id}: {status.value}: {message}")
        return ConsequenceResult(
            event_id=event.id,
            option_id=option_id,
            status=status,
            message=message,
        )

    def check_availability(self, event: GameEvent, option_id: str, context: GameContext) -> Optional[ConsequenceResult]:
        """
        A failed result when the option cannot be attempted, else None. No roll happens here.
        """
        if event.resolved:
            return self._rejected(event, option_id, ResponseStatus.REJECTED, "Event already resolved")

        option = event.option(option_id)
        if option is None:
            return self._rejected(
                event, option_id, ResponseStatus.REJECTED, f"Unknown response option '{option_id}'"
            )

        if option.chaos_only and not context.chaos_mode:
            return self._rejected(
                event, option_id, ResponseStatus.ALIGNMENT_MISMATCH,
                f"'{option.label}' is only available in chaos mode",
            )

        if option.alignment_range is not None and not option.alignment_range.contains(
            context.law_chaos, context.good_evil
        ):
            return self._rejected(
                event, option_id, ResponseStatus.ALIGNMENT_MISMATCH,
                f"Your alignment does not allow '{option.label}'",
            )

        for resource, minimum in option.required_resources.items():
            available = context.resources.get(resource, 0.0)
            if available < minimum:
                return self._rejected(
                    event, option_id, ResponseStatus.INSUFFICIENT_RESOURCES,
                    f"'{option.label}' needs {minimum:g} {resource} (have {available:g})",
                )

        return None

    def evaluate(self, event: GameEvent, option_id: str, context: GameContext) -> ConsequenceResult:
        blocked = self.check_availability(event, option_id, context)
        if blocked is not None:
            return blocked

        s = self.settings
        option = event.option(option_id)
        threshold = self.success_threshold(option, context)
        roll = self.rng.random()
        success = roll < threshold
        scale = self.context_scale(event, context)

        deltas: Dict[str, float] = {}
        if success:
            absorbed = option.mitigation
            for resource, value in event.effects.items():
                _add(deltas, resource, value * (1.0 - absorbed))
            for resource, value in option.effects.items():
                factor = s.success_bonus if value > 0 else s.success_negative_scale
                _add(deltas, resource, value * scale * factor)
        else:
            absorbed = option.mitigation * s.failure_mitigation_ratio
            for resource, value in event.effects.items():
                _add(deltas, resource, value * (1.0 - absorbed))
            for resource, value in list(option.effects.items()) + list(option.failure_effects.items()):
                factor = s.failure_penalty if value < 0 else s.failure_positive_scale
                _add(deltas, resource, value * scale * factor)

        flip_flop = bool(option.stance) and any(
            self.stances.would_be_flip_flop(issue, option.stance) for issue in event.issue_tags
        )
        if flip_flop:
            _add(deltas, "trust", -s.flip_flop_trust_penalty)

        deltas = {
            resource: max(-s.max_effect_magnitude, min(s.max_effect_magnitude, value))
            for resource, value in deltas.items()
            if abs(value) >= s.min_effect_threshold
        }

        deferred: List[DeferredEffect] = []
        if success:
            for index, planned in enumerate(option.deferred):
                deferred.append(
                    DeferredEffect(
                        effect_id=f"{event.id}:{option.option_id}:{index}",
                        resource=planned.resource,
                        delta=planned.delta * scale,
                        due_turn=context.turn + planned.delay_turns,
                        event_id=event.id,
                        duration_turns=planned.duration_turns,
                    )
                )

        outcome = "succeeded" if success else "backfired"
        message = f"{option.label} {outcome} on \"{event.headline}\""
        if flip_flop:
            message += "; the press noticed the reversal"

        logger.info(
            f"[consequences] {event.id}/{option.option_id}: roll={roll:.2f} threshold={threshold:.2f} "
            f"success={success} deltas={deltas}"
        )

        return ConsequenceResult(
            event_id=event.id,
            option_id=option.option_id,
            status=ResponseStatus.APPLIED,
            success=success,
            roll=roll,
            threshold=threshold,
            deltas=deltas,
            deferred=tuple(deferred),
            reputation=reputation_changes(event, option, success),
            message=message,
            flip_flop=flip_flop,
        )

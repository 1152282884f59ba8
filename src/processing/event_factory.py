"""
Event Factory - assembles GameEvents from classified items and matched templates.
"""
import logging
import uuid
from typing import Callable, Dict, Optional

from core.catalog import EVENT_KINDS, GENERIC_MENU, build_menu
from core.entities import (
    ClassifiedItem,
    GameContext,
    GameEvent,
    TemplateClass,
    Urgency,
)
from processing.injector import VariableInjector
from processing.matcher import TemplateMatch
from services.config import Settings

logger = logging.getLogger(__name__)


def _new_event_id() -> str:
    return f"evt-{uuid.uuid4().hex[:10]}"


def _headline_case(values: Dict[str, str]) -> Dict[str, str]:
    return {k: v[:1].upper() + v[1:] for k, v in values.items()}


class EventFactory:
    def __init__(
        self,
        settings: Settings,
        injector: Optional[VariableInjector] = None,
        id_factory: Callable[[], str] = _new_event_id,
    ):
        self.settings = settings
        self.injector = injector or VariableInjector()
        self.id_factory = id_factory

    def _window(self, table: Dict[str, int], urgency: Urgency) -> int:
        return int(table.get(urgency.value, max(table.values(), default=0)))

    def create(
        self,
        item: ClassifiedItem,
        match: Optional[TemplateMatch],
        context: GameContext,
        fatigue_modifier: float = 1.0,
    ) -> GameEvent:
        """
        Build an event from the best template match, or a generic event without one.
        """
        if match is None:
            return self.create_generic(item, context, fatigue_modifier)

        template = match.template
        values = self.injector.resolve(template.placeholders, item)
        tier_multiplier = template.tier_multiplier(context.office_tier)

        effects = {
            resource: delta * tier_multiplier * fatigue_modifier
            for resource, delta in template.base_effects.items()
        }

        temporal = self.settings.temporal
        event = GameEvent(
            id=self.id_factory(),
            source_item_id=item.item.id,
            template_id=template.template_id,
            headline=self.injector.fill(template.headline, _headline_case(values)),
            description=self.injector.fill(template.description, values),
            context=self.injector.fill(template.context, values),
            category=item.category,
            classification=template.classification,
            kind=EVENT_KINDS[template.classification],
            urgency=template.urgency,
            effects=effects,
            tier_multiplier=tier_multiplier,
            fatigue_modifier=fatigue_modifier,
            response_options=build_menu(
                template.classification,
                template.option_overrides,
                chaos_mode=context.chaos_mode,
            ),
            issue_tags=tuple(item.issue_tags),
            origin=item.item.origin,
            created_turn=context.turn,
            deadline_turn=context.turn + self._window(temporal.deadline_turns, template.urgency),
            expiration_turn=context.turn + self._window(temporal.expiration_turns, template.urgency),
        )

        logger.info(f"[factory] Created {event.id} from {template.template_id}: {event.headline}")
        return event

    def create_generic(
        self,
        item: ClassifiedItem,
        context: GameContext,
        fatigue_modifier: float = 1.0,
    ) -> GameEvent:
        """
        Template-less event: text passes through, options are Acknowledge / Ignore.
        """
        trust = item.sentiment.net * self.settings.consequences.generic_trust_factor * fatigue_modifier
        effects = {"trust": trust} if trust else {}
        temporal = self.settings.temporal
        urgency = Urgency.INFORMATIONAL

        event = GameEvent(
            id=self.id_factory(),
            source_item_id=item.item.id,
            template_id=None,
            headline=item.item.headline,
            description=item.item.summary,
            context="",
            category=item.category,
            classification=TemplateClass.INFORMATIONAL,
            kind=EVENT_KINDS[TemplateClass.INFORMATIONAL],
            urgency=urgency,
            effects=effects,
            tier_multiplier=1.0,
            fatigue_modifier=fatigue_modifier,
            response_options=list(GENERIC_MENU),
            issue_tags=tuple(item.issue_tags),
            origin=item.item.origin,
            created_turn=context.turn,
            deadline_turn=context.turn + self._window(temporal.deadline_turns, urgency),
            expiration_turn=context.turn + self._window(temporal.expiration_turns, urgency),
        )

        logger.info(f"[factory] Created generic event {event.id}: {event.headline}")
        return event

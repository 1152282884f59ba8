"""
Media fatigue per category and per (category, entity) pair.
"""
import logging
from typing import Dict, Iterable, Tuple

from core.entities import EventCategory
from services.config import FatigueSettings

logger = logging.getLogger(__name__)


class FatigueTracker:
    def __init__(self, settings: FatigueSettings):
        self.settings = settings
        self._categories: Dict[EventCategory, float] = {}
        self._pairs: Dict[Tuple[EventCategory, str], float] = {}

    def record(self, category: EventCategory, entities: Iterable[str]) -> None:
        self._categories[category] = min(
            1.0, self._categories.get(category, 0.0) + self.settings.category_increment
        )
        for name in entities:
            key = (category, name)
            self._pairs[key] = min(1.0, self._pairs.get(key, 0.0) + self.settings.entity_increment)

    def category_fatigue(self, category: EventCategory) -> float:
        return self._categories.get(category, 0.0)

    def pair_fatigue(self, category: EventCategory, entity: str) -> float:
        return self._pairs.get((category, entity), 0.0)

    def modifier(self, category: EventCategory, entities: Iterable[str]) -> float:
        """
        Multiplier in 0..1 applied to new items; 1.0 means no fatigue.
        """
        value = 1.0 - self.category_fatigue(category) * self.settings.category_weight
        for name in set(entities):
            value *= 1.0 - self.pair_fatigue(category, name) * self.settings.entity_weight
        return max(0.0, value)

    def is_suppressed(self, category: EventCategory, entities: Iterable[str]) -> bool:
        return self.modifier(category, entities) < self.settings.suppression_threshold

    def decay(self) -> None:
        step = self.settings.decay_per_turn
        self._categories = {k: v - step for k, v in self._categories.items() if v - step > 0}
        self._pairs = {k: v - step for k, v in self._pairs.items() if v - step > 0}
        logger.debug(
            f"[fatigue] Decayed: {len(self._categories)} categories, {len(self._pairs)} pairs tracked"
        )

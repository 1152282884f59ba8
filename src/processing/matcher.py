"""
Template matching - ranks catalog templates against a classified item
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from core.catalog import EventTemplate, TemplateCatalog
from core.entities import ClassifiedItem
from core.scoring import passes_threshold, normalize_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateMatch:
    template: EventTemplate
    score: float


class TemplateMatcher:
    def __init__(self, catalog: TemplateCatalog):
        self.catalog = catalog

    def find_matches(self, item: ClassifiedItem) -> List[TemplateMatch]:
        """
        All qualifying templates, best first. Equal scores keep catalog order.
        """
        matches = [
            TemplateMatch(template=template, score=normalize_score(template, item))
            for template in self.catalog
            if passes_threshold(template, item)
        ]
        # sorted() is stable, so declaration order breaks ties
        return sorted(matches, key=lambda m: m.score, reverse=True)

    def find_best_match(self, item: ClassifiedItem) -> Optional[TemplateMatch]:
        matches = self.find_matches(item)
        if not matches:
            logger.debug(
                f"[matcher] No template for {item.item.id} "
                f"(category={item.category.value}, relevance={item.relevance:.0f})"
            )
            return None

        best = matches[0]
        logger.debug(f"[matcher] {item.item.id} -> {best.template.template_id} ({best.score:.1f})")
        return best

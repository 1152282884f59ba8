"""
Variable Injector - fills {placeholder} slots in template text from item entities and topics
"""
import re
from typing import Dict, Iterable

from core.catalog import Placeholder
from core.entities import ClassifiedItem

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


class VariableInjector:
    """
    Resolves template placeholders from a classified item.
    """

    def resolve_one(self, placeholder: Placeholder, item: ClassifiedItem) -> str:
        if placeholder.kind is not None:
            entities = item.entities_of(placeholder.kind)
            if entities:
                return entities[0].name

        if item.topics:
            return item.topics[0]
        if item.issue_tags:
            return item.issue_tags[0].replace("_", " ")

        return placeholder.fallback

    def resolve(
        self,
        placeholders: Iterable[Placeholder],
        item: ClassifiedItem,
    ) -> Dict[str, str]:
        return {p.name: self.resolve_one(p, item) for p in placeholders}

    @staticmethod
    def fill(text: str, values: Dict[str, str]) -> str:
        """Substitute {name} tokens; unknown tokens are left as written."""
        return PLACEHOLDER_PATTERN.sub(
            lambda m: values.get(m.group(1), m.group(0)),
            text,
        )

"""
Module to score classified items against event templates
"""

from core.catalog import EventTemplate
from core.entities import ClassifiedItem

RELEVANCE_WEIGHT = 0.5
ISSUE_OVERLAP_BONUS = 10.0
CONTROVERSY_SURPLUS_WEIGHT = 0.3


def passes_threshold(template: EventTemplate, item: ClassifiedItem) -> bool:
    """
    Determines whether a classified item qualifies for a template.
    """
    if template.category != item.category:
        return False

    if item.relevance < template.min_relevance:
        return False

    if item.controversy < template.min_controversy:
        return False

    if template.required_issue_tags:
        if not set(template.required_issue_tags) & set(item.issue_tags):
            return False

    return True


def normalize_score(template: EventTemplate, item: ClassifiedItem) -> float:
    """
    Ranking score for a qualifying template.
    """
    overlap = len(set(template.required_issue_tags) & set(item.issue_tags))
    surplus = max(0.0, item.controversy - template.min_controversy)

    return (
        item.relevance * RELEVANCE_WEIGHT
        + overlap * ISSUE_OVERLAP_BONUS
        + surplus * CONTROVERSY_SURPLUS_WEIGHT
    )

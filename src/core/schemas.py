"""
Pydantic schemas for persisted cache snapshots and YAML template catalogs
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from core.catalog import EventTemplate, Placeholder, DEFAULT_TIER_SCALING
from core.entities import (
    AlignmentRange,
    CachedItem,
    ContentOrigin,
    DeferredEffectSpec,
    EntityKind,
    EventCategory,
    ResponseOption,
    TemplateClass,
    Urgency,
    as_utc,
)


class CachedItemRecord(BaseModel):
    """
    Pydantic schema for one persisted cache entry
    """
    id: str
    origin: ContentOrigin
    headline: str
    summary: str = ""
    category: EventCategory
    keywords: List[str] = []
    relevance: float = Field(..., ge=0.0, le=1.0)
    quality: float = Field(..., ge=0.0, le=1.0)
    controversy: float = Field(0.0, ge=0.0, le=1.0)
    cached_at: datetime
    times_used: int = 0

    @field_validator("cached_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_item(cls, item: CachedItem) -> "CachedItemRecord":
        return cls(
            id=item.id,
            origin=item.origin,
            headline=item.headline,
            summary=item.summary,
            category=item.category,
            keywords=list(item.keywords),
            relevance=item.relevance,
            quality=item.quality,
            controversy=item.controversy,
            cached_at=item.cached_at,
            times_used=item.times_used,
        )

    def to_item(self) -> CachedItem:
        return CachedItem(
            id=self.id,
            origin=self.origin,
            headline=self.headline,
            summary=self.summary,
            category=self.category,
            keywords=list(self.keywords),
            relevance=self.relevance,
            quality=self.quality,
            controversy=self.controversy,
            cached_at=self.cached_at,
            times_used=self.times_used,
        )


class CacheSnapshot(BaseModel):
    """
    Pydantic schema for the on-disk cache file
    """
    version: Literal[1] = 1
    items: List[CachedItemRecord] = []


class AlignmentRangeDefinition(BaseModel):
    min_law_chaos: float = -100.0
    max_law_chaos: float = 100.0
    min_good_evil: float = -100.0
    max_good_evil: float = 100.0


class DeferredEffectDefinition(BaseModel):
    resource: str
    delta: float
    delay_turns: int = Field(..., ge=1)
    duration_turns: int = Field(1, ge=1)


class ResponseOptionDefinition(BaseModel):
    option_id: str
    label: str
    description: str = ""
    success_probability: float = Field(0.7, ge=0.0, le=1.0)
    mitigation: float = Field(0.0, ge=0.0, le=1.0)
    effects: Dict[str, float] = {}
    failure_effects: Dict[str, float] = {}
    deferred: List[DeferredEffectDefinition] = []
    stance: Optional[str] = None
    stance_strength: float = 1.0
    alignment_range: Optional[AlignmentRangeDefinition] = None
    required_resources: Dict[str, float] = {}
    chaos_only: bool = False

    def to_option(self) -> ResponseOption:
        alignment = None
        if self.alignment_range is not None:
            alignment = AlignmentRange(**self.alignment_range.model_dump())
        return ResponseOption(
            option_id=self.option_id,
            label=self.label,
            description=self.description,
            success_probability=self.success_probability,
            mitigation=self.mitigation,
            effects=dict(self.effects),
            failure_effects=dict(self.failure_effects),
            deferred=tuple(
                DeferredEffectSpec(d.resource, d.delta, d.delay_turns, d.duration_turns)
                for d in self.deferred
            ),
            stance=self.stance,
            stance_strength=self.stance_strength,
            alignment_range=alignment,
            required_resources=dict(self.required_resources),
            chaos_only=self.chaos_only,
        )


class PlaceholderDefinition(BaseModel):
    name: str
    kind: Optional[EntityKind] = None
    fallback: str


class TemplateDefinition(BaseModel):
    """
    Pydantic schema for a template entry in a YAML catalog
    """
    template_id: str
    category: EventCategory
    classification: TemplateClass
    headline: str
    description: str
    context: str = ""
    placeholders: List[PlaceholderDefinition] = []
    base_effects: Dict[str, float] = {}
    urgency: Urgency = Urgency.DEVELOPING
    min_relevance: float = Field(0.0, ge=0.0, le=100.0)
    min_controversy: float = Field(0.0, ge=0.0, le=100.0)
    required_issue_tags: List[str] = []
    tier_scaling: List[float] = list(DEFAULT_TIER_SCALING)
    option_overrides: List[ResponseOptionDefinition] = []

    def to_template(self) -> EventTemplate:
        return EventTemplate(
            template_id=self.template_id,
            category=self.category,
            classification=self.classification,
            headline=self.headline,
            description=self.description,
            context=self.context,
            placeholders=tuple(
                Placeholder(p.name, p.kind, p.fallback) for p in self.placeholders
            ),
            base_effects=dict(self.base_effects),
            urgency=self.urgency,
            min_relevance=self.min_relevance,
            min_controversy=self.min_controversy,
            required_issue_tags=tuple(self.required_issue_tags),
            tier_scaling=tuple(self.tier_scaling),
            option_overrides=tuple(o.to_option() for o in self.option_overrides),
        )


class CatalogDefinition(BaseModel):
    templates: List[TemplateDefinition]

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple


class ContentOrigin(str, Enum):
    LIVE = "live"
    CACHE = "cache"
    PROCEDURAL = "procedural"


class EntityKind(str, Enum):
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"


class SentimentLabel(str, Enum):
    VERY_NEGATIVE = "very_negative"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    VERY_POSITIVE = "very_positive"


class EventCategory(str, Enum):
    """
    Inferred news category. Declaration order breaks classification ties.
    """
    ELECTION = "Election"
    LEGISLATION = "Legislation"
    SCANDAL = "Scandal"
    CRISIS = "Crisis"
    SOCIAL_UNREST = "Social Unrest"
    CAMPAIGN = "Campaign Event"
    INTERNATIONAL = "International"
    ECONOMIC = "Economic"
    POLICY = "Policy Announcement"


class TemplateClass(str, Enum):
    CRISIS = "crisis"
    POLICY_PRESSURE = "policy_pressure"
    OPPORTUNITY = "opportunity"
    SCANDAL_TRIGGER = "scandal_trigger"
    INFORMATIONAL = "informational"


class EventKind(str, Enum):
    """Gameplay-facing event kind."""
    EMERGENCY = "emergency"
    POLICY_DECISION = "policy_decision"
    OPPORTUNITY = "opportunity"
    SCANDAL = "scandal"
    NEWS_BRIEFING = "news_briefing"


class Urgency(str, Enum):
    BREAKING = "breaking"
    URGENT = "urgent"
    DEVELOPING = "developing"
    INFORMATIONAL = "informational"


class CycleStage(int, Enum):
    """
    Attention stages. Values are ordered so stages compare by progression.
    """
    BREAKING = 0
    DEVELOPING = 1
    ONGOING = 2
    FADING = 3
    ARCHIVED = 4
    HISTORICAL = 5


class ResponseStatus(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    ALIGNMENT_MISMATCH = "alignment_mismatch"
    INSUFFICIENT_RESOURCES = "insufficient_resources"


class Resource(str, Enum):
    TRUST = "trust"
    POLITICAL_CAPITAL = "political_capital"
    CAMPAIGN_FUNDS = "campaign_funds"
    MEDIA_INFLUENCE = "media_influence"
    PARTY_LOYALTY = "party_loyalty"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def make_item_id(source: str, headline: str) -> str:
    digest = hashlib.sha1(f"{source}|{headline}".encode("utf-8")).hexdigest()
    return digest[:16]


@dataclass(frozen=True)
class RawItem:
    """
    Unprocessed external content unit.
    """
    id: str
    headline: str
    summary: str
    source: str
    published_at: Optional[datetime]
    origin: ContentOrigin = ContentOrigin.LIVE

    def __post_init__(self):
        object.__setattr__(self, "published_at", as_utc(self.published_at))

    @property
    def text(self) -> str:
        return f"{self.headline}. {self.summary}"


@dataclass(frozen=True)
class Entity:
    name: str
    kind: EntityKind
    relevance: float


@dataclass(frozen=True)
class Sentiment:
    positive: int
    negative: int
    label: SentimentLabel

    @property
    def net(self) -> int:
        return self.positive - self.negative


@dataclass(frozen=True)
class ClassifiedItem:
    """
    RawItem annotated with relevance, controversy, sentiment and entities.
    """
    item: RawItem
    relevance: float
    controversy: float
    sentiment: Sentiment
    topics: Tuple[str, ...]
    entities: Tuple[Entity, ...]
    issue_tags: Tuple[str, ...]
    category: EventCategory

    def entities_of(self, kind: EntityKind) -> List[Entity]:
        matching = [e for e in self.entities if e.kind == kind]
        return sorted(matching, key=lambda e: e.relevance, reverse=True)

    @property
    def entity_names(self) -> List[str]:
        return [e.name for e in self.entities]


@dataclass(frozen=True)
class GameContext:
    """
    Snapshot of the player/game state read at the start of a command or cycle.
    """
    office_tier: int = 1
    approval: float = 0.5
    turn: int = 0
    turns_to_election: int = 100
    law_chaos: float = 0.0
    good_evil: float = 0.0
    chaos_mode: bool = False
    resources: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class AlignmentRange:
    """Inclusive bounds on law/chaos and good/evil coordinates (-100..100)."""
    min_law_chaos: float = -100.0
    max_law_chaos: float = 100.0
    min_good_evil: float = -100.0
    max_good_evil: float = 100.0

    def contains(self, law_chaos: float, good_evil: float) -> bool:
        return (
            self.min_law_chaos <= law_chaos <= self.max_law_chaos
            and self.min_good_evil <= good_evil <= self.max_good_evil
        )


@dataclass(frozen=True)
class DeferredEffectSpec:
    resource: str
    delta: float
    delay_turns: int
    # >1 spreads the delta evenly over that many turns
    duration_turns: int = 1


@dataclass(frozen=True)
class ResponseOption:
    option_id: str
    label: str
    description: str
    success_probability: float = 0.7
    mitigation: float = 0.0
    effects: Dict[str, float] = field(default_factory=dict)
    failure_effects: Dict[str, float] = field(default_factory=dict)
    deferred: Tuple[DeferredEffectSpec, ...] = ()
    stance: Optional[str] = None
    stance_strength: float = 1.0
    alignment_range: Optional[AlignmentRange] = None
    required_resources: Dict[str, float] = field(default_factory=dict)
    chaos_only: bool = False


@dataclass(frozen=True)
class PlayerResponse:
    option_id: str
    turn: int
    success: bool


@dataclass
class GameEvent:
    """
    Materialized, player-facing decision unit.
    """
    id: str
    source_item_id: str
    template_id: Optional[str]
    headline: str
    description: str
    context: str
    category: EventCategory
    classification: TemplateClass
    kind: EventKind
    urgency: Urgency
    effects: Dict[str, float]
    tier_multiplier: float
    fatigue_modifier: float
    response_options: List[ResponseOption]
    issue_tags: Tuple[str, ...]
    origin: ContentOrigin
    created_turn: int
    deadline_turn: int
    expiration_turn: int
    stage: CycleStage = CycleStage.BREAKING
    responses: List[PlayerResponse] = field(default_factory=list)
    resolved: bool = False
    expired: bool = False

    def option(self, option_id: str) -> Optional[ResponseOption]:
        for option in self.response_options:
            if option.option_id == option_id:
                return option
        return None

    @property
    def is_generic(self) -> bool:
        return self.template_id is None


@dataclass
class CycleState:
    event_id: str
    stage: CycleStage
    hours_in_stage: float = 0.0
    media_attention: float = 1.0
    public_interest: float = 1.0
    interactions: int = 0


@dataclass
class CachedItem:
    """
    Durable representation of a seen item, real or procedural.
    """
    id: str
    origin: ContentOrigin
    headline: str
    summary: str
    category: EventCategory
    keywords: List[str]
    relevance: float
    quality: float
    controversy: float
    cached_at: datetime
    times_used: int = 0

    def age_hours(self, now: datetime) -> float:
        return max(0.0, (now - self.cached_at).total_seconds() / 3600.0)

    def freshness(self, now: datetime, half_life_hours: float = 24.0) -> float:
        return math.pow(0.5, self.age_hours(now) / half_life_hours)

    def score(self, now: datetime, half_life_hours: float = 24.0) -> float:
        return self.freshness(now, half_life_hours) * self.relevance


@dataclass(frozen=True)
class StanceRecord:
    issue: str
    stance: str
    turn: int
    strength: float
    event_id: str
    flip_flop: bool = False


@dataclass(frozen=True)
class DeferredEffect:
    effect_id: str
    resource: str
    delta: float
    due_turn: int
    event_id: str
    duration_turns: int = 1

    @property
    def gradual(self) -> bool:
        return self.duration_turns > 1


@dataclass(frozen=True)
class ReputationTag:
    """
    Lasting mark on the player's public image. `duration_turns` None means permanent.
    """
    tag_id: str
    label: str
    strength: float
    category: str
    duration_turns: Optional[int] = None


@dataclass(frozen=True)
class ConsequenceResult:
    event_id: str
    option_id: str
    status: ResponseStatus
    success: bool = False
    roll: Optional[float] = None
    threshold: Optional[float] = None
    deltas: Dict[str, float] = field(default_factory=dict)
    deferred: Tuple[DeferredEffect, ...] = ()
    reputation: Tuple[ReputationTag, ...] = ()
    message: str = ""
    flip_flop: bool = False

    @property
    def applied(self) -> bool:
        return self.status == ResponseStatus.APPLIED

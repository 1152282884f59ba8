"""
Template catalog - declarative event templates and response menus.
The catalog is an immutable value handed to the matcher at construction.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from core.entities import (
    AlignmentRange,
    DeferredEffectSpec,
    EntityKind,
    EventCategory,
    EventKind,
    ResponseOption,
    TemplateClass,
    Urgency,
)

DEFAULT_TIER_SCALING: Tuple[float, ...] = (0.3, 0.5, 0.8, 1.2, 2.0)


@dataclass(frozen=True)
class Placeholder:
    """
    Named slot in template text. `kind` selects the entity type used to fill it;
    placeholders without a kind are filled from topics and issue tags.
    """
    name: str
    kind: Optional[EntityKind]
    fallback: str


@dataclass(frozen=True)
class EventTemplate:
    """
    Declarative event template definition.
    """
    template_id: str
    category: EventCategory
    classification: TemplateClass
    headline: str
    description: str
    context: str
    placeholders: Tuple[Placeholder, ...]
    base_effects: Dict[str, float]
    urgency: Urgency
    min_relevance: float = 0.0
    min_controversy: float = 0.0
    required_issue_tags: Tuple[str, ...] = ()
    tier_scaling: Tuple[float, ...] = DEFAULT_TIER_SCALING
    option_overrides: Tuple[ResponseOption, ...] = ()

    def tier_multiplier(self, tier: int) -> float:
        index = min(max(tier, 1), len(self.tier_scaling)) - 1
        return self.tier_scaling[index]


# Gameplay kind per abstract template classification
EVENT_KINDS: Dict[TemplateClass, EventKind] = {
    TemplateClass.CRISIS: EventKind.EMERGENCY,
    TemplateClass.POLICY_PRESSURE: EventKind.POLICY_DECISION,
    TemplateClass.OPPORTUNITY: EventKind.OPPORTUNITY,
    TemplateClass.SCANDAL_TRIGGER: EventKind.SCANDAL,
    TemplateClass.INFORMATIONAL: EventKind.NEWS_BRIEFING,
}


ACKNOWLEDGE = ResponseOption(
    option_id="acknowledge",
    label="Acknowledge",
    description="Issue a brief statement noting the story.",
    success_probability=0.95,
    effects={"media_influence": 1.0},
)

IGNORE = ResponseOption(
    option_id="ignore",
    label="Ignore",
    description="Let the story pass without comment.",
    success_probability=0.95,
)


RESPONSE_MENUS: Dict[TemplateClass, Tuple[ResponseOption, ...]] = {
    TemplateClass.CRISIS: (
        ResponseOption(
            option_id="act",
            label="Act",
            description="Take decisive public action.",
            success_probability=0.6,
            mitigation=0.8,
            effects={"trust": 6.0, "political_capital": -5.0},
            failure_effects={"trust": -4.0},
            required_resources={"political_capital": 5.0},
        ),
        ResponseOption(
            option_id="investigate",
            label="Investigate",
            description="Order a formal review before committing.",
            success_probability=0.8,
            mitigation=0.4,
            effects={"trust": 2.0, "political_capital": -2.0},
            deferred=(DeferredEffectSpec("trust", 3.0, 2),),
        ),
        ResponseOption(
            option_id="delegate",
            label="Delegate",
            description="Hand the response to your staff.",
            success_probability=0.7,
            mitigation=0.3,
            effects={"political_capital": 1.0},
            failure_effects={"trust": -3.0},
            deferred=(DeferredEffectSpec("political_capital", 3.0, 1, duration_turns=3),),
        ),
        ResponseOption(
            option_id="exploit",
            label="Exploit",
            description="Turn the chaos to your own advantage.",
            success_probability=0.5,
            effects={"media_influence": 8.0, "political_capital": 4.0},
            failure_effects={"trust": -8.0},
            alignment_range=AlignmentRange(max_good_evil=0.0),
            chaos_only=True,
        ),
    ),
    TemplateClass.POLICY_PRESSURE: (
        ResponseOption(
            option_id="support",
            label="Support",
            description="Publicly back the measure.",
            success_probability=0.75,
            mitigation=0.5,
            effects={"party_loyalty": 3.0, "political_capital": -2.0},
            failure_effects={"trust": -2.0},
            stance="Support",
        ),
        ResponseOption(
            option_id="oppose",
            label="Oppose",
            description="Publicly come out against the measure.",
            success_probability=0.75,
            mitigation=0.5,
            effects={"political_capital": 2.0, "party_loyalty": -2.0},
            failure_effects={"trust": -2.0},
            stance="Oppose",
        ),
        ResponseOption(
            option_id="neutral",
            label="Neutral",
            description="Decline to take a side for now.",
            success_probability=0.9,
            mitigation=0.2,
            failure_effects={"trust": -1.0},
            stance="Neutral",
            stance_strength=0.0,
        ),
    ),
    TemplateClass.OPPORTUNITY: (
        ResponseOption(
            option_id="seize",
            label="Seize",
            description="Commit resources to capitalize on the moment.",
            success_probability=0.65,
            effects={"campaign_funds": -3.0},
            failure_effects={"campaign_funds": -3.0},
            deferred=(DeferredEffectSpec("media_influence", 2.0, 1),),
            required_resources={"campaign_funds": 5.0},
        ),
        replace(IGNORE, mitigation=1.0),
    ),
    TemplateClass.SCANDAL_TRIGGER: (
        ResponseOption(
            option_id="condemn",
            label="Condemn",
            description="Denounce the conduct in the strongest terms.",
            success_probability=0.7,
            mitigation=1.0,
            effects={"trust": 2.0, "party_loyalty": -3.0},
            failure_effects={"trust": -2.0},
            stance="Oppose",
        ),
        ResponseOption(
            option_id="defend",
            label="Defend",
            description="Stand by the accused and question the story.",
            success_probability=0.45,
            mitigation=0.6,
            effects={"party_loyalty": 4.0},
            failure_effects={"trust": -6.0},
            stance="Support",
            alignment_range=AlignmentRange(max_good_evil=60.0),
        ),
        ResponseOption(
            option_id="distance",
            label="Distance",
            description="Keep your distance and let it play out.",
            success_probability=0.8,
            mitigation=0.5,
            effects={"party_loyalty": -1.0},
            stance="Neutral",
            stance_strength=0.0,
        ),
    ),
    TemplateClass.INFORMATIONAL: (ACKNOWLEDGE, IGNORE),
}

GENERIC_MENU: Tuple[ResponseOption, ...] = (ACKNOWLEDGE, IGNORE)


def build_menu(
    classification: TemplateClass,
    overrides: Iterable[ResponseOption] = (),
    chaos_mode: bool = False,
) -> List[ResponseOption]:
    """
    Response options for a classification, with template overrides applied by id.
    Chaos-only options are offered only while chaos mode is on.
    """
    by_id = {option.option_id: option for option in overrides}
    options = []
    for option in RESPONSE_MENUS[classification]:
        option = by_id.get(option.option_id, option)
        if option.chaos_only and not chaos_mode:
            continue
        options.append(option)
    return options


_POLITICIAN = Placeholder("politician", EntityKind.PERSON, "A Senior Official")
_ORGANIZATION = Placeholder("organization", EntityKind.ORGANIZATION, "the committee")
_LOCATION = Placeholder("location", EntityKind.LOCATION, "the capital")
_ISSUE = Placeholder("issue", None, "policy")


DEFAULT_TEMPLATES: Tuple[EventTemplate, ...] = (
    EventTemplate(
        template_id="LEG_001",
        category=EventCategory.LEGISLATION,
        classification=TemplateClass.POLICY_PRESSURE,
        headline="Lawmakers Push {issue} Bill Through Committee",
        description="{organization} is advancing legislation on {issue}. "
                    "Supporters and critics alike want to know where you stand.",
        context="Legislative fights force every official onto the record.",
        placeholders=(_ISSUE, _ORGANIZATION),
        base_effects={"political_capital": -3.0, "party_loyalty": 2.0},
        urgency=Urgency.DEVELOPING,
        min_relevance=20,
    ),
    EventTemplate(
        template_id="LEG_002",
        category=EventCategory.LEGISLATION,
        classification=TemplateClass.POLICY_PRESSURE,
        headline="Healthcare Overhaul Splits {organization}",
        description="A sweeping healthcare bill has divided {organization}. "
                    "Your constituents expect a clear position.",
        context="Healthcare votes are remembered at election time.",
        placeholders=(_ORGANIZATION,),
        base_effects={"trust": -3.0, "party_loyalty": 3.0},
        urgency=Urgency.URGENT,
        min_relevance=20,
        required_issue_tags=("healthcare",),
    ),
    EventTemplate(
        template_id="ELEC_001",
        category=EventCategory.ELECTION,
        classification=TemplateClass.OPPORTUNITY,
        headline="Polls Tighten as {politician} Gains Ground",
        description="New polling shows {politician} closing the gap. "
                    "A well-timed push could swing undecided voters.",
        context="Momentum in the polls rarely lasts.",
        placeholders=(_POLITICIAN,),
        base_effects={"campaign_funds": 4.0, "media_influence": 2.0},
        urgency=Urgency.URGENT,
        min_relevance=20,
    ),
    EventTemplate(
        template_id="ELEC_002",
        category=EventCategory.ELECTION,
        classification=TemplateClass.POLICY_PRESSURE,
        headline="Voting Rules Fight Reaches {location}",
        description="A dispute over voting rules in {location} is escalating "
                    "and both parties are demanding support.",
        context="Election administration disputes draw national attention.",
        placeholders=(_LOCATION,),
        base_effects={"trust": -2.0, "party_loyalty": 2.0},
        urgency=Urgency.DEVELOPING,
        min_relevance=30,
        min_controversy=20,
    ),
    EventTemplate(
        template_id="SCAN_001",
        category=EventCategory.SCANDAL,
        classification=TemplateClass.SCANDAL_TRIGGER,
        headline="{politician} Faces Resignation Calls Over {scandal}",
        description="Allegations of {scandal} against {politician} dominate the "
                    "news cycle. Reporters are asking whether you will stand by them.",
        context="Scandals spread quickly to anyone seen as an ally.",
        placeholders=(_POLITICIAN, Placeholder("scandal", None, "Ethics Allegations")),
        base_effects={"trust": -12.0, "political_capital": -4.0},
        urgency=Urgency.BREAKING,
        min_relevance=10,
        min_controversy=40,
    ),
    EventTemplate(
        template_id="SCAN_002",
        category=EventCategory.SCANDAL,
        classification=TemplateClass.SCANDAL_TRIGGER,
        headline="Misconduct Probe Engulfs {organization}",
        description="Investigators are examining criminal conduct inside "
                    "{organization}. Your past ties are under scrutiny.",
        context="Institutional scandals linger for months.",
        placeholders=(_ORGANIZATION,),
        base_effects={"trust": -8.0, "party_loyalty": -3.0},
        urgency=Urgency.URGENT,
        min_relevance=10,
        min_controversy=50,
        required_issue_tags=("crime",),
    ),
    EventTemplate(
        template_id="CRIS_001",
        category=EventCategory.CRISIS,
        classification=TemplateClass.CRISIS,
        headline="Emergency in {location} Demands a Response",
        description="An emergency is unfolding in {location}. "
                    "Residents are looking to their leaders for action.",
        context="Crisis response defines careers.",
        placeholders=(_LOCATION,),
        base_effects={"trust": -8.0, "political_capital": -3.0},
        urgency=Urgency.BREAKING,
        min_relevance=10,
        min_controversy=10,
    ),
    EventTemplate(
        template_id="CRIS_002",
        category=EventCategory.CRISIS,
        classification=TemplateClass.CRISIS,
        headline="{location} Reels After Environmental Disaster",
        description="Cleanup crews are struggling in {location} and critics "
                    "blame lax {issue} oversight.",
        context="Environmental disasters revive old regulatory fights.",
        placeholders=(_LOCATION, _ISSUE),
        base_effects={"trust": -10.0, "political_capital": -2.0},
        urgency=Urgency.BREAKING,
        min_relevance=10,
        required_issue_tags=("environment",),
    ),
    EventTemplate(
        template_id="UNREST_001",
        category=EventCategory.SOCIAL_UNREST,
        classification=TemplateClass.CRISIS,
        headline="Protests Spread Across {location}",
        description="Demonstrators have filled the streets of {location} "
                    "over {issue}. Tensions are rising.",
        context="How leaders meet protest is judged by both sides.",
        placeholders=(_LOCATION, _ISSUE),
        base_effects={"trust": -6.0, "party_loyalty": -2.0},
        urgency=Urgency.URGENT,
        min_relevance=10,
        min_controversy=30,
    ),
    EventTemplate(
        template_id="CAMP_001",
        category=EventCategory.CAMPAIGN,
        classification=TemplateClass.OPPORTUNITY,
        headline="{politician} Launches Rally Tour",
        description="{politician} is drawing large crowds on the campaign trail. "
                    "Joining the tour could raise your profile.",
        context="Campaign season rewards visibility.",
        placeholders=(_POLITICIAN,),
        base_effects={"media_influence": 3.0, "campaign_funds": 2.0},
        urgency=Urgency.DEVELOPING,
        min_relevance=10,
    ),
    EventTemplate(
        template_id="INTL_001",
        category=EventCategory.INTERNATIONAL,
        classification=TemplateClass.POLICY_PRESSURE,
        headline="Diplomatic Tensions Rise With {location}",
        description="Relations with {location} have soured and lawmakers want "
                    "a firm line on {issue}.",
        context="Foreign policy positions travel far beyond the capital.",
        placeholders=(_LOCATION, _ISSUE),
        base_effects={"political_capital": -2.0, "trust": -2.0},
        urgency=Urgency.DEVELOPING,
        min_relevance=20,
    ),
    EventTemplate(
        template_id="ECON_001",
        category=EventCategory.ECONOMIC,
        classification=TemplateClass.POLICY_PRESSURE,
        headline="Markets Rattled as {issue} Worries Grow",
        description="Economic anxiety over {issue} is spreading. "
                    "Voters want to hear a plan.",
        context="Economic pain is quickly blamed on incumbents.",
        placeholders=(_ISSUE,),
        base_effects={"trust": -5.0, "political_capital": -1.0},
        urgency=Urgency.URGENT,
        min_relevance=20,
        required_issue_tags=("economy", "taxes"),
    ),
    EventTemplate(
        template_id="ECON_002",
        category=EventCategory.ECONOMIC,
        classification=TemplateClass.OPPORTUNITY,
        headline="Economic Report Opens a Window for {politician}",
        description="Fresh economic figures give {politician} a chance to "
                    "shape the narrative on {issue}.",
        context="Good numbers are an opening, not a guarantee.",
        placeholders=(_POLITICIAN, _ISSUE),
        base_effects={"trust": 3.0, "political_capital": 2.0},
        urgency=Urgency.DEVELOPING,
        min_relevance=10,
    ),
    EventTemplate(
        template_id="POL_001",
        category=EventCategory.POLICY,
        classification=TemplateClass.INFORMATIONAL,
        headline="{politician} Unveils New {issue} Plan",
        description="{politician} has announced a new approach to {issue}.",
        context="Policy rollouts shape the agenda for weeks.",
        placeholders=(_POLITICIAN, _ISSUE),
        base_effects={"media_influence": 1.0},
        urgency=Urgency.INFORMATIONAL,
        min_relevance=10,
    ),
    EventTemplate(
        template_id="POL_002",
        category=EventCategory.POLICY,
        classification=TemplateClass.POLICY_PRESSURE,
        headline="Pressure Builds for Action on {issue}",
        description="Advocates are pressing officials to commit on {issue} "
                    "before the next session.",
        context="Advocacy groups keep score.",
        placeholders=(_ISSUE,),
        base_effects={"party_loyalty": 2.0, "trust": -2.0},
        urgency=Urgency.DEVELOPING,
        min_relevance=20,
        required_issue_tags=("education", "immigration", "civil_rights"),
    ),
)


@dataclass(frozen=True)
class TemplateCatalog:
    """
    Immutable, ordered collection of event templates.
    """
    templates: Tuple[EventTemplate, ...] = field(default_factory=tuple)

    def __post_init__(self):
        ids = [t.template_id for t in self.templates]
        duplicates = {i for i in ids if ids.count(i) > 1}
        if duplicates:
            raise ValueError(f"Duplicate template ids: {sorted(duplicates)}")
        for template in self.templates:
            scaling = template.tier_scaling
            if not scaling or any(b < a for a, b in zip(scaling, scaling[1:])):
                raise ValueError(
                    f"Template {template.template_id} tier scaling must be non-empty and non-decreasing"
                )

    def __iter__(self):
        return iter(self.templates)

    def __len__(self) -> int:
        return len(self.templates)

    def get(self, template_id: str) -> Optional[EventTemplate]:
        for template in self.templates:
            if template.template_id == template_id:
                return template
        return None

    def for_category(self, category: EventCategory) -> List[EventTemplate]:
        return [t for t in self.templates if t.category == category]

    @property
    def lowest_min_relevance(self) -> float:
        if not self.templates:
            return 0.0
        return min(t.min_relevance for t in self.templates)


def default_catalog() -> TemplateCatalog:
    return TemplateCatalog(DEFAULT_TEMPLATES)

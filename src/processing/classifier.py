"""
Keyword and entity heuristics that turn a RawItem into a ClassifiedItem.
Terms ending in '*' match any word starting with the stem; other terms match whole words.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from core.entities import (
    ClassifiedItem,
    Entity,
    EntityKind,
    EventCategory,
    RawItem,
    Sentiment,
    SentimentLabel,
)

logger = logging.getLogger(__name__)


RELEVANCE_KEYWORDS: Dict[str, float] = {
    "president*": 1.0,
    "congress*": 1.0,
    "senat*": 1.0,
    "election*": 1.0,
    "campaign*": 0.9,
    "vot*": 0.9,
    "scandal*": 0.9,
    "bill": 0.8,
    "legislat*": 0.8,
    "lawmaker*": 0.8,
    "parliament*": 0.8,
    "governor*": 0.8,
    "mayor*": 0.7,
    "minister*": 0.7,
    "policy": 0.7,
    "investigat*": 0.7,
    "government*": 0.6,
    "politic*": 0.6,
    "democrat*": 0.6,
    "republican*": 0.6,
    "immigra*": 0.6,
    "tax*": 0.6,
    "brib*": 0.6,
    "corrupt*": 0.6,
    "partisan*": 0.5,
    "healthcare": 0.5,
    "economy": 0.5,
    "climate": 0.5,
    "education": 0.4,
}

CONTROVERSY_KEYWORDS: Dict[str, float] = {
    "scandal*": 20,
    "brib*": 20,
    "corrupt*": 20,
    "fraud*": 20,
    "indict*": 20,
    "impeach*": 20,
    "alleg*": 15,
    "outrage*": 15,
    "resign*": 15,
    "accus*": 15,
    "misconduct": 15,
    "riot*": 15,
    "probe*": 10,
    "investigat*": 10,
    "controvers*": 10,
    "protest*": 10,
    "crisis": 10,
    "backlash": 10,
    "condemn*": 10,
    "denounc*": 10,
    "clash*": 10,
    "leak*": 10,
}

POSITIVE_WORDS: Tuple[str, ...] = (
    "success*", "win", "wins", "improv*", "growth", "praise*", "progress",
    "benefit*", "agree*", "celebrat*", "boost*", "gain*", "strong", "hope*",
    "recover*",
)

NEGATIVE_WORDS: Tuple[str, ...] = (
    "scandal*", "crisis", "fail*", "corrupt*", "brib*", "outrage*", "attack*",
    "protest*", "decline*", "lose", "loss*", "controvers*", "criticiz*",
    "threat*", "disaster*", "accus*", "alleg*", "resign*", "fraud*", "violen*",
    "collapse*",
)

TOPIC_TERMS: Dict[str, Tuple[str, ...]] = {
    "bribery": ("brib*",),
    "corruption": ("corrupt*",),
    "fraud": ("fraud*",),
    "healthcare": ("healthcare", "health", "medicare", "medicaid"),
    "taxes": ("tax*",),
    "immigration": ("immigra*", "border*", "asylum"),
    "education": ("education", "school*"),
    "climate": ("climate",),
    "budget": ("budget*", "deficit*"),
    "trade": ("trade", "tariff*"),
    "crime": ("crime*", "criminal*"),
    "jobs": ("jobs", "unemployment"),
    "inflation": ("inflation",),
    "infrastructure": ("infrastructure",),
    "defense": ("defense", "military"),
    "energy": ("energy", "oil"),
    "housing": ("housing", "rent"),
}

ISSUE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "healthcare": ("healthcare", "health", "medicare", "medicaid", "hospital*", "insurance"),
    "economy": ("econom*", "inflation", "jobs", "unemployment", "market*", "recession"),
    "taxes": ("tax*",),
    "crime": ("crime*", "criminal*", "police", "arrest*", "murder*", "fraud*"),
    "education": ("education", "school*", "teacher*", "student*", "universit*"),
    "immigration": ("immigra*", "border*", "asylum", "deport*", "migrant*"),
    "environment": ("climate", "environment*", "pollut*", "emission*", "wildfire*", "spill*"),
    "defense": ("defense", "military", "troop*", "weapon*"),
    "civil_rights": ("civil", "discriminat*", "equality", "voting rights"),
}

CATEGORY_KEYWORDS: Dict[EventCategory, Tuple[str, ...]] = {
    EventCategory.ELECTION: (
        "election*", "poll", "polls", "polling", "ballot*", "vot*", "candidate*", "turnout",
    ),
    EventCategory.LEGISLATION: (
        "bill", "bills", "legislat*", "law", "laws", "amendment*", "lawmaker*", "veto*",
    ),
    EventCategory.SCANDAL: (
        "scandal*", "brib*", "corrupt*", "investigat*", "probe*", "alleg*", "misconduct",
        "impeach*", "indict*", "ethics", "resign*",
    ),
    EventCategory.CRISIS: (
        "crisis", "emergenc*", "disaster*", "hurricane*", "earthquake*", "flood*",
        "wildfire*", "outbreak*", "shooting*", "collapse*", "evacuat*",
    ),
    EventCategory.SOCIAL_UNREST: (
        "protest*", "riot*", "demonstrat*", "unrest", "strike*", "clash*",
    ),
    EventCategory.CAMPAIGN: (
        "campaign*", "rally", "rallies", "fundrais*", "endorse*", "debate*",
    ),
    EventCategory.INTERNATIONAL: (
        "foreign", "diplomat*", "treaty", "treaties", "sanction*", "embassy", "summit*",
        "allies", "war", "international",
    ),
    EventCategory.ECONOMIC: (
        "econom*", "inflation", "market*", "jobs", "unemployment", "budget*", "deficit*",
        "recession", "tax*", "trade", "tariff*", "wage*",
    ),
    EventCategory.POLICY: (
        "policy", "policies", "plan", "plans", "initiative*", "program*", "reform*", "proposal*",
    ),
}

TITLE_WORDS = frozenset({
    "President", "Vice", "Senator", "Sen.", "Governor", "Gov.", "Rep.", "Representative",
    "Congressman", "Congresswoman", "Mayor", "Secretary", "Sec.", "Minister", "Prime",
    "Speaker", "Judge", "Justice", "Chancellor", "Ambassador", "Commissioner", "Chairman",
    "Chairwoman", "Councilman", "Councilwoman", "Dr.", "Mr.", "Mrs.", "Ms.", "Gen.",
})

ORG_WORDS = frozenset({
    "Department", "Agency", "Committee", "Party", "Congress", "Senate", "House", "Council",
    "Court", "Commission", "Bureau", "Administration", "Ministry", "University",
    "Association", "Union", "Institute", "Corporation", "Corp", "Inc", "Company", "Board",
    "Office", "Foundation", "Federation", "Bank", "Reserve", "Assembly", "Parliament",
    "Authority", "Service", "Coalition", "Caucus",
})

PERSON_VERBS = frozenset({
    "said", "says", "announced", "announces", "promised", "promises", "criticized",
    "voted", "votes", "proposed", "proposes", "denied", "denies", "faces", "faced",
    "admitted", "resigned", "vowed", "vows", "argued", "claimed", "warned", "told",
    "stated", "insisted", "defended", "slammed", "urged",
})

LOCATION_PREPOSITIONS = frozenset({"in", "at", "from", "across", "near", "to"})

GAZETTEER = frozenset({
    "Washington", "California", "Texas", "Florida", "New York", "Ohio", "Georgia",
    "Michigan", "Pennsylvania", "Arizona", "Nevada", "Wisconsin", "Virginia", "Iowa",
    "Illinois", "Chicago", "Boston", "Detroit", "Atlanta", "Miami", "Seattle",
    "China", "Russia", "Ukraine", "Mexico", "Canada", "Iran", "Israel", "India",
    "Japan", "Germany", "France", "Britain", "Europe", "Brussels", "London", "Beijing",
    "Moscow", "Taiwan", "Gaza",
})

STOPWORDS = frozenset({
    "The", "A", "An", "This", "That", "These", "Those", "It", "Its", "He", "She", "They",
    "We", "I", "You", "His", "Her", "Their", "Our", "In", "On", "At", "For", "From",
    "With", "By", "Of", "And", "But", "Or", "As", "After", "Before", "While", "When",
    "Where", "Why", "How", "What", "Who", "If", "Today", "Yesterday", "Tomorrow", "Monday",
    "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday", "January",
    "February", "March", "April", "May", "June", "July", "August", "September", "October",
    "November", "December", "Over", "Under", "Amid", "Despite", "Is", "Are", "Was",
    "Will", "To", "Not", "No", "More", "Most", "Some", "All", "Breaking", "Update",
})

TOKEN_PATTERN = re.compile(
    r"(?:Rep|Sen|Gov|Sec|Dr|Mr|Mrs|Ms|Gen)\.|[A-Za-z][A-Za-z'\-]*|[.!?;:,]"
)
SENTENCE_END = frozenset({".", "!", "?"})
RUN_BREAK = frozenset({",", ";", ":"})

# Evidence strength when the same name is seen with different typing cues
_EVIDENCE_TITLE = 3
_EVIDENCE_LEXICON = 2
_EVIDENCE_CONTEXT = 1
_EVIDENCE_NONE = 0


def _term_regex(term: str) -> Pattern:
    if term.endswith("*"):
        return re.compile(rf"\b{re.escape(term[:-1])}\w*", re.IGNORECASE)
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


def _first_hit(patterns: Iterable[Pattern], text: str) -> Optional[int]:
    positions = []
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            positions.append(match.start())
    return min(positions) if positions else None


@dataclass(frozen=True)
class ClassifierTables:
    """
    Keyword and entity tables used by the classifier.
    """
    relevance: Dict[str, float] = field(default_factory=lambda: dict(RELEVANCE_KEYWORDS))
    controversy: Dict[str, float] = field(default_factory=lambda: dict(CONTROVERSY_KEYWORDS))
    positive: Tuple[str, ...] = POSITIVE_WORDS
    negative: Tuple[str, ...] = NEGATIVE_WORDS
    topics: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(TOPIC_TERMS))
    issues: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(ISSUE_KEYWORDS))
    categories: Dict[EventCategory, Tuple[str, ...]] = field(
        default_factory=lambda: dict(CATEGORY_KEYWORDS)
    )


DEFAULT_TABLES = ClassifierTables()


@dataclass
class _EntityCandidate:
    name: str
    kind: EntityKind
    evidence: int
    mentions: int = 1
    in_headline: bool = False
    first_seen: int = 0


class Classifier:
    """
    Deterministic scorer for relevance, controversy, sentiment, topics and entities.
    """

    def __init__(self, tables: ClassifierTables = DEFAULT_TABLES):
        self.tables = tables
        self._relevance = [(term, w, _term_regex(term)) for term, w in tables.relevance.items()]
        self._controversy = [(term, w, _term_regex(term)) for term, w in tables.controversy.items()]
        self._positive = [_term_regex(t) for t in tables.positive]
        self._negative = [_term_regex(t) for t in tables.negative]
        self._topics = {
            name: [_term_regex(t) for t in terms] for name, terms in tables.topics.items()
        }
        self._issues = {
            name: [_term_regex(t) for t in terms] for name, terms in tables.issues.items()
        }
        self._categories = {
            category: [_term_regex(t) for t in terms]
            for category, terms in tables.categories.items()
        }
        self._lexicon = self._build_lexicon(tables)

    @staticmethod
    def _build_lexicon(tables: ClassifierTables) -> List[Pattern]:
        terms = set(tables.relevance) | set(tables.controversy)
        terms |= set(tables.positive) | set(tables.negative)
        for group in (tables.topics, tables.issues, tables.categories):
            for words in group.values():
                terms |= set(words)
        return [_term_regex(t) for t in sorted(terms) if " " not in t]

    def classify(self, item: RawItem) -> ClassifiedItem:
        text = f"{item.headline} {item.summary}".strip()

        relevance = min(100.0, sum(w for _, w, p in self._relevance if p.search(text)) * 10.0)
        controversy = min(100.0, float(sum(w for _, w, p in self._controversy if p.search(text))))
        sentiment = self._sentiment(text)
        topics = self._ordered_hits(self._topics, text)
        issue_tags = tuple(
            name for name, patterns in self._issues.items()
            if any(p.search(text) for p in patterns)
        )
        category = self._category(text)
        entities = self.extract_entities(item.headline, item.summary)

        logger.debug(
            f"[classifier] {item.id}: relevance={relevance:.0f} controversy={controversy:.0f} "
            f"category={category.value} entities={[e.name for e in entities]}"
        )

        return ClassifiedItem(
            item=item,
            relevance=relevance,
            controversy=controversy,
            sentiment=sentiment,
            topics=topics,
            entities=entities,
            issue_tags=issue_tags,
            category=category,
        )

    def _sentiment(self, text: str) -> Sentiment:
        positive = sum(1 for p in self._positive if p.search(text))
        negative = sum(1 for p in self._negative if p.search(text))
        net = positive - negative

        if net > 2:
            label = SentimentLabel.VERY_POSITIVE
        elif net > 0:
            label = SentimentLabel.POSITIVE
        elif net < -2:
            label = SentimentLabel.VERY_NEGATIVE
        elif net < 0:
            label = SentimentLabel.NEGATIVE
        else:
            label = SentimentLabel.NEUTRAL

        return Sentiment(positive=positive, negative=negative, label=label)

    @staticmethod
    def _ordered_hits(groups: Dict[str, List[Pattern]], text: str) -> Tuple[str, ...]:
        hits = []
        for name, patterns in groups.items():
            position = _first_hit(patterns, text)
            if position is not None:
                hits.append((position, name))
        return tuple(name for _, name in sorted(hits, key=lambda h: h[0]))

    def _category(self, text: str) -> EventCategory:
        best = EventCategory.POLICY
        best_hits = 0
        for category, patterns in self._categories.items():
            hits = sum(1 for p in patterns if p.search(text))
            if hits > best_hits:
                best, best_hits = category, hits
        return best

    def _is_lexicon_word(self, token: str) -> bool:
        return any(p.fullmatch(token) for p in self._lexicon)

    def _is_candidate(self, token: str) -> bool:
        if not token[0].isupper() or token in STOPWORDS or token in TITLE_WORDS:
            return False
        if token.lower() in PERSON_VERBS:
            return False
        if token in ORG_WORDS:
            return True
        return not self._is_lexicon_word(token)

    def extract_entities(self, headline: str, summary: str = "") -> Tuple[Entity, ...]:
        """
        Capitalization and adjacency heuristics over headline then summary.
        """
        candidates: Dict[str, _EntityCandidate] = {}
        order = 0

        for segment, is_headline in ((headline, True), (summary, False)):
            tokens = TOKEN_PATTERN.findall(segment or "")
            words = [t for t in tokens if t[0].isalpha()]
            title_case = bool(words) and (
                sum(1 for w in words if w[0].isupper()) / len(words) >= 0.6
            )

            for name, kind, evidence in self._runs(tokens, require_evidence=is_headline and title_case):
                order += 1
                self._merge(candidates, name, kind, evidence, is_headline, order)

        entities = [
            Entity(
                name=c.name,
                kind=c.kind,
                relevance=min(1.0, 0.3 + 0.2 * c.mentions + (0.3 if c.in_headline else 0.0)),
            )
            for c in candidates.values()
        ]
        ranked = sorted(
            zip(entities, candidates.values()),
            key=lambda pair: (-pair[0].relevance, pair[1].first_seen),
        )
        return tuple(entity for entity, _ in ranked)

    def _runs(
        self,
        tokens: List[str],
        require_evidence: bool,
    ) -> List[Tuple[str, EntityKind, int]]:
        results: List[Tuple[str, EntityKind, int]] = []
        run: List[str] = []
        titled = False
        before_run = ""
        run_at_sentence_start = False
        at_sentence_start = True
        previous = ""

        def flush(next_word: str) -> None:
            nonlocal run, titled
            if run:
                name, kind, evidence = self._type_run(
                    run, titled, before_run, next_word, run_at_sentence_start
                )
                weak = require_evidence or (run_at_sentence_start and len(run) == 1)
                if evidence > _EVIDENCE_NONE or not weak:
                    results.append((name, kind, evidence))
            run = []
            titled = False

        for token in tokens:
            if token in SENTENCE_END or token in RUN_BREAK:
                flush("")
                at_sentence_start = token in SENTENCE_END
                previous = token
                continue

            if token in TITLE_WORDS:
                if run:
                    flush("")
                titled = True
                previous = token.lower()
                at_sentence_start = False
                continue

            if self._is_candidate(token):
                if not run:
                    before_run = previous
                    run_at_sentence_start = at_sentence_start and not titled
                run.append(token)
            else:
                flush(token.lower())

            previous = token.lower()
            at_sentence_start = False

        flush("")
        return results

    @staticmethod
    def _type_run(
        run: List[str],
        titled: bool,
        previous_word: str,
        next_word: str,
        sentence_initial: bool,
    ) -> Tuple[str, EntityKind, int]:
        name = " ".join(run)

        if titled:
            return name, EntityKind.PERSON, _EVIDENCE_TITLE
        if any(word in ORG_WORDS for word in run):
            return name, EntityKind.ORGANIZATION, _EVIDENCE_LEXICON
        if name in GAZETTEER:
            return name, EntityKind.LOCATION, _EVIDENCE_LEXICON
        if next_word in PERSON_VERBS:
            return name, EntityKind.PERSON, _EVIDENCE_CONTEXT
        if previous_word in LOCATION_PREPOSITIONS and not sentence_initial:
            return name, EntityKind.LOCATION, _EVIDENCE_CONTEXT
        return name, EntityKind.ORGANIZATION, _EVIDENCE_NONE

    @staticmethod
    def _merge(
        candidates: Dict[str, _EntityCandidate],
        name: str,
        kind: EntityKind,
        evidence: int,
        in_headline: bool,
        order: int,
    ) -> None:
        key = name
        if key not in candidates and " " not in name:
            # "Smith" after "John Smith" refers to the same person
            for existing in candidates.values():
                if existing.name.split()[-1] == name:
                    key = existing.name
                    break

        existing = candidates.get(key)
        if existing is None:
            candidates[key] = _EntityCandidate(
                name=name,
                kind=kind,
                evidence=evidence,
                in_headline=in_headline,
                first_seen=order,
            )
            return

        existing.mentions += 1
        existing.in_headline = existing.in_headline or in_headline
        if evidence > existing.evidence:
            existing.kind = kind
            existing.evidence = evidence

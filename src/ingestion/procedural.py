"""
Procedural news generation from player/game context.
Used when live content and cache are unavailable, and to blend variety into live cycles.
"""
import logging
import random
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Dict, List, Optional, Tuple

from core.entities import ContentOrigin, EventCategory, GameContext, RawItem, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProceduralPattern:
    pattern_id: str
    category: EventCategory
    headline: str
    summary: str


PATTERNS: Tuple[ProceduralPattern, ...] = (
    ProceduralPattern(
        "PROC_LEG_001",
        EventCategory.LEGISLATION,
        "Lawmakers Advance {issue} Bill in {state}",
        "A bill on {issue} cleared committee in the {state} legislature as lawmakers "
        "from both parties negotiated amendments.",
    ),
    ProceduralPattern(
        "PROC_LEG_002",
        EventCategory.LEGISLATION,
        "Committee Weighs {issue} Legislation",
        "Senator {politician} said the committee would review the legislation on "
        "{issue} before the final bill reaches the floor.",
    ),
    ProceduralPattern(
        "PROC_HEALTH_001",
        EventCategory.LEGISLATION,
        "Healthcare Bill Divides Lawmakers",
        "Lawmakers are split over a healthcare bill that would expand hospital "
        "coverage in {state}.",
    ),
    ProceduralPattern(
        "PROC_ECON_001",
        EventCategory.ECONOMIC,
        "Inflation Fears Grip {state} Markets",
        "Economists warned that rising inflation and weak jobs numbers could push "
        "the {state} economy toward recession.",
    ),
    ProceduralPattern(
        "PROC_ECON_002",
        EventCategory.ECONOMIC,
        "Budget Deficit Widens as Tax Revenue Falls",
        "The state budget deficit grew after tax revenue missed forecasts, raising "
        "questions about spending on {issue}.",
    ),
    ProceduralPattern(
        "PROC_SCAN_001",
        EventCategory.SCANDAL,
        "{title} {politician} Accused of {scandal_type}",
        "Allegations of {scandal_type} against {title} {politician} have prompted an "
        "ethics investigation and calls to resign.",
    ),
    ProceduralPattern(
        "PROC_CRISIS_001",
        EventCategory.CRISIS,
        "{disaster} Emergency Declared in {state}",
        "Officials declared an emergency after a {disaster_lower} struck {state}, "
        "forcing evacuations across the region.",
    ),
    ProceduralPattern(
        "PROC_ELEC_001",
        EventCategory.ELECTION,
        "New Poll Shows Tight Race in {state}",
        "A new poll of likely voters shows {politician} within two points as "
        "election turnout projections climb.",
    ),
    ProceduralPattern(
        "PROC_INTL_001",
        EventCategory.INTERNATIONAL,
        "Diplomats Meet as Sanctions on {country} Expand",
        "Foreign ministers gathered for a summit on expanded sanctions targeting {country}.",
    ),
    ProceduralPattern(
        "PROC_LOCAL_001",
        EventCategory.POLICY,
        "Mayor {politician} Unveils {issue} Plan",
        "Mayor {politician} announced a new policy initiative on {issue} for {state}.",
    ),
)

VARIABLE_POOLS: Dict[str, Tuple[str, ...]] = {
    "politician": ("Alvarez", "Brennan", "Chen", "Delgado", "Okafor", "Hartley", "Novak", "Whitfield"),
    "title": ("Senator", "Governor", "Mayor", "Rep."),
    "state": ("Ohio", "Arizona", "Georgia", "Michigan", "Nevada", "Pennsylvania", "Wisconsin"),
    "country": ("Russia", "Iran", "China"),
    "issue": ("healthcare", "education", "immigration", "taxes", "infrastructure", "housing"),
    "scandal_type": ("Bribery", "Fraud", "Corruption", "Misconduct"),
    "disaster": ("Flood", "Wildfire", "Hurricane", "Earthquake"),
}


class ProceduralGenerator:
    """
    Samples category patterns weighted by context. Never reads the live source.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        patterns: Tuple[ProceduralPattern, ...] = PATTERNS,
        recent_window: int = 4,
    ):
        self.rng = rng or random.Random()
        self.patterns = patterns
        self._recent: Deque[str] = deque(maxlen=recent_window)
        self._counter = 0

    def category_weights(self, context: GameContext) -> Dict[EventCategory, float]:
        weights = {
            EventCategory.LEGISLATION: 1.0,
            EventCategory.ECONOMIC: 1.0,
            EventCategory.POLICY: 0.5,
        }
        if context.office_tier >= 3:
            weights[EventCategory.INTERNATIONAL] = 0.8
        if context.turns_to_election <= 10:
            weights[EventCategory.ELECTION] = 1.5
        if context.approval < 0.4:
            weights[EventCategory.SCANDAL] = 1.2
            weights[EventCategory.CRISIS] = 1.3
        return weights

    def _pick_pattern(self, category: EventCategory) -> Optional[ProceduralPattern]:
        candidates = [p for p in self.patterns if p.category == category]
        if not candidates:
            return None
        fresh = [p for p in candidates if p.pattern_id not in self._recent]
        return self.rng.choice(fresh or candidates)

    def _variables(self) -> Dict[str, str]:
        values = {name: self.rng.choice(pool) for name, pool in VARIABLE_POOLS.items()}
        values["disaster_lower"] = values["disaster"].lower()
        return values

    def generate(
        self,
        count: int,
        context: GameContext,
        now: Optional[datetime] = None,
    ) -> List[RawItem]:
        now = now or utcnow()
        weights = self.category_weights(context)
        categories = [c for c in weights if any(p.category == c for p in self.patterns)]
        if count <= 0 or not categories:
            return []

        # Jitter keeps the mix from repeating turn after turn
        jittered = [weights[c] * (0.8 + self.rng.random() * 0.4) for c in categories]

        items: List[RawItem] = []
        for category in self.rng.choices(categories, weights=jittered, k=count):
            pattern = self._pick_pattern(category)
            if pattern is None:
                continue

            values = self._variables()
            self._recent.append(pattern.pattern_id)
            self._counter += 1

            items.append(
                RawItem(
                    id=f"proc-{pattern.pattern_id.lower()}-{self._counter}-{self.rng.getrandbits(24):06x}",
                    headline=pattern.headline.format(**values),
                    summary=pattern.summary.format(**values),
                    source="procedural",
                    published_at=now,
                    origin=ContentOrigin.PROCEDURAL,
                )
            )

        logger.info(f"[procedural] Generated {len(items)} items")
        return items

"""
Player/resource state interface and an in-memory implementation
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Tuple

from core.entities import GameContext, Resource


class GameStateProvider(ABC):
    """
    Sole source of truth for player context and sole sink for resource effects.
    """

    @abstractmethod
    def office_tier(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def approval(self) -> float:
        """Approval in 0..1."""
        raise NotImplementedError

    @abstractmethod
    def current_turn(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def turns_to_election(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def alignment(self) -> Tuple[float, float]:
        """(law/chaos, good/evil), each in -100..100."""
        raise NotImplementedError

    @abstractmethod
    def chaos_mode(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def resource_level(self, name: str) -> float:
        raise NotImplementedError

    @abstractmethod
    def apply_resource_delta(self, name: str, delta: float) -> None:
        raise NotImplementedError

    def snapshot(self) -> GameContext:
        law_chaos, good_evil = self.alignment()
        return GameContext(
            office_tier=self.office_tier(),
            approval=self.approval(),
            turn=self.current_turn(),
            turns_to_election=self.turns_to_election(),
            law_chaos=law_chaos,
            good_evil=good_evil,
            chaos_mode=self.chaos_mode(),
            resources={r.value: self.resource_level(r.value) for r in Resource},
        )


def _default_resources() -> Dict[str, float]:
    return {
        Resource.TRUST.value: 50.0,
        Resource.POLITICAL_CAPITAL.value: 20.0,
        Resource.CAMPAIGN_FUNDS.value: 20.0,
        Resource.MEDIA_INFLUENCE.value: 10.0,
        Resource.PARTY_LOYALTY.value: 50.0,
    }


@dataclass
class InMemoryGameState(GameStateProvider):
    tier: int = 1
    approval_rating: float = 0.5
    turn: int = 0
    election_turn: int = 48
    law_chaos: float = 0.0
    good_evil: float = 0.0
    chaos: bool = False
    resources: Dict[str, float] = field(default_factory=_default_resources)

    def office_tier(self) -> int:
        return self.tier

    def approval(self) -> float:
        return self.approval_rating

    def current_turn(self) -> int:
        return self.turn

    def turns_to_election(self) -> int:
        return max(0, self.election_turn - self.turn)

    def alignment(self) -> Tuple[float, float]:
        return self.law_chaos, self.good_evil

    def chaos_mode(self) -> bool:
        return self.chaos

    def resource_level(self, name: str) -> float:
        return self.resources.get(name, 0.0)

    def apply_resource_delta(self, name: str, delta: float) -> None:
        self.resources[name] = self.resources.get(name, 0.0) + delta

    def advance_turn(self) -> int:
        self.turn += 1
        return self.turn

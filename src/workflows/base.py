"""
Contains the base class for host-driven news loops
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from core.entities import GameEvent


class NewsLoop(ABC):
    """
    Entry points the host game loop calls on a fixed cadence.
    """

    @abstractmethod
    async def update(self, now: Optional[datetime] = None) -> List[GameEvent]:
        """
        Wall-clock tick: temporal decay and, when due, a fetch cycle.
        Must never raise uncaught exceptions.
        """
        raise NotImplementedError

    @abstractmethod
    def on_turn_advance(self) -> None:
        """
        Discrete turn tick. Never awaits and must never raise uncaught exceptions.
        """
        raise NotImplementedError

"""
Base classes for content sources
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from core.entities import RawItem


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of one fetch. `success` is reported separately from the item count:
    a healthy source may legitimately return nothing.
    """
    success: bool
    items: List[RawItem] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def ok(cls, items: List[RawItem]) -> "FetchResult":
        return cls(success=True, items=list(items))

    @classmethod
    def failed(cls, error: str) -> "FetchResult":
        return cls(success=False, error=error)


class ContentSource(ABC):
    """
    Base interface for all live content sources.
    """

    name: str

    @abstractmethod
    async def fetch(self, count: int) -> FetchResult:
        """
        Fetch up to `count` items.
        Must NEVER raise uncaught exceptions; failures are reported in the result.
        """
        raise NotImplementedError

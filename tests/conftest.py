"""Shared fixtures: settings, game state, items and a recording presentation sink."""
from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from core.entities import ContentOrigin, RawItem
from delivery.base import Notification, NotificationKind, PresentationSink
from ingestion.base import ContentSource, FetchResult
from services.config import Settings
from services.game_state import InMemoryGameState

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

SCANDAL_HEADLINE = "Senator Smith Faces Bribery Probe"
SCANDAL_SUMMARY = (
    "Federal investigators have opened a corruption investigation into Senator Smith "
    "after allegations that he accepted bribes from a defense contractor. The scandal "
    "has sparked outrage and calls for his resignation."
)

CRISIS_HEADLINE = "Hurricane Emergency Forces Evacuations"
CRISIS_SUMMARY = (
    "Governor Reyes declared a state of emergency as the hurricane crisis worsened "
    "and lawmakers ordered evacuations."
)


class FixedRandom(random.Random):
    """Random source whose uniform draws always return the same value."""

    def __init__(self, value: float = 0.0, seed: int = 7):
        super().__init__(seed)
        self.value = value

    def random(self) -> float:
        return self.value


class RecordingSink(PresentationSink):
    name = "recording"

    def __init__(self):
        self.received: List[Notification] = []

    def deliver(self, notification: Notification) -> None:
        self.received.append(notification)

    def kinds(self) -> List[NotificationKind]:
        return [n.kind for n in self.received]

    def of_kind(self, kind: NotificationKind) -> List[Notification]:
        return [n for n in self.received if n.kind == kind]


class StaticSource(ContentSource):
    name = "static"

    def __init__(self, items: List[RawItem]):
        self.items = items
        self.calls = 0

    async def fetch(self, count: int) -> FetchResult:
        self.calls += 1
        return FetchResult.ok(self.items[:count])


class FailingSource(ContentSource):
    name = "failing"

    async def fetch(self, count: int) -> FetchResult:
        return FetchResult.failed("connection refused")


class RaisingSource(ContentSource):
    name = "raising"

    async def fetch(self, count: int) -> FetchResult:
        raise RuntimeError("adapter bug")


class SlowSource(ContentSource):
    name = "slow"

    def __init__(self, delay: float, items: Optional[List[RawItem]] = None):
        self.delay = delay
        self.items = items or []

    async def fetch(self, count: int) -> FetchResult:
        import asyncio

        await asyncio.sleep(self.delay)
        return FetchResult.ok(self.items[:count])


def make_item(
    headline: str,
    summary: str = "",
    item_id: Optional[str] = None,
    published_at: Optional[datetime] = NOW,
    origin: ContentOrigin = ContentOrigin.LIVE,
) -> RawItem:
    return RawItem(
        id=item_id or f"item-{abs(hash(headline)) % 10**8}",
        headline=headline,
        summary=summary,
        source="test",
        published_at=published_at,
        origin=origin,
    )


def hours_ago(hours: float) -> datetime:
    return NOW - timedelta(hours=hours)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        enable_live_news=True,
        enable_procedural_fallback=False,
        cache_path=None,
        fetch_interval_seconds=0,
    )


@pytest.fixture
def state() -> InMemoryGameState:
    return InMemoryGameState()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def scandal_item() -> RawItem:
    return make_item(SCANDAL_HEADLINE, SCANDAL_SUMMARY, item_id="scandal-1")


@pytest.fixture
def crisis_item() -> RawItem:
    return make_item(CRISIS_HEADLINE, CRISIS_SUMMARY, item_id="crisis-1")

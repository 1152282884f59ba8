"""
Ingestion from RSS sources
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

import feedparser
import httpx

from core.entities import ContentOrigin, RawItem, make_item_id
from ingestion.base import ContentSource, FetchResult

logger = logging.getLogger(__name__)


def _published(entry) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=timezone.utc)


class RSSSource(ContentSource):
    def __init__(self, feed_urls: List[str], source_name: str = "rss", timeout: float = 30.0):
        self.feed_urls = feed_urls
        self.name = source_name
        self.timeout = timeout

    def parse_feed(self, text: str) -> List[RawItem]:
        feed = feedparser.parse(text)
        items: List[RawItem] = []

        for entry in feed.entries:
            headline = (entry.get("title") or "").strip()
            if not headline:
                continue

            items.append(
                RawItem(
                    id=entry.get("id") or make_item_id(self.name, headline),
                    headline=headline,
                    summary=(entry.get("summary") or "").strip(),
                    source=self.name,
                    published_at=_published(entry),
                    origin=ContentOrigin.LIVE,
                )
            )

        return items

    async def fetch(self, count: int) -> FetchResult:
        items: List[RawItem] = []
        errors: List[str] = []

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            for url in self.feed_urls:
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                    items.extend(self.parse_feed(response.text))
                except Exception as e:
                    logger.warning(f"[{self.name}] Feed failed: {url}: {e}")
                    errors.append(f"{url}: {e}")

        if errors and not items:
            return FetchResult.failed("; ".join(errors))

        items.sort(
            key=lambda i: i.published_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        logger.info(f"[{self.name}] Fetched {len(items)} items from {len(self.feed_urls)} feeds")
        return FetchResult.ok(items[:count])

"""
Source Factory - Creates live content sources from configuration.
"""
import logging
from typing import List

from core.entities import RawItem
from ingestion.base import ContentSource, FetchResult
from ingestion.rss import RSSSource
from services.config import SourceConfig, Settings, get_enabled_sources

logger = logging.getLogger(__name__)


class CompositeSource(ContentSource):
    """
    Fans a fetch out over several sources; succeeds when any of them does.
    """

    name = "composite"

    def __init__(self, sources: List[ContentSource]):
        self.sources = sources

    async def fetch(self, count: int) -> FetchResult:
        items: List[RawItem] = []
        errors: List[str] = []
        any_success = False

        for source in self.sources:
            try:
                result = await source.fetch(count)
            except Exception as e:
                logger.error(f"Source {source.name} failed: {e}")
                errors.append(f"{source.name}: {e}")
                continue

            if result.success:
                any_success = True
                items.extend(result.items)
            else:
                errors.append(f"{source.name}: {result.error}")

        if not any_success:
            return FetchResult.failed("; ".join(errors) or "no sources configured")
        return FetchResult.ok(items[:count])


def create_source(source_config: SourceConfig) -> ContentSource:
    """
    Create a content source from configuration.

    Raises:
        ValueError: If source type is unknown
    """
    source_type = source_config.type.lower()

    if source_type == "rss":
        if not source_config.feeds:
            raise ValueError("RSS source requires 'feeds' field")
        return RSSSource(
            feed_urls=source_config.feeds,
            source_name=source_config.name or "rss",
            timeout=source_config.timeout,
        )

    raise ValueError(f"Unknown source type: {source_type}")


def create_sources_from_config(settings: Settings) -> List[ContentSource]:
    sources = []
    for source_config in get_enabled_sources(settings):
        try:
            sources.append(create_source(source_config))
            logger.info(f"Created {source_config.type} source: {source_config.name or 'default'}")
        except Exception as e:
            logger.error(f"Failed to create source for {source_config.type}: {e}")
    return sources


def create_live_source(settings: Settings) -> ContentSource | None:
    """Single source for the orchestrator, or None when live news has nothing to fetch from."""
    sources = create_sources_from_config(settings)
    if not sources:
        return None
    if len(sources) == 1:
        return sources[0]
    return CompositeSource(sources)

"""
Pipeline Factory - Builds a NewsOrchestrator from configuration.
Every collaborator is created here and injected; nothing else constructs them.
"""
import logging
import random
from typing import Iterable, Optional

from core.catalog import TemplateCatalog
from delivery.base import PresentationSink
from delivery.queue import NotificationQueue
from ingestion.base import ContentSource
from ingestion.procedural import ProceduralGenerator
from ingestion.source_factory import create_live_source
from processing.classifier import Classifier
from processing.consequences import ConsequenceCalculator
from processing.event_factory import EventFactory
from processing.matcher import TemplateMatcher
from services.cache import CacheManager
from services.config import Settings, load_catalog
from services.cycle_manager import CycleManager
from services.effects import EffectApplicator
from services.fallback import FallbackOrchestrator
from services.fatigue import FatigueTracker
from services.game_state import GameStateProvider
from services.stances import StanceTracker
from workflows.orchestrator import NewsOrchestrator

logger = logging.getLogger(__name__)

_FROM_CONFIG = object()


def build_orchestrator(
    settings: Settings,
    state: GameStateProvider,
    source: Optional[ContentSource] = _FROM_CONFIG,
    sinks: Iterable[PresentationSink] = (),
    rng: Optional[random.Random] = None,
    catalog: Optional[TemplateCatalog] = None,
) -> NewsOrchestrator:
    """
    Wire a NewsOrchestrator.

    Args:
        settings: Loaded configuration
        state: Host game state provider
        source: Live source; built from `settings.sources` when omitted, None disables live fetching
        sinks: Presentation sinks subscribed to notifications
        rng: Shared random source; seeded from `settings.random_seed` when omitted
        catalog: Template catalog; loaded from `settings.catalog_path` when omitted

    Raises:
        ValueError: If the configured template catalog is invalid
    """
    if rng is None:
        rng = random.Random(settings.random_seed)
    if catalog is None:
        catalog = load_catalog(settings.catalog_path)
    if source is _FROM_CONFIG:
        source = create_live_source(settings) if settings.enable_live_news else None

    notifications = NotificationQueue()
    for sink in sinks:
        notifications.subscribe(sink)

    stances = StanceTracker(settings.stances)
    cache = CacheManager(settings.cache)

    orchestrator = NewsOrchestrator(
        settings,
        state,
        classifier=Classifier(),
        matcher=TemplateMatcher(catalog),
        factory=EventFactory(settings),
        cycles=CycleManager(settings.temporal),
        fatigue=FatigueTracker(settings.fatigue),
        cache=cache,
        fallback=FallbackOrchestrator(settings, cache, ProceduralGenerator(rng)),
        calculator=ConsequenceCalculator(settings.consequences, stances, rng),
        effects=EffectApplicator(state),
        stances=stances,
        notifications=notifications,
        source=source,
    )

    logger.info(
        f"Built news orchestrator: {len(catalog)} templates, "
        f"live={'on' if source is not None else 'off'}, "
        f"procedural={'on' if settings.enable_procedural_fallback else 'off'}"
    )
    return orchestrator

"""
Loads and handles config from config.yml
Environment overrides (NEWSCYCLE_*) are loaded from .env
"""
import logging
import os
from typing import List, Dict, Any, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from core.entities import EventCategory

logger = logging.getLogger(__name__)


class SourceConfig(BaseModel):
    """Configuration for a single live content source."""
    type: str  # rss
    enabled: bool = True
    name: Optional[str] = None
    feeds: Optional[List[str]] = None
    timeout: float = 30.0


class TemporalSettings(BaseModel):
    """Stage thresholds and attention decay for the news cycle."""
    breaking_hours: float = 24.0
    developing_hours: float = 72.0
    ongoing_hours: float = 168.0
    fading_hours: float = 48.0
    archived_hours: float = 720.0

    fatigue_rate_per_day: float = 0.1
    interest_decay_ratio: float = 0.8
    interaction_recovery: float = 0.2

    # Item age bounds for the stage an event enters the cycle at
    breaking_age_hours: float = 2.0
    developing_age_hours: float = 24.0
    ongoing_age_hours: float = 168.0

    max_active_breaking: int = 2
    max_active_events: int = 20

    deadline_turns: Dict[str, int] = {
        "breaking": 2,
        "urgent": 5,
        "developing": 10,
        "informational": 15,
    }
    expiration_turns: Dict[str, int] = {
        "breaking": 5,
        "urgent": 10,
        "developing": 15,
        "informational": 30,
    }


class FatigueSettings(BaseModel):
    category_increment: float = 0.1
    entity_increment: float = 0.15
    category_weight: float = 0.3
    entity_weight: float = 0.2
    decay_per_turn: float = 0.05
    suppression_threshold: float = 0.3


class CacheSettings(BaseModel):
    capacity: int = Field(500, ge=1)
    max_age_hours: float = 72.0
    quality_floor: float = 0.5
    freshness_half_life_hours: float = 24.0
    live_quality: float = 0.8
    procedural_quality: float = 0.7


class FallbackSettings(BaseModel):
    demote_after_failures: int = Field(3, ge=1)
    promote_after_successes: int = Field(2, ge=1)
    min_cached_for_offline: int = 10
    health_window: int = 10
    max_procedural_per_cycle: int = 5


class ConsequenceSettings(BaseModel):
    success_bonus: float = 1.5
    success_negative_scale: float = 0.5
    failure_penalty: float = 2.0
    failure_positive_scale: float = 0.3
    failure_mitigation_ratio: float = 0.5

    chaos_multiplier: float = 1.5
    high_approval_threshold: float = 0.7
    high_approval_scale: float = 0.8
    low_approval_threshold: float = 0.3
    low_approval_scale: float = 1.2

    approval_probability_weight: float = 0.2
    min_success_probability: float = 0.05
    max_success_probability: float = 0.95

    max_effect_magnitude: float = 25.0
    min_effect_threshold: float = 0.01

    election_window_turns: int = 5
    election_step: float = 0.1
    urgency_scale: Dict[str, float] = {
        "breaking": 1.5,
        "urgent": 1.25,
        "developing": 1.0,
        "informational": 0.75,
    }

    flip_flop_trust_penalty: float = 5.0
    generic_trust_factor: float = 1.0


class StanceSettings(BaseModel):
    max_records_per_issue: int = 50
    flip_flop_penalty: float = 10.0
    opposites: List[Tuple[str, str]] = [("Support", "Oppose"), ("For", "Against"), ("Condemn", "Defend")]


class Settings(BaseModel):
    """
    Complete configuration, read once at startup.
    """
    enable_live_news: bool = True
    enable_procedural_fallback: bool = True
    fetch_interval_seconds: float = 300.0
    temporal_interval_seconds: float = 60.0
    fetch_timeout_seconds: float = 10.0
    max_events_per_cycle: int = Field(5, ge=0)
    blend_ratio: float = Field(0.3, ge=0.0, le=1.0)
    disabled_categories: List[EventCategory] = []
    debug_logging: bool = False

    min_active_events: int = 3
    max_seen_items: int = Field(5000, ge=1)
    turn_duration_hours: float = 24.0
    game_hours_per_real_hour: float = 1.0

    cache_path: Optional[str] = "data/news_cache.json"
    catalog_path: Optional[str] = None
    random_seed: Optional[int] = None

    sources: List[SourceConfig] = []

    temporal: TemporalSettings = TemporalSettings()
    fatigue: FatigueSettings = FatigueSettings()
    cache: CacheSettings = CacheSettings()
    fallback: FallbackSettings = FallbackSettings()
    consequences: ConsequenceSettings = ConsequenceSettings()
    stances: StanceSettings = StanceSettings()

    def category_enabled(self, category: EventCategory) -> bool:
        return category not in self.disabled_categories


def _bool(value: str | bool) -> bool:
    """Convert string or bool to boolean."""
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


def _get_config_path() -> Optional[str]:
    """Get the path to config.yml, handling different working directories."""
    if os.path.exists('resources/config.yml'):
        return 'resources/config.yml'

    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    config_path = os.path.join(project_root, 'resources', 'config.yml')
    if os.path.exists(config_path):
        return config_path

    return None


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay NEWSCYCLE_* environment variables onto the YAML data."""
    flags = {
        "NEWSCYCLE_ENABLE_LIVE_NEWS": "enable_live_news",
        "NEWSCYCLE_ENABLE_PROCEDURAL_FALLBACK": "enable_procedural_fallback",
        "NEWSCYCLE_DEBUG_LOGGING": "debug_logging",
    }
    for env_name, key in flags.items():
        value = os.getenv(env_name)
        if value is not None:
            data[key] = _bool(value)

    if os.getenv("NEWSCYCLE_CACHE_PATH"):
        data["cache_path"] = os.getenv("NEWSCYCLE_CACHE_PATH")

    if os.getenv("NEWSCYCLE_RANDOM_SEED"):
        data["random_seed"] = int(os.getenv("NEWSCYCLE_RANDOM_SEED"))

    feeds = os.getenv("NEWSCYCLE_FEEDS")
    if feeds:
        urls = [url.strip() for url in feeds.split(",") if url.strip()]
        data.setdefault("sources", []).append({"type": "rss", "name": "env", "feeds": urls})

    return data


def load_config(path: Optional[str] = None) -> Settings:
    """Load configuration from config.yml and overrides from .env."""
    load_dotenv()

    config_path = path or os.getenv("NEWSCYCLE_CONFIG") or _get_config_path()

    data: Dict[str, Any] = {}
    if config_path and os.path.exists(config_path):
        with open(config_path, 'r') as file:
            data = yaml.safe_load(file) or {}
    else:
        logger.info("No config.yml found, using defaults")

    data = _apply_env_overrides(data)
    return Settings.model_validate(data)


def get_enabled_sources(settings: Settings) -> List[SourceConfig]:
    """Get only enabled live sources."""
    return [src for src in settings.sources if src.enabled]


def load_catalog(path: Optional[str] = None):
    """
    Build the template catalog, from a YAML file when one is given.

    Raises:
        ValueError: If the YAML catalog is malformed
    """
    from core.catalog import TemplateCatalog, default_catalog
    from core.schemas import CatalogDefinition

    if not path:
        return default_catalog()

    with open(path, 'r') as file:
        data = yaml.safe_load(file) or {}

    try:
        definition = CatalogDefinition.model_validate(data)
    except Exception as e:
        raise ValueError(f"Invalid template catalog {path}: {e}") from e

    catalog = TemplateCatalog(tuple(t.to_template() for t in definition.templates))
    logger.info(f"Loaded {len(catalog)} templates from {path}")
    return catalog

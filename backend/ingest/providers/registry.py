"""Feed provider selection from settings."""
from __future__ import annotations

from shared.config import FeedProviderName, Settings, get_settings
from shared.utils.logging import get_logger

from ingest.providers.base import NullProvider, ScoresProvider
from ingest.providers.espn import ESPNScoreboardProvider
from ingest.providers.json_feed import JSONFeedProvider

logger = get_logger(__name__)


def build_provider(settings: Settings | None = None) -> ScoresProvider:
    """Instantiate the configured feed. Misconfiguration raises at startup."""
    settings = settings or get_settings()
    name = settings.feed_provider

    if name == FeedProviderName.ESPN:
        provider: ScoresProvider = ESPNScoreboardProvider(settings=settings)
    elif name == FeedProviderName.JSON:
        provider = JSONFeedProvider(settings=settings)
    else:
        provider = NullProvider()

    logger.info("feed_provider_selected", provider=provider.name)
    return provider

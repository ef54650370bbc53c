"""Services layer - relationship context and summary logic over the campaign database.

This module wires the repositories and services that share one Settings
object and one CampaignDatabase.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from src.memory.campaign_database import CampaignDatabase
from src.memory.entities import EntityTypeDefinition
from src.memory.repositories import EntityRepository, RelationshipSummaryCacheRepository
from src.settings import Settings

from .relationship_context import RelationshipContextBuilder, RelationshipContextOptions
from .relationship_summary_cache_service import RelationshipSummaryCacheService
from .relationship_summary_service import (
    RelationshipSummaryGenerator,
    RelationshipSummaryService,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Dependency injection container for all services.

    Usage:
        settings = Settings.load()
        services = ServiceContainer(settings)

        context = await services.relationship_context.build_relationship_context(entity_id)
        result = await services.summary_cache.get_or_generate(source, target, link)
    """

    settings: Settings
    db: CampaignDatabase
    entities: EntityRepository
    summary_cache_repository: RelationshipSummaryCacheRepository
    relationship_context: RelationshipContextBuilder
    summary: RelationshipSummaryGenerator
    summary_cache: RelationshipSummaryCacheService

    def __init__(
        self,
        settings: Settings | None = None,
        db: CampaignDatabase | None = None,
        summary_generator: RelationshipSummaryGenerator | None = None,
        custom_types: tuple[EntityTypeDefinition, ...] = (),
    ):
        """Create and wire service instances that share a Settings object.

        Args:
            settings: Application settings. Loaded via Settings.load() if omitted.
            db: Campaign database. Opened at settings.database_path if omitted.
            summary_generator: Summary generator to use instead of the Ollama service.
            custom_types: Campaign-defined entity types for labels.
        """
        t0 = time.perf_counter()
        logger.info("Initializing ServiceContainer...")
        self.settings = settings or Settings.load()
        self.db = db if db is not None else CampaignDatabase(self.settings.database_path)
        self.entities = EntityRepository(self.db)
        self.summary_cache_repository = RelationshipSummaryCacheRepository(self.db)
        self.relationship_context = RelationshipContextBuilder(self.entities, custom_types)
        self.summary = summary_generator or RelationshipSummaryService(
            self.settings, custom_types
        )
        self.summary_cache = RelationshipSummaryCacheService(
            self.summary_cache_repository, self.summary
        )
        logger.info("ServiceContainer initialized in %.2fs", time.perf_counter() - t0)

    def relationship_context_options(self, **overrides: Any) -> RelationshipContextOptions:
        """Builder options from the current settings, with optional overrides."""
        return self.settings.relationship_context_options(**overrides)

    def close(self) -> None:
        """Close the campaign database."""
        self.db.close()


__all__ = [
    "RelationshipContextBuilder",
    "RelationshipSummaryCacheService",
    "RelationshipSummaryService",
    "ServiceContainer",
]

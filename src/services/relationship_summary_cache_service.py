"""Memoization of generated relationship summaries.

A summary is cached per (source, target, relationship label) together with
the ``updated_at`` of both entities at generation time. Any edit to either
entity makes the entry stale, and the next request regenerates it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from src.memory.entities import (
    CacheStatus,
    Entity,
    EntityLink,
    RelationshipSummaryCacheEntry,
)
from src.memory.repositories import SummaryCacheStore
from src.services.relationship_summary_service import (
    RelationshipSummaryContext,
    RelationshipSummaryGenerator,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedRelationshipSummaryResult:
    """A summary result with cache metadata.

    Attributes:
        success: Whether a summary is available.
        from_cache: True when served from a valid cache entry.
        summary: The summary text on success.
        error: Failure reason from the generator on failure.
        generated_at: When the summary was generated (cached or fresh).
        cache_key: Composite key of the cache entry.
    """

    success: bool
    from_cache: bool
    summary: str | None = None
    error: str | None = None
    generated_at: datetime | None = None
    cache_key: str | None = None


@dataclass(frozen=True)
class RelationshipSummaryCacheStats:
    """Aggregate information about the summary cache."""

    total_count: int = 0
    unique_source_count: int = 0
    unique_target_count: int = 0
    average_age_ms: float = 0.0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None


class RelationshipSummaryCacheService:
    """Serves relationship summaries from the cache, generating them on a miss."""

    def __init__(self, cache: SummaryCacheStore, generator: RelationshipSummaryGenerator):
        """Initialize the service.

        Args:
            cache: Store for cache entries.
            generator: Summary generator used on a miss, a stale entry or a forced refresh.
        """
        self.cache = cache
        self.generator = generator

    async def get_or_generate(
        self,
        source: Entity,
        target: Entity,
        relationship: EntityLink,
        campaign_context: RelationshipSummaryContext | None = None,
        force_regenerate: bool = False,
    ) -> CachedRelationshipSummaryResult:
        """Return the cached summary when valid, otherwise generate and cache one.

        Cache read and write failures are logged and never propagated.
        Failed generations are returned but not cached.

        Args:
            source: Source entity of the relationship.
            target: Target entity of the relationship.
            relationship: The link between them.
            campaign_context: Optional campaign details passed to the generator.
            force_regenerate: Skip the cache lookup and always generate.

        Returns:
            CachedRelationshipSummaryResult.
        """
        cache_key = self.cache.get_cache_key(source.id, target.id, relationship.relationship)

        if not force_regenerate:
            cached = await self._read_cached(source, target, relationship.relationship)
            if cached is not None:
                logger.debug("Relationship summary cache hit: %s", cache_key)
                return CachedRelationshipSummaryResult(
                    success=True,
                    from_cache=True,
                    summary=cached.summary,
                    generated_at=cached.generated_at,
                    cache_key=cached.id,
                )

        result = await self.generator.generate(source, target, relationship, campaign_context)
        if not result.success or not result.summary:
            logger.debug("Not caching failed summary for %s: %s", cache_key, result.error)
            return CachedRelationshipSummaryResult(
                success=False,
                from_cache=False,
                summary=result.summary,
                error=result.error,
            )

        now = datetime.now()
        entry = RelationshipSummaryCacheEntry(
            id=cache_key,
            source_id=source.id,
            target_id=target.id,
            relationship=relationship.relationship,
            summary=result.summary,
            generated_at=now,
            source_entity_updated_at=source.updated_at,
            target_entity_updated_at=target.updated_at,
        )
        try:
            await self.cache.set(entry)
        except Exception as e:
            logger.warning("Failed to cache relationship summary %s: %s", cache_key, e)

        return CachedRelationshipSummaryResult(
            success=True,
            from_cache=False,
            summary=result.summary,
            generated_at=now,
            cache_key=cache_key,
        )

    async def _read_cached(
        self, source: Entity, target: Entity, relationship: str
    ) -> RelationshipSummaryCacheEntry | None:
        """Return a valid cache entry, or None on a miss, a stale entry or a read error."""
        try:
            cached = await self.cache.get(source.id, target.id, relationship)
        except Exception as e:
            logger.warning("Cache read error, falling back to generation: %s", e)
            return None
        if cached is None:
            return None
        if not self.cache.is_valid(cached, source.updated_at, target.updated_at):
            logger.debug("Relationship summary cache entry is stale: %s", cached.id)
            return None
        return cached

    async def invalidate(self, source_id: str, target_id: str, relationship: str) -> None:
        """Remove the cached summary for one relationship."""
        await self.cache.delete(source_id, target_id, relationship)

    async def invalidate_by_entity(self, entity_id: str) -> int:
        """Remove every cached summary involving an entity.

        Returns:
            Number of entries removed.
        """
        removed = await self.cache.delete_by_entity_id(entity_id)
        logger.debug("Invalidated %d cached summaries for entity %s", removed, entity_id)
        return removed

    async def has_valid_cache(self, source: Entity, target: Entity, relationship: str) -> bool:
        """Whether a non-stale summary is cached for the relationship."""
        cached = await self.cache.get(source.id, target.id, relationship)
        if cached is None:
            return False
        return self.cache.is_valid(cached, source.updated_at, target.updated_at)

    async def get_cache_status(
        self,
        source_id: str,
        target_id: str,
        relationship: str,
        source_updated_at: datetime,
        target_updated_at: datetime,
    ) -> CacheStatus:
        """Classify the cache entry for a relationship.

        Args:
            source_id: Source entity id.
            target_id: Target entity id.
            relationship: Relationship label.
            source_updated_at: Current ``updated_at`` of the source entity.
            target_updated_at: Current ``updated_at`` of the target entity.

        Returns:
            "missing" with no entry, "valid" when both timestamps match, else "stale".
        """
        cached = await self.cache.get(source_id, target_id, relationship)
        if cached is None:
            return "missing"
        if self.cache.is_valid(cached, source_updated_at, target_updated_at):
            return "valid"
        return "stale"

    async def get_stats(self) -> RelationshipSummaryCacheStats:
        """Counts and age statistics over all cache entries."""
        entries = await self.cache.get_all()
        if not entries:
            return RelationshipSummaryCacheStats()

        now = datetime.now()
        ages_ms = [(now - entry.generated_at).total_seconds() * 1000 for entry in entries]
        generated = [entry.generated_at for entry in entries]
        return RelationshipSummaryCacheStats(
            total_count=len(entries),
            unique_source_count=len({entry.source_id for entry in entries}),
            unique_target_count=len({entry.target_id for entry in entries}),
            average_age_ms=sum(ages_ms) / len(ages_ms),
            oldest_entry=min(generated),
            newest_entry=max(generated),
        )

    async def clear_all(self) -> None:
        """Remove every cached summary."""
        await self.cache.clear_all()
        logger.info("Relationship summary cache cleared")

"""Async repositories over CampaignDatabase.

The context builder and the summary cache only see the protocols defined
here. The concrete repositories run the synchronous SQLite calls on worker
threads; CampaignDatabase serializes them with its RLock.
"""

import asyncio
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from src.memory.campaign_database import CampaignDatabase
from src.memory.entities import Entity, RelationshipSummaryCacheEntry

CACHE_KEY_DELIMITER = "|||"


class EntityGraphStore(Protocol):
    """Read access to the entity graph."""

    async def get_by_id(self, entity_id: str) -> Entity | None: ...

    async def get_by_ids(self, entity_ids: Iterable[str]) -> list[Entity]: ...

    async def get_entities_linking_to(self, entity_id: str) -> list[Entity]: ...


class SummaryCacheStore(Protocol):
    """Persistence for relationship summary cache entries."""

    def get_cache_key(self, source_id: str, target_id: str, relationship: str) -> str: ...

    def is_valid(
        self,
        entry: RelationshipSummaryCacheEntry,
        source_updated_at: datetime,
        target_updated_at: datetime,
    ) -> bool: ...

    async def get(
        self, source_id: str, target_id: str, relationship: str
    ) -> RelationshipSummaryCacheEntry | None: ...

    async def set(self, entry: RelationshipSummaryCacheEntry) -> None: ...

    async def delete(self, source_id: str, target_id: str, relationship: str) -> None: ...

    async def delete_by_entity_id(self, entity_id: str) -> int: ...

    async def get_all(self) -> list[RelationshipSummaryCacheEntry]: ...

    async def count(self) -> int: ...

    async def clear_all(self) -> None: ...


class EntityRepository:
    """EntityGraphStore backed by a CampaignDatabase."""

    def __init__(self, db: CampaignDatabase) -> None:
        self.db = db

    async def get_by_id(self, entity_id: str) -> Entity | None:
        """Get one entity, or None if it does not exist."""
        return await asyncio.to_thread(self.db.get_entity, entity_id)

    async def get_by_ids(self, entity_ids: Iterable[str]) -> list[Entity]:
        """Batch lookup; ids that do not resolve are left out."""
        return await asyncio.to_thread(self.db.get_entities, list(entity_ids))

    async def get_entities_linking_to(self, entity_id: str) -> list[Entity]:
        """Reverse lookup: entities with a link whose target is ``entity_id``."""
        return await asyncio.to_thread(self.db.get_entities_linking_to, entity_id)


class RelationshipSummaryCacheRepository:
    """SummaryCacheStore backed by a CampaignDatabase.

    Owns the composite key format and the staleness rule: an entry is valid
    only while both endpoint timestamps equal the ones recorded at
    generation time.
    """

    def __init__(self, db: CampaignDatabase) -> None:
        self.db = db

    def get_cache_key(self, source_id: str, target_id: str, relationship: str) -> str:
        """Composite key ``source|||target|||relationship``."""
        return CACHE_KEY_DELIMITER.join((source_id, target_id, relationship))

    def is_valid(
        self,
        entry: RelationshipSummaryCacheEntry,
        source_updated_at: datetime,
        target_updated_at: datetime,
    ) -> bool:
        """Check an entry against the current endpoint timestamps (exact match)."""
        return (
            entry.source_entity_updated_at == source_updated_at
            and entry.target_entity_updated_at == target_updated_at
        )

    async def get(
        self, source_id: str, target_id: str, relationship: str
    ) -> RelationshipSummaryCacheEntry | None:
        """Get the entry for a relationship, if any."""
        key = self.get_cache_key(source_id, target_id, relationship)
        return await asyncio.to_thread(self.db.get_summary_cache, key)

    async def set(self, entry: RelationshipSummaryCacheEntry) -> None:
        """Store or overwrite an entry."""
        await asyncio.to_thread(self.db.set_summary_cache, entry)

    async def delete(self, source_id: str, target_id: str, relationship: str) -> None:
        """Delete an entry; a missing entry is not an error."""
        key = self.get_cache_key(source_id, target_id, relationship)
        await asyncio.to_thread(self.db.delete_summary_cache, key)

    async def delete_by_entity_id(self, entity_id: str) -> int:
        """Delete entries where the entity is source or target."""
        return await asyncio.to_thread(self.db.delete_summary_cache_by_entity, entity_id)

    async def get_all(self) -> list[RelationshipSummaryCacheEntry]:
        """All entries."""
        return await asyncio.to_thread(self.db.list_summary_cache)

    async def count(self) -> int:
        """Number of entries."""
        return await asyncio.to_thread(self.db.count_summary_cache)

    async def clear_all(self) -> None:
        """Remove every entry."""
        await asyncio.to_thread(self.db.clear_summary_cache)

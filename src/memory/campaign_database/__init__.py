"""SQLite-backed campaign database: entities, links, and summary cache rows."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

from src.memory.entities import Entity, RelationshipStrength, RelationshipSummaryCacheEntry
from src.utils.exceptions import DatabaseClosedError

from . import _entities, _links, _schema, _summary_cache

logger = logging.getLogger(__name__)

# Schema version stamped on new databases
SCHEMA_VERSION = 1

# Allowed fields for entity updates (SQL injection prevention)
ENTITY_UPDATE_FIELDS = frozenset(
    {"name", "description", "summary", "tags", "fields", "notes", "type"}
)


class CampaignDatabase:
    """SQLite-backed campaign database.

    Thread-safe implementation using RLock for all database operations,
    so the async repositories can run calls on worker threads.
    """

    def __init__(self, db_path: Path | str):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        in_memory = str(db_path) == ":memory:"
        self.db_path = Path(db_path)
        if not in_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Thread safety lock
        self._lock = threading.RLock()

        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._closed = False  # Initialize immediately so __del__ can always clean up
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            self.conn.execute("PRAGMA journal_mode=WAL")

        _schema.init_schema(self)

    def __del__(self) -> None:
        """Safety net for resource cleanup."""
        if hasattr(self, "_closed") and not self._closed:
            try:
                self.close()
            except Exception as e:
                # Log but don't raise during garbage collection
                logger.debug("Error during CampaignDatabase cleanup in __del__: %s", e)

    def _ensure_open(self) -> None:
        """Check that the database connection is still open.

        Raises:
            DatabaseClosedError: If the database has been closed.
        """
        if self._closed:
            raise DatabaseClosedError(f"Database connection is closed: {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn and not self._closed:
                self.conn.close()
                self._closed = True
                logger.debug("Database connection closed: %s", self.db_path)

    def __enter__(self) -> CampaignDatabase:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> Literal[False]:
        """Context manager exit - ensures connection is closed."""
        self.close()
        return False  # Don't suppress exceptions

    # =========================================================================
    # Entity CRUD Operations (delegated to _entities)
    # =========================================================================

    def add_entity(
        self,
        entity_type: str,
        name: str,
        description: str = "",
        summary: str | None = None,
        tags: Iterable[str] = (),
        fields: dict[str, Any] | None = None,
        notes: str = "",
    ) -> str:
        """Add a new entity and return its id."""
        return _entities.add_entity(
            self, entity_type, name, description, summary, tags, fields, notes
        )

    def get_entity(self, entity_id: str) -> Entity | None:
        """Get an entity by ID."""
        return _entities.get_entity(self, entity_id)

    def get_entities(self, entity_ids: Iterable[str]) -> list[Entity]:
        """Batch-fetch entities; missing ids are skipped."""
        return _entities.get_entities(self, entity_ids)

    def list_entities(self, entity_type: str | None = None) -> list[Entity]:
        """List entities, optionally filtered by type."""
        return _entities.list_entities(self, entity_type)

    def count_entities(self, entity_type: str | None = None) -> int:
        """Count entities, optionally filtered by type."""
        return _entities.count_entities(self, entity_type)

    def update_entity(self, entity_id: str, **updates: Any) -> bool:
        """Update an entity and bump its updated_at."""
        return _entities.update_entity(self, entity_id, **updates)

    def touch_entity(self, entity_id: str) -> bool:
        """Bump an entity's updated_at without changing content."""
        return _entities.touch_entity(self, entity_id)

    def delete_entity(self, entity_id: str) -> bool:
        """Delete an entity with its links, inbound links, and cache rows."""
        return _entities.delete_entity(self, entity_id)

    def get_entities_linking_to(self, entity_id: str) -> list[Entity]:
        """Get entities whose links point at ``entity_id``."""
        return _entities.get_entities_linking_to(self, entity_id)

    # =========================================================================
    # Link Operations (delegated to _links)
    # =========================================================================

    def add_link(
        self,
        source_id: str,
        target_id: str,
        relationship: str,
        bidirectional: bool = False,
        notes: str | None = None,
        strength: RelationshipStrength | None = None,
        metadata: dict[str, Any] | None = None,
        reverse_relationship: str | None = None,
    ) -> str:
        """Add a link and return the forward link id."""
        return _links.add_link(
            self,
            source_id,
            target_id,
            relationship,
            bidirectional,
            notes,
            strength,
            metadata,
            reverse_relationship,
        )

    def remove_link(self, source_id: str, target_id: str) -> bool:
        """Remove the link from source to target."""
        return _links.remove_link(self, source_id, target_id)

    # =========================================================================
    # Relationship Summary Cache (delegated to _summary_cache)
    # =========================================================================

    def get_summary_cache(self, cache_id: str) -> RelationshipSummaryCacheEntry | None:
        """Get one cache row by id."""
        return _summary_cache.get_summary_cache(self, cache_id)

    def set_summary_cache(self, entry: RelationshipSummaryCacheEntry) -> None:
        """Insert or overwrite a cache row."""
        _summary_cache.set_summary_cache(self, entry)

    def delete_summary_cache(self, cache_id: str) -> bool:
        """Delete one cache row."""
        return _summary_cache.delete_summary_cache(self, cache_id)

    def delete_summary_cache_by_entity(self, entity_id: str) -> int:
        """Delete cache rows where the entity is source or target."""
        return _summary_cache.delete_summary_cache_by_entity(self, entity_id)

    def list_summary_cache(self) -> list[RelationshipSummaryCacheEntry]:
        """All cache rows."""
        return _summary_cache.list_summary_cache(self)

    def count_summary_cache(self) -> int:
        """Number of cache rows."""
        return _summary_cache.count_summary_cache(self)

    def clear_summary_cache(self) -> int:
        """Remove every cache row."""
        return _summary_cache.clear_summary_cache(self)


__all__ = ["ENTITY_UPDATE_FIELDS", "SCHEMA_VERSION", "CampaignDatabase"]

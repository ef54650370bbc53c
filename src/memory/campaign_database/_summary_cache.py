"""Relationship summary cache rows for CampaignDatabase."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import TYPE_CHECKING

from src.memory.entities import RelationshipSummaryCacheEntry

if TYPE_CHECKING:
    from . import CampaignDatabase

logger = logging.getLogger(__name__)


def get_summary_cache(db: CampaignDatabase, cache_id: str) -> RelationshipSummaryCacheEntry | None:
    """Get one cache row by its composite id."""
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute("SELECT * FROM relationship_summary_cache WHERE id = ?", (cache_id,))
        row = cursor.fetchone()
    return row_to_cache_entry(row) if row is not None else None


def set_summary_cache(db: CampaignDatabase, entry: RelationshipSummaryCacheEntry) -> None:
    """Insert or overwrite a cache row."""
    with db._lock:
        db._ensure_open()
        db.conn.execute(
            """
            INSERT OR REPLACE INTO relationship_summary_cache
            (id, source_id, target_id, relationship, summary, generated_at,
             source_entity_updated_at, target_entity_updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.source_id,
                entry.target_id,
                entry.relationship,
                entry.summary,
                entry.generated_at.isoformat(),
                entry.source_entity_updated_at.isoformat(),
                entry.target_entity_updated_at.isoformat(),
            ),
        )
        db.conn.commit()
    logger.debug("Stored relationship summary cache entry %s", entry.id)


def delete_summary_cache(db: CampaignDatabase, cache_id: str) -> bool:
    """Delete one cache row.

    Returns:
        True if a row was removed.
    """
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute("DELETE FROM relationship_summary_cache WHERE id = ?", (cache_id,))
        deleted = cursor.rowcount > 0
        db.conn.commit()
    return deleted


def delete_summary_cache_by_entity(db: CampaignDatabase, entity_id: str) -> int:
    """Delete every cache row where ``entity_id`` is the source or the target.

    Returns:
        Number of rows removed.
    """
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute(
            "DELETE FROM relationship_summary_cache WHERE source_id = ? OR target_id = ?",
            (entity_id, entity_id),
        )
        removed = cursor.rowcount
        db.conn.commit()
    logger.debug("Removed %d relationship summary cache entries for %s", removed, entity_id)
    return removed


def list_summary_cache(db: CampaignDatabase) -> list[RelationshipSummaryCacheEntry]:
    """All cache rows, oldest first."""
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute("SELECT * FROM relationship_summary_cache ORDER BY generated_at")
        rows = cursor.fetchall()
    return [row_to_cache_entry(row) for row in rows]


def count_summary_cache(db: CampaignDatabase) -> int:
    """Number of cache rows."""
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM relationship_summary_cache")
        return int(cursor.fetchone()[0])


def clear_summary_cache(db: CampaignDatabase) -> int:
    """Remove every cache row.

    Returns:
        Number of rows removed.
    """
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute("DELETE FROM relationship_summary_cache")
        removed = cursor.rowcount
        db.conn.commit()
    logger.info("Cleared relationship summary cache (%d entries)", removed)
    return removed


def row_to_cache_entry(row: sqlite3.Row) -> RelationshipSummaryCacheEntry:
    """Convert a database row to a RelationshipSummaryCacheEntry."""
    return RelationshipSummaryCacheEntry(
        id=row["id"],
        source_id=row["source_id"],
        target_id=row["target_id"],
        relationship=row["relationship"],
        summary=row["summary"],
        generated_at=datetime.fromisoformat(row["generated_at"]),
        source_entity_updated_at=datetime.fromisoformat(row["source_entity_updated_at"]),
        target_entity_updated_at=datetime.fromisoformat(row["target_entity_updated_at"]),
    )

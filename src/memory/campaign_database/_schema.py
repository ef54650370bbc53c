"""Database schema initialization for CampaignDatabase."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from . import CampaignDatabase

logger = logging.getLogger(__name__)


def init_schema(db: CampaignDatabase) -> None:
    """Initialize database schema with versioning.

    Creates all tables if they don't exist and stamps the schema version.

    Args:
        db: CampaignDatabase instance.
    """
    from . import SCHEMA_VERSION

    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """
        )

        cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
        row = cursor.fetchone()
        current_version = row[0] if row else 0

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS entities (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT DEFAULT '',
                summary TEXT,
                tags TEXT DEFAULT '[]',
                fields TEXT DEFAULT '{}',
                notes TEXT DEFAULT '',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """
        )

        # Links keep their per-entity order through the position column
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS entity_links (
                id TEXT PRIMARY KEY,
                source_id TEXT NOT NULL,
                target_id TEXT NOT NULL,
                target_type TEXT NOT NULL,
                relationship TEXT NOT NULL,
                bidirectional INTEGER DEFAULT 0,
                reverse_relationship TEXT,
                strength TEXT,
                notes TEXT,
                metadata TEXT,
                position INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (source_id) REFERENCES entities(id) ON DELETE CASCADE
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS relationship_summary_cache (
                id TEXT PRIMARY KEY,
                source_id TEXT NOT NULL,
                target_id TEXT NOT NULL,
                relationship TEXT NOT NULL,
                summary TEXT NOT NULL,
                generated_at TEXT NOT NULL,
                source_entity_updated_at TEXT NOT NULL,
                target_entity_updated_at TEXT NOT NULL
            )
        """
        )

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_entities_type ON entities(type)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_links_source ON entity_links(source_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_links_target ON entity_links(target_id)")
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_summary_cache_source "
            "ON relationship_summary_cache(source_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_summary_cache_target "
            "ON relationship_summary_cache(target_id)"
        )

        if current_version < SCHEMA_VERSION:
            cursor.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            logger.info(
                "Campaign database schema at version %d (was %d)", SCHEMA_VERSION, current_version
            )

        db.conn.commit()

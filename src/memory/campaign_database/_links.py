"""Link operations for CampaignDatabase.

Links are owned by their source entity: adding or removing one bumps the
source entity's ``updated_at``, which is what invalidates cached summaries.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from src.memory.entities import RelationshipStrength
from src.utils.exceptions import EntityNotFoundError

if TYPE_CHECKING:
    from . import CampaignDatabase

logger = logging.getLogger(__name__)

VALID_STRENGTHS = frozenset({"strong", "moderate", "weak"})


def _next_position(cursor: sqlite3.Cursor, source_id: str) -> int:
    """Position after the last existing link of ``source_id``."""
    cursor.execute(
        "SELECT COALESCE(MAX(position), -1) + 1 FROM entity_links WHERE source_id = ?",
        (source_id,),
    )
    return int(cursor.fetchone()[0])


def _insert_link(
    cursor: sqlite3.Cursor,
    source_id: str,
    target_id: str,
    target_type: str,
    relationship: str,
    bidirectional: bool,
    reverse_relationship: str | None,
    strength: str | None,
    notes: str | None,
    metadata: dict[str, Any] | None,
    now: str,
) -> str:
    """Insert one link row and return its id."""
    link_id = str(uuid.uuid4())
    cursor.execute(
        """
        INSERT INTO entity_links
        (id, source_id, target_id, target_type, relationship, bidirectional,
         reverse_relationship, strength, notes, metadata, position, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            link_id,
            source_id,
            target_id,
            target_type,
            relationship,
            1 if bidirectional else 0,
            reverse_relationship,
            strength,
            notes,
            json.dumps(metadata) if metadata is not None else None,
            _next_position(cursor, source_id),
            now,
            now,
        ),
    )
    return link_id


def add_link(
    db: CampaignDatabase,
    source_id: str,
    target_id: str,
    relationship: str,
    bidirectional: bool = False,
    notes: str | None = None,
    strength: RelationshipStrength | None = None,
    metadata: dict[str, Any] | None = None,
    reverse_relationship: str | None = None,
) -> str:
    """Add a link from ``source_id`` to ``target_id``.

    A bidirectional link also gets a mirrored link on the target, labeled
    with ``reverse_relationship`` when given and ``relationship`` otherwise.

    Args:
        db: CampaignDatabase instance.
        source_id: Source entity ID
        target_id: Target entity ID
        relationship: Free-form relationship label
        bidirectional: Whether to mirror the link on the target
        notes: Optional DM notes about the link
        strength: Optional strength (strong, moderate, weak)
        metadata: Optional free-form metadata
        reverse_relationship: Label used from the target side

    Returns:
        ID of the forward link.

    Raises:
        EntityNotFoundError: If source or target does not exist.
        ValueError: If the label is empty, strength is unknown, or the
            source already links to the target.
    """
    relationship = relationship.strip()
    if not relationship:
        raise ValueError("Relationship label cannot be empty")
    if strength is not None and strength not in VALID_STRENGTHS:
        raise ValueError(f"Invalid strength '{strength}'. Must be one of: strong, moderate, weak")

    now = datetime.now().isoformat()
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute("SELECT id, type FROM entities WHERE id IN (?, ?)", (source_id, target_id))
        types = {row["id"]: row["type"] for row in cursor.fetchall()}
        if source_id not in types:
            raise EntityNotFoundError(source_id)
        if target_id not in types:
            raise EntityNotFoundError(target_id)

        cursor.execute(
            "SELECT 1 FROM entity_links WHERE source_id = ? AND target_id = ?",
            (source_id, target_id),
        )
        if cursor.fetchone() is not None:
            raise ValueError(f"Link already exists: {source_id} -> {target_id}")

        link_id = _insert_link(
            cursor,
            source_id,
            target_id,
            types[target_id],
            relationship,
            bidirectional,
            reverse_relationship if bidirectional else None,
            strength,
            notes or None,
            metadata,
            now,
        )
        touched = [source_id]

        if bidirectional:
            _insert_link(
                cursor,
                target_id,
                source_id,
                types[source_id],
                reverse_relationship or relationship,
                True,
                relationship if reverse_relationship else None,
                strength,
                None,
                metadata,
                now,
            )
            touched.append(target_id)

        for entity_id in touched:
            cursor.execute("UPDATE entities SET updated_at = ? WHERE id = ?", (now, entity_id))
        db.conn.commit()

    logger.debug(
        "Added link: %s --%s--> %s (bidirectional=%s)",
        source_id,
        relationship,
        target_id,
        bidirectional,
    )
    return link_id


def remove_link(db: CampaignDatabase, source_id: str, target_id: str) -> bool:
    """Remove the link from ``source_id`` to ``target_id``.

    A bidirectional link also loses its mirror on the target.

    Returns:
        True if a link was removed.
    """
    now = datetime.now().isoformat()
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute(
            "SELECT bidirectional FROM entity_links WHERE source_id = ? AND target_id = ?",
            (source_id, target_id),
        )
        row = cursor.fetchone()
        if row is None:
            return False

        cursor.execute(
            "DELETE FROM entity_links WHERE source_id = ? AND target_id = ?",
            (source_id, target_id),
        )
        cursor.execute("UPDATE entities SET updated_at = ? WHERE id = ?", (now, source_id))
        if row["bidirectional"]:
            cursor.execute(
                "DELETE FROM entity_links WHERE source_id = ? AND target_id = ?",
                (target_id, source_id),
            )
            if cursor.rowcount > 0:
                cursor.execute("UPDATE entities SET updated_at = ? WHERE id = ?", (now, target_id))
        db.conn.commit()

    logger.debug("Removed link: %s --> %s", source_id, target_id)
    return True

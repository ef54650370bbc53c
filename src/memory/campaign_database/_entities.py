"""Entity CRUD operations for CampaignDatabase."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter

from src.memory.entities import Entity, EntityLink, FieldValue

if TYPE_CHECKING:
    from . import CampaignDatabase

logger = logging.getLogger(__name__)

_FIELDS_ADAPTER: TypeAdapter[dict[str, FieldValue]] = TypeAdapter(dict[str, FieldValue])

MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 10000


def _validate_name(name: str) -> str:
    """Strip and validate an entity name."""
    name = name.strip()
    if not name:
        raise ValueError("Entity name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Entity name cannot exceed {MAX_NAME_LENGTH} characters")
    return name


def _validate_description(description: str | None) -> str:
    """Strip and validate an entity description."""
    description = description.strip() if description else ""
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValueError(f"Entity description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")
    return description


def _dump_fields(fields: dict[str, Any]) -> str:
    """Validate fields against the FieldValue union and serialize them."""
    validated = _FIELDS_ADAPTER.validate_python(fields)
    return _FIELDS_ADAPTER.dump_json(validated).decode("utf-8")


def add_entity(
    db: CampaignDatabase,
    entity_type: str,
    name: str,
    description: str = "",
    summary: str | None = None,
    tags: Iterable[str] = (),
    fields: dict[str, Any] | None = None,
    notes: str = "",
) -> str:
    """Add a new entity to the database.

    Args:
        db: CampaignDatabase instance.
        entity_type: Type tag (character, npc, location, faction, ...)
        name: Entity name
        description: Entity description
        summary: Optional short summary
        tags: Tags; duplicates are dropped, order is kept
        fields: Type-specific field values
        notes: DM-only notes

    Returns:
        Entity ID

    Raises:
        ValueError: If name, entity_type, or fields are invalid
    """
    logger.debug("add_entity called: type=%s, name=%s", entity_type, name)
    name = _validate_name(name)
    entity_type = entity_type.strip().lower()
    if not entity_type:
        raise ValueError("Entity type cannot be empty")
    description = _validate_description(description)

    entity_id = str(uuid.uuid4())
    now = datetime.now().isoformat()

    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute(
            """
            INSERT INTO entities
            (id, type, name, description, summary, tags, fields, notes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entity_id,
                entity_type,
                name,
                description,
                summary,
                json.dumps(list(dict.fromkeys(tags))),
                _dump_fields(fields or {}),
                notes,
                now,
                now,
            ),
        )
        db.conn.commit()

    logger.debug("Added entity: %s (%s) id=%s", name, entity_type, entity_id)
    return entity_id


def get_entity(db: CampaignDatabase, entity_id: str) -> Entity | None:
    """Get an entity by ID, links included.

    Args:
        db: CampaignDatabase instance.
        entity_id: Entity ID

    Returns:
        Entity or None if not found
    """
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute("SELECT * FROM entities WHERE id = ?", (entity_id,))
        row = cursor.fetchone()
        if row is None:
            return None
        links = _load_links(cursor, [entity_id])
        return row_to_entity(row, links.get(entity_id, []))


def get_entities(db: CampaignDatabase, entity_ids: Iterable[str]) -> list[Entity]:
    """Batch-fetch entities by ID.

    Missing ids are skipped. Order follows the first occurrence of each id
    in ``entity_ids``.

    Args:
        db: CampaignDatabase instance.
        entity_ids: Entity IDs, duplicates allowed.

    Returns:
        Entities that exist.
    """
    unique_ids = list(dict.fromkeys(entity_ids))
    if not unique_ids:
        return []

    placeholders = ", ".join("?" for _ in unique_ids)
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute(f"SELECT * FROM entities WHERE id IN ({placeholders})", unique_ids)
        rows = {row["id"]: row for row in cursor.fetchall()}
        links = _load_links(cursor, list(rows))

    return [row_to_entity(rows[eid], links.get(eid, [])) for eid in unique_ids if eid in rows]


def list_entities(db: CampaignDatabase, entity_type: str | None = None) -> list[Entity]:
    """List entities, optionally filtered by type, ordered by name.

    Args:
        db: CampaignDatabase instance.
        entity_type: Optional type filter

    Returns:
        List of entities
    """
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        if entity_type:
            cursor.execute("SELECT * FROM entities WHERE type = ? ORDER BY name", (entity_type,))
        else:
            cursor.execute("SELECT * FROM entities ORDER BY type, name")
        rows = cursor.fetchall()
        links = _load_links(cursor, [row["id"] for row in rows])

    return [row_to_entity(row, links.get(row["id"], [])) for row in rows]


def count_entities(db: CampaignDatabase, entity_type: str | None = None) -> int:
    """Count entities, optionally filtered by type."""
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        if entity_type:
            cursor.execute("SELECT COUNT(*) FROM entities WHERE type = ?", (entity_type,))
        else:
            cursor.execute("SELECT COUNT(*) FROM entities")
        return int(cursor.fetchone()[0])


def update_entity(db: CampaignDatabase, entity_id: str, **updates: Any) -> bool:
    """Update an entity and bump its ``updated_at``.

    Args:
        db: CampaignDatabase instance.
        entity_id: Entity ID
        **updates: Fields to update (name, description, summary, tags, fields, notes, type)

    Returns:
        True if updated, False if entity not found or nothing to update

    Raises:
        ValueError: If validation fails
    """
    from . import ENTITY_UPDATE_FIELDS

    logger.debug("update_entity called: entity_id=%s, fields=%s", entity_id, list(updates))
    update_fields: dict[str, Any] = {}
    for key, value in updates.items():
        if key not in ENTITY_UPDATE_FIELDS:
            logger.warning("Ignoring unknown field in update_entity: %s", key)
            continue
        update_fields[key] = value

    if not update_fields:
        return False

    if "name" in update_fields:
        update_fields["name"] = _validate_name(update_fields["name"])
    if "description" in update_fields:
        update_fields["description"] = _validate_description(update_fields["description"])
    if "type" in update_fields:
        entity_type = update_fields["type"].strip().lower()
        if not entity_type:
            raise ValueError("Entity type cannot be empty")
        update_fields["type"] = entity_type
    if "tags" in update_fields:
        update_fields["tags"] = json.dumps(list(dict.fromkeys(update_fields["tags"] or [])))
    if "fields" in update_fields:
        update_fields["fields"] = _dump_fields(update_fields["fields"] or {})

    update_fields["updated_at"] = datetime.now().isoformat()

    set_clause = ", ".join(f"{field} = ?" for field in update_fields)
    values = [*update_fields.values(), entity_id]

    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute(f"UPDATE entities SET {set_clause} WHERE id = ?", values)
        updated = cursor.rowcount > 0
        db.conn.commit()

    if updated:
        logger.debug("Updated entity %s: %s", entity_id, sorted(update_fields))
    return updated


def touch_entity(db: CampaignDatabase, entity_id: str) -> bool:
    """Bump ``updated_at`` without changing content.

    Returns:
        True if the entity exists.
    """
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute(
            "UPDATE entities SET updated_at = ? WHERE id = ?",
            (datetime.now().isoformat(), entity_id),
        )
        touched = cursor.rowcount > 0
        db.conn.commit()
    return touched


def delete_entity(db: CampaignDatabase, entity_id: str) -> bool:
    """Delete an entity, its links, inbound links, and its summary cache rows.

    Entities that linked to the deleted entity get their ``updated_at``
    bumped because their link list changed.

    Args:
        db: CampaignDatabase instance.
        entity_id: Entity ID

    Returns:
        True if deleted, False if not found
    """
    now = datetime.now().isoformat()
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute(
            "SELECT DISTINCT source_id FROM entity_links WHERE target_id = ? AND source_id != ?",
            (entity_id, entity_id),
        )
        linking_ids = [row[0] for row in cursor.fetchall()]

        cursor.execute(
            "DELETE FROM entity_links WHERE source_id = ? OR target_id = ?",
            (entity_id, entity_id),
        )
        removed_links = cursor.rowcount
        cursor.execute(
            "DELETE FROM relationship_summary_cache WHERE source_id = ? OR target_id = ?",
            (entity_id, entity_id),
        )
        removed_cache = cursor.rowcount
        cursor.execute("DELETE FROM entities WHERE id = ?", (entity_id,))
        deleted = cursor.rowcount > 0
        for linking_id in linking_ids:
            cursor.execute("UPDATE entities SET updated_at = ? WHERE id = ?", (now, linking_id))
        db.conn.commit()

    if deleted:
        logger.debug(
            "Deleted entity %s (%d links, %d cached summaries removed)",
            entity_id,
            removed_links,
            removed_cache,
        )
    return deleted


def get_entities_linking_to(db: CampaignDatabase, entity_id: str) -> list[Entity]:
    """Get every entity that has at least one link pointing at ``entity_id``.

    Args:
        db: CampaignDatabase instance.
        entity_id: Target entity ID

    Returns:
        Linking entities ordered by name.
    """
    with db._lock:
        db._ensure_open()
        cursor = db.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM entities
            WHERE id IN (SELECT source_id FROM entity_links WHERE target_id = ?)
            ORDER BY name
            """,
            (entity_id,),
        )
        rows = cursor.fetchall()
        links = _load_links(cursor, [row["id"] for row in rows])

    return [row_to_entity(row, links.get(row["id"], [])) for row in rows]


def _load_links(cursor: sqlite3.Cursor, source_ids: list[str]) -> dict[str, list[EntityLink]]:
    """Load ordered links for a set of source entities."""
    if not source_ids:
        return {}
    placeholders = ", ".join("?" for _ in source_ids)
    cursor.execute(
        f"SELECT * FROM entity_links WHERE source_id IN ({placeholders}) "
        "ORDER BY source_id, position",
        source_ids,
    )
    links: dict[str, list[EntityLink]] = {}
    for row in cursor.fetchall():
        links.setdefault(row["source_id"], []).append(row_to_link(row))
    return links


def row_to_link(row: sqlite3.Row) -> EntityLink:
    """Convert a database row to an EntityLink."""
    return EntityLink(
        id=row["id"],
        source_id=row["source_id"],
        target_id=row["target_id"],
        target_type=row["target_type"],
        relationship=row["relationship"],
        bidirectional=bool(row["bidirectional"]),
        reverse_relationship=row["reverse_relationship"],
        strength=row["strength"],
        notes=row["notes"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else None,
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def row_to_entity(row: sqlite3.Row, links: list[EntityLink]) -> Entity:
    """Convert a database row plus its links to an Entity."""
    return Entity(
        id=row["id"],
        type=row["type"],
        name=row["name"],
        description=row["description"] or "",
        summary=row["summary"],
        tags=json.loads(row["tags"] or "[]"),
        fields=_FIELDS_ADAPTER.validate_json(row["fields"] or "{}"),
        links=links,
        notes=row["notes"] or "",
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )

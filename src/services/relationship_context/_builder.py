"""Relationship context builder: graph traversal under entity and character limits."""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import replace

from src.memory.entities import Entity, EntityLink, EntityTypeDefinition, RelationshipDirection
from src.memory.repositories import EntityGraphStore
from src.services.relationship_context._formatting import (
    TRUNCATION_FOOTER,
    context_header,
    format_grouped_entity_entry,
    format_related_entity_entry,
)
from src.services.relationship_context._privacy import build_privacy_safe_summary
from src.services.relationship_context._types import (
    GroupedRelatedEntityContext,
    GroupedRelationshipContext,
    RelatedEntityContext,
    RelationshipContext,
    RelationshipContextOptions,
    RelationshipInfo,
)
from src.utils.exceptions import EntityNotFoundError
from src.utils.logging_config import log_performance

logger = logging.getLogger(__name__)

# Entries are unique per (entity id, relationship label, direction)
EntryKey = tuple[str, str, RelationshipDirection]

# Limits used to collect the full neighborhood before grouping
GROUPED_COLLECTION_MAX_ENTITIES = 1000
GROUPED_COLLECTION_MAX_CHARACTERS = 1_000_000

ELLIPSIS = "..."
FORCED_FIT_MIN_CHARS = 100
FORCED_FIT_RESERVED_CHARS = 4
GROUPED_FORCED_FIT_MIN_CHARS = 50
GROUPED_FORCED_FIT_RESERVED_CHARS = 200


def _keeps_relationship(options: RelationshipContextOptions, relationship: str) -> bool:
    """Whether the relationship label passes the relationship_types filter."""
    return not options.relationship_types or relationship in options.relationship_types


class RelationshipContextBuilder:
    """Collects an entity's relationship neighborhood for prompt injection.

    Outgoing links are followed breadth-first up to ``max_depth`` hops;
    incoming links (other entities linking to the source) are collected at
    depth 1 only. The result is capped by entity count and by the character
    length of the formatted entries.
    """

    def __init__(
        self,
        store: EntityGraphStore,
        custom_types: Iterable[EntityTypeDefinition] = (),
    ) -> None:
        """Create a builder.

        Args:
            store: Read access to the campaign's entity graph.
            custom_types: Campaign-defined entity types, used for field and
                type labels.
        """
        self.store = store
        self.custom_types: tuple[EntityTypeDefinition, ...] = tuple(custom_types)

    async def build_relationship_context(
        self,
        source_entity_id: str,
        options: RelationshipContextOptions | None = None,
    ) -> RelationshipContext:
        """Build the flat relationship context for an entity.

        Args:
            source_entity_id: Entity whose relationships are collected.
            options: Limits and filters; defaults apply when omitted.

        Returns:
            RelationshipContext with at most ``max_related_entities`` entries.

        Raises:
            EntityNotFoundError: If the source entity does not exist.
        """
        options = options or RelationshipContextOptions()
        source = await self.store.get_by_id(source_entity_id)
        if source is None:
            raise EntityNotFoundError(source_entity_id)

        logger.debug(
            "Building relationship context for %s (%s): direction=%s, max_depth=%d",
            source.name,
            source.id,
            options.direction,
            options.max_depth,
        )

        with log_performance(logger, f"Relationship traversal for {source.id}"):
            entries = await self._collect(source, options)

        context = self._apply_limits(source, list(entries.values()), options)
        logger.debug(
            "Relationship context for %s: %d entries, %d chars, truncated=%s",
            source.id,
            len(context.related_entities),
            context.total_characters,
            context.truncated,
        )
        return context

    async def _collect(
        self,
        source: Entity,
        options: RelationshipContextOptions,
    ) -> dict[EntryKey, RelatedEntityContext]:
        """Breadth-first walk from the source.

        Each dequeued entity contributes its outgoing links; the source also
        contributes its incoming links, right after its own outgoing ones.
        """
        entries: dict[EntryKey, RelatedEntityContext] = {}
        queue: deque[tuple[Entity, int]] = deque([(source, 0)])
        visited: set[str] = {source.id}

        while queue:
            current, depth = queue.popleft()
            if depth >= options.max_depth:
                continue
            if options.follows_outgoing:
                await self._collect_outgoing(
                    source, current, depth, options, entries, queue, visited
                )
            if options.follows_incoming and depth == 0:
                await self._collect_incoming(current, options, entries)

        return entries

    async def _collect_outgoing(
        self,
        source: Entity,
        current: Entity,
        depth: int,
        options: RelationshipContextOptions,
        entries: dict[EntryKey, RelatedEntityContext],
        queue: deque[tuple[Entity, int]],
        visited: set[str],
    ) -> None:
        """Add one entity's outgoing links, keeping the shallowest entry per key."""
        if not current.links:
            return

        targets = await self.store.get_by_ids(
            dict.fromkeys(link.target_id for link in current.links)
        )
        targets_by_id = {target.id: target for target in targets}
        next_depth = depth + 1

        for link in current.links:
            if not _keeps_relationship(options, link.relationship):
                continue

            key: EntryKey = (link.target_id, link.relationship, "outgoing")
            existing = entries.get(key)
            if existing is not None and existing.depth <= next_depth:
                continue

            target = targets_by_id.get(link.target_id)
            if target is None:
                logger.debug(
                    "Skipping dangling link %s -> %s (%s)",
                    current.id,
                    link.target_id,
                    link.relationship,
                )
                continue
            if options.entity_types and target.type not in options.entity_types:
                continue
            if depth == 0 and target.id == source.id:
                continue

            entries[key] = self._make_entry(target, link, "outgoing", next_depth, options)

            if target.id not in visited and next_depth < options.max_depth:
                visited.add(target.id)
                queue.append((target, next_depth))

    async def _collect_incoming(
        self,
        source: Entity,
        options: RelationshipContextOptions,
        entries: dict[EntryKey, RelatedEntityContext],
    ) -> None:
        """Collect entities that link to the source, at depth 1."""
        linking_entities = await self.store.get_entities_linking_to(source.id)

        for entity in linking_entities:
            link = next((lk for lk in entity.links if lk.target_id == source.id), None)
            if link is None:
                continue
            if not _keeps_relationship(options, link.relationship):
                continue
            if options.entity_types and entity.type not in options.entity_types:
                continue

            key: EntryKey = (entity.id, link.relationship, "incoming")
            if key in entries:
                continue
            entries[key] = self._make_entry(entity, link, "incoming", 1, options)

    def _make_entry(
        self,
        entity: Entity,
        link: EntityLink,
        direction: RelationshipDirection,
        depth: int,
        options: RelationshipContextOptions,
    ) -> RelatedEntityContext:
        """Build one entry; strength and notes only when requested and present."""
        return RelatedEntityContext(
            relationship=link.relationship,
            entity_id=entity.id,
            entity_type=entity.type,
            name=entity.name,
            summary=build_privacy_safe_summary(entity, self.custom_types),
            direction=direction,
            depth=depth,
            strength=link.strength if options.include_strength and link.strength else None,
            notes=link.notes if options.include_notes and link.notes else None,
        )

    def _apply_limits(
        self,
        source: Entity,
        candidates: list[RelatedEntityContext],
        options: RelationshipContextOptions,
    ) -> RelationshipContext:
        """Cap the entry count, then greedily fill the character budget."""
        truncated = False
        if len(candidates) > options.max_related_entities:
            candidates = candidates[: options.max_related_entities]
            truncated = True

        selected: list[RelatedEntityContext] = []
        total = 0
        for entry in candidates:
            formatted = format_related_entity_entry(entry, self.custom_types)
            entry_length = len(formatted) + 1
            remaining = options.max_characters - total

            if entry_length > remaining:
                truncated = True
                if not selected:
                    max_length = max(FORCED_FIT_MIN_CHARS, remaining - FORCED_FIT_RESERVED_CHARS)
                    shortened = formatted[:max_length] + ELLIPSIS
                    selected.append(self._shorten_entry(entry, len(formatted) - max_length))
                    total += len(shortened) + 1
                    logger.debug(
                        "Forced-fit first entry %s into %d chars", entry.entity_id, len(shortened)
                    )
                break

            selected.append(entry)
            total += entry_length

        return RelationshipContext(
            source_entity_id=source.id,
            source_entity_name=source.name,
            related_entities=tuple(selected),
            total_characters=total,
            truncated=truncated,
        )

    @staticmethod
    def _shorten_entry(entry: RelatedEntityContext, excess: int) -> RelatedEntityContext:
        """Cut ``excess`` characters off the summary so the entry renders at its counted size.

        Entries whose summary is too short to absorb the cut are returned unchanged.
        """
        if excess <= 0 or len(entry.summary) <= excess:
            return entry
        return replace(entry, summary=entry.summary[: len(entry.summary) - excess] + ELLIPSIS)

    async def build_grouped_relationship_context(
        self,
        source_entity_id: str,
        options: RelationshipContextOptions | None = None,
    ) -> GroupedRelationshipContext:
        """Build a relationship context with one record per related entity.

        The full neighborhood is collected first, then entries sharing an
        entity id are merged. ``max_related_entities`` counts distinct
        entities, and the character budget covers the header and a possible
        truncation footer.

        Args:
            source_entity_id: Entity whose relationships are collected.
            options: Limits and filters; defaults apply when omitted.

        Returns:
            GroupedRelationshipContext in first-seen order.

        Raises:
            EntityNotFoundError: If the source entity does not exist.
        """
        options = options or RelationshipContextOptions()
        collection_options = replace(
            options,
            max_related_entities=GROUPED_COLLECTION_MAX_ENTITIES,
            max_characters=GROUPED_COLLECTION_MAX_CHARACTERS,
        )
        flat = await self.build_relationship_context(source_entity_id, collection_options)

        grouped = self._group_entries(flat.related_entities)
        truncated = flat.truncated
        if len(grouped) > options.max_related_entities:
            grouped = grouped[: options.max_related_entities]
            truncated = True

        header = context_header(flat.source_entity_name)
        total = len(header)
        selected: list[GroupedRelatedEntityContext] = []

        for entry in grouped:
            formatted = format_grouped_entity_entry(entry, self.custom_types)
            entry_length = len(formatted) + 1
            remaining = options.max_characters - total - len(TRUNCATION_FOOTER)

            if entry_length > remaining:
                truncated = True
                if not selected:
                    max_summary = max(
                        GROUPED_FORCED_FIT_MIN_CHARS, remaining - GROUPED_FORCED_FIT_RESERVED_CHARS
                    )
                    if len(entry.summary) > max_summary:
                        entry = replace(entry, summary=entry.summary[:max_summary] + ELLIPSIS)
                    selected.append(entry)
                    total += len(format_grouped_entity_entry(entry, self.custom_types)) + 1
                break

            selected.append(entry)
            total += entry_length

        if truncated:
            total += len(TRUNCATION_FOOTER)

        return GroupedRelationshipContext(
            source_entity_id=flat.source_entity_id,
            source_entity_name=flat.source_entity_name,
            related_entities=tuple(selected),
            total_characters=total,
            truncated=truncated,
        )

    @staticmethod
    def _group_entries(
        entries: Iterable[RelatedEntityContext],
    ) -> list[GroupedRelatedEntityContext]:
        """Merge entries that share an entity id, keeping first-seen order."""
        groups: dict[str, GroupedRelatedEntityContext] = {}
        for entry in entries:
            info = RelationshipInfo(
                relationship=entry.relationship,
                direction=entry.direction,
                depth=entry.depth,
                strength=entry.strength,
                notes=entry.notes,
            )
            group = groups.get(entry.entity_id)
            if group is None:
                groups[entry.entity_id] = GroupedRelatedEntityContext(
                    entity_id=entry.entity_id,
                    entity_type=entry.entity_type,
                    name=entry.name,
                    summary=entry.summary,
                    relationships=(info,),
                )
            else:
                groups[entry.entity_id] = replace(
                    group, relationships=(*group.relationships, info)
                )
        return list(groups.values())

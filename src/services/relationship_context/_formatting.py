"""Text rendering for relationship contexts."""

import math
from collections import Counter
from collections.abc import Iterable

from src.memory.entities import EntityTypeDefinition
from src.memory.entity_types import get_type_label
from src.services.relationship_context._types import (
    GroupedRelatedEntityContext,
    GroupedRelationshipContext,
    RelatedEntityContext,
    RelationshipContext,
    RelationshipContextStats,
)

TRUNCATION_FOOTER = (
    "\n(Context truncated - additional relationships available but not included due to limits)"
)
NO_RELATIONSHIPS_LINE = "No relationships found.\n"
CHARS_PER_TOKEN = 4
NO_DETAILS_TEXT = "(No additional details)"


def context_header(source_entity_name: str) -> str:
    """Header line that opens every relationship prompt block."""
    return f"=== Relationships for {source_entity_name} ===\n"


def format_related_entity_entry(
    entry: RelatedEntityContext, custom_types: Iterable[EntityTypeDefinition] = ()
) -> str:
    """Render one related entity as a single line.

    Format: ``[Relationship: R] Name (TypeLabel): summary`` followed by
    ``[Strength: s]`` and ``[Notes: n]`` when those are set.
    """
    type_label = get_type_label(entry.entity_type, custom_types)
    text = f"[Relationship: {entry.relationship}] {entry.name} ({type_label}): {entry.summary}"
    if entry.strength:
        text += f" [Strength: {entry.strength}]"
    if entry.notes:
        text += f" [Notes: {entry.notes}]"
    return text


def format_relationship_context_for_prompt(
    context: RelationshipContext, custom_types: Iterable[EntityTypeDefinition] = ()
) -> str:
    """Render a flat relationship context as a prompt block.

    Args:
        context: Result of RelationshipContextBuilder.build_relationship_context.
        custom_types: Campaign-defined entity types for type labels.

    Returns:
        Header, one line per entry, and the truncation footer when the
        context was truncated.
    """
    header = context_header(context.source_entity_name)
    if not context.related_entities:
        return header + NO_RELATIONSHIPS_LINE

    lines = [format_related_entity_entry(entry, custom_types) for entry in context.related_entities]
    text = header + "\n".join(lines)
    if context.truncated:
        text += TRUNCATION_FOOTER
    return text


def get_relationship_context_stats(context: RelationshipContext) -> RelationshipContextStats:
    """Size and composition stats for a flat relationship context.

    Tokens are estimated as ``ceil(total_characters / 4)``.
    """
    relationship_counts = Counter(entry.relationship for entry in context.related_entities)
    type_counts = Counter(entry.entity_type for entry in context.related_entities)
    return RelationshipContextStats(
        related_entity_count=len(context.related_entities),
        character_count=context.total_characters,
        estimated_tokens=math.ceil(context.total_characters / CHARS_PER_TOKEN),
        truncated=context.truncated,
        relationship_breakdown=dict(relationship_counts),
        entity_type_breakdown=dict(type_counts),
    )


def _strip_name_prefix(name: str, summary: str) -> str:
    """Drop a leading "Name. " or "Name, " that repeats the entity name."""
    for separator in (". ", ", "):
        prefix = name + separator
        if summary.startswith(prefix):
            return summary[len(prefix) :]
    return summary


def format_grouped_entity_entry(
    entry: GroupedRelatedEntityContext, custom_types: Iterable[EntityTypeDefinition] = ()
) -> str:
    """Render a grouped entity with all of its relationships.

    Example::

        Aldric (NPC) - Relationships: knows, fears
          Summary: A retired knight.
          fears: [Strength: strong]
    """
    type_label = get_type_label(entry.entity_type, custom_types)
    if entry.summary == entry.name:
        summary = NO_DETAILS_TEXT
    else:
        summary = _strip_name_prefix(entry.name, entry.summary)

    relationship_names = ", ".join(info.relationship for info in entry.relationships)
    text = (
        f"{entry.name} ({type_label}) - Relationships: {relationship_names}\n"
        f"  Summary: {summary}"
    )

    for info in entry.relationships:
        if not info.strength and not info.notes:
            continue
        details: list[str] = []
        if info.strength:
            details.append(f"[Strength: {info.strength}]")
        if info.notes:
            details.append(f"[Notes: {info.notes}]")
        text += f"\n  {info.relationship}: {' '.join(details)}"
    return text


def format_grouped_relationship_context_for_prompt(
    context: GroupedRelationshipContext, custom_types: Iterable[EntityTypeDefinition] = ()
) -> str:
    """Render a grouped relationship context as a prompt block.

    Same header, empty-state line and truncation footer as the flat form;
    entries are separated by newlines.
    """
    header = context_header(context.source_entity_name)
    if not context.related_entities:
        return header + NO_RELATIONSHIPS_LINE

    blocks = [
        format_grouped_entity_entry(entry, custom_types) for entry in context.related_entities
    ]
    text = header + "\n".join(blocks)
    if context.truncated:
        text += TRUNCATION_FOOTER
    return text

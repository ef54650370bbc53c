"""Privacy-safe entity summaries for prompt context.

Summaries built here never include DM-only content: the entity's notes,
fields keyed ``secrets`` or ``notes``, and fields defined in the hidden
section are always left out.
"""

from collections.abc import Iterable

from src.memory.entities import (
    Entity,
    EntityTypeDefinition,
    format_field_value,
    is_empty_field_value,
)
from src.memory.entity_types import (
    DM_ONLY_FIELD_KEYS,
    HIDDEN_SECTION,
    get_entity_type_definition,
)

MAX_DESCRIPTION_CHARS = 200
MAX_SUMMARY_CHARS = 500


def _visible_fields(entity: Entity, definition: EntityTypeDefinition | None) -> list[str]:
    """Render the entity's non-empty, non-hidden fields as ``Label: value``."""
    rendered: list[str] = []
    for key, value in entity.fields.items():
        if is_empty_field_value(value) or key in DM_ONLY_FIELD_KEYS:
            continue
        field_def = definition.get_field_definition(key) if definition else None
        if field_def is not None and field_def.section == HIDDEN_SECTION:
            continue
        label = field_def.label if field_def is not None else key
        rendered.append(f"{label}: {format_field_value(value)}")
    return rendered


def build_privacy_safe_summary(
    entity: Entity, custom_types: Iterable[EntityTypeDefinition] = ()
) -> str:
    """Build a short, player-safe description of an entity.

    The summary is the entity name, its summary, its description (cut to
    200 characters) and its visible fields, joined with ". ". Results longer
    than 500 characters are cut to 497 characters plus "...".

    Args:
        entity: Entity to summarize.
        custom_types: Campaign-defined entity types for field labels.

    Returns:
        Summary text that never contains DM-only content.
    """
    definition = get_entity_type_definition(entity.type, custom_types)
    parts: list[str] = [entity.name]

    if entity.summary:
        parts.append(entity.summary)

    if entity.description:
        description = entity.description
        if len(description) > MAX_DESCRIPTION_CHARS:
            description = description[:MAX_DESCRIPTION_CHARS] + "..."
        parts.append(description)

    fields = _visible_fields(entity, definition)
    if fields:
        parts.append(", ".join(fields))

    summary = ". ".join(parts)
    if len(summary) > MAX_SUMMARY_CHARS:
        summary = summary[: MAX_SUMMARY_CHARS - 3] + "..."
    return summary

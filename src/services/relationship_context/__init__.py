"""Relationship context package.

Builds a budget-constrained view of an entity's relationship neighborhood
and renders it as text for AI generation prompts.

- _types.py: Options and result dataclasses
- _privacy.py: Player-safe entity summaries
- _formatting.py: Prompt rendering and stats
- _builder.py: Graph traversal and limit enforcement
"""

from src.services.relationship_context._builder import RelationshipContextBuilder
from src.services.relationship_context._formatting import (
    TRUNCATION_FOOTER,
    format_grouped_entity_entry,
    format_grouped_relationship_context_for_prompt,
    format_related_entity_entry,
    format_relationship_context_for_prompt,
    get_relationship_context_stats,
)
from src.services.relationship_context._privacy import build_privacy_safe_summary
from src.services.relationship_context._types import (
    GroupedRelatedEntityContext,
    GroupedRelationshipContext,
    RelatedEntityContext,
    RelationshipContext,
    RelationshipContextOptions,
    RelationshipContextStats,
    RelationshipInfo,
)

__all__ = [
    "TRUNCATION_FOOTER",
    "GroupedRelatedEntityContext",
    "GroupedRelationshipContext",
    "RelatedEntityContext",
    "RelationshipContext",
    "RelationshipContextBuilder",
    "RelationshipContextOptions",
    "RelationshipContextStats",
    "RelationshipInfo",
    "build_privacy_safe_summary",
    "format_grouped_entity_entry",
    "format_grouped_relationship_context_for_prompt",
    "format_related_entity_entry",
    "format_relationship_context_for_prompt",
    "get_relationship_context_stats",
]

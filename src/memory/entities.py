"""Entity models for the campaign database."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

RelationshipStrength = Literal["strong", "moderate", "weak"]
RelationshipDirection = Literal["outgoing", "incoming"]
CacheStatus = Literal["valid", "stale", "missing"]


class ResourceValue(BaseModel):
    """A depletable resource such as hit points or spell slots."""

    kind: Literal["resource"] = "resource"
    current: int | float
    max: int | float


class DurationValue(BaseModel):
    """A duration such as "3 rounds" or "1 hour"."""

    kind: Literal["duration"] = "duration"
    value: int | float
    unit: str


# Closed set of values an entity field may hold
FieldValue = str | int | float | bool | list[str] | ResourceValue | DurationValue | None


def format_field_value(value: FieldValue) -> str:
    """Render a field value as display text.

    Args:
        value: Any member of the FieldValue union.

    Returns:
        Display text; empty string for None.
    """
    match value:
        case None:
            return ""
        case bool():
            return "true" if value else "false"
        case str():
            return value
        case int() | float():
            return str(value)
        case list():
            return ", ".join(str(item) for item in value)
        case ResourceValue(current=current, max=maximum):
            return f"{current}/{maximum}"
        case DurationValue(value=amount, unit=unit):
            return f"{amount} {unit}"
    return str(value)


def is_empty_field_value(value: FieldValue) -> bool:
    """Check whether a field value carries nothing worth showing.

    None, empty strings, empty lists and False count as empty; zero counts
    as empty as well, matching how the campaign editor hides unset numbers.
    """
    if isinstance(value, (ResourceValue, DurationValue)):
        return False
    return not value


class EntityLink(BaseModel):
    """A directed, labeled relationship from one entity to another."""

    id: str
    source_id: str
    target_id: str
    target_type: str
    relationship: str  # knows, allied_with, member_of, located_at, etc.
    bidirectional: bool = False
    reverse_relationship: str | None = None  # label used from the target side
    strength: RelationshipStrength | None = None
    notes: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class Entity(BaseModel):
    """A campaign entity (character, npc, location, faction, item, ...)."""

    id: str
    type: str
    name: str
    description: str = ""
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    links: list[EntityLink] = Field(default_factory=list)
    notes: str = ""  # DM-only
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        """Keep tags as an ordered set."""
        return list(dict.fromkeys(tags))


class FieldDefinition(BaseModel):
    """Metadata for one field of an entity type."""

    key: str
    label: str
    field_type: str = "text"  # text, richtext, select, number, tags, entity-ref, date
    section: str | None = None  # None, "hidden" (DM-only), "prep"
    order: int = 0
    options: list[str] = Field(default_factory=list)


class EntityTypeDefinition(BaseModel):
    """Label and field metadata for an entity type."""

    type: str
    label: str
    label_plural: str = ""
    is_built_in: bool = False
    field_definitions: list[FieldDefinition] = Field(default_factory=list)
    default_relationships: list[str] = Field(default_factory=list)

    def get_field_definition(self, key: str) -> FieldDefinition | None:
        """Look up a field definition by key."""
        for field_def in self.field_definitions:
            if field_def.key == key:
                return field_def
        return None


class RelationshipSummaryCacheEntry(BaseModel):
    """A memoized AI summary for one (source, target, relationship) triple.

    The endpoint timestamps record what the entities looked like when the
    summary was generated; any change to either makes the entry stale.
    """

    id: str
    source_id: str
    target_id: str
    relationship: str
    summary: str
    generated_at: datetime
    source_entity_updated_at: datetime
    target_entity_updated_at: datetime

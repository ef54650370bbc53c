"""Result and option types for relationship context building."""

from dataclasses import dataclass, field
from typing import Literal

from src.memory.entities import RelationshipDirection, RelationshipStrength

DirectionOption = Literal["outgoing", "incoming", "both"]
_VALID_DIRECTIONS = frozenset({"outgoing", "incoming", "both"})


@dataclass(frozen=True)
class RelationshipContextOptions:
    """Limits and filters for a relationship context build.

    Attributes:
        max_related_entities: Maximum number of entries returned.
        max_characters: Character budget for the formatted entries.
        direction: Which link directions to follow.
        relationship_types: Relationship labels to keep (empty keeps all).
        entity_types: Entity type tags to keep (empty keeps all).
        max_depth: Maximum traversal depth for outgoing links.
        include_strength: Copy link strength onto entries.
        include_notes: Copy link notes onto entries.
    """

    max_related_entities: int = 20
    max_characters: int = 4000
    direction: DirectionOption = "both"
    relationship_types: tuple[str, ...] = ()
    entity_types: tuple[str, ...] = ()
    max_depth: int = 1
    include_strength: bool = False
    include_notes: bool = False

    def __post_init__(self) -> None:
        """Validate limits and normalize filters to tuples.

        Raises:
            ValueError: If a limit is out of range or the direction is unknown.
        """
        if self.direction not in _VALID_DIRECTIONS:
            raise ValueError(
                f"direction must be one of {sorted(_VALID_DIRECTIONS)}, got {self.direction!r}"
            )
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.max_related_entities < 0:
            raise ValueError(
                f"max_related_entities must be >= 0, got {self.max_related_entities}"
            )
        if self.max_characters < 0:
            raise ValueError(f"max_characters must be >= 0, got {self.max_characters}")
        object.__setattr__(self, "relationship_types", tuple(self.relationship_types))
        object.__setattr__(self, "entity_types", tuple(self.entity_types))

    @property
    def follows_outgoing(self) -> bool:
        """Whether outgoing links are traversed."""
        return self.direction in ("outgoing", "both")

    @property
    def follows_incoming(self) -> bool:
        """Whether incoming links are collected."""
        return self.direction in ("incoming", "both")


@dataclass(frozen=True)
class RelatedEntityContext:
    """One related entity reached through one relationship.

    Attributes:
        relationship: Relationship label of the link.
        entity_id: Id of the related entity.
        entity_type: Type tag of the related entity.
        name: Name of the related entity.
        summary: Privacy-safe summary of the related entity.
        direction: "outgoing" when reached through a link of the traversed
            entity, "incoming" when the related entity links to the source.
        depth: Hops from the source entity (>= 1).
        strength: Link strength, only when requested and present.
        notes: Link notes, only when requested and present.
    """

    relationship: str
    entity_id: str
    entity_type: str
    name: str
    summary: str
    direction: RelationshipDirection
    depth: int
    strength: RelationshipStrength | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RelationshipContext:
    """Budget-constrained relationship context for one source entity."""

    source_entity_id: str
    source_entity_name: str
    related_entities: tuple[RelatedEntityContext, ...] = ()
    total_characters: int = 0
    truncated: bool = False

    def __post_init__(self) -> None:
        """Normalize related_entities to a tuple."""
        object.__setattr__(self, "related_entities", tuple(self.related_entities))


@dataclass(frozen=True)
class RelationshipInfo:
    """One relationship between the source and a grouped entity."""

    relationship: str
    direction: RelationshipDirection
    depth: int
    strength: RelationshipStrength | None = None
    notes: str | None = None


@dataclass(frozen=True)
class GroupedRelatedEntityContext:
    """A related entity with every relationship that connects it to the source."""

    entity_id: str
    entity_type: str
    name: str
    summary: str
    relationships: tuple[RelationshipInfo, ...] = ()

    def __post_init__(self) -> None:
        """Normalize relationships to a tuple."""
        object.__setattr__(self, "relationships", tuple(self.relationships))


@dataclass(frozen=True)
class GroupedRelationshipContext:
    """Grouped relationship context; the entity limit counts distinct entities."""

    source_entity_id: str
    source_entity_name: str
    related_entities: tuple[GroupedRelatedEntityContext, ...] = ()
    total_characters: int = 0
    truncated: bool = False

    def __post_init__(self) -> None:
        """Normalize related_entities to a tuple."""
        object.__setattr__(self, "related_entities", tuple(self.related_entities))


@dataclass(frozen=True)
class RelationshipContextStats:
    """Size and composition of a relationship context."""

    related_entity_count: int
    character_count: int
    estimated_tokens: int
    truncated: bool
    relationship_breakdown: dict[str, int] = field(default_factory=dict)
    entity_type_breakdown: dict[str, int] = field(default_factory=dict)

"""Built-in campaign entity type definitions.

Provides the label and field metadata the context builder needs to render
entities: display labels for each field and which fields live in the
DM-only ``hidden`` section.
"""

import logging
from collections.abc import Iterable

from src.memory.entities import EntityTypeDefinition, FieldDefinition

logger = logging.getLogger(__name__)

HIDDEN_SECTION = "hidden"

# Field keys that hold DM-only content whatever section they are defined in
DM_ONLY_FIELD_KEYS = frozenset({"secrets", "notes"})


def _field(
    key: str,
    label: str,
    order: int,
    field_type: str = "text",
    section: str | None = None,
    options: list[str] | None = None,
) -> FieldDefinition:
    """Shorthand for building a FieldDefinition."""
    return FieldDefinition(
        key=key,
        label=label,
        field_type=field_type,
        section=section,
        order=order,
        options=options or [],
    )


BUILT_IN_ENTITY_TYPES: tuple[EntityTypeDefinition, ...] = (
    EntityTypeDefinition(
        type="character",
        label="Player Character",
        label_plural="Player Characters",
        is_built_in=True,
        field_definitions=[
            _field("playerName", "Player Name", 1),
            _field("concept", "Character Concept", 2),
            _field("background", "Background", 3, "richtext"),
            _field("personality", "Personality", 4, "richtext"),
            _field("goals", "Goals & Motivations", 5, "richtext"),
            _field("secrets", "Secrets", 6, "richtext", section=HIDDEN_SECTION),
            _field("status", "Status", 7, "select", options=["active", "inactive", "deceased"]),
        ],
        default_relationships=["knows", "allied_with", "enemy_of", "member_of"],
    ),
    EntityTypeDefinition(
        type="npc",
        label="NPC",
        label_plural="NPCs",
        is_built_in=True,
        field_definitions=[
            _field("role", "Role/Occupation", 1),
            _field("personality", "Personality", 2, "richtext"),
            _field("appearance", "Appearance", 3, "richtext"),
            _field("voice", "Voice/Mannerisms", 4),
            _field("motivation", "Motivation", 5, "richtext"),
            _field("secrets", "Secrets", 6, "richtext", section=HIDDEN_SECTION),
            _field("status", "Status", 7, "select", options=["alive", "deceased", "unknown"]),
            _field(
                "importance", "Importance", 8, "select", options=["major", "minor", "background"]
            ),
        ],
        default_relationships=["located_at", "member_of", "serves", "worships", "knows"],
    ),
    EntityTypeDefinition(
        type="location",
        label="Location",
        label_plural="Locations",
        is_built_in=True,
        field_definitions=[
            _field("locationType", "Type", 1, "select"),
            _field("atmosphere", "Atmosphere", 2, "richtext"),
            _field("features", "Notable Features", 3, "richtext"),
            _field("history", "History", 4, "richtext"),
            _field("secrets", "Secrets", 5, "richtext", section=HIDDEN_SECTION),
            _field("parentLocation", "Parent Location", 6, "entity-ref"),
        ],
        default_relationships=["part_of", "contains", "near", "connected_to"],
    ),
    EntityTypeDefinition(
        type="faction",
        label="Faction",
        label_plural="Factions",
        is_built_in=True,
        field_definitions=[
            _field("factionType", "Type", 1, "select"),
            _field("goals", "Goals", 2, "richtext"),
            _field("values", "Values", 3, "richtext"),
            _field("resources", "Resources", 4, "richtext"),
            _field("secrets", "Secrets", 5, "richtext", section=HIDDEN_SECTION),
            _field("status", "Status", 6, "select", options=["active", "disbanded", "secret"]),
        ],
        default_relationships=["allied_with", "enemy_of", "controls", "located_at"],
    ),
    EntityTypeDefinition(
        type="item",
        label="Item",
        label_plural="Items",
        is_built_in=True,
        field_definitions=[
            _field("itemType", "Type", 1, "select"),
            _field("properties", "Properties", 2, "richtext"),
            _field("history", "History", 3, "richtext"),
            _field("currentOwner", "Current Owner", 4, "entity-ref"),
            _field("location", "Location", 5, "entity-ref"),
            _field("rarity", "Rarity", 6, "select"),
        ],
        default_relationships=["owned_by", "located_at", "created_by"],
    ),
    EntityTypeDefinition(
        type="encounter",
        label="Encounter",
        label_plural="Encounters",
        is_built_in=True,
        field_definitions=[
            _field("encounterType", "Type", 1, "select"),
            _field("setup", "Setup", 2, "richtext"),
            _field("challenge", "Challenge", 3, "richtext"),
            _field("resolution", "Resolution", 4, "richtext"),
            _field("rewards", "Rewards", 5, "richtext"),
            _field("difficulty", "Difficulty", 6, "select"),
            _field("status", "Status", 7, "select"),
        ],
        default_relationships=["located_at", "involves"],
    ),
    EntityTypeDefinition(
        type="session",
        label="Session",
        label_plural="Sessions",
        is_built_in=True,
        field_definitions=[
            _field("sessionNumber", "Session Number", 1, "number"),
            _field("date", "Date", 2, "date"),
            _field("summary", "Summary", 3, "richtext"),
            _field("preparation", "Preparation", 4, "richtext", section="prep"),
            _field("plotThreads", "Plot Threads", 5, "richtext"),
            _field("playerActions", "Player Actions", 6, "richtext"),
            _field("nextSession", "Next Session", 7, "richtext"),
            _field("status", "Status", 8, "select"),
        ],
        default_relationships=["involved"],
    ),
    EntityTypeDefinition(
        type="deity",
        label="Deity",
        label_plural="Deities",
        is_built_in=True,
        field_definitions=[
            _field("domains", "Domains", 1, "tags"),
            _field("alignment", "Alignment", 2),
            _field("symbols", "Holy Symbols", 3),
            _field("worship", "Worship Practices", 4, "richtext"),
            _field("relationships", "Divine Relationships", 5, "richtext"),
            _field("secrets", "Secrets", 6, "richtext", section=HIDDEN_SECTION),
        ],
        default_relationships=["worshipped_by", "allied_with", "enemy_of"],
    ),
    EntityTypeDefinition(
        type="timeline_event",
        label="Timeline Event",
        label_plural="Timeline Events",
        is_built_in=True,
        field_definitions=[
            _field("eventDate", "Date", 1),
            _field("era", "Era", 2),
            _field("significance", "Significance", 3, "select"),
            _field("consequences", "Consequences", 4, "richtext"),
            _field("knownBy", "Known By", 5, "select"),
            _field("sortOrder", "Sort Order", 6, "number"),
        ],
        default_relationships=["caused_by", "led_to", "affects"],
    ),
    EntityTypeDefinition(
        type="world_rule",
        label="World Rule",
        label_plural="World Rules",
        is_built_in=True,
        field_definitions=[
            _field("category", "Category", 1, "select"),
            _field("rule", "Rule", 2, "richtext"),
            _field("implications", "Implications", 3, "richtext"),
            _field("exceptions", "Exceptions", 4, "richtext"),
        ],
        default_relationships=["affects"],
    ),
    EntityTypeDefinition(
        type="player_profile",
        label="Player Profile",
        label_plural="Player Profiles",
        is_built_in=True,
        field_definitions=[
            _field("realName", "Real Name", 1),
            _field("preferences", "Play Preferences", 2, "richtext"),
            _field("boundaries", "Boundaries", 3, "richtext"),
            _field("schedule", "Availability", 4),
            _field("contact", "Contact", 5),
        ],
        default_relationships=["plays"],
    ),
)

# Default relationship labels offered across entity types
DEFAULT_RELATIONSHIPS: tuple[str, ...] = (
    "knows",
    "allied_with",
    "enemy_of",
    "member_of",
    "located_at",
    "part_of",
    "serves",
    "worships",
    "owns",
    "created_by",
    "controls",
    "near",
    "connected_to",
    "contains",
    "involved",
    "caused_by",
    "led_to",
    "affects",
    "plays",
)

_BUILT_IN_BY_TYPE: dict[str, EntityTypeDefinition] = {t.type: t for t in BUILT_IN_ENTITY_TYPES}


def get_entity_type_definition(
    entity_type: str, custom_types: Iterable[EntityTypeDefinition] = ()
) -> EntityTypeDefinition | None:
    """Get an entity type definition, built-in types first.

    Args:
        entity_type: Type tag (e.g. "npc").
        custom_types: Campaign-defined types searched after the built-ins.

    Returns:
        The matching definition, or None for unknown types.
    """
    built_in = _BUILT_IN_BY_TYPE.get(entity_type)
    if built_in is not None:
        return built_in

    for custom in custom_types:
        if custom.type == entity_type:
            return custom

    logger.debug("No type definition for entity type %r", entity_type)
    return None


def get_all_entity_types(
    custom_types: Iterable[EntityTypeDefinition] = (),
) -> list[EntityTypeDefinition]:
    """Get all available entity types (built-in + custom)."""
    return [*BUILT_IN_ENTITY_TYPES, *custom_types]


def get_type_label(entity_type: str, custom_types: Iterable[EntityTypeDefinition] = ()) -> str:
    """Display label for an entity type, falling back to the capitalized tag."""
    definition = get_entity_type_definition(entity_type, custom_types)
    if definition is not None:
        return definition.label
    return entity_type[:1].upper() + entity_type[1:]

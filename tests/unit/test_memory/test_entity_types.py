"""Tests for built-in entity type definitions."""

from src.memory.entities import EntityTypeDefinition
from src.memory.entity_types import (
    BUILT_IN_ENTITY_TYPES,
    HIDDEN_SECTION,
    get_all_entity_types,
    get_entity_type_definition,
    get_type_label,
)


class TestBuiltInTypes:
    """Tests for the built-in type table."""

    def test_type_tags_unique(self):
        """Each built-in type appears once."""
        tags = [definition.type for definition in BUILT_IN_ENTITY_TYPES]
        assert len(tags) == len(set(tags))
        assert {"character", "npc", "location", "faction", "item"} <= set(tags)

    def test_secrets_are_hidden(self):
        """Every built-in secrets field lives in the hidden section."""
        for definition in BUILT_IN_ENTITY_TYPES:
            field_def = definition.get_field_definition("secrets")
            if field_def is not None:
                assert field_def.section == HIDDEN_SECTION, definition.type

    def test_npc_role_label(self):
        """The npc role field has a display label."""
        npc = get_entity_type_definition("npc")
        assert npc.get_field_definition("role").label == "Role/Occupation"


class TestTypeLookup:
    """Tests for type definition lookup and labels."""

    def test_built_in_lookup(self):
        """Built-in types resolve without custom types."""
        assert get_entity_type_definition("character").label == "Player Character"

    def test_custom_lookup(self):
        """Custom types are found after the built-ins."""
        ship = EntityTypeDefinition(type="ship", label="Vessel")
        assert get_entity_type_definition("ship", [ship]) is ship
        assert get_entity_type_definition("ship") is None

    def test_built_in_wins_over_custom(self):
        """A custom type cannot shadow a built-in one."""
        custom_npc = EntityTypeDefinition(type="npc", label="Extra")
        assert get_entity_type_definition("npc", [custom_npc]).label == "NPC"

    def test_type_labels(self):
        """Labels come from definitions, else the capitalized tag."""
        assert get_type_label("npc") == "NPC"
        assert get_type_label("vehicle") == "Vehicle"
        assert get_type_label("") == ""

    def test_all_types_include_custom(self):
        """Custom types are appended after the built-ins."""
        ship = EntityTypeDefinition(type="ship", label="Vessel")
        all_types = get_all_entity_types([ship])
        assert all_types[-1] is ship
        assert len(all_types) == len(BUILT_IN_ENTITY_TYPES) + 1

"""Constants and allowed values used by Settings validation."""

LOG_LEVELS: dict[str, str] = {
    "DEBUG": "Debug",
    "INFO": "Info",
    "WARNING": "Warning",
    "ERROR": "Error",
}

# Inclusive ranges for the relationship context settings
RELATIONSHIP_CONTEXT_RANGES: dict[str, tuple[int, int]] = {
    "relationship_context_max_related_entities": (1, 50),
    "relationship_context_max_characters": (1000, 10000),
}

"""Settings package for the campaign context library.

- _paths.py: Path constants for settings and output files
- _types.py: Allowed values and ranges
- _validation.py: Settings validation functions
- _settings.py: Main Settings dataclass
"""

from src.settings._paths import DEFAULT_DATABASE_PATH, OUTPUT_DIR, SETTINGS_FILE
from src.settings._settings import Settings
from src.settings._types import LOG_LEVELS, RELATIONSHIP_CONTEXT_RANGES

__all__ = [
    "DEFAULT_DATABASE_PATH",
    "LOG_LEVELS",
    "OUTPUT_DIR",
    "RELATIONSHIP_CONTEXT_RANGES",
    "SETTINGS_FILE",
    "Settings",
]

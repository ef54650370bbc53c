"""Path constants for settings and output files."""

from pathlib import Path

SETTINGS_FILE = Path(__file__).parent.parent / "settings.json"

# Go up from src/settings to src/, then up to project root, then into output/
OUTPUT_DIR = Path(__file__).parent.parent.parent / "output"
DEFAULT_DATABASE_PATH = OUTPUT_DIR / "campaign.db"

__all__ = [
    "DEFAULT_DATABASE_PATH",
    "OUTPUT_DIR",
    "SETTINGS_FILE",
]

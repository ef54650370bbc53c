"""Main Settings dataclass for the campaign context library.

Settings are stored in settings.json. Services never read this file
themselves; a loaded Settings instance is passed to them explicitly.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from src.settings import _validation as _validation_mod
from src.settings._paths import DEFAULT_DATABASE_PATH, SETTINGS_FILE
from src.utils.exceptions import ConfigError

if TYPE_CHECKING:
    from src.services.relationship_context import RelationshipContextOptions

logger = logging.getLogger(__name__)


def _merge_with_defaults(data: dict[str, Any], settings_cls: type[Settings]) -> bool:
    """Merge loaded JSON data with dataclass defaults.

    - Adds missing top-level keys with their default values
    - Removes top-level keys that no longer exist in the dataclass

    Modifies *data* in place.

    Returns:
        True if any changes were made, False otherwise.
    """
    default_dict = asdict(settings_cls())
    known_fields = {f.name for f in fields(settings_cls)}
    changed = False

    for key in list(data):
        if key not in known_fields:
            logger.info("Removing obsolete setting: %s", key)
            del data[key]
            changed = True

    for key in known_fields:
        if key not in data:
            logger.info("Adding new setting with default: %s", key)
            data[key] = default_dict[key]
            changed = True

    return changed


def _atomic_write_json(path: Path | str, data: dict[str, Any]) -> None:
    """Write JSON to *path* atomically via a temp file + rename.

    Prevents partial writes from corrupting the settings file on disk
    failure, power loss, or process kill.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError as cleanup_err:
            logger.warning("Failed to remove temp settings file %s: %s", tmp_path, cleanup_err)
        raise


def _backup_corrupt_file(path: Path) -> None:
    """Keep a copy of an unreadable settings file next to it."""
    backup_path = path.with_suffix(".json.corrupt")
    try:
        shutil.copy(path, backup_path)
        logger.info("Backed up corrupted settings to %s", backup_path)
    except OSError as copy_err:
        logger.warning("Failed to backup corrupted settings: %s", copy_err)


@dataclass
class Settings:
    """Application settings, stored as JSON."""

    # General
    log_level: str = "INFO"
    database_path: str = field(default_factory=lambda: str(DEFAULT_DATABASE_PATH))

    # Ollama connection used for relationship summaries
    ollama_url: str = "http://localhost:11434"
    ollama_timeout: int = 120  # Seconds per request

    # Relationship summary generation
    summary_model: str = ""  # Empty means not configured
    summary_max_tokens: int = 300  # Summaries are 1-2 sentences
    summary_temperature: float = 0.3
    summary_batch_delay_seconds: float = 0.1  # Pause between batch requests

    # Relationship context injected into generation prompts
    relationship_context_max_related_entities: int = 20  # 1-50
    relationship_context_max_characters: int = 4000  # 1000-10000

    def save(self) -> None:
        """Save settings to JSON file."""
        self.validate()
        _atomic_write_json(SETTINGS_FILE, asdict(self))
        logger.info("Settings saved to %s", SETTINGS_FILE)

    def validate(self) -> bool:
        """Validate all settings fields. Delegates to _validation module.

        Returns:
            True if any settings were mutated during validation (e.g. numeric
            strings coerced to numbers), False otherwise.

        Raises:
            ValueError: If any field contains an invalid value.
        """
        return _validation_mod.validate(self)

    def relationship_context_options(self, **overrides: Any) -> RelationshipContextOptions:
        """Builder options derived from the relationship context settings.

        Args:
            **overrides: Option fields to override (e.g. max_depth=2).

        Returns:
            RelationshipContextOptions for the context builder.
        """
        from src.services.relationship_context import RelationshipContextOptions

        values: dict[str, Any] = {
            "max_related_entities": self.relationship_context_max_related_entities,
            "max_characters": self.relationship_context_max_characters,
        }
        values.update(overrides)
        return RelationshipContextOptions(**values)

    # Class-level cache for settings (speeds up repeated load() calls)
    _cached_instance: ClassVar[Settings | None] = None

    @classmethod
    def load(cls, use_cache: bool = True) -> Settings:
        """Load settings from JSON file, or create defaults.

        New settings get default values and removed settings are cleaned
        up; customized values are preserved.

        Args:
            use_cache: If True, return cached instance if available. Set to False
                to force reload from disk (useful after save() or in tests).

        Returns:
            Settings instance.

        Raises:
            ConfigError: If a stored value has the wrong type or is out of range.
        """
        if use_cache and cls._cached_instance is not None:
            return cls._cached_instance

        data: dict[str, Any] = {}
        loaded_from_file = False

        if SETTINGS_FILE.exists():
            try:
                with open(SETTINGS_FILE) as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    data = raw
                    loaded_from_file = bool(raw)
                else:
                    logger.error(
                        "Corrupted settings file (expected JSON object, got %s)",
                        type(raw).__name__,
                    )
                    _backup_corrupt_file(SETTINGS_FILE)
            except json.JSONDecodeError as e:
                logger.error("Corrupted settings file (invalid JSON): %s", e)
                _backup_corrupt_file(SETTINGS_FILE)
            except OSError as e:
                logger.error("Cannot read settings file (may be locked or inaccessible): %s", e)

        logger.info(
            "Settings load: loaded_from_file=%s, keys_read=%d", loaded_from_file, len(data)
        )

        changed = _merge_with_defaults(data, cls)

        try:
            settings = cls(**data)
            # validate() on the left so it always runs
            changed = settings.validate() or changed
        except TypeError as e:
            raise ConfigError(f"A setting has an invalid type: {e}") from e
        except ValueError as e:
            raise ConfigError(f"Invalid settings in {SETTINGS_FILE}: {e}") from e

        if changed:
            try:
                _atomic_write_json(SETTINGS_FILE, asdict(settings))
                logger.info("Settings updated during load, saved to disk")
            except OSError as write_err:
                logger.warning(
                    "Could not persist updated settings to disk: %s; "
                    "settings are loaded in memory but changes will not survive restart",
                    write_err,
                )

        cls._cached_instance = settings
        return settings

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the cached settings instance.

        Use this in tests that need to verify settings loading behavior,
        or after programmatically modifying settings files.
        """
        cls._cached_instance = None

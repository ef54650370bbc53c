"""Validation functions for Settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from src.settings._types import LOG_LEVELS, RELATIONSHIP_CONTEXT_RANGES

if TYPE_CHECKING:
    from src.settings._settings import Settings

logger = logging.getLogger(__name__)


def validate(settings: Settings) -> bool:
    """Validate all settings fields.

    Returns:
        True if any settings were mutated during validation (numeric strings
        coerced to numbers), False otherwise. Callers can use this to decide
        whether to re-save the settings file.

    Raises:
        ValueError: If any field contains an invalid value.
    """
    _validate_log_level(settings)
    _validate_url(settings)
    _validate_timeouts(settings)
    _validate_summary_generation(settings)
    changed = _coerce_relationship_context_numbers(settings)
    _validate_relationship_context(settings)
    return changed


def _validate_log_level(settings: Settings) -> None:
    """Validate log_level is a known logging level."""
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(
            f"log_level must be one of {list(LOG_LEVELS.keys())}, got {settings.log_level}"
        )


def _validate_url(settings: Settings) -> None:
    """Validate the Ollama URL has an http(s) scheme and a host."""
    parsed = urlparse(settings.ollama_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid URL scheme or host: {settings.ollama_url}")


def _validate_timeouts(settings: Settings) -> None:
    """Validate request timeout bounds."""
    if not 10 <= settings.ollama_timeout <= 600:
        raise ValueError(
            f"ollama_timeout must be between 10 and 600 seconds, got {settings.ollama_timeout}"
        )


def _validate_summary_generation(settings: Settings) -> None:
    """Validate relationship summary generation settings."""
    if not 16 <= settings.summary_max_tokens <= 2048:
        raise ValueError(
            f"summary_max_tokens must be between 16 and 2048, got {settings.summary_max_tokens}"
        )
    if not 0.0 <= settings.summary_temperature <= 2.0:
        raise ValueError(
            f"summary_temperature must be between 0.0 and 2.0, got {settings.summary_temperature}"
        )
    if not 0.0 <= settings.summary_batch_delay_seconds <= 10.0:
        raise ValueError(
            "summary_batch_delay_seconds must be between 0.0 and 10.0, "
            f"got {settings.summary_batch_delay_seconds}"
        )


def _coerce_relationship_context_numbers(settings: Settings) -> bool:
    """Convert numeric strings (hand-edited settings files) to ints.

    Returns:
        True if any value was converted.
    """
    changed = False
    for name in RELATIONSHIP_CONTEXT_RANGES:
        value = getattr(settings, name)
        if isinstance(value, str):
            try:
                coerced = int(value.strip())
            except ValueError as e:
                raise ValueError(f"{name} must be an integer, got {value!r}") from e
            logger.info("Coerced %s from string %r to %d", name, value, coerced)
            setattr(settings, name, coerced)
            changed = True
    return changed


def _validate_relationship_context(settings: Settings) -> None:
    """Validate relationship context limits are within their ranges."""
    for name, (low, high) in RELATIONSHIP_CONTEXT_RANGES.items():
        value = getattr(settings, name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        if not low <= value <= high:
            raise ValueError(f"{name} must be between {low} and {high}, got {value}")

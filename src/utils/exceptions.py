"""Centralized exception hierarchy for the campaign context library.

Exception Hierarchy:

    CampaignContextError (base for all application errors)
    ├── EntityNotFoundError (context requested for an unknown entity)
    ├── DatabaseClosedError (database accessed after close)
    ├── ConfigError (settings parsing/validation failures)
    └── LLMError (LLM/Ollama related errors)
        ├── LLMConnectionError (connection failures)
        └── LLMGenerationError (empty or unusable generation output)

Usage:
    from src.utils.exceptions import EntityNotFoundError

    try:
        context = await builder.build_relationship_context(entity_id)
    except EntityNotFoundError:
        logger.error("Entity %s no longer exists", entity_id)
"""

import logging

logger = logging.getLogger(__name__)


def summarize_llm_error(error: Exception, max_length: int = 300) -> str:
    """Create a concise summary of an LLM-related exception for logging.

    Ollama response errors can embed the full server reply, which makes
    log lines unreadable. This keeps the type and the start of the message.

    Args:
        error: The exception to summarize.
        max_length: Maximum length of the summary string.

    Returns:
        A concise error summary suitable for log messages.
    """
    msg = str(error)

    if len(msg) <= max_length:
        return msg

    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return f"{type(error).__name__} (status {status_code}): {msg[:max_length]}..."

    return f"{msg[:max_length]}... [{len(msg) - max_length} chars truncated]"


class CampaignContextError(Exception):
    """Base exception for all campaign context errors.

    All custom exceptions should inherit from this class to allow
    catching all application-specific errors with a single except clause.
    """

    pass


class EntityNotFoundError(CampaignContextError):
    """Raised when an entity id does not resolve to a stored entity.

    Building relationship context for a missing source entity is fatal
    to the call. Missing link targets are not reported this way; they
    are skipped during traversal.

    Attributes:
        entity_id: The id that could not be resolved.
    """

    def __init__(self, entity_id: str, message: str | None = None):
        """Initialize EntityNotFoundError.

        Args:
            entity_id: The id that could not be resolved.
            message: Optional override for the default message.
        """
        super().__init__(message or f"Entity not found: {entity_id}")
        self.entity_id = entity_id
        logger.debug("EntityNotFoundError initialized: entity_id=%s", entity_id)


class DatabaseClosedError(CampaignContextError):
    """Raised when a database operation is attempted on a closed connection.

    This indicates a repository or service kept using a CampaignDatabase
    after it was closed during shutdown or a campaign switch.
    """

    pass


class ConfigError(CampaignContextError):
    """Raised when configuration parsing or validation fails.

    This indicates a settings file that cannot be read or repaired.
    """

    pass


class LLMError(CampaignContextError):
    """Base exception for LLM-related errors.

    Raised when any LLM operation fails. Subclasses provide more
    specific error types.
    """

    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to Ollama.

    This typically indicates the Ollama server is not running or
    the connection was refused.
    """

    pass


class LLMGenerationError(LLMError):
    """Raised when the model answered but the output cannot be used.

    Covers empty responses and responses without message content.
    """

    pass

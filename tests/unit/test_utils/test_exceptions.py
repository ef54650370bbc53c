"""Unit tests for custom exceptions in exceptions.py."""

import ollama
import pytest

from src.utils.exceptions import (
    CampaignContextError,
    ConfigError,
    DatabaseClosedError,
    EntityNotFoundError,
    LLMConnectionError,
    LLMError,
    LLMGenerationError,
    summarize_llm_error,
)


class TestEntityNotFoundError:
    """Tests for EntityNotFoundError exception."""

    def test_default_message(self) -> None:
        """Test the message names the missing id."""
        error = EntityNotFoundError("npc-42")
        assert str(error) == "Entity not found: npc-42"
        assert error.entity_id == "npc-42"

    def test_custom_message(self) -> None:
        """Test a custom message replaces the default but keeps the id."""
        error = EntityNotFoundError("npc-42", "Aldric was deleted")
        assert str(error) == "Aldric was deleted"
        assert error.entity_id == "npc-42"


class TestHierarchy:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        "error_cls",
        [DatabaseClosedError, ConfigError, LLMError, LLMConnectionError, LLMGenerationError],
    )
    def test_all_errors_share_base(self, error_cls) -> None:
        """Every application error can be caught as CampaignContextError."""
        assert issubclass(error_cls, CampaignContextError)

    def test_llm_errors_share_base(self) -> None:
        """Connection and generation failures are both LLMError."""
        assert issubclass(LLMConnectionError, LLMError)
        assert issubclass(LLMGenerationError, LLMError)
        assert issubclass(EntityNotFoundError, CampaignContextError)


class TestSummarizeLlmError:
    """Tests for summarize_llm_error."""

    def test_short_message_unchanged(self) -> None:
        """Short messages are returned as-is."""
        assert summarize_llm_error(RuntimeError("model not found")) == "model not found"

    def test_long_message_truncated(self) -> None:
        """Long messages are cut and report how much was dropped."""
        summary = summarize_llm_error(RuntimeError("x" * 350))

        assert summary == "x" * 300 + "... [50 chars truncated]"

    def test_long_response_error_includes_status(self) -> None:
        """Errors carrying a status code name the type and status."""
        error = ollama.ResponseError("y" * 400, 500)

        summary = summarize_llm_error(error, max_length=20)

        assert summary == "ResponseError (status 500): " + "y" * 20 + "..."

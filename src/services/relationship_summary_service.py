"""Relationship summary generation via Ollama.

Produces a 1-2 sentence description of how one campaign entity relates to
another. Prompts are built from player-safe entity content only. Failures
are reported in the returned result instead of being raised, so callers
can cache successes and skip failures.
"""

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

import httpx
import ollama

from src.memory.entities import (
    Entity,
    EntityLink,
    EntityTypeDefinition,
    format_field_value,
    is_empty_field_value,
)
from src.memory.entity_types import (
    DM_ONLY_FIELD_KEYS,
    HIDDEN_SECTION,
    get_entity_type_definition,
)
from src.settings import Settings
from src.utils.exceptions import (
    LLMConnectionError,
    LLMError,
    LLMGenerationError,
    summarize_llm_error,
)
from src.utils.logging_config import log_context

logger = logging.getLogger(__name__)

DEFAULT_CAMPAIGN_SETTING = "Fantasy"
DEFAULT_CAMPAIGN_SYSTEM = "System Agnostic"
MODEL_NOT_CONFIGURED_ERROR = (
    "Summary model not configured. Set summary_model in settings to generate summaries."
)
_PRIVATE_KEY_MARKERS = ("hidden", "secret")

_SUMMARY_RULES = """IMPORTANT RULES:
1. Focus on the relationship itself - how these entities are connected
2. Keep it brief and focused (1-2 sentences maximum)
3. Use only the information provided - do not speculate or add details
4. Consider the relationship type and strength in your description
5. Make it useful for game context - suitable for reading to players or using in AI prompts
6. Write from a neutral, third-person perspective"""


@dataclass(frozen=True)
class RelationshipSummaryContext:
    """Optional campaign details included in summary prompts."""

    campaign_name: str | None = None
    campaign_setting: str | None = None
    campaign_system: str | None = None


@dataclass(frozen=True)
class RelationshipSummaryResult:
    """Outcome of one summary generation.

    Attributes:
        success: Whether a non-empty summary was produced.
        summary: The generated summary on success.
        error: Human-readable failure reason on failure.
    """

    success: bool
    summary: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class RelationshipSummaryItemResult:
    """Outcome for one relationship in a batch."""

    relationship_id: str
    target_entity_id: str
    success: bool
    summary: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class RelationshipSummaryBatchResult:
    """Outcome of a batch; per-item failures do not fail the batch."""

    success: bool
    summaries: tuple[RelationshipSummaryItemResult, ...] = ()
    total_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    error: str | None = None


@dataclass(frozen=True)
class RelationshipTarget:
    """A relationship to summarize in a batch: the link and its target entity."""

    target_entity: Entity
    relationship: EntityLink


class RelationshipSummaryGenerator(Protocol):
    """Anything that can summarize a relationship (real service or test double)."""

    async def generate(
        self,
        source: Entity,
        target: Entity,
        relationship: EntityLink,
        campaign_context: RelationshipSummaryContext | None = None,
    ) -> RelationshipSummaryResult: ...


def build_entity_context_for_relationship(
    entity: Entity, custom_types: Iterable[EntityTypeDefinition] = ()
) -> str:
    """Describe one entity for a summary prompt.

    Includes the name, summary, description, tags and fields. Fields in the
    hidden section, fields keyed ``secrets`` or ``notes``, and fields whose
    key mentions "hidden" or "secret" are left out.

    Args:
        entity: Entity to describe.
        custom_types: Campaign-defined entity types for labels.

    Returns:
        Newline-terminated ``Label: value`` lines.
    """
    definition = get_entity_type_definition(entity.type, custom_types)
    type_name = definition.label if definition is not None else entity.type

    lines = [f"{type_name}: {entity.name}"]
    if entity.summary:
        lines.append(f"Summary: {entity.summary}")
    if entity.description:
        lines.append(f"Description: {entity.description}")
    if entity.tags:
        lines.append(f"Tags: {', '.join(entity.tags)}")

    for key, value in entity.fields.items():
        if is_empty_field_value(value) or key in DM_ONLY_FIELD_KEYS:
            continue
        field_def = definition.get_field_definition(key) if definition else None
        if field_def is not None and field_def.section == HIDDEN_SECTION:
            continue
        if any(marker in key.lower() for marker in _PRIVATE_KEY_MARKERS):
            continue
        label = field_def.label if field_def is not None else key
        lines.append(f"{label}: {format_field_value(value)}")

    return "\n".join(lines) + "\n"


def build_relationship_summary_prompt(
    source: Entity,
    target: Entity,
    relationship: EntityLink,
    campaign_context: RelationshipSummaryContext | None = None,
    custom_types: Iterable[EntityTypeDefinition] = (),
) -> str:
    """Build the prompt asking the model to summarize one relationship.

    Args:
        source: Entity the relationship is described from.
        target: Entity on the other end of the link.
        relationship: The link between them.
        campaign_context: Optional campaign name, setting and system.
        custom_types: Campaign-defined entity types for labels.

    Returns:
        Prompt text.
    """
    source_context = build_entity_context_for_relationship(source, custom_types)
    target_context = build_entity_context_for_relationship(target, custom_types)

    campaign_info = ""
    if campaign_context is not None:
        campaign_info = "\nCampaign Context:"
        if campaign_context.campaign_name:
            campaign_info += f"\n- Campaign: {campaign_context.campaign_name}"
        campaign_info += (
            f"\n- Setting: {campaign_context.campaign_setting or DEFAULT_CAMPAIGN_SETTING}"
        )
        system = campaign_context.campaign_system or DEFAULT_CAMPAIGN_SYSTEM
        campaign_info += f"\n- System: {system}"
        campaign_info += "\n"

    details = f"\nRelationship Type: {relationship.relationship}"
    if relationship.bidirectional:
        details += " (bidirectional)"
        if relationship.reverse_relationship:
            details += f"\nReverse Relationship: {relationship.reverse_relationship}"
    if relationship.strength:
        details += f"\nRelationship Strength: {relationship.strength}"
    if relationship.notes:
        details += f"\nRelationship Notes: {relationship.notes}"

    return (
        "You are a TTRPG campaign assistant. Generate a brief, concise summary that describes "
        "the relationship between two entities in a tabletop roleplaying game campaign.\n"
        f"{campaign_info}\n"
        f"Source Entity:\n{source_context}\n\n"
        f"Target Entity:\n{target_context}\n"
        f"{details}\n\n"
        "Generate a concise 1-2 sentence summary that describes this relationship from the "
        f"perspective of the source entity ({source.name}) toward the target entity "
        f"({target.name}).\n\n"
        f"{_SUMMARY_RULES}\n\n"
        "Write ONLY the relationship summary, nothing else. No preamble, no explanation."
    )


class RelationshipSummaryService:
    """Generates relationship summaries with an Ollama model."""

    def __init__(
        self,
        settings: Settings,
        custom_types: Iterable[EntityTypeDefinition] = (),
        client: ollama.AsyncClient | None = None,
    ):
        """Initialize the service.

        Args:
            settings: Application settings (model, url, timeouts, batch delay).
            custom_types: Campaign-defined entity types for prompt labels.
            client: Optional pre-built Ollama client; created lazily otherwise.
        """
        self.settings = settings
        self.custom_types: tuple[EntityTypeDefinition, ...] = tuple(custom_types)
        self._client = client
        logger.debug("RelationshipSummaryService initialized (model=%r)", settings.summary_model)

    @property
    def client(self) -> ollama.AsyncClient:
        """The Ollama client, created on first use."""
        if self._client is None:
            self._client = ollama.AsyncClient(
                host=self.settings.ollama_url, timeout=float(self.settings.ollama_timeout)
            )
            logger.debug(
                "Created Ollama client for %s (timeout=%ds)",
                self.settings.ollama_url,
                self.settings.ollama_timeout,
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        """Whether a summary model is set."""
        return bool(self.settings.summary_model)

    async def generate(
        self,
        source: Entity,
        target: Entity,
        relationship: EntityLink,
        campaign_context: RelationshipSummaryContext | None = None,
    ) -> RelationshipSummaryResult:
        """Generate a summary for one relationship.

        Args:
            source: Entity the relationship is described from.
            target: Entity on the other end of the link.
            relationship: The link between them.
            campaign_context: Optional campaign details for the prompt.

        Returns:
            RelationshipSummaryResult; errors are reported, never raised.
        """
        if not self.is_configured:
            logger.warning("Relationship summary requested but no summary model is configured")
            return RelationshipSummaryResult(success=False, error=MODEL_NOT_CONFIGURED_ERROR)

        prompt = build_relationship_summary_prompt(
            source, target, relationship, campaign_context, self.custom_types
        )
        try:
            summary = await self._chat(prompt)
        except LLMError as e:
            logger.warning(
                "Relationship summary failed for %s -[%s]-> %s: %s",
                source.id,
                relationship.relationship,
                target.id,
                e,
            )
            return RelationshipSummaryResult(
                success=False, error=f"Failed to generate relationship summary: {e}"
            )

        return RelationshipSummaryResult(success=True, summary=summary)

    async def _chat(self, prompt: str) -> str:
        """Send the prompt and return the trimmed reply.

        Raises:
            LLMConnectionError: If Ollama cannot be reached.
            LLMGenerationError: If Ollama rejects the request or replies with nothing usable.
        """
        model = self.settings.summary_model
        start_time = time.time()
        try:
            response = await self.client.chat(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                options={
                    "temperature": self.settings.summary_temperature,
                    "num_predict": self.settings.summary_max_tokens,
                },
            )
        except (ConnectionError, TimeoutError, httpx.TimeoutException, httpx.TransportError) as e:
            raise LLMConnectionError(
                f"Could not reach Ollama at {self.settings.ollama_url}: {summarize_llm_error(e)}"
            ) from e
        except ollama.ResponseError as e:
            raise LLMGenerationError(summarize_llm_error(e)) from e

        try:
            content = response["message"]["content"]
        except (KeyError, TypeError) as e:
            raise LLMGenerationError("Unexpected response format from AI") from e

        summary = (content or "").strip()
        if not summary:
            raise LLMGenerationError("AI returned an empty summary")

        logger.info(
            "Relationship summary generated: model=%s, %.2fs, %d chars",
            model,
            time.time() - start_time,
            len(summary),
        )
        return summary

    async def generate_batch(
        self,
        source: Entity,
        relationships: Sequence[RelationshipTarget],
        campaign_context: RelationshipSummaryContext | None = None,
    ) -> RelationshipSummaryBatchResult:
        """Generate summaries for several relationships of one source entity.

        Requests run one at a time with ``summary_batch_delay_seconds``
        between them (not after the last one). A failed item is recorded
        and the batch continues.

        Args:
            source: Entity the relationships are described from.
            relationships: Links and their target entities.
            campaign_context: Optional campaign details for the prompts.

        Returns:
            RelationshipSummaryBatchResult with per-item outcomes and totals.
        """
        if not self.is_configured:
            return RelationshipSummaryBatchResult(success=False, error=MODEL_NOT_CONFIGURED_ERROR)

        items: list[RelationshipSummaryItemResult] = []
        delay = self.settings.summary_batch_delay_seconds

        with log_context(f"summaries-{source.id[:8]}"):
            for index, item in enumerate(relationships):
                result = await self.generate(
                    source, item.target_entity, item.relationship, campaign_context
                )
                items.append(
                    RelationshipSummaryItemResult(
                        relationship_id=item.relationship.id,
                        target_entity_id=item.target_entity.id,
                        success=result.success,
                        summary=result.summary,
                        error=result.error,
                    )
                )
                if delay > 0 and index < len(relationships) - 1:
                    await asyncio.sleep(delay)

        success_count = sum(1 for item in items if item.success)
        logger.info(
            "Relationship summary batch for %s: %d/%d succeeded",
            source.id,
            success_count,
            len(items),
        )
        return RelationshipSummaryBatchResult(
            success=True,
            summaries=tuple(items),
            total_count=len(items),
            success_count=success_count,
            failure_count=len(items) - success_count,
        )

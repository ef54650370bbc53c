"""Tests for RelationshipSummaryCacheService."""

import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.memory.entities import RelationshipSummaryCacheEntry
from src.memory.repositories import RelationshipSummaryCacheRepository
from src.services.relationship_summary_cache_service import RelationshipSummaryCacheService
from src.services.relationship_summary_service import (
    RelationshipSummaryContext,
    RelationshipSummaryResult,
)
from tests.shared.entity_graph import FIXED_TIME, make_entity, make_link


@pytest.fixture
def generator():
    """Summary generator double that always succeeds."""
    mock = MagicMock()
    mock.generate = AsyncMock(
        return_value=RelationshipSummaryResult(success=True, summary="Aldric mentors Mira.")
    )
    return mock


@pytest.fixture
def cache_repo(campaign_db):
    """Cache repository over the in-memory database."""
    return RelationshipSummaryCacheRepository(campaign_db)


@pytest.fixture
def service(cache_repo, generator):
    """Cache service wired to the repository and generator double."""
    return RelationshipSummaryCacheService(cache_repo, generator)


@pytest.fixture
def source():
    """Source entity."""
    return make_entity("aldric", "Aldric")


@pytest.fixture
def target():
    """Target entity."""
    return make_entity("mira", "Mira", entity_type="character")


@pytest.fixture
def link():
    """Link from source to target."""
    return make_link("aldric", "mira", "mentor_of", target_type="character")


def touched(entity, seconds=60):
    """Copy of an entity with a later updated_at."""
    return entity.model_copy(update={"updated_at": entity.updated_at + timedelta(seconds=seconds)})


class TestGetOrGenerate:
    """Tests for get_or_generate."""

    @pytest.mark.asyncio
    async def test_miss_generates_and_caches(
        self, service, generator, cache_repo, source, target, link
    ):
        """Test a miss calls the generator and stores the entry."""
        result = await service.get_or_generate(source, target, link)

        assert result.success is True
        assert result.from_cache is False
        assert result.summary == "Aldric mentors Mira."
        assert result.cache_key == "aldric|||mira|||mentor_of"
        assert result.generated_at is not None
        generator.generate.assert_awaited_once_with(source, target, link, None)

        stored = await cache_repo.get("aldric", "mira", "mentor_of")
        assert stored is not None
        assert stored.summary == "Aldric mentors Mira."
        assert stored.source_entity_updated_at == source.updated_at
        assert stored.target_entity_updated_at == target.updated_at

    @pytest.mark.asyncio
    async def test_hit_returns_cached(self, service, generator, source, target, link):
        """Test a second call is served from the cache."""
        first = await service.get_or_generate(source, target, link)
        second = await service.get_or_generate(source, target, link)

        assert second.from_cache is True
        assert second.summary == first.summary
        assert second.cache_key == first.cache_key
        assert second.generated_at == first.generated_at
        assert generator.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_campaign_context_passed_to_generator(
        self, service, generator, source, target, link
    ):
        """Test the campaign context reaches the generator."""
        context = RelationshipSummaryContext(campaign_name="Ashes of Oakvale")

        await service.get_or_generate(source, target, link, context)

        generator.generate.assert_awaited_once_with(source, target, link, context)

    @pytest.mark.asyncio
    async def test_stale_source_regenerates(self, service, generator, source, target, link):
        """Test an edited source bypasses the cached entry."""
        await service.get_or_generate(source, target, link)

        result = await service.get_or_generate(touched(source), target, link)

        assert result.from_cache is False
        assert generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_stale_target_regenerates(self, service, generator, source, target, link):
        """Test an edited target bypasses the cached entry."""
        await service.get_or_generate(source, target, link)

        result = await service.get_or_generate(source, touched(target), link)

        assert result.from_cache is False
        assert generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_older_timestamp_is_also_stale(self, service, generator, source, target, link):
        """Test staleness is exact equality, not newer-than."""
        await service.get_or_generate(source, target, link)

        result = await service.get_or_generate(touched(source, seconds=-60), target, link)

        assert result.from_cache is False

    @pytest.mark.asyncio
    async def test_force_regenerate_skips_cache(self, service, generator, source, target, link):
        """Test force_regenerate always calls the generator."""
        await service.get_or_generate(source, target, link)

        result = await service.get_or_generate(source, target, link, force_regenerate=True)

        assert result.from_cache is False
        assert generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(
        self, service, generator, cache_repo, source, target, link
    ):
        """Test a failed generation is returned and not stored."""
        generator.generate.return_value = RelationshipSummaryResult(
            success=False, error="Could not reach Ollama"
        )

        result = await service.get_or_generate(source, target, link)

        assert result.success is False
        assert result.from_cache is False
        assert result.error == "Could not reach Ollama"
        assert await cache_repo.count() == 0

    @pytest.mark.asyncio
    async def test_cache_read_error_falls_back_to_generation(
        self, generator, source, target, link, caplog
    ):
        """Test a failing cache read is logged and treated as a miss."""
        cache = MagicMock(spec=RelationshipSummaryCacheRepository)
        cache.get_cache_key.return_value = "aldric|||mira|||mentor_of"
        cache.get = AsyncMock(side_effect=RuntimeError("disk on fire"))
        cache.set = AsyncMock()
        service = RelationshipSummaryCacheService(cache, generator)

        with caplog.at_level(logging.WARNING):
            result = await service.get_or_generate(source, target, link)

        assert result.success is True
        assert result.from_cache is False
        assert any("Cache read error" in r.message for r in caplog.records)
        cache.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_write_error_still_returns_summary(
        self, generator, source, target, link, caplog
    ):
        """Test a failing cache write does not lose the generated summary."""
        cache = MagicMock(spec=RelationshipSummaryCacheRepository)
        cache.get_cache_key.return_value = "aldric|||mira|||mentor_of"
        cache.get = AsyncMock(return_value=None)
        cache.set = AsyncMock(side_effect=RuntimeError("read-only database"))
        service = RelationshipSummaryCacheService(cache, generator)

        with caplog.at_level(logging.WARNING):
            result = await service.get_or_generate(source, target, link)

        assert result.success is True
        assert result.summary == "Aldric mentors Mira."
        assert any("Failed to cache" in r.message for r in caplog.records)


class TestCacheValidity:
    """Tests for has_valid_cache and get_cache_status."""

    @pytest.mark.asyncio
    async def test_has_valid_cache_round_trip(self, service, source, target, link):
        """Test validity holds until an endpoint changes."""
        assert await service.has_valid_cache(source, target, "mentor_of") is False

        await service.get_or_generate(source, target, link)

        assert await service.has_valid_cache(source, target, "mentor_of") is True
        assert await service.has_valid_cache(touched(source), target, "mentor_of") is False
        assert await service.has_valid_cache(source, touched(target), "mentor_of") is False

    @pytest.mark.asyncio
    async def test_cache_status(self, service, source, target, link):
        """Test missing, valid and stale classification."""
        status = await service.get_cache_status(
            "aldric", "mira", "mentor_of", source.updated_at, target.updated_at
        )
        assert status == "missing"

        await service.get_or_generate(source, target, link)

        valid = await service.get_cache_status(
            "aldric", "mira", "mentor_of", source.updated_at, target.updated_at
        )
        stale = await service.get_cache_status(
            "aldric",
            "mira",
            "mentor_of",
            source.updated_at + timedelta(seconds=1),
            target.updated_at,
        )
        assert valid == "valid"
        assert stale == "stale"


class TestInvalidation:
    """Tests for invalidate, invalidate_by_entity and clear_all."""

    @pytest.mark.asyncio
    async def test_invalidate_removes_one_entry(self, service, cache_repo, source, target, link):
        """Test invalidate removes only the named relationship."""
        await service.get_or_generate(source, target, link)
        other = make_link("aldric", "mira", "trusts", target_type="character")
        await service.get_or_generate(source, target, other)

        await service.invalidate("aldric", "mira", "mentor_of")

        assert await cache_repo.get("aldric", "mira", "mentor_of") is None
        assert await cache_repo.get("aldric", "mira", "trusts") is not None

    @pytest.mark.asyncio
    async def test_invalidate_missing_entry_is_noop(self, service):
        """Test invalidating an absent entry does not raise."""
        await service.invalidate("nobody", "nothing", "knows")

    @pytest.mark.asyncio
    async def test_invalidate_by_entity_counts_source_and_target(self, service, cache_repo):
        """Test entries where the entity is source or target are all removed."""
        aldric = make_entity("aldric")
        mira = make_entity("mira")
        vex = make_entity("vex")
        await service.get_or_generate(aldric, mira, make_link("aldric", "mira", "mentor_of"))
        await service.get_or_generate(vex, aldric, make_link("vex", "aldric", "hunts"))
        await service.get_or_generate(vex, mira, make_link("vex", "mira", "hunts"))

        removed = await service.invalidate_by_entity("aldric")

        assert removed == 2
        assert await cache_repo.count() == 1

    @pytest.mark.asyncio
    async def test_clear_all(self, service, cache_repo, source, target, link):
        """Test clear_all empties the cache."""
        await service.get_or_generate(source, target, link)

        await service.clear_all()

        assert await cache_repo.count() == 0


class TestCacheStats:
    """Tests for get_stats."""

    @pytest.mark.asyncio
    async def test_empty_stats(self, service):
        """Test an empty cache reports zeros and no dates."""
        stats = await service.get_stats()

        assert stats.total_count == 0
        assert stats.unique_source_count == 0
        assert stats.unique_target_count == 0
        assert stats.average_age_ms == 0
        assert stats.oldest_entry is None
        assert stats.newest_entry is None

    @pytest.mark.asyncio
    async def test_stats_over_entries(self, service, cache_repo):
        """Test counts, age and oldest/newest dates."""
        oldest = datetime.now() - timedelta(hours=2)
        newest = datetime.now() - timedelta(hours=1)
        for source_id, target_id, generated_at in (
            ("aldric", "mira", oldest),
            ("aldric", "vex", newest),
            ("vex", "mira", newest - timedelta(minutes=30)),
        ):
            await cache_repo.set(
                RelationshipSummaryCacheEntry(
                    id=cache_repo.get_cache_key(source_id, target_id, "knows"),
                    source_id=source_id,
                    target_id=target_id,
                    relationship="knows",
                    summary="...",
                    generated_at=generated_at,
                    source_entity_updated_at=FIXED_TIME,
                    target_entity_updated_at=FIXED_TIME,
                )
            )

        stats = await service.get_stats()

        assert stats.total_count == 3
        assert stats.unique_source_count == 2
        assert stats.unique_target_count == 2
        assert stats.oldest_entry == oldest
        assert stats.newest_entry == newest
        assert stats.average_age_ms >= timedelta(hours=1).total_seconds() * 1000

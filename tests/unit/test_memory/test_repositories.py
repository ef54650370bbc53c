"""Tests for the async repositories over CampaignDatabase."""

from datetime import timedelta

import pytest

from src.memory.entities import RelationshipSummaryCacheEntry
from src.memory.repositories import (
    CACHE_KEY_DELIMITER,
    EntityRepository,
    RelationshipSummaryCacheRepository,
)
from tests.shared.entity_graph import FIXED_TIME


def make_entry(repo, source_id="a", target_id="b", relationship="knows"):
    """Cache entry with fixed endpoint timestamps."""
    return RelationshipSummaryCacheEntry(
        id=repo.get_cache_key(source_id, target_id, relationship),
        source_id=source_id,
        target_id=target_id,
        relationship=relationship,
        summary="A knows B.",
        generated_at=FIXED_TIME,
        source_entity_updated_at=FIXED_TIME,
        target_entity_updated_at=FIXED_TIME,
    )


class TestEntityRepository:
    """Tests for EntityRepository."""

    @pytest.mark.asyncio
    async def test_get_by_id(self, sample_campaign_db, sample_ids):
        """Existing ids resolve with their links; unknown ids give None."""
        repo = EntityRepository(sample_campaign_db)

        aldric = await repo.get_by_id(sample_ids["Aldric"])

        assert aldric.name == "Aldric"
        assert [link.relationship for link in aldric.links] == ["mentor_of", "located_at"]
        assert await repo.get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_get_by_ids_accepts_iterables(self, sample_campaign_db, sample_ids):
        """Any iterable of ids works and missing ids are skipped."""
        repo = EntityRepository(sample_campaign_db)
        wanted = (eid for eid in (sample_ids["Vex"], "missing", sample_ids["Mira"]))

        entities = await repo.get_by_ids(wanted)

        assert [e.name for e in entities] == ["Vex", "Mira"]

    @pytest.mark.asyncio
    async def test_get_entities_linking_to(self, sample_campaign_db, sample_ids):
        """Reverse lookup finds the entities linking to the target."""
        repo = EntityRepository(sample_campaign_db)

        linking = await repo.get_entities_linking_to(sample_ids["Mira"])

        assert [e.name for e in linking] == ["Aldric"]


class TestRelationshipSummaryCacheRepository:
    """Tests for RelationshipSummaryCacheRepository."""

    def test_cache_key(self, campaign_db):
        """Keys join source, target and relationship with the delimiter."""
        repo = RelationshipSummaryCacheRepository(campaign_db)

        key = repo.get_cache_key("a", "b", "allied_with")

        assert key == f"a{CACHE_KEY_DELIMITER}b{CACHE_KEY_DELIMITER}allied_with"

    def test_is_valid_requires_exact_timestamps(self, campaign_db):
        """Any difference in either endpoint timestamp makes an entry stale."""
        repo = RelationshipSummaryCacheRepository(campaign_db)
        entry = make_entry(repo)
        later = FIXED_TIME + timedelta(microseconds=1)

        assert repo.is_valid(entry, FIXED_TIME, FIXED_TIME) is True
        assert repo.is_valid(entry, later, FIXED_TIME) is False
        assert repo.is_valid(entry, FIXED_TIME, later) is False
        assert repo.is_valid(entry, FIXED_TIME - timedelta(days=1), FIXED_TIME) is False

    @pytest.mark.asyncio
    async def test_set_get_delete(self, campaign_db):
        """Entries round-trip by relationship triple and can be deleted."""
        repo = RelationshipSummaryCacheRepository(campaign_db)
        entry = make_entry(repo)

        await repo.set(entry)

        assert await repo.get("a", "b", "knows") == entry
        assert await repo.get("a", "b", "fears") is None

        await repo.delete("a", "b", "knows")
        await repo.delete("a", "b", "knows")
        assert await repo.get("a", "b", "knows") is None

    @pytest.mark.asyncio
    async def test_bulk_operations(self, campaign_db):
        """Count, list, delete by entity and clear."""
        repo = RelationshipSummaryCacheRepository(campaign_db)
        for source_id, target_id in (("a", "b"), ("b", "c"), ("c", "a")):
            await repo.set(make_entry(repo, source_id, target_id))

        assert await repo.count() == 3
        assert len(await repo.get_all()) == 3
        assert await repo.delete_by_entity_id("c") == 2
        assert await repo.count() == 1

        await repo.clear_all()
        assert await repo.count() == 0

"""Pytest fixtures for campaign context tests."""

import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from src.memory.campaign_database import CampaignDatabase
from src.settings import Settings
from tests.shared.mock_ollama import TEST_MODEL


@pytest.fixture(autouse=True, scope="function")
def cleanup_production_log_handlers():
    """Remove file handlers pointing to the production log after each test.

    Logging tests may call setup_logging() with the default file; this
    makes sure no handler keeps writing to output/logs/campaign_context.log
    once the test is over.
    """
    yield

    root_logger = logging.getLogger()
    production_log_name = "campaign_context.log"

    handlers_to_remove = []
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            if hasattr(handler, "baseFilename") and production_log_name in handler.baseFilename:
                handlers_to_remove.append(handler)

    for handler in handlers_to_remove:
        handler.close()
        root_logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def clear_settings_cache_per_test():
    """Clear Settings cache before each test to ensure isolation.

    This is autouse because caching can cause test pollution when tests
    modify settings or patch SETTINGS_FILE to different paths.
    """
    Settings.clear_cache()
    yield
    Settings.clear_cache()


@pytest.fixture(autouse=True)
def isolate_settings_file(tmp_path, monkeypatch):
    """Redirect SETTINGS_FILE to a temp directory.

    Without this, Settings.load() in a test (or in ServiceContainer) would
    read and rewrite the real src/settings.json.
    """
    import src.settings._settings as settings_module

    monkeypatch.setattr(settings_module, "SETTINGS_FILE", tmp_path / "settings.json")
    yield


@pytest.fixture(autouse=True)
def mock_ollama_globally(monkeypatch):
    """Install the shared Ollama mock so no test talks to a real server."""
    from tests.shared.mock_ollama import setup_ollama_mocks

    setup_ollama_mocks(monkeypatch)


@pytest.fixture
def tmp_settings(tmp_path: Path) -> Settings:
    """Default settings with a temp database and a configured summary model.

    Created directly (not loaded from settings.json) for test isolation.
    """
    settings = Settings(
        database_path=str(tmp_path / "campaign.db"),
        summary_model=TEST_MODEL,
        summary_batch_delay_seconds=0.0,
    )
    settings.validate()
    return settings


@pytest.fixture
def campaign_db() -> Generator[CampaignDatabase]:
    """Empty in-memory campaign database."""
    db = CampaignDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def sample_campaign_db(campaign_db: CampaignDatabase) -> CampaignDatabase:
    """Campaign database with a small party, a villain and a tavern.

    Links:
        Aldric --mentor_of--> Mira
        Mira --member_of--> Silver Hand
        Aldric --located_at--> Prancing Pony
        Silver Hand --enemy_of--> Vex (bidirectional, reverse "enemy_of")
    """
    aldric = campaign_db.add_entity(
        "npc",
        "Aldric",
        description="A retired knight who trains young adventurers.",
        fields={"role": "Mentor", "secrets": "Deserted at the Battle of Ashford"},
        notes="Will betray the party in session 12",
    )
    mira = campaign_db.add_entity(
        "character",
        "Mira",
        description="A half-elf ranger.",
        fields={"playerName": "Sam", "concept": "Wandering ranger"},
    )
    guild = campaign_db.add_entity(
        "faction", "Silver Hand", description="A guild of monster hunters."
    )
    vex = campaign_db.add_entity("npc", "Vex", description="A necromancer.")
    tavern = campaign_db.add_entity("location", "Prancing Pony", description="A busy inn.")

    campaign_db.add_link(aldric, mira, "mentor_of", strength="strong", notes="Since childhood")
    campaign_db.add_link(mira, guild, "member_of")
    campaign_db.add_link(aldric, tavern, "located_at")
    campaign_db.add_link(
        guild, vex, "enemy_of", bidirectional=True, reverse_relationship="enemy_of"
    )
    return campaign_db


@pytest.fixture
def sample_ids(sample_campaign_db: CampaignDatabase) -> dict[str, str]:
    """Entity ids of the sample campaign, keyed by name."""
    return {entity.name: entity.id for entity in sample_campaign_db.list_entities()}

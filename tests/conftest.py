"""Pytest fixtures for recorder scraper tests."""

from datetime import date

import pytest

from recorder_scraper.config import Settings
from recorder_scraper.orchestrator import ScrapeOrchestrator
from recorder_scraper.resolver import ScriptedSemanticResolver
from recorder_scraper.sites import CHATHAM_NC

from .fakes import FakeClock, FakeEngine, InMemoryStore, chatham_site

TODAY = date(2026, 10, 17)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        site=CHATHAM_NC.site_id,
        navigation_timeout=10.0,
        visibility_timeout=5.0,
        popup_timeout=15.0,
        download_timeout=60.0,
        load_timeout=30.0,
        poll_interval=0.5,
    )


@pytest.fixture
def make_orchestrator(clock, settings):
    """Build an orchestrator against a fake Chatham site; keyword args toggle site faults"""

    def build(store=None, semantic=None, **site_options):
        engine = FakeEngine(lambda: chatham_site(**site_options))
        orchestrator = ScrapeOrchestrator(
            engine=engine,
            store=store or InMemoryStore(),
            semantic=semantic or ScriptedSemanticResolver(),
            site=CHATHAM_NC,
            settings=settings,
            today=lambda: TODAY,
            sleep=clock.sleep,
            clock=clock,
        )
        return orchestrator, engine

    return build

"""Shared fixtures for the Sprachheld test suite."""

import os

# The app engine is built at import time; keep it in memory for tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sprachheld import models  # noqa: F401
from sprachheld.catalog import ALL_MODULE_TYPES, DEFAULT_TOPICS
from sprachheld.db import Base
from sprachheld.progress import initial_user_data, update_module_progress
from sprachheld.settings import settings


NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


class FakeGeminiClient:
    """Stands in for GeminiClient; replays queued texts or raises queued errors."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        self.calls.append(kwargs)
        if not self.responses:
            raise AssertionError("FakeGeminiClient has no response queued")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def aclose(self):
        pass


def pass_topic(data, level, topic_id, score=85, now=NOW):
    for module in ALL_MODULE_TYPES:
        data = update_module_progress(data, level, topic_id, module, score, now)
    return data


def pass_level(data, level, now=NOW):
    for topic in DEFAULT_TOPICS[level]:
        data = pass_topic(data, level, topic["id"], now=now)
    return data


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fresh_data():
    return initial_user_data(NOW)


@pytest.fixture
def fake_ai():
    return FakeGeminiClient()


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(settings, "ai_initial_retry_delay_ms", 0)


@pytest.fixture
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()

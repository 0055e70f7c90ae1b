"""Shared fixtures for PenaltyBox tests."""

from unittest.mock import MagicMock

import discord
import pytest

from models.restrictions import RestrictionCategory
from services.database import Database
from services.restriction_store import RestrictionStore


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "penaltybox-test.db")
    yield database
    database.close()


@pytest.fixture
def mute_store(db, clock):
    store = RestrictionStore(db, RestrictionCategory.MUTE, clock=clock)
    store.load()
    return store


@pytest.fixture
def ban_store(db, clock):
    store = RestrictionStore(db, RestrictionCategory.BAN, clock=clock)
    store.load()
    return store


@pytest.fixture
def http_error():
    """Factory for discord HTTP exceptions without a real aiohttp response."""

    def _make(cls=discord.HTTPException, status: int = 500):
        response = MagicMock()
        response.status = status
        response.reason = "error"
        return cls(response, "boom")

    return _make

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest

from opsbot_safety import config


def pytest_sessionstart(session: pytest.Session) -> None:
    # Keep unit runs independent of a developer's local safety file.
    os.environ.pop("OPSBOT_SAFETY_PATH", None)


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()

"""
Shared pytest fixtures for the recurrence rule tests.

Rules default to UTC, so ``at(...)`` builds aware UTC datetimes unless a
zone is passed explicitly:

    def test_something(at):
        assert rule.next(at(2012, 1, 1)) == at(2012, 1, 8)
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

UTC = ZoneInfo("UTC")
PACIFIC = ZoneInfo("America/Los_Angeles")


@pytest.fixture
def utc():
    return UTC


@pytest.fixture
def pacific():
    return PACIFIC


@pytest.fixture
def at():
    """Factory for aware datetimes, UTC unless ``tz`` is given."""

    def _make(*args, tz=UTC):
        return datetime(*args, tzinfo=tz)

    return _make

"""Pytest configuration and fixtures."""

from collections.abc import Callable

import pytest

from vetr_mcp.scoring.cache import MemoryScoreCache
from vetr_mcp.scoring.calculator import CompositeScoreCalculator
from vetr_mcp.scoring.models import Executive, Filing
from vetr_mcp.scoring.red_flags import RedFlagDetector
from vetr_mcp.utils.clock import MS_PER_DAY, FixedClock

# 2024-06-01T00:00:00Z
NOW_MS = 1_717_200_000_000


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to NOW_MS."""
    return FixedClock(NOW_MS)


@pytest.fixture
def detector(clock: FixedClock) -> RedFlagDetector:
    return RedFlagDetector(clock)


@pytest.fixture
def calculator(clock: FixedClock) -> CompositeScoreCalculator:
    """Calculator with a 15 minute TTL and an in-memory cache."""
    return CompositeScoreCalculator(clock=clock, cache=MemoryScoreCache(), ttl_seconds=900)


@pytest.fixture
def make_filing() -> Callable[..., Filing]:
    """Factory for filings dated a number of days before NOW_MS."""
    counter = iter(range(1, 10_000))

    def _make(
        days_ago: float,
        type: str = "Quarterly Report",
        summary: str = "",
        is_material: bool = False,
        entity_id: str = "ACME",
    ) -> Filing:
        n = next(counter)
        return Filing(
            id=f"f{n}",
            entity_id=entity_id,
            type=type,
            title=f"{type} #{n}",
            date=NOW_MS - int(days_ago * MS_PER_DAY),
            summary=summary,
            is_material=is_material,
        )

    return _make


@pytest.fixture
def make_executive() -> Callable[..., Executive]:
    """Factory for executives with a given tenure in years."""
    counter = iter(range(1, 10_000))

    def _make(
        years: float,
        specialization: str = "Finance",
        entity_id: str = "ACME",
    ) -> Executive:
        n = next(counter)
        return Executive(
            id=f"e{n}",
            entity_id=entity_id,
            name=f"Executive {n}",
            title="Officer",
            years_at_company=years,
            specialization=specialization,
        )

    return _make

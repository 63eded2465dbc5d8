"""
Test configuration: puts the repo root on sys.path and shares fixtures.

Tests import flowvision.*, flowvision_api.* and tests.fixtures.* directly.
"""

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from flowvision.analytics.settings import AnalyticsConfig  # noqa: E402
from flowvision.cache import CacheManager  # noqa: E402
from tests.fixtures import AS_OF, portfolio_repository  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def analytics_config():
    """Built-in defaults; never reads config/analytics.yaml."""
    return AnalyticsConfig(cache_ttl=300)


@pytest.fixture
def repository():
    return portfolio_repository()


@pytest.fixture
def engine(repository, analytics_config, clock):
    from flowvision.analytics.engine import AnalyticsEngine

    return AnalyticsEngine(
        repository,
        config=analytics_config,
        cache=CacheManager(max_size=100, default_ttl=300, clock=clock),
    )


@pytest.fixture(autouse=True)
def _no_api_token(monkeypatch):
    """Auth is opt-in per test."""
    monkeypatch.delenv("FLOWVISION_API_TOKEN", raising=False)

"""
Pytest configuration for memory engine tests.

Sets up import paths for mnemo and provides a fixed clock so recency and age
assertions do not depend on when the suite runs.
"""

import sys
import os
from datetime import datetime, timedelta, timezone

import pytest

# Add mnemo root to path
MNEMO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..', '..', '..', '..'))
sys.path.insert(0, MNEMO_ROOT)

from mnemo.backend.modules.memory.memory_types import Observation  # noqa: E402

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_observation():
    """Factory for observations timestamped relative to NOW."""
    def _make(content, days_ago=0.0, confidence=4, category="general", is_critical=False):
        return Observation(
            content=content,
            timestamp=NOW - timedelta(days=days_ago),
            confidence=confidence,
            category=category,
            is_critical=is_critical,
        )
    return _make

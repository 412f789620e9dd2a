"""
Unit Tests for TemporalBucketer
"""

from datetime import date, datetime, timezone

import pytest

from mnemo.backend.modules.memory.memory_types import Observation, PendingObservation
from mnemo.backend.modules.memory.temporal_bucketing import TemporalBucketer, window_key, window_start


def pending_at(ts, content="fact"):
    return PendingObservation("alice", "Person", Observation(content=content, timestamp=ts))


class TestWindowStart:

    @pytest.mark.parametrize("day,window,expected", [
        (date(2025, 1, 15), 30, date(2024, 12, 31)),
        (date(2025, 1, 30), 30, date(2025, 1, 30)),
        (date(2025, 1, 31), 30, date(2025, 1, 30)),
        (date(2025, 3, 15), 7, date(2025, 3, 14)),
        (date(2025, 3, 14), 7, date(2025, 3, 14)),
        (date(2025, 3, 1), 1, date(2025, 3, 1)),
    ])
    def test_window_start(self, day, window, expected):
        assert window_start(day, window) == expected

    def test_key_is_iso_date(self):
        assert window_key(date(2025, 1, 15), 30) == "2024-12-31"


class TestTemporalBucketer:

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            TemporalBucketer(0)

    def test_buckets_in_first_seen_order(self):
        items = [
            pending_at(datetime(2025, 3, 15, 9, tzinfo=timezone.utc), "a"),
            pending_at(datetime(2025, 3, 2, 9, tzinfo=timezone.utc), "b"),
            pending_at(datetime(2025, 3, 20, 9, tzinfo=timezone.utc), "c"),
        ]
        windows = TemporalBucketer(7).bucket(items)

        assert list(windows) == ["2025-03-14", "2025-02-28"]
        assert [i.observation.content for i in windows["2025-03-14"]] == ["a", "c"]
        assert [i.observation.content for i in windows["2025-02-28"]] == ["b"]

    def test_same_window_grouped(self):
        items = [
            pending_at(datetime(2025, 1, 2, tzinfo=timezone.utc), "a"),
            pending_at(datetime(2025, 1, 29, tzinfo=timezone.utc), "b"),
        ]
        windows = TemporalBucketer(30).bucket(items)
        assert list(windows) == ["2024-12-31"]
        assert len(windows["2024-12-31"]) == 2

    def test_uses_utc_date(self):
        # 23:30 at UTC-5 on Jan 29 is Jan 30 in UTC
        ts = datetime.fromisoformat("2025-01-29T23:30:00-05:00")
        item = PendingObservation("alice", "Person", Observation.from_dict({"content": "x", "timestamp": ts}))
        assert list(TemporalBucketer(30).bucket([item])) == ["2025-01-30"]

    def test_skips_missing_timestamp(self):
        assert TemporalBucketer(30).bucket([pending_at(None)]) == {}

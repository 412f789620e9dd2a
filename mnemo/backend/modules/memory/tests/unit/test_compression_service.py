"""
Unit Tests for CompressionService

Tests the filter -> cluster -> summarize pipeline and temporal compression.
"""

from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import MagicMock

from mnemo.backend.modules.memory.compression_service import CompressionService
from mnemo.backend.modules.memory.config import MemoryConfig
from mnemo.backend.modules.memory.memory_types import CompressedObservation, PendingObservation


def pending_dict(entity, content, timestamp, confidence=4, category="goal", is_critical=False, entity_type="Person"):
    return {
        "entityName": entity,
        "entityType": entity_type,
        "observation": {
            "content": content,
            "timestamp": timestamp.isoformat(),
            "confidence": confidence,
            "category": category,
            "is_critical": is_critical,
        },
    }


@pytest.fixture
def service(clock):
    config = MemoryConfig(compression_threshold=2, similarity_threshold=0.2)
    return CompressionService(config, clock=clock)


class TestCompressObservations:

    def test_compresses_similar_pair(self, service, now):
        pending = [
            pending_dict("user", "User asked about memory", now - timedelta(days=2), confidence=3),
            pending_dict("user", "User questioned about storage", now - timedelta(days=1), confidence=4),
        ]
        result = service.compress_observations(pending)

        assert len(result) == 1
        compressed = result[0]
        assert isinstance(compressed, CompressedObservation)
        assert compressed.content == "User questioned about (observed 2 times)"
        assert compressed.source_observations == ["User questioned about storage", "User asked about memory"]
        assert compressed.confidence == 4
        assert compressed.category == "goal"
        assert compressed.entity_name == "user"
        assert compressed.entity_type == "Person"
        assert compressed.timestamp == now - timedelta(days=1)

    def test_group_below_threshold_yields_nothing(self, clock, now):
        service = CompressionService(MemoryConfig(similarity_threshold=0.2), clock=clock)
        pending = [
            pending_dict("user", "User asked about memory", now),
            pending_dict("user", "User asked about storage", now),
        ]
        assert service.compress_observations(pending) == []

    def test_cluster_below_threshold_yields_nothing(self, clock, now):
        # group of 3 passes, but only 2 are similar
        service = CompressionService(MemoryConfig(compression_threshold=3, similarity_threshold=0.5), clock=clock)
        pending = [
            pending_dict("user", "user likes dark mode", now),
            pending_dict("user", "user likes dark themes", now),
            pending_dict("user", "weather was sunny today", now),
        ]
        assert service.compress_observations(pending) == []

    def test_critical_preserved(self, service, now):
        pending = [
            pending_dict("user", "User asked about memory", now, is_critical=True),
            pending_dict("user", "User asked about storage", now, is_critical=True),
        ]
        assert service.compress_observations(pending) == []

    def test_critical_compressed_when_not_preserved(self, clock, now):
        config = MemoryConfig(compression_threshold=2, similarity_threshold=0.2, preserve_critical=False)
        service = CompressionService(config, clock=clock)
        pending = [
            pending_dict("user", "User asked about memory", now, is_critical=True),
            pending_dict("user", "User asked about storage", now),
        ]
        result = service.compress_observations(pending)
        assert len(result) == 1
        assert result[0].is_critical is True

    def test_categories_compress_separately(self, service, now):
        pending = [
            pending_dict("user", "User asked about memory", now, category="goal"),
            pending_dict("user", "User asked about storage", now, category="preference"),
        ]
        assert service.compress_observations(pending) == []

    def test_old_and_low_confidence_ignored(self, service, now):
        pending = [
            pending_dict("user", "User asked about memory", now - timedelta(days=10)),
            pending_dict("user", "User asked about storage", now, confidence=1),
        ]
        assert service.compress_observations(pending) == []

    def test_empty_input(self, service):
        assert service.compress_observations([]) == []
        assert service.compress_observations(None) == []

    def test_malformed_items_skipped(self, service, now):
        pending = [
            "not a pending observation",
            {"entityName": "user"},
            {"observation": {"content": "no entity"}},
            pending_dict("user", "User asked about memory", now),
            pending_dict("user", "User asked about storage", now),
        ]
        assert len(service.compress_observations(pending)) == 1

    def test_out_of_range_timestamp_skipped(self, service, now):
        pending = [
            pending_dict("user", "User asked about memory", now),
            pending_dict("user", "User asked about storage", now),
            {"entityName": "user", "observation": {"content": "User asked about time", "timestamp": 1e20}},
        ]
        result = service.compress_observations(pending)
        assert len(result) == 1
        assert len(result[0].source_observations) == 2

    def test_accepts_typed_input(self, service, make_observation):
        pending = [
            PendingObservation("user", "Person", make_observation("User asked about memory")),
            PendingObservation("user", "Person", make_observation("User asked about storage")),
        ]
        assert len(service.compress_observations(pending)) == 1

    def test_failure_returns_empty(self, service, now):
        service.clusterer = MagicMock()
        service.clusterer.cluster.side_effect = RuntimeError("boom")
        pending = [
            pending_dict("user", "User asked about memory", now),
            pending_dict("user", "User asked about storage", now),
        ]
        assert service.compress_observations(pending) == []

    def test_custom_summary_strategy(self, clock, now):
        strategy = MagicMock()
        strategy.summarize.return_value = "merged"
        service = CompressionService(
            MemoryConfig(compression_threshold=2, similarity_threshold=0.2),
            summary_strategy=strategy,
            clock=clock,
        )
        pending = [
            pending_dict("user", "User asked about memory", now),
            pending_dict("user", "User asked about storage", now),
        ]
        assert [c.content for c in service.compress_observations(pending)] == ["merged"]

    def test_enhanced_compression_delegates(self, service, now):
        pending = [
            pending_dict("user", "User asked about memory", now),
            pending_dict("user", "User asked about storage", now),
        ]
        assert [c.to_dict() for c in service.enhanced_compression(pending)] == \
            [c.to_dict() for c in service.compress_observations(pending)]


class TestTemporalCompression:

    @pytest.fixture
    def service(self, clock):
        config = MemoryConfig(compression_threshold=2, similarity_threshold=0.2, max_observation_age_days=365)
        return CompressionService(config, clock=clock)

    @staticmethod
    def flat(content, timestamp, entity="user"):
        return {
            "entityName": entity,
            "entityType": "Person",
            "content": content,
            "timestamp": timestamp.isoformat(),
            "confidence": 4,
            "category": "goal",
        }

    def test_windows_compress_independently(self, service):
        jan = datetime(2025, 1, 10, tzinfo=timezone.utc)
        mar = datetime(2025, 3, 10, tzinfo=timezone.utc)
        observations = [
            self.flat("User asked about memory", jan),
            self.flat("User asked about storage", jan + timedelta(days=1)),
            self.flat("User asked about memory", mar),
            self.flat("User asked about storage", mar + timedelta(days=1)),
        ]
        result = service.temporal_compression(observations, window_days=30)

        assert [c.time_window for c in result] == ["2024-12-31", "2025-02-28"]
        assert all(len(c.source_observations) == 2 for c in result)
        assert result[0].to_dict()["time_window"] == "2024-12-31"

    def test_similar_items_in_different_windows_not_merged(self, service):
        observations = [
            self.flat("User asked about memory", datetime(2025, 1, 10, tzinfo=timezone.utc)),
            self.flat("User asked about storage", datetime(2025, 3, 10, tzinfo=timezone.utc)),
        ]
        assert service.temporal_compression(observations, window_days=30) == []

    def test_default_window_from_config(self, service):
        observations = [
            self.flat("User asked about memory", datetime(2025, 1, 10, tzinfo=timezone.utc)),
            self.flat("User asked about storage", datetime(2025, 1, 12, tzinfo=timezone.utc)),
        ]
        result = service.temporal_compression(observations)
        assert [c.time_window for c in result] == ["2024-12-31"]

    def test_age_limit_still_applies(self, clock):
        service = CompressionService(MemoryConfig(compression_threshold=2, similarity_threshold=0.2), clock=clock)
        observations = [
            self.flat("User asked about memory", datetime(2025, 1, 10, tzinfo=timezone.utc)),
            self.flat("User asked about storage", datetime(2025, 1, 12, tzinfo=timezone.utc)),
        ]
        assert service.temporal_compression(observations) == []

    def test_empty(self, service):
        assert service.temporal_compression([]) == []

    def test_zero_window_not_replaced_by_default(self, service):
        observations = [
            self.flat("User asked about memory", datetime(2025, 1, 10, tzinfo=timezone.utc)),
            self.flat("User asked about storage", datetime(2025, 1, 12, tzinfo=timezone.utc)),
        ]
        assert len(service.temporal_compression(observations)) == 1
        assert service.temporal_compression(observations, window_days=0) == []

"""
Unit Tests for memory type conversions
"""

from datetime import datetime, timedelta, timezone

import pytest

from mnemo.backend.modules.memory.memory_types import (
    CompressedObservation,
    Entity,
    Observation,
    PendingObservation,
    Relation,
    clamp_confidence,
    format_timestamp,
    parse_timestamp,
)


class TestTimestamps:

    def test_iso_with_z(self):
        assert parse_timestamp("2025-06-15T12:00:00Z") == datetime(2025, 6, 15, 12, tzinfo=timezone.utc)

    def test_offset_normalized_to_utc(self):
        parsed = parse_timestamp("2025-06-15T07:00:00-05:00")
        assert parsed == datetime(2025, 6, 15, 12, tzinfo=timezone.utc)
        assert parsed.utcoffset() == timedelta(0)

    def test_naive_treated_as_utc(self):
        assert parse_timestamp(datetime(2025, 1, 1)).tzinfo == timezone.utc

    def test_epoch_seconds(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    @pytest.mark.parametrize("value", ["soon", True, [2025], 1e20, -1e20])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_format(self):
        assert format_timestamp(datetime(2025, 6, 15, 12, tzinfo=timezone.utc)) == "2025-06-15T12:00:00Z"
        assert format_timestamp(None) is None


class TestObservation:

    @pytest.mark.parametrize("raw,expected", [(9, 5), (0, 1), ("4", 4), (None, 3), ("high", 3)])
    def test_confidence_clamped(self, raw, expected):
        assert clamp_confidence(raw) == expected

    def test_from_dict(self):
        obs = Observation.from_dict({
            "content": "Alice likes tea",
            "timestamp": "2025-06-01T00:00:00Z",
            "confidence": 5,
            "category": "preference",
            "is_critical": True,
        })
        assert obs.timestamp.year == 2025
        assert obs.confidence == 5
        assert obs.category == "preference"
        assert obs.is_critical is True

    def test_defaults_for_loose_dict(self):
        obs = Observation.from_dict({"content": "x", "is_critical": "yes"})
        assert obs.timestamp is None
        assert obs.confidence == 3
        assert obs.category == "general"
        assert obs.is_critical is False

    def test_plain_string(self):
        assert Observation.from_dict("Alice likes tea").content == "Alice likes tea"

    @pytest.mark.parametrize("raw", [{}, {"content": "  "}, "", 42])
    def test_rejects_missing_content(self, raw):
        with pytest.raises(ValueError):
            Observation.from_dict(raw)

    def test_to_dict(self):
        obs = Observation("fact", timestamp=datetime(2025, 6, 1, tzinfo=timezone.utc))
        assert obs.to_dict() == {
            "content": "fact",
            "timestamp": "2025-06-01T00:00:00Z",
            "confidence": 3,
            "category": "general",
            "is_critical": False,
        }

    def test_compressed_to_dict(self):
        compressed = CompressedObservation(
            content="summary",
            source_observations=["a", "b"],
            entity_name="alice",
            entity_type="Person",
            time_window="2024-12-31",
        )
        data = compressed.to_dict()
        assert data["source_observations"] == ["a", "b"]
        assert data["entityName"] == "alice"
        assert data["entityType"] == "Person"
        assert data["time_window"] == "2024-12-31"


class TestPendingObservation:

    def test_nested_shape(self):
        pending = PendingObservation.from_dict({
            "entityName": "alice",
            "entityType": "Person",
            "observation": {"content": "x"},
        })
        assert pending.entity_name == "alice"
        assert pending.observation.content == "x"

    def test_flat_shape(self):
        pending = PendingObservation.from_dict({"entityName": "alice", "content": "x"})
        assert pending.entity_type == "Unknown"
        assert pending.observation.content == "x"

    def test_missing_entity(self):
        with pytest.raises(ValueError):
            PendingObservation.from_dict({"observation": {"content": "x"}})


class TestEntityAndRelation:

    def test_entity_skips_malformed_observations(self):
        entity = Entity.from_dict({"name": "alice", "observations": ["ok", {"content": ""}, {"nope": 1}]})
        assert [o.content for o in entity.observations] == ["ok"]
        assert entity.entity_type == "Unknown"

    def test_entity_requires_name(self):
        with pytest.raises(ValueError):
            Entity.from_dict({"entityType": "Person"})

    def test_relation_wire_names(self):
        relation = Relation.from_dict({
            "from": "alice", "relationType": "knows", "to": "bob",
            "attributes": {"is_critical": True, "time": "2025-06-01T00:00:00Z"},
        })
        assert relation.key == ("alice", "knows", "bob")
        assert relation.is_critical is True
        assert relation.time == datetime(2025, 6, 1, tzinfo=timezone.utc)
        assert relation.to_dict()["from"] == "alice"

    def test_relation_truthy_non_bool_not_critical(self):
        assert Relation("a", "r", "b", {"is_critical": "true"}).is_critical is False

    def test_entity_skips_out_of_range_timestamp(self):
        entity = Entity.from_dict({"name": "alice", "observations": [
            {"content": "ok", "timestamp": 0},
            {"content": "far future", "timestamp": 1e20},
        ]})
        assert [o.content for o in entity.observations] == ["ok"]

    def test_relation_requires_endpoints(self):
        with pytest.raises(ValueError):
            Relation.from_dict({"from": "alice", "to": "bob"})

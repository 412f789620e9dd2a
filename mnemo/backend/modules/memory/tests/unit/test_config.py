"""
Unit Tests for MemoryConfig
"""

import dataclasses

import pytest

from mnemo.backend.modules.memory.config import DEFAULT_CONFIG, MemoryConfig, ScoringWeights


class TestDefaults:

    def test_defaults(self):
        config = MemoryConfig()
        assert config.compression_threshold == 5
        assert config.similarity_threshold == 0.6
        assert config.max_observation_age_days == 7
        assert config.preserve_critical is True
        assert config.min_confidence == 3
        assert config.temporal_window_days == 30
        assert config.max_entities == 10
        assert config.max_observations_per_entity == 5
        assert config.max_relations == 20
        assert config.recency_window_days == 30
        assert config.weights == ScoringWeights(0.4, 0.3, 0.3)

    def test_default_instance(self):
        assert DEFAULT_CONFIG == MemoryConfig()

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_CONFIG.max_entities = 3


class TestValidation:

    @pytest.mark.parametrize("kwargs", [
        {"similarity_threshold": 1.5},
        {"similarity_threshold": -0.1},
        {"min_confidence": 0},
        {"min_confidence": 6},
        {"temporal_window_days": 0},
        {"recency_window_days": 0},
        {"max_entities": -1},
        {"compression_threshold": -1},
        {"weights": {"relevance": -1}},
        {"weights": {"novelty": 1}},
        {"weights": {"relevance": None}},
        {"weights": None},
        {"weights": "x"},
        {"max_entities": "5"},
        {"max_entities": 2.5},
        {"compression_threshold": True},
        {"similarity_threshold": "0.5"},
        {"preserve_critical": "yes"},
    ])
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            MemoryConfig(**kwargs)

    def test_weights_mapping_converted(self):
        config = MemoryConfig(weights={"relevance": 0.8})
        assert config.weights == ScoringWeights(relevance=0.8, recency=0.3, confidence=0.3)


class TestOverrides:

    def test_no_options_returns_self(self):
        config = MemoryConfig()
        assert config.with_overrides(None) is config
        assert config.with_overrides({}) is config

    def test_camel_case_aliases(self):
        config = MemoryConfig().with_overrides({
            "maxEntities": 3,
            "recencyWindow": 10,
            "compressionThreshold": 2,
            "similarityThreshold": 0.2,
        })
        assert config.max_entities == 3
        assert config.recency_window_days == 10
        assert config.compression_threshold == 2
        assert config.similarity_threshold == 0.2

    def test_field_names(self):
        assert MemoryConfig().with_overrides({"max_relations": 4}).max_relations == 4

    def test_weights_merged(self):
        config = MemoryConfig().with_overrides({"weights": {"recency": 0.9}})
        assert config.weights.to_dict() == {"relevance": 0.4, "recency": 0.9, "confidence": 0.3}

    def test_original_untouched(self):
        base = MemoryConfig()
        base.with_overrides({"maxEntities": 1})
        assert base.max_entities == 10

    def test_unknown_option(self):
        with pytest.raises(ValueError, match="unknown option"):
            MemoryConfig().with_overrides({"maxWidgets": 1})

    def test_invalid_value(self):
        with pytest.raises(ValueError):
            MemoryConfig().with_overrides({"minConfidence": 9})

    @pytest.mark.parametrize("options", [
        {"maxEntities": "5"},
        {"weights": None},
        {"weights": {"recency": None}},
    ])
    def test_wrong_types_raise_value_error(self, options):
        with pytest.raises(ValueError):
            MemoryConfig().with_overrides(options)


class TestFromEnv:

    def test_reads_prefixed_variables(self):
        config = MemoryConfig.from_env({
            "MNEMO_MAX_ENTITIES": "4",
            "MNEMO_SIMILARITY_THRESHOLD": "0.3",
            "MNEMO_PRESERVE_CRITICAL": "false",
            "MNEMO_WEIGHT_RELEVANCE": "0.6",
            "UNRELATED": "x",
        })
        assert config.max_entities == 4
        assert config.similarity_threshold == 0.3
        assert config.preserve_critical is False
        assert config.weights.relevance == 0.6
        assert config.weights.recency == 0.3

    def test_empty_environment(self):
        assert MemoryConfig.from_env({}) == MemoryConfig()

    def test_bad_value(self):
        with pytest.raises(ValueError):
            MemoryConfig.from_env({"MNEMO_MAX_ENTITIES": "many"})

    def test_to_dict(self):
        data = MemoryConfig().to_dict()
        assert data["max_entities"] == 10
        assert data["weights"] == {"relevance": 0.4, "recency": 0.3, "confidence": 0.3}

"""
Memory Engine Configuration

Centralizes every tunable used by the compression and retrieval pipelines.

Compression and retrieval share one dataclass so an orchestrator can build a
single config, override a few fields per call, and hand it to both services.
"""

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class ScoringWeights:
    """
    Weight factors for multi-criterion scoring.

    Applied as given: nothing forces them to sum to 1, so totals can leave
    the nominal [0, 1] range.
    """

    relevance: float = 0.4
    recency: float = 0.3
    confidence: float = 0.3

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not _is_number(value) or value < 0:
                raise ValueError(f"weight '{f.name}' must be a non-negative number, got {value!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ScoringWeights":
        """Build weights from a partial mapping; missing keys keep defaults."""
        valid = {f.name for f in fields(cls)}
        unknown = set(data) - valid
        if unknown:
            raise ValueError(f"unknown weight(s): {sorted(unknown)}")
        try:
            return cls(**{k: float(v) for k, v in data.items()})
        except TypeError as e:
            raise ValueError(f"weights must be numbers: {e}") from e

    def to_dict(self) -> Dict[str, float]:
        return {"relevance": self.relevance, "recency": self.recency, "confidence": self.confidence}


_INT_FIELDS = (
    "compression_threshold",
    "min_confidence",
    "temporal_window_days",
    "max_entities",
    "max_observations_per_entity",
    "max_relations",
)
_NUMBER_FIELDS = ("similarity_threshold", "max_observation_age_days", "recency_window_days")


# camelCase option names accepted from orchestrators -> dataclass fields
_OPTION_ALIASES = {
    "compressionThreshold": "compression_threshold",
    "similarityThreshold": "similarity_threshold",
    "maxObservationAge": "max_observation_age_days",
    "preserveCritical": "preserve_critical",
    "minConfidence": "min_confidence",
    "maxEntities": "max_entities",
    "maxObservationsPerEntity": "max_observations_per_entity",
    "maxRelations": "max_relations",
    "recencyWindow": "recency_window_days",
    "timeWindowDays": "temporal_window_days",
}


@dataclass(frozen=True)
class MemoryConfig:
    """
    Configuration for the compression and retrieval engine.

    All values have production defaults. Invalid values fail fast in
    __post_init__, never mid-operation.
    """

    # Compression
    compression_threshold: int = 5
    """Minimum eligible observations in a group (and in a cluster) before compressing"""

    similarity_threshold: float = 0.6
    """Minimum token-set similarity to the cluster seed"""

    max_observation_age_days: float = 7
    """Observations older than this are not compression candidates"""

    preserve_critical: bool = True
    """Critical observations are never compression inputs"""

    min_confidence: int = 3
    """Minimum confidence (1-5) for compression candidates and retrieved observations"""

    temporal_window_days: int = 30
    """Default bucket size for temporal compression"""

    # Retrieval
    max_entities: int = 10
    max_observations_per_entity: int = 5
    max_relations: int = 20

    recency_window_days: float = 30
    """Day-span over which recency decays linearly from 1 to 0"""

    weights: ScoringWeights = field(default_factory=ScoringWeights)

    def __post_init__(self):
        if isinstance(self.weights, Mapping):
            object.__setattr__(self, "weights", ScoringWeights.from_mapping(self.weights))
        if not isinstance(self.weights, ScoringWeights):
            raise ValueError(f"weights must be a mapping or ScoringWeights, got {type(self.weights).__name__}")

        for name in _INT_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        for name in _NUMBER_FIELDS:
            if not _is_number(getattr(self, name)):
                raise ValueError(f"{name} must be a number, got {getattr(self, name)!r}")
        if not isinstance(self.preserve_critical, bool):
            raise ValueError(f"preserve_critical must be a boolean, got {self.preserve_critical!r}")

        if self.compression_threshold < 0:
            raise ValueError("compression_threshold must be >= 0")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be between 0 and 1")
        if self.max_observation_age_days < 0:
            raise ValueError("max_observation_age_days must be >= 0")
        if not 1 <= self.min_confidence <= 5:
            raise ValueError("min_confidence must be between 1 and 5")
        if self.temporal_window_days <= 0:
            raise ValueError("temporal_window_days must be > 0")
        if self.max_entities < 0 or self.max_relations < 0 or self.max_observations_per_entity < 0:
            raise ValueError("retrieval limits must be >= 0")
        if self.recency_window_days <= 0:
            raise ValueError("recency_window_days must be > 0")

    def with_overrides(self, options: Optional[Mapping[str, Any]] = None) -> "MemoryConfig":
        """
        Return a validated copy with per-call options applied.

        Accepts field names or the camelCase option names used by
        orchestrators (``maxEntities``, ``recencyWindow``...). A ``weights``
        mapping is merged over the current weights.
        """
        if not options:
            return self

        valid = {f.name for f in fields(self)}
        changes: Dict[str, Any] = {}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in valid:
                raise ValueError(f"unknown option: {key}")
            if name == "weights" and isinstance(value, Mapping):
                value = ScoringWeights.from_mapping({**self.weights.to_dict(), **value})
            changes[name] = value
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MemoryConfig":
        """Build a config from MNEMO_* environment variables."""
        env = os.environ if environ is None else environ
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "weights":
                continue
            raw = env.get(f"MNEMO_{f.name.upper()}")
            if raw is None:
                continue
            if f.type in (bool, "bool"):
                kwargs[f.name] = raw.lower() in ("1", "true", "yes")
            elif f.type in (int, "int"):
                kwargs[f.name] = int(raw)
            else:
                kwargs[f.name] = float(raw)

        weights = {}
        for name in ("relevance", "recency", "confidence"):
            raw = env.get(f"MNEMO_WEIGHT_{name.upper()}")
            if raw is not None:
                weights[name] = float(raw)
        if weights:
            kwargs["weights"] = ScoringWeights.from_mapping(weights)

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "weights"}
        data["weights"] = self.weights.to_dict()
        return data


# Default configuration instance
DEFAULT_CONFIG = MemoryConfig()

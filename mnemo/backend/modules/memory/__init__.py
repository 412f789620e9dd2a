"""
Memory Engine - observation compression and context retrieval

Provides:
- MemoryEngine: Main entry point
- Services: Compression, Scoring, Retrieval
- Graph stores: InMemoryGraphStore, JsonFileGraphStore, CachedGraphStore
"""

from .config import MemoryConfig, ScoringWeights, DEFAULT_CONFIG
from .memory_types import (
    Observation,
    CompressedObservation,
    PendingObservation,
    Entity,
    Relation,
    ScoreBreakdown,
    ScoredObservation,
    ScoredEntity,
    ScoredRelation,
    RetrievalResult,
    CategoryResult,
    CriticalResult,
    TimeRangeResult,
)
from .similarity import token_set_similarity
from .observation_filter import ObservationFilter, ObservationGroup
from .clustering import SimilarityClusterer
from .summarizer import ClusterSummarizer, PositionalSummaryStrategy, SummaryStrategy
from .temporal_bucketing import TemporalBucketer
from .compression_service import CompressionService
from .scoring_service import ScoringService
from .retrieval_service import RetrievalService
from .graph_store import (
    GraphStore,
    GraphStoreError,
    InMemoryGraphStore,
    JsonFileGraphStore,
    CachedGraphStore,
)
from .token_metrics import SizeReport, estimate_tokens
from .memory_engine import MemoryEngine

__all__ = [
    # Main entry point
    "MemoryEngine",
    # Types and config
    "MemoryConfig",
    "ScoringWeights",
    "DEFAULT_CONFIG",
    "Observation",
    "CompressedObservation",
    "PendingObservation",
    "Entity",
    "Relation",
    "ScoreBreakdown",
    "ScoredObservation",
    "ScoredEntity",
    "ScoredRelation",
    "RetrievalResult",
    "CategoryResult",
    "CriticalResult",
    "TimeRangeResult",
    # Pipeline pieces
    "token_set_similarity",
    "ObservationFilter",
    "ObservationGroup",
    "SimilarityClusterer",
    "ClusterSummarizer",
    "PositionalSummaryStrategy",
    "SummaryStrategy",
    "TemporalBucketer",
    # Services
    "CompressionService",
    "ScoringService",
    "RetrievalService",
    # Graph stores
    "GraphStore",
    "GraphStoreError",
    "InMemoryGraphStore",
    "JsonFileGraphStore",
    "CachedGraphStore",
    # Metrics
    "SizeReport",
    "estimate_tokens",
]

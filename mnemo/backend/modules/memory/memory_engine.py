"""
Memory Engine - single entry point over compression and retrieval.

Wires CompressionService and RetrievalService to one shared config and clock
so an orchestrator holds one object. Holds no per-session state.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional

from .compression_service import CompressionService
from .config import MemoryConfig
from .graph_store import GraphStore
from .memory_types import (
    CategoryResult,
    CompressedObservation,
    CriticalResult,
    RetrievalResult,
    TimeRangeResult,
)
from .observation_filter import utcnow
from .retrieval_service import RetrievalService
from .scoring_service import ScoringService
from .summarizer import SummaryStrategy
from .token_metrics import SizeReport, compression_savings

logger = logging.getLogger(__name__)


class MemoryEngine:
    """
    Compression & retrieval scoring engine.

    Usage:
        engine = MemoryEngine()
        compressed = engine.compress_observations(pending)
        result = await engine.retrieve_relevant_memories(graph, "memory system")
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        summary_strategy: Optional[SummaryStrategy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config or MemoryConfig()
        self.clock = clock

        self.compression = CompressionService(self.config, summary_strategy, clock=clock)
        self.scoring = ScoringService(self.config, clock=clock)
        self.retrieval = RetrievalService(self.config, self.scoring, clock=clock)

        logger.info(
            f"MemoryEngine initialized (compression_threshold={self.config.compression_threshold}, "
            f"similarity_threshold={self.config.similarity_threshold})"
        )

    # ==================== Compression ====================

    def compress_observations(self, pending: Optional[Iterable[Any]]) -> List[CompressedObservation]:
        return self.compression.compress_observations(pending)

    def temporal_compression(
        self,
        observations: Optional[Iterable[Any]],
        window_days: Optional[int] = None,
    ) -> List[CompressedObservation]:
        return self.compression.temporal_compression(observations, window_days)

    def enhanced_compression(self, pending: Optional[Iterable[Any]]) -> List[CompressedObservation]:
        return self.compression.enhanced_compression(pending)

    @staticmethod
    def size_report(compressed: Iterable[CompressedObservation]) -> SizeReport:
        """Estimated token savings of a compression run."""
        return compression_savings(compressed)

    # ==================== Retrieval ====================

    async def retrieve_relevant_memories(
        self,
        graph: GraphStore,
        context: Any,
        target_entities: Optional[List[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RetrievalResult:
        return await self.retrieval.retrieve_relevant_memories(graph, context, target_entities, options)

    async def retrieve_by_category(
        self,
        graph: GraphStore,
        category: str,
        entity_names: Optional[List[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> CategoryResult:
        return await self.retrieval.retrieve_by_category(graph, category, entity_names, options)

    async def retrieve_critical_memories(
        self,
        graph: GraphStore,
        entity_names: Optional[List[str]] = None,
    ) -> CriticalResult:
        return await self.retrieval.retrieve_critical_memories(graph, entity_names)

    async def retrieve_by_time_range(
        self,
        graph: GraphStore,
        time_range: Optional[Mapping[str, Any]],
        entity_names: Optional[List[str]] = None,
    ) -> TimeRangeResult:
        return await self.retrieval.retrieve_by_time_range(graph, time_range, entity_names)

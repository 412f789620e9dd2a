"""
Compression Service - condenses redundant observations.

Pipeline: ObservationFilter -> SimilarityClusterer -> ClusterSummarizer.
Temporal compression runs the same pipeline independently per time window.

Responsibilities:
- Coercing loose input items into PendingObservation records
- Running the filter/cluster/summarize pipeline per group
- Tagging temporal output with its window
- Never raising: failures are logged and yield an empty result
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional

from .clustering import SimilarityClusterer
from .config import MemoryConfig
from .memory_types import CompressedObservation, PendingObservation
from .observation_filter import ObservationFilter, utcnow
from .summarizer import ClusterSummarizer, SummaryStrategy
from .temporal_bucketing import TemporalBucketer

logger = logging.getLogger(__name__)


class CompressionService:
    """
    Compresses clusters of similar recent observations.

    Originals are never deleted here; whether compressed observations replace
    them is the orchestrator's decision.
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        summary_strategy: Optional[SummaryStrategy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the compression service.

        Args:
            config: Engine configuration. Uses defaults if not provided.
            summary_strategy: Summary text strategy (positional template by default)
            clock: Returns the current aware datetime; injectable for tests
        """
        self.config = config or MemoryConfig()
        self.clock = clock
        self.observation_filter = ObservationFilter(self.config, clock=clock)
        self.clusterer = SimilarityClusterer(self.config)
        self.summarizer = ClusterSummarizer(summary_strategy)

    # =========================================================================
    # Public operations
    # =========================================================================

    def compress_observations(self, pending: Optional[Iterable[Any]]) -> List[CompressedObservation]:
        """
        Compress pending observations.

        Args:
            pending: Items shaped ``{entityName, entityType, observation}``
                (dicts or PendingObservation). Malformed items are skipped.

        Returns:
            Compressed observations, one per qualifying cluster
        """
        if not pending:
            return []

        try:
            return self._compress(self._coerce(pending))
        except Exception as e:
            logger.error(f"Error compressing observations: {e}", exc_info=True)
            return []

    def temporal_compression(
        self,
        observations: Optional[Iterable[Any]],
        window_days: Optional[int] = None,
    ) -> List[CompressedObservation]:
        """
        Compress a larger observation history window by window.

        Args:
            observations: Flat observation dicts carrying ``entityName`` and
                optionally ``entityType``, or PendingObservation items
            window_days: Window size in days (config default: 30)

        Returns:
            Compressed observations tagged with their ``time_window``
        """
        if not observations:
            return []

        try:
            if window_days is None:
                window_days = self.config.temporal_window_days
            bucketer = TemporalBucketer(window_days)
            windows = bucketer.bucket(self._coerce(observations))

            results: List[CompressedObservation] = []
            for key, items in windows.items():
                for compressed in self._compress(items):
                    compressed.time_window = key
                    results.append(compressed)

            logger.info(f"Temporal compression produced {len(results)} observation(s) from {len(windows)} window(s)")
            return results
        except Exception as e:
            logger.error(f"Error in temporal compression: {e}", exc_info=True)
            return []

    def enhanced_compression(self, pending: Optional[Iterable[Any]]) -> List[CompressedObservation]:
        """Hook for a linguistically richer compressor; currently the standard pipeline."""
        logger.info("Enhanced compression not available, using standard compression")
        return self.compress_observations(pending)

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _compress(self, items: List[PendingObservation]) -> List[CompressedObservation]:
        results: List[CompressedObservation] = []

        for group in self.observation_filter.filter_groups(items).values():
            for cluster in self.clusterer.cluster(group.observations):
                if len(cluster) < self.config.compression_threshold:
                    continue
                compressed = self.summarizer.summarize(
                    cluster,
                    entity_name=group.entity_name,
                    category=group.category,
                    entity_type=group.entity_type,
                )
                if compressed is not None:
                    results.append(compressed)

        return results

    def _coerce(self, items: Iterable[Any]) -> List[PendingObservation]:
        pending: List[PendingObservation] = []
        for item in items:
            try:
                pending.append(PendingObservation.from_dict(item))
            except (ValueError, TypeError, AttributeError) as e:
                logger.debug(f"Skipping malformed pending observation: {e}")
        return pending

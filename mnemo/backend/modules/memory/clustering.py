"""
Similarity Clusterer - greedy seed-based grouping of similar observations.

Each unassigned observation, in input order, seeds a new cluster; every later
unassigned observation whose similarity to the seed reaches the threshold
joins it. Membership is decided against the seed only, so two members of a
cluster need not be similar to each other. Singleton clusters are dropped.

O(n^2) comparisons per group; groups are bounded by recent observation volume.
"""

import logging
from typing import Callable, List, Optional

from .config import MemoryConfig
from .memory_types import Observation
from .similarity import token_set_similarity

logger = logging.getLogger(__name__)

Cluster = List[Observation]
SimilarityFn = Callable[[str, str], float]


class SimilarityClusterer:
    """Partitions a group of observations into clusters of similar items."""

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        similarity_fn: SimilarityFn = token_set_similarity,
    ):
        self.config = config or MemoryConfig()
        self.similarity_fn = similarity_fn

    def cluster(self, observations: List[Observation]) -> List[Cluster]:
        """Return clusters of two or more observations, seeds in input order."""
        threshold = self.config.similarity_threshold
        assigned = [False] * len(observations)
        clusters: List[Cluster] = []

        for i, seed in enumerate(observations):
            if assigned[i]:
                continue
            assigned[i] = True
            current = [seed]

            for j in range(i + 1, len(observations)):
                if assigned[j]:
                    continue
                candidate = observations[j]
                if self.similarity_fn(seed.content, candidate.content) >= threshold:
                    current.append(candidate)
                    assigned[j] = True

            if len(current) > 1:
                clusters.append(current)

        logger.debug(f"Clustered {len(observations)} observations into {len(clusters)} cluster(s)")
        return clusters

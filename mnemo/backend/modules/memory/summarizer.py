"""
Cluster Summarizer - reduces a cluster to one compressed observation.

The summary text comes from a pluggable SummaryStrategy. The summarizer
itself owns everything else: newest timestamp, averaged confidence,
criticality and provenance.
"""

import logging
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol

from .memory_types import DEFAULT_CONFIDENCE, CompressedObservation, Observation
from .similarity import tokenize

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SummaryStrategy(Protocol):
    """Turns an ordered cluster (newest first) into summary text."""

    def summarize(self, cluster: List[Observation]) -> str:
        ...


def most_common(items: Iterable[str]) -> Optional[str]:
    """Most frequent item; ties go to the one seen first."""
    counts = Counter(items)
    if not counts:
        return None
    # most_common sorts stably, so insertion order breaks ties
    return counts.most_common(1)[0][0]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PositionalSummaryStrategy:
    """
    Template summary "{subject} {action} {object}".

    Token 0 is taken as a candidate subject, token 1 as a candidate action and
    tokens 2-4 as candidate objects; only tokens longer than three characters
    qualify, and only contents with more than two tokens contribute.
    """

    MIN_TOKEN_LENGTH = 4

    default_subject = "Subject"
    default_action = "performed action"
    default_object = "object"

    def summarize(self, cluster: List[Observation]) -> str:
        subjects: List[str] = []
        actions: List[str] = []
        objects: List[str] = []

        for obs in cluster:
            words = tokenize(obs.content)
            if len(words) <= 2:
                continue
            if len(words[0]) >= self.MIN_TOKEN_LENGTH:
                subjects.append(words[0])
            if len(words[1]) >= self.MIN_TOKEN_LENGTH:
                actions.append(words[1])
            objects.extend(w for w in words[2:5] if len(w) >= self.MIN_TOKEN_LENGTH)

        summary = " ".join([
            most_common(subjects) or self.default_subject,
            most_common(actions) or self.default_action,
            most_common(objects) or self.default_object,
        ])

        if len(cluster) > 1:
            summary += f" (observed {len(cluster)} times)"
        return summary


class ClusterSummarizer:
    """Builds CompressedObservation records from clusters."""

    def __init__(self, strategy: Optional[SummaryStrategy] = None):
        self.strategy = strategy or PositionalSummaryStrategy()

    def summarize(
        self,
        cluster: List[Observation],
        entity_name: str,
        category: str,
        entity_type: str = "",
    ) -> Optional[CompressedObservation]:
        """
        Compress a cluster into one observation.

        Returns None instead of raising if anything goes wrong, so one bad
        cluster never sinks a whole compression run.
        """
        try:
            ordered = sorted(
                cluster,
                key=lambda obs: obs.timestamp or _EPOCH,
                reverse=True,
            )

            confidences = [obs.confidence or DEFAULT_CONFIDENCE for obs in ordered]
            confidence = round_half_up(sum(confidences) / len(confidences))

            return CompressedObservation(
                content=self.strategy.summarize(ordered),
                timestamp=ordered[0].timestamp,
                confidence=confidence,
                category=category,
                is_critical=any(obs.is_critical for obs in ordered),
                source_observations=[obs.content for obs in ordered],
                entity_name=entity_name,
                entity_type=entity_type,
            )
        except Exception as e:
            logger.error(f"Error compressing cluster for {entity_name}:{category}: {e}", exc_info=True)
            return None

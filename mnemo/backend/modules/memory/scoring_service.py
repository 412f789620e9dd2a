"""
Scoring Service

Handles all score calculations for retrieval:
- Keyword extraction from the conversation context
- Entity scoring (relevance, recency, confidence, weighted total)
- Relation scoring (top-entity connectivity, criticality, recency boost)
- Observation scoring, filtering and truncation

Weights are applied as configured and never normalized, so totals may leave
the nominal [0, 1] range.
"""

import json
import logging
import re
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Collection, Iterable, List, Optional

from .config import MemoryConfig
from .memory_types import (
    Entity,
    Observation,
    Relation,
    ScoreBreakdown,
    ScoredEntity,
    ScoredObservation,
    ScoredRelation,
)
from .observation_filter import days_between, utcnow

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 4

STOP_WORDS = frozenset({
    "the", "and", "are", "for", "was", "that", "this", "with", "have", "from",
    "what", "which", "when", "where", "who", "will", "would", "there", "their",
    "about", "should", "could", "been", "more", "very", "some", "other", "then",
})

CRITICAL_OBSERVATION_BONUS = 0.5
RELATION_TOP_ENTITY_SCORE = 1.0
RELATION_BASE_SCORE = 0.5
RELATION_CRITICAL_BONUS = 0.3
RELATION_RECENCY_BOOST = 0.2

_PUNCTUATION = re.compile(r"[^\w\s]")


def recency_score(timestamp: Optional[datetime], now: datetime, window_days: float) -> float:
    """Linear decay from 1 (now) to 0 (window_days ago or older). 0 without a timestamp."""
    if timestamp is None:
        return 0.0
    return max(0.0, 1.0 - days_between(timestamp, now) / window_days)


class ScoringService:
    """
    Service for calculating retrieval scores.

    Every scoring method takes an optional config so one call can use
    per-request options without mutating the service.
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the scoring service.

        Args:
            config: Engine configuration. Uses defaults if not provided.
            clock: Returns the current aware datetime; injectable for tests
        """
        self.config = config or MemoryConfig()
        self.clock = clock

    # =========================================================================
    # Keywords
    # =========================================================================

    def extract_keywords(self, context: Any) -> List[str]:
        """
        Extract up to 10 keywords from a context string or structured object.

        Tokens of three characters or fewer and stop words are dropped; the
        rest are ranked by frequency, first occurrence breaking ties.
        """
        if context is None:
            return []
        if isinstance(context, str):
            text = context
        else:
            try:
                text = json.dumps(context, default=str)
            except (TypeError, ValueError):
                text = str(context)

        tokens = [
            word for word in _PUNCTUATION.sub(" ", text.lower()).split()
            if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
        ]
        return [word for word, _ in Counter(tokens).most_common(MAX_KEYWORDS)]

    @staticmethod
    def is_stop_word(word: str) -> bool:
        return word in STOP_WORDS

    # =========================================================================
    # Entity factors
    # =========================================================================

    def calculate_relevance_score(self, entity: Entity, keywords: List[str]) -> float:
        """Fraction of keywords found anywhere in the serialized entity."""
        if not entity or not keywords:
            return 0.0
        entity_text = json.dumps(entity.to_dict(), default=str).lower()
        matches = sum(1 for keyword in keywords if keyword.lower() in entity_text)
        return matches / len(keywords)

    def calculate_recency_score(
        self,
        entity: Entity,
        config: Optional[MemoryConfig] = None,
        now: Optional[datetime] = None,
    ) -> float:
        """Recency of the entity's most recent timestamped observation."""
        cfg = config or self.config
        timestamps = [obs.timestamp for obs in entity.observations if obs.timestamp is not None]
        if not timestamps:
            return 0.0
        return recency_score(max(timestamps), now or self.clock(), cfg.recency_window_days)

    def calculate_confidence_score(self, entity: Entity) -> float:
        """Mean observation confidence normalized to [0, 1]."""
        confidences = [obs.confidence for obs in entity.observations if obs.confidence and obs.confidence > 0]
        if not confidences:
            return 0.0
        return (sum(confidences) / len(confidences)) / 5

    # =========================================================================
    # Scoring
    # =========================================================================

    def score_entity(
        self,
        entity: Entity,
        keywords: List[str],
        config: Optional[MemoryConfig] = None,
        now: Optional[datetime] = None,
    ) -> ScoredEntity:
        cfg = config or self.config
        scores = ScoreBreakdown(
            relevance=self.calculate_relevance_score(entity, keywords),
            recency=self.calculate_recency_score(entity, cfg, now),
            confidence=self.calculate_confidence_score(entity),
        )
        weights = cfg.weights
        total = (
            weights.relevance * scores.relevance
            + weights.recency * scores.recency
            + weights.confidence * scores.confidence
        )
        return ScoredEntity(entity=entity, score=total, scores=scores)

    def score_entities(
        self,
        entities: Iterable[Entity],
        keywords: List[str],
        config: Optional[MemoryConfig] = None,
    ) -> List[ScoredEntity]:
        now = self.clock()
        return [self.score_entity(entity, keywords, config, now) for entity in entities]

    def score_relation(
        self,
        relation: Relation,
        top_entity_names: Collection[str],
        config: Optional[MemoryConfig] = None,
        now: Optional[datetime] = None,
    ) -> ScoredRelation:
        """
        Score one relation.

        1.0 when both endpoints are top entities (else 0.5), +0.3 when
        critical, plus up to +0.2 decaying with the age of attributes.time.
        """
        cfg = config or self.config
        connects_top = relation.from_entity in top_entity_names and relation.to_entity in top_entity_names
        score = RELATION_TOP_ENTITY_SCORE if connects_top else RELATION_BASE_SCORE

        if relation.is_critical:
            score += RELATION_CRITICAL_BONUS

        relation_time = relation.time
        if relation_time is not None:
            score += RELATION_RECENCY_BOOST * recency_score(
                relation_time, now or self.clock(), cfg.recency_window_days
            )

        return ScoredRelation(relation=relation, score=score)

    def score_relations(
        self,
        relations: Iterable[Relation],
        top_entity_names: Collection[str],
        config: Optional[MemoryConfig] = None,
    ) -> List[ScoredRelation]:
        names = set(top_entity_names)
        now = self.clock()
        return [self.score_relation(relation, names, config, now) for relation in relations]

    def score_observation(
        self,
        observation: Observation,
        keywords: List[str],
        config: Optional[MemoryConfig] = None,
        now: Optional[datetime] = None,
    ) -> ScoredObservation:
        cfg = config or self.config
        content = (observation.content or "").lower()
        matches = sum(1 for keyword in keywords if keyword.lower() in content)

        scores = ScoreBreakdown(
            relevance=matches / max(1, len(keywords)),
            recency=recency_score(observation.timestamp, now or self.clock(), cfg.recency_window_days),
            confidence=(observation.confidence or 0) / 5,
        )
        weights = cfg.weights
        total = (
            weights.relevance * scores.relevance
            + weights.recency * scores.recency
            + weights.confidence * scores.confidence
        )
        if observation.is_critical:
            total += CRITICAL_OBSERVATION_BONUS

        return ScoredObservation(observation=observation, score=total, scores=scores)

    def filter_and_sort_observations(
        self,
        observations: Iterable[Observation],
        keywords: List[str],
        config: Optional[MemoryConfig] = None,
    ) -> List[ScoredObservation]:
        """
        Drop low-confidence observations, score the rest, sort descending and
        keep at most max_observations_per_entity.
        """
        cfg = config or self.config
        now = self.clock()
        scored = [
            self.score_observation(obs, keywords, cfg, now)
            for obs in observations
            if (obs.confidence or 0) >= cfg.min_confidence
        ]
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[:cfg.max_observations_per_entity]

    @staticmethod
    def rank(items: List[Any], limit: int) -> List[Any]:
        """Stable sort by descending score, truncated to limit."""
        return sorted(items, key=lambda item: item.score, reverse=True)[:limit]

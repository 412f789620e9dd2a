"""
Retrieval Service - selects which memories to surface for a context.

Responsibilities:
- Candidate gathering from the graph collaborator (targets or keyword search)
- Entity ranking and truncation to max_entities
- Relation gathering for top entities, ranking and truncation to max_relations
- Per-entity observation filtering/sorting
- Specialized modes: by category, critical-only, by time range

Every operation catches failures at its boundary and returns a result with an
``error`` field instead of raising. Invalid per-call options are the one
exception: they raise ValueError before any work starts.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .config import MemoryConfig
from .graph_store import GraphStore
from .memory_types import (
    CategoryEntity,
    CategoryResult,
    CriticalResult,
    Entity,
    Relation,
    RetrievalResult,
    TimeRangeResult,
    format_timestamp,
    parse_timestamp,
)
from .observation_filter import utcnow
from .scoring_service import ScoringService

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_entity(raw: Any) -> Optional[Entity]:
    if raw is None:
        return None
    try:
        return Entity.from_dict(raw)
    except (ValueError, TypeError, AttributeError) as e:
        logger.debug(f"Skipping malformed entity from graph: {e}")
        return None


def _as_relations(raw: Optional[Iterable[Any]]) -> List[Relation]:
    relations = []
    for item in raw or []:
        try:
            relations.append(Relation.from_dict(item))
        except (ValueError, TypeError, AttributeError) as e:
            logger.debug(f"Skipping malformed relation from graph: {e}")
    return relations


def dedupe_entities(entities: Iterable[Entity]) -> List[Entity]:
    """Keep the first entity seen for each name."""
    seen = set()
    unique = []
    for entity in entities:
        if entity.name not in seen:
            seen.add(entity.name)
            unique.append(entity)
    return unique


def dedupe_relations(relations: Iterable[Relation]) -> List[Relation]:
    """One relation per (from, relationType, to); the latest occurrence wins."""
    by_key: Dict[Any, Relation] = {}
    for relation in relations:
        by_key[relation.key] = relation
    return list(by_key.values())


class RetrievalService:
    """
    Context-aware memory retrieval over a GraphStore.

    Stateless between calls: no caching happens here. Wrap the graph in a
    CachedGraphStore if lookups should be reused within a session.
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        scoring_service: Optional[ScoringService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the retrieval service.

        Args:
            config: Engine configuration. Uses defaults if not provided.
            scoring_service: Scorer to use (built from config/clock if not provided)
            clock: Returns the current aware datetime; injectable for tests
        """
        self.config = config or MemoryConfig()
        self.clock = clock
        self.scoring = scoring_service or ScoringService(self.config, clock=clock)

    # =========================================================================
    # Context retrieval
    # =========================================================================

    async def retrieve_relevant_memories(
        self,
        graph: GraphStore,
        context: Any,
        target_entities: Optional[List[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RetrievalResult:
        """
        Retrieve the memories most relevant to a conversation context.

        Args:
            graph: Graph collaborator
            context: Context string or structured object
            target_entities: Restrict candidates to these entity names
            options: Per-call overrides (maxEntities, weights, ...)

        Returns:
            RetrievalResult with entities and relations sorted by descending score
        """
        cfg = self.config.with_overrides(options)

        try:
            keywords = self.scoring.extract_keywords(context)

            if target_entities:
                entities = await self._get_entities(graph, target_entities)
            else:
                entities = await self._search_entities(graph, keywords)

            scored = self.scoring.score_entities(entities, keywords, cfg)
            top_entities = self.scoring.rank(scored, cfg.max_entities)

            relation_lists = await asyncio.gather(*[
                graph.get_entity_relations(item.name) for item in top_entities
            ])
            relations = dedupe_relations(
                relation for batch in relation_lists for relation in _as_relations(batch)
            )
            scored_relations = self.scoring.score_relations(
                relations, [item.name for item in top_entities], cfg
            )
            top_relations = self.scoring.rank(scored_relations, cfg.max_relations)

            for item in top_entities:
                item.observations = self.scoring.filter_and_sort_observations(
                    item.entity.observations, keywords, cfg
                )

            logger.debug(
                f"Retrieved {len(top_entities)} entities, {len(top_relations)} relations "
                f"for keywords {keywords}"
            )
            return RetrievalResult(
                entities=top_entities,
                relations=top_relations,
                keywords=keywords,
                options=cfg.to_dict(),
            )
        except Exception as e:
            logger.error(f"Error retrieving memories: {e}", exc_info=True)
            return RetrievalResult(error=str(e))

    # =========================================================================
    # Specialized modes
    # =========================================================================

    async def retrieve_by_category(
        self,
        graph: GraphStore,
        category: str,
        entity_names: Optional[List[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> CategoryResult:
        """
        Observations of one category per entity, ordered by recency,
        confidence and criticality (no keyword relevance).
        """
        cfg = self.config.with_overrides(options)

        try:
            entities = await self._entities_for(graph, entity_names)

            results = []
            for entity in entities:
                matching = [obs for obs in entity.observations if obs.category == category]
                if not matching:
                    continue
                results.append(CategoryEntity(
                    entity=entity,
                    observations=self.scoring.filter_and_sort_observations(matching, [], cfg),
                ))

            return CategoryResult(category=category, entities=results)
        except Exception as e:
            logger.error(f"Error retrieving memories by category {category}: {e}", exc_info=True)
            return CategoryResult(category=category, error=str(e))

    async def retrieve_critical_memories(
        self,
        graph: GraphStore,
        entity_names: Optional[List[str]] = None,
    ) -> CriticalResult:
        """All critical observations and relations, unranked."""
        try:
            entities = await self._entities_for(graph, entity_names)
            critical_entities = self._filter_observations(
                entities, lambda obs: obs.is_critical
            )

            graph_data = await graph.export_graph() or {}
            relations = [
                relation for relation in _as_relations(graph_data.get("relations"))
                if relation.is_critical
            ]

            return CriticalResult(entities=critical_entities, relations=relations)
        except Exception as e:
            logger.error(f"Error retrieving critical memories: {e}", exc_info=True)
            return CriticalResult(error=str(e))

    async def retrieve_by_time_range(
        self,
        graph: GraphStore,
        time_range: Optional[Mapping[str, Any]],
        entity_names: Optional[List[str]] = None,
    ) -> TimeRangeResult:
        """
        Observations and relations whose time falls within [start, end].

        A missing start means the epoch, a missing end means now. Unranked.
        """
        time_range = time_range or {}
        raw_start = time_range.get("startDate", time_range.get("start_date"))
        raw_end = time_range.get("endDate", time_range.get("end_date"))

        try:
            start = parse_timestamp(raw_start) or _EPOCH
            end = parse_timestamp(raw_end) or self.clock()

            def in_range(when: Optional[datetime]) -> bool:
                return when is not None and start <= when <= end

            entities = await self._entities_for(graph, entity_names)
            filtered = self._filter_observations(entities, lambda obs: in_range(obs.timestamp))

            graph_data = await graph.export_graph() or {}
            relations = [
                relation for relation in _as_relations(graph_data.get("relations"))
                if in_range(relation.time)
            ]

            return TimeRangeResult(
                start_date=format_timestamp(start) if raw_start else "beginning",
                end_date=format_timestamp(end),
                entities=filtered,
                relations=relations,
            )
        except Exception as e:
            logger.error(f"Error retrieving memories by time range: {e}", exc_info=True)
            return TimeRangeResult(
                start_date=str(raw_start) if raw_start else "beginning",
                end_date=str(raw_end) if raw_end else "now",
                error=str(e),
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_entities(self, graph: GraphStore, names: List[str]) -> List[Entity]:
        fetched = await asyncio.gather(*[graph.get_entity(name) for name in names])
        return [entity for entity in (_as_entity(raw) for raw in fetched) if entity is not None]

    async def _search_entities(self, graph: GraphStore, keywords: List[str]) -> List[Entity]:
        found: List[Entity] = []
        for keyword in keywords:
            results = await graph.search(keyword)
            if results and results.get("entities"):
                found.extend(e for e in (_as_entity(raw) for raw in results["entities"]) if e is not None)
        return dedupe_entities(found)

    async def _entities_for(self, graph: GraphStore, names: Optional[List[str]]) -> List[Entity]:
        """Named entities, or every entity in the graph when no names are given."""
        if names:
            return await self._get_entities(graph, names)
        graph_data = await graph.export_graph() or {}
        return [e for e in (_as_entity(raw) for raw in graph_data.get("entities") or []) if e is not None]

    @staticmethod
    def _filter_observations(entities: List[Entity], predicate) -> List[Entity]:
        """Copies of entities holding only matching observations; empty ones dropped."""
        filtered = []
        for entity in entities:
            kept = [obs for obs in entity.observations if predicate(obs)]
            if kept:
                filtered.append(Entity(name=entity.name, entity_type=entity.entity_type, observations=kept))
        return filtered

"""
Graph Store - the entity/relation collaborator used by retrieval.

The engine only needs four read operations, captured by the GraphStore
protocol. Implementations:
- InMemoryGraphStore: dict-backed store, used by tests, the CLI and the server
- JsonFileGraphStore: read-only store loaded from an {entities, relations} export
- CachedGraphStore: per-owner lookup cache around any GraphStore
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

from filelock import FileLock, Timeout

from .memory_types import Entity, Observation, Relation, RelationKey

logger = logging.getLogger(__name__)


class GraphStoreError(Exception):
    """Raised when a graph store cannot be loaded."""


@runtime_checkable
class GraphStore(Protocol):
    """Read capability the retrieval engine needs from a knowledge graph."""

    async def get_entity(self, name: str) -> Optional[Entity]:
        ...

    async def search(self, query: str) -> Dict[str, Any]:
        """Return ``{"entities": [Entity, ...]}`` for a free-text query."""
        ...

    async def get_entity_relations(self, name: str) -> List[Relation]:
        ...

    async def export_graph(self) -> Dict[str, Any]:
        """Return ``{"entities": [...], "relations": [...]}``."""
        ...


class InMemoryGraphStore:
    """
    Dict-backed knowledge graph.

    Entity names are unique; adding an entity with an existing name replaces
    it. Relations are keyed by (from, relationType, to), latest write wins.
    """

    def __init__(
        self,
        entities: Optional[List[Union[Entity, Dict[str, Any]]]] = None,
        relations: Optional[List[Union[Relation, Dict[str, Any]]]] = None,
    ):
        self._entities: Dict[str, Entity] = {}
        self._relations: Dict[RelationKey, Relation] = {}
        for entity in entities or []:
            self.add_entity(entity)
        for relation in relations or []:
            self.add_relation(relation)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryGraphStore":
        """Build from an export; malformed entities/relations are skipped."""
        store = cls()
        for raw in data.get("entities") or []:
            try:
                store.add_entity(raw)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed entity: {e}")
        for raw in data.get("relations") or []:
            try:
                store.add_relation(raw)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed relation: {e}")
        return store

    # =========================================================================
    # Writes
    # =========================================================================

    def add_entity(self, entity: Union[Entity, Dict[str, Any]]) -> Entity:
        entity = Entity.from_dict(entity)
        self._entities[entity.name] = entity
        return entity

    def add_observation(self, entity_name: str, observation: Union[Observation, Dict[str, Any], str]) -> Observation:
        if entity_name not in self._entities:
            raise KeyError(f"Entity {entity_name} not found")
        observation = Observation.from_dict(observation)
        self._entities[entity_name].observations.append(observation)
        return observation

    def add_relation(self, relation: Union[Relation, Dict[str, Any]]) -> Relation:
        relation = Relation.from_dict(relation)
        self._relations[relation.key] = relation
        return relation

    # =========================================================================
    # GraphStore protocol
    # =========================================================================

    async def get_entity(self, name: str) -> Optional[Entity]:
        return self._entities.get(name)

    async def search(self, query: str) -> Dict[str, Any]:
        """Case-insensitive substring match on name, type and observation contents."""
        needle = (query or "").lower()
        if not needle:
            return {"entities": []}

        matches = []
        for entity in self._entities.values():
            haystack = [entity.name, entity.entity_type] + [obs.content for obs in entity.observations]
            if any(needle in text.lower() for text in haystack):
                matches.append(entity)
        return {"entities": matches}

    async def get_entity_relations(self, name: str) -> List[Relation]:
        return [
            relation for relation in self._relations.values()
            if relation.from_entity == name or relation.to_entity == name
        ]

    async def export_graph(self) -> Dict[str, Any]:
        return {
            "entities": list(self._entities.values()),
            "relations": list(self._relations.values()),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [entity.to_dict() for entity in self._entities.values()],
            "relations": [relation.to_dict() for relation in self._relations.values()],
        }

    def __len__(self) -> int:
        return len(self._entities)


class JsonFileGraphStore(InMemoryGraphStore):
    """
    Read-only graph loaded from a JSON export file.

    The file is read under a FileLock so a concurrent writer using the same
    lock never leaves us with a half-written document.
    """

    def __init__(self, path: Union[str, Path], lock_timeout: float = 10):
        super().__init__()
        self.path = Path(path)
        self.lock_timeout = lock_timeout
        self.reload()

    def reload(self):
        """Re-read the export from disk, replacing current contents."""
        data = self._read()
        loaded = InMemoryGraphStore.from_dict(data)
        self._entities = loaded._entities
        self._relations = loaded._relations
        logger.info(f"Loaded graph from {self.path}: {len(self._entities)} entities, {len(self._relations)} relations")

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            raise GraphStoreError(f"Graph file not found: {self.path}")

        lock_path = str(self.path) + ".lock"
        try:
            with FileLock(lock_path, timeout=self.lock_timeout):
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
        except Timeout as e:
            raise GraphStoreError(f"Timed out waiting for lock on {self.path}") from e
        except json.JSONDecodeError as e:
            raise GraphStoreError(f"Invalid graph JSON in {self.path}: {e}") from e
        except OSError as e:
            raise GraphStoreError(f"Failed to read {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise GraphStoreError(f"Graph file {self.path} must contain a JSON object")
        return data


class CachedGraphStore:
    """
    Lookup cache in front of another GraphStore.

    Owned by whoever creates it (typically one session); instances never
    share entries. Search and export results refresh the entity cache, and
    export refreshes the relation cache.
    """

    def __init__(self, inner: GraphStore):
        self.inner = inner
        self.entity_cache: Dict[str, Entity] = {}
        self.relation_cache: Dict[RelationKey, Relation] = {}
        self._relations_by_entity: Dict[str, List[Relation]] = {}

    async def get_entity(self, name: str) -> Optional[Entity]:
        if name in self.entity_cache:
            return self.entity_cache[name]
        entity = await self.inner.get_entity(name)
        if entity is not None:
            self.entity_cache[name] = entity
        return entity

    async def search(self, query: str) -> Dict[str, Any]:
        results = await self.inner.search(query) or {"entities": []}
        for entity in results.get("entities") or []:
            self.entity_cache[entity.name] = entity
        return results

    async def get_entity_relations(self, name: str) -> List[Relation]:
        if name in self._relations_by_entity:
            return list(self._relations_by_entity[name])
        relations = await self.inner.get_entity_relations(name) or []
        self._relations_by_entity[name] = list(relations)
        for relation in relations:
            self.relation_cache[relation.key] = relation
        return list(relations)

    async def export_graph(self) -> Dict[str, Any]:
        graph = await self.inner.export_graph() or {"entities": [], "relations": []}
        for entity in graph.get("entities") or []:
            self.entity_cache[entity.name] = entity
        for relation in graph.get("relations") or []:
            self.relation_cache[relation.key] = relation
        return graph

    def clear(self):
        self.entity_cache.clear()
        self.relation_cache.clear()
        self._relations_by_entity.clear()

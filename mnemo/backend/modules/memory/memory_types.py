"""
Memory Engine Type Definitions

Centralizes the dataclasses passed between the compression and retrieval
pipelines and the graph collaborator.

Observations, entities and relations arrive as loose JSON-like dicts from
graph stores and orchestrators; from_dict/to_dict convert at the boundary so
the services only ever see typed objects.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "general"
DEFAULT_CONFIDENCE = 3
MIN_CONFIDENCE = 1
MAX_CONFIDENCE = 5

RelationKey = Tuple[str, str, str]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an instant into an aware UTC datetime.

    Accepts datetime objects, ISO-8601 strings (trailing 'Z' allowed) and
    epoch seconds. Returns None for empty values; raises ValueError for
    anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"timestamp out of range: {value!r}") from e
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"invalid timestamp: {value!r}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def clamp_confidence(value: Any) -> int:
    """Coerce a confidence value into the 1..5 range (default 3)."""
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, number))


@dataclass
class Observation:
    """A single timestamped, confidence-scored fact about an entity."""
    content: str
    timestamp: Optional[datetime] = None
    confidence: int = DEFAULT_CONFIDENCE
    category: str = DEFAULT_CATEGORY
    is_critical: bool = False
    source_observations: Optional[List[str]] = None

    def __post_init__(self):
        self.confidence = clamp_confidence(self.confidence)
        self.category = self.category or DEFAULT_CATEGORY

    @classmethod
    def from_dict(cls, data: Union[Dict[str, Any], str, "Observation"]) -> "Observation":
        """
        Create from a raw observation.

        Plain strings become an untimestamped general observation, the way
        server-memory style graphs store them.
        """
        if isinstance(data, Observation):
            return data
        if isinstance(data, str):
            if not data.strip():
                raise ValueError("observation content is empty")
            return cls(content=data)
        if not isinstance(data, dict):
            raise ValueError(f"observation must be a dict or string, got {type(data).__name__}")

        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ValueError("observation is missing content")

        sources = data.get("source_observations")
        return cls(
            content=content,
            timestamp=parse_timestamp(data.get("timestamp")),
            confidence=data.get("confidence", DEFAULT_CONFIDENCE),
            category=data.get("category") or DEFAULT_CATEGORY,
            is_critical=data.get("is_critical") is True,
            source_observations=list(sources) if sources else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
            "confidence": self.confidence,
            "category": self.category,
            "is_critical": self.is_critical,
        }
        if self.source_observations is not None:
            data["source_observations"] = list(self.source_observations)
        return data


@dataclass
class CompressedObservation(Observation):
    """
    Observation produced by compressing a cluster.

    source_observations lists the replaced contents, most recent first.
    """
    entity_name: str = ""
    entity_type: str = ""
    time_window: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["source_observations"] = list(self.source_observations or [])
        data["entityName"] = self.entity_name
        data["entityType"] = self.entity_type
        if self.time_window is not None:
            data["time_window"] = self.time_window
        return data


@dataclass
class PendingObservation:
    """An observation awaiting compression together with its owning entity."""
    entity_name: str
    entity_type: str
    observation: Observation

    @classmethod
    def from_dict(cls, data: Union[Dict[str, Any], "PendingObservation"]) -> "PendingObservation":
        """
        Accepts ``{entityName, entityType, observation}`` or a flat observation
        dict carrying ``entityName``/``entityType`` (temporal input shape).
        """
        if isinstance(data, PendingObservation):
            return data
        if not isinstance(data, dict):
            raise ValueError(f"pending observation must be a dict, got {type(data).__name__}")

        entity_name = data.get("entityName") or data.get("entity_name")
        if not entity_name:
            raise ValueError("pending observation is missing entityName")
        entity_type = data.get("entityType") or data.get("entity_type") or "Unknown"
        raw = data.get("observation", data)
        return cls(
            entity_name=entity_name,
            entity_type=entity_type,
            observation=Observation.from_dict(raw),
        )


@dataclass
class Entity:
    """A named subject owning an ordered sequence of observations."""
    name: str
    entity_type: str = "Unknown"
    observations: List[Observation] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Union[Dict[str, Any], "Entity"]) -> "Entity":
        if isinstance(data, Entity):
            return data
        name = data.get("name")
        if not name:
            raise ValueError("entity is missing name")

        observations = []
        for raw in data.get("observations") or []:
            try:
                observations.append(Observation.from_dict(raw))
            except ValueError as e:
                logger.debug(f"Skipping malformed observation on entity {name}: {e}")

        return cls(
            name=name,
            entity_type=data.get("entityType") or data.get("entity_type") or "Unknown",
            observations=observations,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "entityType": self.entity_type,
            "observations": [obs.to_dict() for obs in self.observations],
        }


@dataclass
class Relation:
    """Directed, typed edge between two entities."""
    from_entity: str
    relation_type: str
    to_entity: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> RelationKey:
        """Identity triple; relations sharing it are the same relation."""
        return (self.from_entity, self.relation_type, self.to_entity)

    @property
    def is_critical(self) -> bool:
        return self.attributes.get("is_critical") is True

    @property
    def time(self) -> Optional[datetime]:
        try:
            return parse_timestamp(self.attributes.get("time"))
        except ValueError:
            return None

    @classmethod
    def from_dict(cls, data: Union[Dict[str, Any], "Relation"]) -> "Relation":
        if isinstance(data, Relation):
            return data
        source = data.get("from") or data.get("from_")
        target = data.get("to")
        relation_type = data.get("relationType") or data.get("relation_type")
        if not source or not target or not relation_type:
            raise ValueError("relation needs from, relationType and to")
        return cls(
            from_entity=source,
            relation_type=relation_type,
            to_entity=target,
            attributes=dict(data.get("attributes") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        attributes = dict(self.attributes)
        if isinstance(attributes.get("time"), datetime):
            attributes["time"] = format_timestamp(parse_timestamp(attributes["time"]))
        return {
            "from": self.from_entity,
            "relationType": self.relation_type,
            "to": self.to_entity,
            "attributes": attributes,
        }


@dataclass
class ScoreBreakdown:
    """Constituent factor scores."""
    relevance: float = 0.0
    recency: float = 0.0
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"relevance": self.relevance, "recency": self.recency, "confidence": self.confidence}


@dataclass
class ScoredObservation:
    observation: Observation
    score: float
    scores: ScoreBreakdown = field(default_factory=ScoreBreakdown)

    def to_dict(self) -> Dict[str, Any]:
        data = self.observation.to_dict()
        data["score"] = self.score
        data["scores"] = self.scores.to_dict()
        return data


@dataclass
class ScoredEntity:
    """Entity with its total score, factor breakdown and filtered observations."""
    entity: Entity
    score: float
    scores: ScoreBreakdown
    observations: List[ScoredObservation] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.entity.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.entity.name,
            "entityType": self.entity.entity_type,
            "observations": [obs.to_dict() for obs in self.observations],
            "score": self.score,
            "scores": self.scores.to_dict(),
        }


@dataclass
class ScoredRelation:
    relation: Relation
    score: float

    def to_dict(self) -> Dict[str, Any]:
        data = self.relation.to_dict()
        data["score"] = self.score
        return data


@dataclass
class CategoryEntity:
    """Entity restricted to one category, observations ordered by score."""
    entity: Entity
    observations: List[ScoredObservation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.entity.name,
            "entityType": self.entity.entity_type,
            "observations": [obs.to_dict() for obs in self.observations],
        }


@dataclass
class RetrievalResult:
    """Ranked, truncated result of a context retrieval."""
    entities: List[ScoredEntity] = field(default_factory=list)
    relations: List[ScoredRelation] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "entities": [e.to_dict() for e in self.entities],
            "relations": [r.to_dict() for r in self.relations],
        }
        if self.error is not None:
            data["error"] = self.error
        else:
            data["context"] = {"keywords": list(self.keywords), "retrievalOptions": self.options}
        return data


@dataclass
class CategoryResult:
    category: str
    entities: List[CategoryEntity] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "category": self.category,
            "entities": [e.to_dict() for e in self.entities],
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class CriticalResult:
    entities: List[Entity] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "entities": [e.to_dict() for e in self.entities],
            "relations": [r.to_dict() for r in self.relations],
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class TimeRangeResult:
    start_date: str
    end_date: str
    entities: List[Entity] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timeRange": {"startDate": self.start_date, "endDate": self.end_date},
            "entities": [e.to_dict() for e in self.entities],
            "relations": [r.to_dict() for r in self.relations],
        }
        if self.error is not None:
            data["error"] = self.error
        return data

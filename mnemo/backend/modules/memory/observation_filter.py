"""
Observation Filter - eligibility rules and grouping for compression.

Rules, applied per item in order:
1. critical observations are skipped when preserve_critical is on
2. confidence below min_confidence is skipped
3. observations older than max_observation_age_days are skipped

Survivors are grouped by owning entity and category. Groups smaller than
compression_threshold are dropped.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from .config import MemoryConfig
from .memory_types import DEFAULT_CATEGORY, Observation, PendingObservation

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 60 * 60 * 24


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from earlier to later (negative if earlier is in the future)."""
    return (later - earlier).total_seconds() / SECONDS_PER_DAY


@dataclass
class ObservationGroup:
    """Eligible observations owned by one entity within one category."""
    entity_name: str
    entity_type: str
    category: str
    observations: List[Observation] = field(default_factory=list)

    @property
    def key(self) -> str:
        return group_key(self.entity_name, self.category)


def group_key(entity_name: str, category: Optional[str]) -> str:
    return f"{entity_name}:{category or DEFAULT_CATEGORY}"


class ObservationFilter:
    """Applies eligibility rules and groups observations for clustering."""

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config or MemoryConfig()
        self.clock = clock

    def is_eligible(self, observation: Observation, now: Optional[datetime] = None) -> bool:
        """Check one observation against the critical, confidence and age rules."""
        if self.config.preserve_critical and observation.is_critical:
            return False

        if observation.confidence < self.config.min_confidence:
            return False

        if observation.timestamp is None:
            return False

        age_days = days_between(observation.timestamp, now or self.clock())
        if age_days > self.config.max_observation_age_days:
            return False

        return True

    def group(self, items: Iterable[PendingObservation]) -> Dict[str, ObservationGroup]:
        """
        Group eligible observations by ``entityName:category``.

        Every group is returned regardless of size; see filter_groups().
        Insertion order of groups and of observations inside each group
        follows input order.
        """
        now = self.clock()
        groups: Dict[str, ObservationGroup] = {}

        for item in items:
            observation = item.observation
            if not observation.content:
                logger.debug(f"Skipping observation without content for {item.entity_name}")
                continue
            if not self.is_eligible(observation, now):
                continue

            category = observation.category or DEFAULT_CATEGORY
            key = group_key(item.entity_name, category)
            if key not in groups:
                groups[key] = ObservationGroup(
                    entity_name=item.entity_name,
                    entity_type=item.entity_type,
                    category=category,
                )
            groups[key].observations.append(observation)

        return groups

    def filter_groups(self, items: Iterable[PendingObservation]) -> Dict[str, ObservationGroup]:
        """Group eligible observations and drop groups below compression_threshold."""
        groups = self.group(items)
        kept = {
            key: group for key, group in groups.items()
            if len(group.observations) >= self.config.compression_threshold
        }
        if len(kept) < len(groups):
            logger.debug(f"Dropped {len(groups) - len(kept)} group(s) below compression threshold")
        return kept

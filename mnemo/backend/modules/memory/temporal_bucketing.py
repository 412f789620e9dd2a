"""
Temporal Bucketer - splits observations into fixed-size time windows.

A window start is the observation's UTC date, moved back by
``day_of_month % window_days`` days. Windows are therefore anchored to the
calendar day of the month, not to a rolling origin; with a 30-day window,
days 1-29 of a month fall back into the last day of the previous month.
"""

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List

from .memory_types import PendingObservation

logger = logging.getLogger(__name__)


def window_start(day: date, window_days: int) -> date:
    return day - timedelta(days=day.day % window_days)


def window_key(day: date, window_days: int) -> str:
    """ISO date (YYYY-MM-DD) of the window containing ``day``."""
    return window_start(day, window_days).isoformat()


class TemporalBucketer:
    """Groups pending observations by time window, in first-seen window order."""

    def __init__(self, window_days: int = 30):
        if window_days <= 0:
            raise ValueError("window_days must be > 0")
        self.window_days = window_days

    def bucket(self, items: Iterable[PendingObservation]) -> Dict[str, List[PendingObservation]]:
        windows: Dict[str, List[PendingObservation]] = {}
        skipped = 0

        for item in items:
            timestamp = item.observation.timestamp
            if timestamp is None:
                skipped += 1
                continue
            key = window_key(timestamp.date(), self.window_days)
            windows.setdefault(key, []).append(item)

        if skipped:
            logger.debug(f"Skipped {skipped} observation(s) without timestamp")
        return windows

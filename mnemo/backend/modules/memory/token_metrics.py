"""
Size metrics for memory payloads.

Rough token estimates used to report how much a compression run saved or how
large a retrieval result is. Reporting only: nothing in the engine changes
behaviour based on these numbers.
"""

import json
import math
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable

CHARS_PER_TOKEN = 4


def _to_text(data: Any) -> str:
    if isinstance(data, str):
        return data
    if hasattr(data, "to_dict"):
        data = data.to_dict()
    try:
        return json.dumps(data, default=str)
    except (TypeError, ValueError):
        return str(data)


def shannon_entropy(text: str) -> float:
    """Bits per character of the text's character distribution."""
    if not text:
        return 0.0
    length = len(text)
    return -sum((n / length) * math.log2(n / length) for n in Counter(text).values())


def estimate_tokens(data: Any, use_entropy: bool = False) -> int:
    """
    Estimate the token count of a string or JSON-serializable value.

    The default is characters / 4. With use_entropy, the estimate is scaled
    by a factor in roughly [0.5, 1.5] derived from character entropy, so
    repetitive text counts as cheaper than varied text.
    """
    text = _to_text(data)
    if not text:
        return 0
    base = len(text) / CHARS_PER_TOKEN
    if use_entropy:
        base *= 0.5 + shannon_entropy(text) / 8
    return math.ceil(base)


@dataclass
class SizeReport:
    tokens_before: int
    tokens_after: int

    @property
    def tokens_saved(self) -> int:
        return self.tokens_before - self.tokens_after

    @property
    def ratio(self) -> float:
        """tokens_after / tokens_before (1.0 when there was nothing to compress)."""
        if self.tokens_before == 0:
            return 1.0
        return self.tokens_after / self.tokens_before

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["tokens_saved"] = self.tokens_saved
        data["ratio"] = round(self.ratio, 4)
        return data


def compression_savings(compressed: Iterable[Any]) -> SizeReport:
    """
    Compare compressed observations against the sources they replace.

    Each item must expose ``source_observations`` and ``content`` (a
    CompressedObservation).
    """
    before = 0
    after = 0
    for item in compressed:
        before += sum(estimate_tokens(source) for source in item.source_observations or [])
        after += estimate_tokens(item.content)
    return SizeReport(tokens_before=before, tokens_after=after)

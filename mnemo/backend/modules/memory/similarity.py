"""
Token set similarity between free-text observation contents.

Lexical only: no stemming, no synonyms. Two contents are compared as sets of
lowercased word tokens using the Jaccard index.
"""

import re
from typing import List, Set

_NON_WORD = re.compile(r"\W+")


def tokenize(text: str) -> List[str]:
    """Split text on non-word boundaries, dropping empty tokens. Case is kept."""
    if not text:
        return []
    return [token for token in _NON_WORD.split(text) if token]


def token_set(text: str) -> Set[str]:
    return set(tokenize(text.lower())) if text else set()


def token_set_similarity(text_a: str, text_b: str) -> float:
    """
    Jaccard index of the two token sets, in [0, 1].

    Symmetric. Returns 0.0 when both token sets are empty.
    """
    set_a = token_set(text_a)
    set_b = token_set(text_b)

    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)
